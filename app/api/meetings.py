from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.db.base import get_db
from app.core.audit import RequestContext, record_activity
from app.core.dependencies import get_request_context, require_committee
from app.models.user import User
from app.schemas.meeting import (
    ComprehensiveMeetingSummary,
    MeetingCreate,
    MeetingMinutesRequest,
    MeetingMinutesResponse,
    MeetingResponse,
    MeetingSummary,
    MeetingUpdate,
)
from app.services import meeting as meeting_service

router = APIRouter(prefix="/api/meeting", tags=["meeting"])


def _get_meeting_or_404(db: Session, meeting_id: int):
    meeting = meeting_service.get_meeting(db, meeting_id)
    if not meeting:
        raise HTTPException(status_code=404, detail=f"Meeting with ID {meeting_id} not found")
    return meeting


@router.get("", response_model=List[MeetingResponse])
def get_meetings(
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    return meeting_service.list_meetings(db)


@router.get("/summaries", response_model=List[MeetingSummary])
def get_meeting_summaries(
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    """Payment and attendance totals for every meeting."""
    return meeting_service.get_meeting_summaries(db)


@router.post("/minutes", response_model=MeetingMinutesResponse)
def save_meeting_minutes(
    request: MeetingMinutesRequest,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    meeting = _get_meeting_or_404(db, request.meeting_id)
    meeting = meeting_service.save_minutes(db, meeting, request.minutes)
    record_activity(context, "Update", "MeetingMinutes", entity_id=meeting.id,
                    description=f"Saved minutes for meeting on {meeting.date}",
                    details={"length": len(request.minutes)})
    return MeetingMinutesResponse(meeting_id=meeting.id, date=meeting.date, minutes=meeting.meeting_minutes)


@router.get("/{meeting_id}", response_model=MeetingResponse)
def get_meeting(
    meeting_id: int,
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    return _get_meeting_or_404(db, meeting_id)


@router.get("/{meeting_id}/minutes", response_model=MeetingMinutesResponse)
def get_meeting_minutes(
    meeting_id: int,
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    meeting = _get_meeting_or_404(db, meeting_id)
    return MeetingMinutesResponse(meeting_id=meeting.id, date=meeting.date, minutes=meeting.meeting_minutes)


@router.get("/{meeting_id}/summary", response_model=MeetingSummary)
def get_meeting_summary(
    meeting_id: int,
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    meeting = _get_meeting_or_404(db, meeting_id)
    return meeting_service.get_meeting_summary(db, meeting)


@router.get("/{meeting_id}/comprehensive-summary", response_model=ComprehensiveMeetingSummary)
def get_comprehensive_summary(
    meeting_id: int,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """Eligible members at the meeting date split into attended and absent."""
    meeting = meeting_service.get_meeting(db, meeting_id)
    if not meeting:
        record_activity(context, "View", "MeetingSummary", entity_id=meeting_id,
                        description="Failed to retrieve comprehensive meeting summary",
                        status_code=404, is_success=False, error_message="Meeting not found")
        raise HTTPException(status_code=404, detail=f"Meeting with ID {meeting_id} not found")
    summary = meeting_service.get_comprehensive_summary(db, meeting)
    record_activity(context, "View", "MeetingSummary", entity_id=meeting.id,
                    description=f"Generated comprehensive summary for meeting on {meeting.date}",
                    details={"eligible": summary.total_eligible_users, "attended": summary.attended_count})
    return summary


@router.post("", response_model=MeetingResponse, status_code=status.HTTP_201_CREATED)
def create_meeting(
    meeting_data: MeetingCreate,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    meeting = meeting_service.create_meeting(db, meeting_data)
    record_activity(context, "Create", "Meeting", entity_id=meeting.id,
                    description=f"Created meeting on {meeting.date}",
                    details=meeting_data.model_dump(mode="json"), status_code=201)
    return meeting


@router.put("/{meeting_id}", response_model=MeetingResponse)
def update_meeting(
    meeting_id: int,
    meeting_data: MeetingUpdate,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    meeting = _get_meeting_or_404(db, meeting_id)
    meeting = meeting_service.update_meeting(db, meeting, meeting_data)
    record_activity(context, "Update", "Meeting", entity_id=meeting.id,
                    description=f"Updated meeting on {meeting.date}",
                    details=meeting_data.model_dump(mode="json", exclude_unset=True))
    return meeting


@router.delete("/{meeting_id}")
def delete_meeting(
    meeting_id: int,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    meeting = _get_meeting_or_404(db, meeting_id)
    meeting_date = meeting.date
    meeting_service.delete_meeting(db, meeting)
    record_activity(context, "Delete", "Meeting", entity_id=meeting_id,
                    description=f"Deleted meeting on {meeting_date}")
    return {"message": "Meeting deleted", "id": meeting_id}
