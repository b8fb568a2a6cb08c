from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.db.base import get_db
from app.core.audit import RequestContext, record_activity
from app.core.dependencies import get_request_context, require_committee
from app.models.user import User
from app.schemas.meeting import AttendanceCreate, AttendanceResponse, AttendanceUpdate, BulkAttendanceRequest
from app.services import meeting as meeting_service

router = APIRouter(prefix="/api/attendance", tags=["attendance"])


def _to_response(attendance) -> AttendanceResponse:
    return AttendanceResponse(
        id=attendance.id,
        user_id=attendance.user_id,
        meeting_id=attendance.meeting_id,
        is_present=attendance.is_present,
        user_name=attendance.user.name if attendance.user else None,
    )


def _get_attendance_or_404(db: Session, attendance_id: int):
    attendance = meeting_service.get_attendance(db, attendance_id)
    if not attendance:
        raise HTTPException(status_code=404, detail=f"Attendance with ID {attendance_id} not found")
    return attendance


@router.get("", response_model=List[AttendanceResponse])
def get_attendance_list(
    meeting_id: Optional[int] = None,
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    return [_to_response(a) for a in meeting_service.list_attendance(db, meeting_id)]


@router.get("/meeting/{meeting_id}", response_model=List[AttendanceResponse])
def get_attendance_by_meeting(
    meeting_id: int,
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    if not meeting_service.get_meeting(db, meeting_id):
        raise HTTPException(status_code=404, detail=f"Meeting with ID {meeting_id} not found")
    return [_to_response(a) for a in meeting_service.list_attendance(db, meeting_id)]


@router.post("/bulk", response_model=List[AttendanceResponse])
def bulk_attendance(
    request: BulkAttendanceRequest,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """Replace the attendance list of one meeting."""
    try:
        rows = meeting_service.bulk_replace_attendance(db, request.meeting_id, request.attendances)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    record_activity(context, "BulkUpdate", "Attendance", entity_id=request.meeting_id,
                    description=f"Replaced attendance for meeting {request.meeting_id}",
                    details={"count": len(rows), "present": sum(1 for r in rows if r.is_present)})
    return [_to_response(a) for a in rows]


@router.get("/{attendance_id}", response_model=AttendanceResponse)
def get_attendance(
    attendance_id: int,
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    return _to_response(_get_attendance_or_404(db, attendance_id))


@router.post("", response_model=AttendanceResponse, status_code=status.HTTP_201_CREATED)
def create_attendance(
    attendance_data: AttendanceCreate,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    try:
        attendance = meeting_service.create_attendance(db, attendance_data)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    record_activity(context, "Create", "Attendance", entity_id=attendance.id,
                    details=attendance_data.model_dump(), status_code=201)
    return _to_response(attendance)


@router.put("/{attendance_id}", response_model=AttendanceResponse)
def update_attendance(
    attendance_id: int,
    attendance_data: AttendanceUpdate,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    attendance = _get_attendance_or_404(db, attendance_id)
    attendance = meeting_service.update_attendance(db, attendance, attendance_data.is_present)
    record_activity(context, "Update", "Attendance", entity_id=attendance.id,
                    details={"isPresent": attendance.is_present})
    return _to_response(attendance)


@router.delete("/{attendance_id}")
def delete_attendance(
    attendance_id: int,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    attendance = _get_attendance_or_404(db, attendance_id)
    meeting_service.delete_attendance(db, attendance)
    record_activity(context, "Delete", "Attendance", entity_id=attendance_id)
    return {"message": "Attendance deleted", "id": attendance_id}
