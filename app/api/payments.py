from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.db.base import get_db
from app.core.audit import RequestContext, record_activity
from app.core.dependencies import get_request_context, require_committee
from app.models.user import User
from app.schemas.meeting import (
    BulkMeetingPaymentRequest,
    MeetingPaymentCreate,
    MeetingPaymentResponse,
    MeetingPaymentUpdate,
)
from app.services import meeting as meeting_service

router = APIRouter(prefix="/api/meetingpayment", tags=["meetingpayment"])


def _to_response(payment) -> MeetingPaymentResponse:
    return MeetingPaymentResponse(
        id=payment.id,
        user_id=payment.user_id,
        meeting_id=payment.meeting_id,
        main_payment=float(payment.main_payment),
        weekly_payment=float(payment.weekly_payment),
        user_name=payment.user.name if payment.user else None,
    )


def _get_payment_or_404(db: Session, payment_id: int):
    payment = meeting_service.get_payment(db, payment_id)
    if not payment:
        raise HTTPException(status_code=404, detail=f"Meeting payment with ID {payment_id} not found")
    return payment


@router.get("", response_model=List[MeetingPaymentResponse])
def get_payments(
    meeting_id: Optional[int] = None,
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    return [_to_response(p) for p in meeting_service.list_payments(db, meeting_id)]


@router.get("/meeting/{meeting_id}", response_model=List[MeetingPaymentResponse])
def get_payments_by_meeting(
    meeting_id: int,
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    if not meeting_service.get_meeting(db, meeting_id):
        raise HTTPException(status_code=404, detail=f"Meeting with ID {meeting_id} not found")
    return [_to_response(p) for p in meeting_service.list_payments(db, meeting_id)]


@router.post("/bulk", response_model=List[MeetingPaymentResponse])
def bulk_payments(
    request: BulkMeetingPaymentRequest,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """Replace all payments of one meeting in a single transaction."""
    try:
        rows = meeting_service.bulk_replace_payments(db, request.meeting_id, request.payments)
    except LookupError as e:
        record_activity(context, "BulkUpdate", "MeetingPayment", entity_id=request.meeting_id,
                        status_code=404, is_success=False, error_message=str(e))
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        record_activity(context, "BulkUpdate", "MeetingPayment", entity_id=request.meeting_id,
                        status_code=400, is_success=False, error_message=str(e))
        raise HTTPException(status_code=400, detail=str(e))

    record_activity(
        context, "BulkUpdate", "MeetingPayment", entity_id=request.meeting_id,
        description=f"Replaced payments for meeting {request.meeting_id}",
        details={
            "count": len(rows),
            "totalMainPayment": sum(float(r.main_payment) for r in rows),
            "totalWeeklyPayment": sum(float(r.weekly_payment) for r in rows),
        },
    )
    return [_to_response(p) for p in rows]


@router.get("/{payment_id}", response_model=MeetingPaymentResponse)
def get_payment(
    payment_id: int,
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    return _to_response(_get_payment_or_404(db, payment_id))


@router.post("", response_model=MeetingPaymentResponse, status_code=status.HTTP_201_CREATED)
def create_payment(
    payment_data: MeetingPaymentCreate,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    try:
        payment = meeting_service.create_payment(db, payment_data)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    record_activity(context, "Create", "MeetingPayment", entity_id=payment.id,
                    details=payment_data.model_dump(), status_code=201)
    return _to_response(payment)


@router.put("/{payment_id}", response_model=MeetingPaymentResponse)
def update_payment(
    payment_id: int,
    payment_data: MeetingPaymentUpdate,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    payment = _get_payment_or_404(db, payment_id)
    payment = meeting_service.update_payment(db, payment, payment_data)
    record_activity(context, "Update", "MeetingPayment", entity_id=payment.id,
                    details=payment_data.model_dump(exclude_unset=True))
    return _to_response(payment)


@router.delete("/{payment_id}")
def delete_payment(
    payment_id: int,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    payment = _get_payment_or_404(db, payment_id)
    meeting_service.delete_payment(db, payment)
    record_activity(context, "Delete", "MeetingPayment", entity_id=payment_id)
    return {"message": "Meeting payment deleted", "id": payment_id}
