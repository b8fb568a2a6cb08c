import logging
from datetime import date, datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from app.db.base import get_db, get_session_factory
from app.core.audit import RequestContext, record_activity
from app.core.dependencies import get_current_user, get_request_context, is_committee, require_committee
from app.core.email import send_loan_request_approved_email, send_loan_request_rejected_email
from app.models.loan import LoanRequestStatus
from app.models.user import User
from app.schemas.dashboard import DashboardMeetingsPage, DashboardSummary
from app.schemas.loan import (
    LoanRequestAction,
    LoanRequestActionResponse,
    LoanRequestCreate,
    LoanRequestResponse,
    LoansDueResponse,
    LoanWithInterest,
)
from app.services import dashboard as dashboard_service
from app.services import loan as loan_service
from app.services.interest import compute_interest
from app.services.scheduler import run_weekly_tasks

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


def _scoped_user_id(current_user: User, user_id: Optional[int]) -> Optional[int]:
    """Committee may look at anyone; members only at themselves."""
    if is_committee(current_user):
        return user_id
    if user_id is not None and user_id != current_user.id:
        raise HTTPException(status_code=403, detail="You can only view your own records")
    return current_user.id


@router.get("/meetings", response_model=DashboardMeetingsPage)
def get_dashboard_meetings(
    page: int = 1,
    page_size: int = Query(10, alias="pageSize"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Paginated meeting details; page is at least 1, pageSize 1..100."""
    return dashboard_service.get_meetings_page(db, page, page_size, start_date, end_date)


@router.get("/summary", response_model=DashboardSummary)
def get_dashboard_summary(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return dashboard_service.get_summary(db, date.today())


@router.get("/loans", response_model=List[LoanWithInterest])
def get_dashboard_loans(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Committee sees every loan, members their own."""
    user_id = None if is_committee(current_user) else current_user.id
    today = date.today()
    return [loan_service.to_loan_with_interest(l, today) for l in loan_service.list_loans(db, user_id)]


@router.get("/loans-due", response_model=LoansDueResponse)
def get_loans_due(
    user_id: Optional[int] = Query(None, alias="userId"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Overdue, due-today and due-this-week loans with interest accrued to today."""
    return loan_service.get_loans_due(db, date.today(), _scoped_user_id(current_user, user_id))


@router.post("/weekly-job/run")
def run_weekly_job(
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    session_factory=Depends(get_session_factory)
):
    """Run the weekly reminder/report job now."""
    summary = run_weekly_tasks(session_factory)
    record_activity(context, "Run", "WeeklyJob", description="Weekly job run manually", details=summary)
    return summary


# ---------------------------------------------------------------------------
# Loan requests
# ---------------------------------------------------------------------------

def _get_request_or_404(db: Session, request_id: int):
    loan_request = loan_service.get_loan_request(db, request_id)
    if not loan_request:
        raise HTTPException(status_code=404, detail=f"Loan request with ID {request_id} not found")
    return loan_request


@router.post("/loan-requests", response_model=LoanRequestResponse, status_code=status.HTTP_201_CREATED)
def create_loan_request(
    request_data: LoanRequestCreate,
    current_user: User = Depends(get_current_user),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """Submit a loan request. Committee members may file one for another member."""
    borrower_id = current_user.id
    if request_data.user_id is not None and request_data.user_id != current_user.id:
        if not is_committee(current_user):
            raise HTTPException(status_code=403, detail="You can only request loans for yourself")
        borrower_id = request_data.user_id
    try:
        loan_request = loan_service.create_loan_request(db, borrower_id, request_data, date.today())
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    loan_request = loan_service.get_loan_request(db, loan_request.id)
    response = loan_service.to_loan_request_response(loan_request)
    record_activity(context, "Create", "LoanRequest", entity_id=loan_request.id,
                    description=f"Loan request of {response.amount:.2f} submitted",
                    details=request_data.model_dump(mode="json"), status_code=201)
    return response


@router.get("/loan-requests", response_model=List[LoanRequestResponse])
def get_loan_requests(
    user_id: Optional[int] = Query(None, alias="userId"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    scoped = _scoped_user_id(current_user, user_id)
    return [loan_service.to_loan_request_response(r) for r in loan_service.list_loan_requests(db, scoped)]


@router.get("/loan-requests/{request_id}", response_model=LoanRequestResponse)
def get_loan_request(
    request_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    loan_request = _get_request_or_404(db, request_id)
    loan_service.check_request_access(loan_request, current_user, is_committee(current_user))
    return loan_service.to_loan_request_response(loan_request)


@router.delete("/loan-requests/{request_id}")
def delete_loan_request(
    request_id: int,
    current_user: User = Depends(get_current_user),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """Owner or committee may delete a request."""
    loan_request = _get_request_or_404(db, request_id)
    loan_service.check_request_access(loan_request, current_user, is_committee(current_user))
    loan_service.delete_loan_request(db, loan_request)
    record_activity(context, "Delete", "LoanRequest", entity_id=request_id)
    return {"message": "Loan request deleted", "id": request_id}


@router.post("/loan-requests/{request_id}/action", response_model=LoanRequestActionResponse)
def process_loan_request(
    request_id: int,
    action: LoanRequestAction,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """Accept or reject a Requested loan request.

    Acceptance creates a Sanctioned loan. The borrower email is best effort.
    """
    loan_request = loan_service.get_loan_request(db, request_id)
    if not loan_request:
        record_activity(context, "Process", "LoanRequest", entity_id=request_id,
                        description=f"Failed to {action.action.lower()} loan request",
                        status_code=404, is_success=False, error_message="Loan request not found")
        raise HTTPException(status_code=404, detail=f"Loan request with ID {request_id} not found")

    before = {
        "status": loan_request.status.value,
        "description": loan_request.description,
        "chequeNumber": loan_request.cheque_number,
    }
    try:
        loan_request, loan = loan_service.process_loan_request(
            db,
            loan_request,
            action.action,
            processed_by=current_user,
            now=datetime.utcnow(),
            description=action.description,
            cheque_number=action.cheque_number,
        )
    except ValueError as e:
        record_activity(context, "Process", "LoanRequest", entity_id=request_id,
                        description=f"Failed to {action.action.lower()} loan request",
                        details={"before": before, "action": action.action},
                        status_code=400, is_success=False, error_message=str(e))
        raise HTTPException(status_code=400, detail=str(e))

    loan_request = loan_service.get_loan_request(db, loan_request.id)
    borrower = loan_request.user
    loan_type = loan_request.loan_type
    if loan_request.status == LoanRequestStatus.ACCEPTED:
        email_sent = send_loan_request_approved_email(
            to_email=borrower.email,
            user_name=borrower.name,
            amount=loan_request.amount,
            loan_type=loan_type.loan_type_name,
            due_date=loan_request.due_date,
            interest_rate=loan_type.interest_rate,
            expected_interest=compute_interest(
                loan_type.interest_rate, loan_request.amount, loan_request.date, loan_request.due_date
            ),
        )
    else:
        email_sent = send_loan_request_rejected_email(
            to_email=borrower.email,
            user_name=borrower.name,
            amount=loan_request.amount,
            loan_type=loan_type.loan_type_name,
            reason=action.description or "",
        )

    after = {
        "status": loan_request.status.value,
        "description": loan_request.description,
        "chequeNumber": loan_request.cheque_number,
    }
    record_activity(
        context, "Process", "LoanRequest", entity_id=loan_request.id,
        description=f"Loan request {loan_request.id} {loan_request.status.value.lower()}",
        details={
            "before": before,
            "after": after,
            "loanId": loan.id if loan else None,
            "emailSent": email_sent,
            "changes": {
                "descriptionChanged": before["description"] != after["description"],
                "chequeNumberChanged": before["chequeNumber"] != after["chequeNumber"],
            },
        },
    )

    today = date.today()
    return LoanRequestActionResponse(
        loan_request=loan_service.to_loan_request_response(loan_request),
        loan=loan_service.to_loan_with_interest(loan_service.get_loan(db, loan.id), today) if loan else None,
        email_sent=email_sent,
    )
