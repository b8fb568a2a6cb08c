import logging
from datetime import date
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.db.base import get_db
from app.core.audit import RequestContext, record_activity
from app.core.dependencies import get_current_user, get_request_context, require_committee
from app.core.email import send_loan_created_email
from app.models.user import User
from app.schemas.loan import LoanCreate, LoanTypeResponse, LoanUpdate, LoanWithInterest, RepaymentRequest
from app.services import loan as loan_service
from app.services.interest import compute_interest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/loan", tags=["loan"])


def _get_loan_or_404(db: Session, loan_id: int):
    loan = loan_service.get_loan(db, loan_id)
    if not loan:
        raise HTTPException(status_code=404, detail=f"Loan with ID {loan_id} not found")
    return loan


@router.get("/types", response_model=List[LoanTypeResponse])
def get_loan_types(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return [
        LoanTypeResponse(id=t.id, loan_type_name=t.loan_type_name, interest_rate=float(t.interest_rate))
        for t in loan_service.get_loan_types(db)
    ]


@router.get("", response_model=List[LoanWithInterest])
def get_loans(
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    """All loans with interest accrued to the closed date, else the due date."""
    today = date.today()
    return [loan_service.to_loan_with_interest(l, today) for l in loan_service.list_loans(db)]


@router.post("/repayment", response_model=LoanWithInterest)
def record_repayment(
    repayment: RepaymentRequest,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """Close a loan with the interest received."""
    loan = _get_loan_or_404(db, repayment.loan_id)
    try:
        loan = loan_service.record_repayment(db, loan, repayment.closed_date, repayment.interest_received)
    except ValueError as e:
        record_activity(context, "Repayment", "Loan", entity_id=repayment.loan_id,
                        status_code=400, is_success=False, error_message=str(e))
        raise HTTPException(status_code=400, detail=str(e))
    record_activity(context, "Repayment", "Loan", entity_id=loan.id,
                    description=f"Closed loan {loan.id}",
                    details=repayment.model_dump(mode="json"))
    return loan_service.to_loan_with_interest(loan, date.today())


@router.get("/{loan_id}", response_model=LoanWithInterest)
def get_loan(
    loan_id: int,
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    return loan_service.to_loan_with_interest(_get_loan_or_404(db, loan_id), date.today())


@router.post("", response_model=LoanWithInterest, status_code=status.HTTP_201_CREATED)
def create_loan(
    loan_data: LoanCreate,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    try:
        loan = loan_service.create_loan(db, loan_data)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    loan = loan_service.get_loan(db, loan.id)
    rate = loan.loan_type.interest_rate
    send_loan_created_email(
        to_email=loan.user.email,
        user_name=loan.user.name,
        amount=loan.amount,
        loan_type=loan.loan_type.loan_type_name,
        due_date=loan.due_date,
        interest_rate=rate,
        expected_interest=compute_interest(rate, loan.amount, loan.date, loan.due_date),
    )
    record_activity(context, "Create", "Loan", entity_id=loan.id,
                    description=f"Created loan for {loan.user.name}",
                    details=loan_data.model_dump(mode="json"), status_code=201)
    return loan_service.to_loan_with_interest(loan, date.today())


@router.put("/{loan_id}", response_model=LoanWithInterest)
def update_loan(
    loan_id: int,
    loan_data: LoanUpdate,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    loan = _get_loan_or_404(db, loan_id)
    try:
        loan = loan_service.update_loan(db, loan, loan_data)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    record_activity(context, "Update", "Loan", entity_id=loan.id,
                    details=loan_data.model_dump(mode="json", exclude_unset=True))
    return loan_service.to_loan_with_interest(loan, date.today())


@router.delete("/{loan_id}")
def delete_loan(
    loan_id: int,
    current_user: User = Depends(require_committee),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """Hard delete."""
    loan = _get_loan_or_404(db, loan_id)
    snapshot = loan_service.to_loan_with_interest(loan, date.today()).model_dump(mode="json", by_alias=True)
    loan_service.delete_loan(db, loan)
    record_activity(context, "Delete", "Loan", entity_id=loan_id,
                    description=f"Deleted loan {loan_id}", details=snapshot)
    return {"message": "Loan deleted", "id": loan_id}
