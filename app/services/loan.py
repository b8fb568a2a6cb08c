import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload

from app.models.loan import Loan, LoanType, LoanRequest, LoanStatus, LoanRequestStatus
from app.models.user import User
from app.schemas.loan import (
    LoanCreate,
    LoanUpdate,
    LoanWithInterest,
    LoanRequestCreate,
    LoanRequestResponse,
)
from app.services.interest import compute_interest, classify_due_state, DueBucket

logger = logging.getLogger(__name__)


def _decimal(value) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


def _status_value(status) -> str:
    return status.value if hasattr(status, "value") else str(status)


# ---------------------------------------------------------------------------
# Loan types
# ---------------------------------------------------------------------------

def get_loan_types(db: Session) -> List[LoanType]:
    return db.query(LoanType).order_by(LoanType.id).all()


def get_loan_type(db: Session, loan_type_id: int) -> Optional[LoanType]:
    return db.query(LoanType).filter(LoanType.id == loan_type_id).first()


# ---------------------------------------------------------------------------
# Loans
# ---------------------------------------------------------------------------

def to_loan_with_interest(loan: Loan, today: date, as_of: Optional[date] = None) -> LoanWithInterest:
    """Decorate a loan with accrued interest and due state.

    Interest accrues to ``as_of``, defaulting to the closed date, else the due
    date. Due state is always relative to ``today``.
    """
    interest_as_of = as_of or loan.closed_date or loan.due_date
    rate = loan.loan_type.interest_rate if loan.loan_type else Decimal("0")
    interest = compute_interest(rate, loan.amount, loan.date, interest_as_of)
    status = _status_value(loan.status)
    state = classify_due_state(loan.due_date, loan.closed_date, today, status)
    return LoanWithInterest(
        id=loan.id,
        user_id=loan.user_id,
        user_name=loan.user.name if loan.user else None,
        loan_type_id=loan.loan_type_id,
        loan_type_name=loan.loan_type.loan_type_name if loan.loan_type else None,
        interest_rate=float(rate),
        date=loan.date,
        due_date=loan.due_date,
        amount=float(loan.amount),
        closed_date=loan.closed_date,
        interest_received=float(loan.interest_received or 0),
        loan_term=loan.loan_term,
        status=status,
        cheque_number=loan.cheque_number,
        interest_amount=float(interest),
        total_amount=float(_decimal(loan.amount) + interest),
        interest_as_of=interest_as_of,
        is_closed=state.is_closed,
        is_overdue=state.is_overdue,
        is_due_today=state.is_due_today,
        is_due_this_week=state.is_due_this_week,
        days_overdue=state.days_overdue,
        days_until_due=state.days_until_due,
    )


def _loan_query(db: Session):
    return db.query(Loan).options(joinedload(Loan.user), joinedload(Loan.loan_type))


def list_loans(db: Session, user_id: Optional[int] = None) -> List[Loan]:
    query = _loan_query(db)
    if user_id is not None:
        query = query.filter(Loan.user_id == user_id)
    return query.order_by(Loan.date.desc(), Loan.id.desc()).all()


def get_loan(db: Session, loan_id: int) -> Optional[Loan]:
    return _loan_query(db).filter(Loan.id == loan_id).first()


def _require_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise LookupError(f"User {user_id} not found")
    return user


def _require_loan_type(db: Session, loan_type_id: int) -> LoanType:
    loan_type = get_loan_type(db, loan_type_id)
    if not loan_type:
        raise LookupError(f"Loan type {loan_type_id} not found")
    return loan_type


def create_loan(db: Session, data: LoanCreate) -> Loan:
    """Create an active loan. Raises LookupError / ValueError."""
    _require_user(db, data.user_id)
    _require_loan_type(db, data.loan_type_id)
    if data.due_date < data.date:
        raise ValueError("Due date cannot be before the loan date")

    loan = Loan(
        user_id=data.user_id,
        loan_type_id=data.loan_type_id,
        date=data.date,
        due_date=data.due_date,
        amount=_decimal(data.amount),
        interest_received=Decimal("0"),
        loan_term=data.loan_term,
        status=LoanStatus.ACTIVE,
        cheque_number=data.cheque_number,
    )
    db.add(loan)
    db.commit()
    db.refresh(loan)
    logger.info("Created loan %s for user %s amount %s", loan.id, loan.user_id, loan.amount)
    return loan


# Only these columns are nullable; a null for any other field leaves it unchanged.
_CLEARABLE_LOAN_FIELDS = ("closed_date", "cheque_number")


def update_loan(db: Session, loan: Loan, data: LoanUpdate) -> Loan:
    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in _CLEARABLE_LOAN_FIELDS
    }
    if "loan_type_id" in changes and changes["loan_type_id"] is not None:
        _require_loan_type(db, changes["loan_type_id"])
    if "status" in changes and changes["status"] is not None:
        try:
            changes["status"] = LoanStatus(changes["status"])
        except ValueError:
            raise ValueError(f"Invalid loan status: {changes['status']}")
    for field in ("amount", "interest_received"):
        if changes.get(field) is not None:
            changes[field] = _decimal(changes[field])

    for field, value in changes.items():
        setattr(loan, field, value)

    if loan.due_date < loan.date:
        db.rollback()
        raise ValueError("Due date cannot be before the loan date")

    db.commit()
    db.refresh(loan)
    return loan


def delete_loan(db: Session, loan: Loan) -> None:
    """Hard delete."""
    db.delete(loan)
    db.commit()
    logger.info("Deleted loan %s", loan.id)


def record_repayment(db: Session, loan: Loan, closed_date: date, interest_received) -> Loan:
    """Close a loan with the interest actually received."""
    if loan.closed_date is not None or _status_value(loan.status) == LoanStatus.CLOSED.value:
        raise ValueError("Loan is already closed")
    if closed_date < loan.date:
        raise ValueError("Closed date cannot be before the loan date")
    loan.closed_date = closed_date
    loan.interest_received = _decimal(interest_received)
    loan.status = LoanStatus.CLOSED
    db.commit()
    db.refresh(loan)
    logger.info("Closed loan %s on %s", loan.id, closed_date)
    return loan


def get_loans_due(db: Session, today: date, user_id: Optional[int] = None) -> dict:
    """Open loans bucketed by due state, interest accrued to today."""
    query = _loan_query(db).filter(Loan.closed_date.is_(None), Loan.status != LoanStatus.CLOSED)
    if user_id is not None:
        query = query.filter(Loan.user_id == user_id)

    buckets = {DueBucket.OVERDUE: [], DueBucket.DUE_TODAY: [], DueBucket.DUE_THIS_WEEK: []}
    for loan in query.order_by(Loan.due_date).all():
        state = classify_due_state(loan.due_date, loan.closed_date, today, _status_value(loan.status))
        if state.bucket in buckets:
            buckets[state.bucket].append(to_loan_with_interest(loan, today, as_of=today))

    overdue = buckets[DueBucket.OVERDUE]
    return {
        "as_of": today,
        "overdue_loans": overdue,
        "due_today_loans": buckets[DueBucket.DUE_TODAY],
        "due_this_week_loans": buckets[DueBucket.DUE_THIS_WEEK],
        "total_overdue_amount": float(sum(_decimal(l.amount) for l in overdue)),
        "total_overdue_interest": float(sum(_decimal(l.interest_amount) for l in overdue)),
    }


# ---------------------------------------------------------------------------
# Loan requests
# ---------------------------------------------------------------------------

def _request_query(db: Session):
    return db.query(LoanRequest).options(
        joinedload(LoanRequest.user),
        joinedload(LoanRequest.loan_type),
        joinedload(LoanRequest.processed_by),
    )


def to_loan_request_response(loan_request: LoanRequest) -> LoanRequestResponse:
    rate = loan_request.loan_type.interest_rate if loan_request.loan_type else Decimal("0")
    expected = compute_interest(rate, loan_request.amount, loan_request.date, loan_request.due_date)
    return LoanRequestResponse(
        id=loan_request.id,
        user_id=loan_request.user_id,
        user_name=loan_request.user.name if loan_request.user else None,
        loan_type_id=loan_request.loan_type_id,
        loan_type_name=loan_request.loan_type.loan_type_name if loan_request.loan_type else None,
        interest_rate=float(rate),
        date=loan_request.date,
        due_date=loan_request.due_date,
        amount=float(loan_request.amount),
        loan_term=loan_request.loan_term,
        description=loan_request.description,
        cheque_number=loan_request.cheque_number,
        status=_status_value(loan_request.status),
        request_date=loan_request.request_date,
        processed_date=loan_request.processed_date,
        processed_by_user_id=loan_request.processed_by_user_id,
        processed_by_name=loan_request.processed_by.name if loan_request.processed_by else None,
        expected_interest=float(expected),
    )


def create_loan_request(db: Session, user_id: int, data: LoanRequestCreate, today: date) -> LoanRequest:
    _require_user(db, user_id)
    _require_loan_type(db, data.loan_type_id)
    request_date = data.date or today
    if data.due_date <= request_date:
        raise ValueError("Due date must be after the request date")

    loan_request = LoanRequest(
        user_id=user_id,
        loan_type_id=data.loan_type_id,
        date=request_date,
        due_date=data.due_date,
        amount=_decimal(data.amount),
        loan_term=data.loan_term,
        description=data.description,
        cheque_number=data.cheque_number,
        status=LoanRequestStatus.REQUESTED,
    )
    db.add(loan_request)
    db.commit()
    db.refresh(loan_request)
    logger.info("Loan request %s submitted by user %s", loan_request.id, user_id)
    return loan_request


def list_loan_requests(db: Session, user_id: Optional[int] = None) -> List[LoanRequest]:
    query = _request_query(db)
    if user_id is not None:
        query = query.filter(LoanRequest.user_id == user_id)
    return query.order_by(LoanRequest.request_date.desc(), LoanRequest.id.desc()).all()


def get_loan_request(db: Session, request_id: int) -> Optional[LoanRequest]:
    return _request_query(db).filter(LoanRequest.id == request_id).first()


def delete_loan_request(db: Session, loan_request: LoanRequest) -> None:
    db.delete(loan_request)
    db.commit()


def process_loan_request(
    db: Session,
    loan_request: LoanRequest,
    action: str,
    processed_by: User,
    now: datetime,
    description: Optional[str] = None,
    cheque_number: Optional[str] = None,
) -> Tuple[LoanRequest, Optional[Loan]]:
    """Move a Requested loan request to Accepted or Rejected.

    Acceptance creates a Sanctioned loan dated ``now`` with the request's due
    date, type, amount and term. The request row is kept. Both writes share
    one commit.
    """
    if _status_value(loan_request.status) != LoanRequestStatus.REQUESTED.value:
        raise ValueError(
            f"Loan request has already been processed (status: {_status_value(loan_request.status)})"
        )
    try:
        new_status = LoanRequestStatus(action)
    except ValueError:
        raise ValueError("Action must be 'Accepted' or 'Rejected'")
    if new_status == LoanRequestStatus.REQUESTED:
        raise ValueError("Action must be 'Accepted' or 'Rejected'")

    if description:
        loan_request.description = description
    if cheque_number:
        loan_request.cheque_number = cheque_number
    loan_request.status = new_status
    loan_request.processed_date = now
    loan_request.processed_by_user_id = processed_by.id

    loan = None
    if new_status == LoanRequestStatus.ACCEPTED:
        loan = Loan(
            user_id=loan_request.user_id,
            loan_type_id=loan_request.loan_type_id,
            date=now.date(),
            due_date=loan_request.due_date,
            amount=loan_request.amount,
            interest_received=Decimal("0"),
            loan_term=loan_request.loan_term,
            status=LoanStatus.SANCTIONED,
            cheque_number=loan_request.cheque_number,
        )
        db.add(loan)

    db.commit()
    db.refresh(loan_request)
    if loan is not None:
        db.refresh(loan)
    logger.info(
        "Loan request %s %s by user %s%s",
        loan_request.id, new_status.value, processed_by.id,
        f" (loan {loan.id})" if loan is not None else "",
    )
    return loan_request, loan


def check_request_access(loan_request: LoanRequest, user: User, committee: bool) -> None:
    """Owners and committee members may see or delete a request."""
    if loan_request.user_id != user.id and not committee:
        raise PermissionError("You can only access your own loan requests")
