from pydantic import Field
from typing import Optional, List, Literal
import datetime as dt
from app.schemas.common import CamelModel


class LoanTypeResponse(CamelModel):
    id: int
    loan_type_name: str
    interest_rate: float


class LoanCreate(CamelModel):
    user_id: int
    loan_type_id: int
    date: dt.date
    due_date: dt.date
    amount: float = Field(..., gt=0)
    loan_term: int = Field(1, ge=1, description="Term in months")
    cheque_number: Optional[str] = None


class LoanUpdate(CamelModel):
    loan_type_id: Optional[int] = None
    date: Optional[dt.date] = None
    due_date: Optional[dt.date] = None
    amount: Optional[float] = Field(None, gt=0)
    loan_term: Optional[int] = Field(None, ge=1)
    closed_date: Optional[dt.date] = None
    interest_received: Optional[float] = Field(None, ge=0)
    status: Optional[str] = None
    cheque_number: Optional[str] = None


class RepaymentRequest(CamelModel):
    loan_id: int
    closed_date: dt.date
    interest_received: float = Field(0, ge=0)


class LoanWithInterest(CamelModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    loan_type_id: int
    loan_type_name: Optional[str] = None
    interest_rate: float
    date: dt.date
    due_date: dt.date
    amount: float
    closed_date: Optional[dt.date] = None
    interest_received: float
    loan_term: int
    status: str
    cheque_number: Optional[str] = None
    interest_amount: float
    total_amount: float
    interest_as_of: dt.date
    is_closed: bool
    is_overdue: bool
    is_due_today: bool
    is_due_this_week: bool
    days_overdue: Optional[int] = None
    days_until_due: Optional[int] = None


class LoansDueResponse(CamelModel):
    as_of: dt.date
    overdue_loans: List[LoanWithInterest]
    due_today_loans: List[LoanWithInterest]
    due_this_week_loans: List[LoanWithInterest]
    total_overdue_amount: float
    total_overdue_interest: float


class LoanRequestCreate(CamelModel):
    user_id: Optional[int] = Field(None, description="Borrower; committee only, defaults to caller")
    loan_type_id: int
    date: Optional[dt.date] = None
    due_date: dt.date
    amount: float = Field(..., gt=0)
    loan_term: int = Field(1, ge=1)
    description: Optional[str] = None
    cheque_number: Optional[str] = None


class LoanRequestResponse(CamelModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    loan_type_id: int
    loan_type_name: Optional[str] = None
    interest_rate: float
    date: dt.date
    due_date: dt.date
    amount: float
    loan_term: int
    description: Optional[str] = None
    cheque_number: Optional[str] = None
    status: str
    request_date: Optional[dt.datetime] = None
    processed_date: Optional[dt.datetime] = None
    processed_by_user_id: Optional[int] = None
    processed_by_name: Optional[str] = None
    expected_interest: float


class LoanRequestAction(CamelModel):
    action: Literal["Accepted", "Rejected"]
    description: Optional[str] = None
    cheque_number: Optional[str] = None


class LoanRequestActionResponse(CamelModel):
    loan_request: LoanRequestResponse
    loan: Optional[LoanWithInterest] = None
    email_sent: bool = False
