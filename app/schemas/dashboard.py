from typing import Optional, List
import datetime as dt
from app.schemas.common import CamelModel
from app.schemas.loan import LoanWithInterest


class DashboardMeeting(CamelModel):
    id: int
    date: dt.date
    time: dt.time
    description: Optional[str] = None
    location: Optional[str] = None
    total_main_payment: float
    total_weekly_payment: float
    present_count: int
    absent_count: int


class DashboardMeetingsPage(CamelModel):
    meetings: List[DashboardMeeting]
    page: int
    page_size: int
    total_count: int
    total_pages: int
    total_main_payment: float
    total_weekly_payment: float
    total_present: int
    total_absent: int


class DashboardSummary(CamelModel):
    total_meetings: int
    total_main_payment: float
    total_weekly_payment: float
    total_eligible_users: int
    total_loans: int
    active_loans: int
    total_loan_amount: float
    total_interest_received: float
    overdue_loans: int
    pending_loan_requests: int
    recent_meetings: List[DashboardMeeting]
    recent_loans: List[LoanWithInterest]
