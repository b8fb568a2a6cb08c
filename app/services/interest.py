"""Loan interest and due-date arithmetic.

Interest is simple and monthly: a month is 30 days and partial months accrue
pro rata. Everything here is pure; callers always pass the as-of date.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional

DAYS_PER_MONTH = Decimal("30")
DUE_SOON_WINDOW_DAYS = 7
CENT = Decimal("0.01")


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def compute_interest(monthly_rate_percent, principal, issue_date: date, as_of_date: date) -> Decimal:
    """Accrued interest from issue_date to as_of_date, rounded half-up to cents.

    Zero when as_of_date is on or before issue_date.
    """
    if as_of_date <= issue_date:
        return Decimal("0.00")
    days = Decimal((as_of_date - issue_date).days)
    months = days / DAYS_PER_MONTH
    interest = _to_decimal(principal) * _to_decimal(monthly_rate_percent) / Decimal("100") * months
    return interest.quantize(CENT, rounding=ROUND_HALF_UP)


class DueBucket(str, Enum):
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    DUE_THIS_WEEK = "due_this_week"
    NOT_YET_DUE = "not_yet_due"


@dataclass(frozen=True)
class DueState:
    bucket: Optional[DueBucket]  # None for closed loans
    days_overdue: Optional[int] = None
    days_until_due: Optional[int] = None

    @property
    def is_closed(self) -> bool:
        return self.bucket is None

    @property
    def is_overdue(self) -> bool:
        return self.bucket == DueBucket.OVERDUE

    @property
    def is_due_today(self) -> bool:
        return self.bucket == DueBucket.DUE_TODAY

    @property
    def is_due_this_week(self) -> bool:
        return self.bucket == DueBucket.DUE_THIS_WEEK


def is_closed(closed_date: Optional[date], status: Optional[str] = None) -> bool:
    if closed_date is not None:
        return True
    if status is None:
        return False
    value = status.value if isinstance(status, Enum) else status
    return str(value).lower() == "closed"


def classify_due_state(
    due_date: date,
    closed_date: Optional[date],
    today: date,
    status: Optional[str] = None,
) -> DueState:
    """Place a loan in exactly one due bucket relative to today."""
    if is_closed(closed_date, status):
        return DueState(bucket=None)
    if due_date < today:
        return DueState(bucket=DueBucket.OVERDUE, days_overdue=(today - due_date).days)
    days_until_due = (due_date - today).days
    if days_until_due == 0:
        bucket = DueBucket.DUE_TODAY
    elif due_date <= today + timedelta(days=DUE_SOON_WINDOW_DAYS):
        bucket = DueBucket.DUE_THIS_WEEK
    else:
        bucket = DueBucket.NOT_YET_DUE
    return DueState(bucket=bucket, days_until_due=days_until_due)
