import math
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.loan import LoanRequest, LoanRequestStatus
from app.models.meeting import Meeting, MeetingPayment, Attendance
from app.schemas.dashboard import DashboardMeeting, DashboardMeetingsPage, DashboardSummary
from app.services.interest import classify_due_state
from app.services.loan import list_loans, to_loan_with_interest
from app.services.meeting import eligible_users, meeting_totals

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
RECENT_COUNT = 5


def clamp_page(page: Optional[int], page_size: Optional[int]):
    page = page if page and page >= 1 else 1
    if page_size is None:
        page_size = DEFAULT_PAGE_SIZE
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
    return page, page_size


def _dashboard_meeting(meeting: Meeting, totals: dict) -> DashboardMeeting:
    return DashboardMeeting(
        id=meeting.id,
        date=meeting.date,
        time=meeting.time,
        description=meeting.description,
        location=meeting.location,
        total_main_payment=float(totals["main"]),
        total_weekly_payment=float(totals["weekly"]),
        present_count=totals["present"],
        absent_count=totals["absent"],
    )


def get_meetings_page(
    db: Session,
    page: Optional[int] = None,
    page_size: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> DashboardMeetingsPage:
    """Meetings newest first; grand totals span the whole filtered set."""
    page, page_size = clamp_page(page, page_size)

    query = db.query(Meeting)
    if start_date:
        query = query.filter(Meeting.date >= start_date)
    if end_date:
        query = query.filter(Meeting.date <= end_date)

    total_count = query.count()
    meetings = (
        query.order_by(Meeting.date.desc(), Meeting.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    filtered = query.with_entities(Meeting.id).subquery()
    filtered_ids = select(filtered.c.id)
    main_total, weekly_total = (
        db.query(
            func.coalesce(func.sum(MeetingPayment.main_payment), 0),
            func.coalesce(func.sum(MeetingPayment.weekly_payment), 0),
        )
        .filter(MeetingPayment.meeting_id.in_(filtered_ids))
        .one()
    )
    present_total = (
        db.query(func.count(Attendance.id))
        .filter(Attendance.meeting_id.in_(filtered_ids), Attendance.is_present.is_(True))
        .scalar()
    )
    absent_total = (
        db.query(func.count(Attendance.id))
        .filter(Attendance.meeting_id.in_(filtered_ids), Attendance.is_present.is_(False))
        .scalar()
    )

    totals = meeting_totals(db, [m.id for m in meetings])
    return DashboardMeetingsPage(
        meetings=[_dashboard_meeting(m, totals[m.id]) for m in meetings],
        page=page,
        page_size=page_size,
        total_count=total_count,
        total_pages=math.ceil(total_count / page_size) if total_count else 0,
        total_main_payment=float(main_total or 0),
        total_weekly_payment=float(weekly_total or 0),
        total_present=present_total or 0,
        total_absent=absent_total or 0,
    )


def get_summary(db: Session, today: date) -> DashboardSummary:
    main_total, weekly_total = db.query(
        func.coalesce(func.sum(MeetingPayment.main_payment), 0),
        func.coalesce(func.sum(MeetingPayment.weekly_payment), 0),
    ).one()

    loans = list_loans(db)
    total_amount = sum((Decimal(str(l.amount)) for l in loans), Decimal("0"))
    total_interest = sum((Decimal(str(l.interest_received or 0)) for l in loans), Decimal("0"))
    overdue = 0
    active = 0
    for loan in loans:
        state = classify_due_state(loan.due_date, loan.closed_date, today, loan.status.value if loan.status else None)
        if not state.is_closed:
            active += 1
        if state.is_overdue:
            overdue += 1

    pending_requests = (
        db.query(func.count(LoanRequest.id))
        .filter(LoanRequest.status == LoanRequestStatus.REQUESTED)
        .scalar()
    )

    recent_meetings = db.query(Meeting).order_by(Meeting.date.desc(), Meeting.id.desc()).limit(RECENT_COUNT).all()
    totals = meeting_totals(db, [m.id for m in recent_meetings])

    return DashboardSummary(
        total_meetings=db.query(func.count(Meeting.id)).scalar() or 0,
        total_main_payment=float(main_total or 0),
        total_weekly_payment=float(weekly_total or 0),
        total_eligible_users=len(eligible_users(db, today)),
        total_loans=len(loans),
        active_loans=active,
        total_loan_amount=float(total_amount),
        total_interest_received=float(total_interest),
        overdue_loans=overdue,
        pending_loan_requests=pending_requests or 0,
        recent_meetings=[_dashboard_meeting(m, totals[m.id]) for m in recent_meetings],
        recent_loans=[to_loan_with_interest(l, today) for l in loans[:RECENT_COUNT]],
    )

