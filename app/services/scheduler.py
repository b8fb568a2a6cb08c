"""Weekly background job: loan due reminders and the overdue-loans report."""

import logging
from datetime import date
from typing import Callable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.core.email import send_loan_due_reminder_email, send_weekly_report
from app.db.base import SessionLocal
from app.models.loan import Loan, LoanStatus
from app.models.role import COMMITTEE_ROLES
from app.services.interest import classify_due_state, compute_interest
from app.services.user import users_with_roles

logger = logging.getLogger(__name__)

scheduler: AsyncIOScheduler | None = None

JOB_ID = "run_weekly_tasks"


def _open_loans(db: Session) -> List[Loan]:
    return (
        db.query(Loan)
        .options(joinedload(Loan.user), joinedload(Loan.loan_type))
        .filter(Loan.closed_date.is_(None), Loan.status != LoanStatus.CLOSED)
        .order_by(Loan.due_date)
        .all()
    )


# ---------------------------------------------------------------------------
# Task 1: remind borrowers whose loans fall due within the week
# ---------------------------------------------------------------------------

def _send_due_reminders(db: Session, today: date) -> int:
    """Email every borrower with an open loan due today or in the next 7 days."""
    sent = 0
    for loan in _open_loans(db):
        state = classify_due_state(loan.due_date, loan.closed_date, today, loan.status.value)
        if not (state.is_due_today or state.is_due_this_week):
            continue
        if not loan.user or not loan.user.email:
            continue
        if send_loan_due_reminder_email(
            to_email=loan.user.email,
            user_name=loan.user.name,
            amount=loan.amount,
            due_date=loan.due_date,
            days_until_due=state.days_until_due,
        ):
            sent += 1
    logger.info("Weekly job sent %d due reminder(s)", sent)
    return sent


# ---------------------------------------------------------------------------
# Task 2: overdue-loans report to the committee
# ---------------------------------------------------------------------------

def _collect_overdue(db: Session, today: date) -> List[dict]:
    overdue = []
    for loan in _open_loans(db):
        state = classify_due_state(loan.due_date, loan.closed_date, today, loan.status.value)
        if not state.is_overdue:
            continue
        rate = loan.loan_type.interest_rate if loan.loan_type else 0
        overdue.append({
            "loan_id": loan.id,
            "user_name": loan.user.name if loan.user else "Unknown",
            "amount": float(loan.amount),
            "due_date": loan.due_date.isoformat(),
            "days_overdue": state.days_overdue,
            "interest": float(compute_interest(rate, loan.amount, loan.date, today)),
        })
    return overdue


def _send_overdue_report(db: Session, today: date) -> int:
    overdue = _collect_overdue(db, today)
    recipients = [u.email for u in users_with_roles(db, COMMITTEE_ROLES) if u.email]
    if not recipients:
        logger.warning("No committee members with email; overdue report not sent")
        return 0
    sent = send_weekly_report(recipients, overdue)
    logger.info("Weekly overdue report (%d loan(s)) sent to %d recipient(s)", len(overdue), sent)
    return sent


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

def run_weekly_tasks(
    session_factory: Callable[[], Session] = SessionLocal,
    today: Optional[date] = None,
) -> dict:
    """Run both weekly tasks with a dedicated session.

    A failure in one task is logged and does not stop the other. Nothing is
    retried. Manual and scheduled runs are not serialised against each other.
    """
    today = today or date.today()
    summary = {"date": today.isoformat(), "reminders_sent": 0, "reports_sent": 0, "errors": []}
    db = session_factory()
    try:
        try:
            summary["reminders_sent"] = _send_due_reminders(db, today)
        except Exception as exc:
            db.rollback()
            logger.exception("Error sending loan due reminders")
            summary["errors"].append(f"due_reminders: {exc}")

        try:
            summary["reports_sent"] = _send_overdue_report(db, today)
        except Exception as exc:
            db.rollback()
            logger.exception("Error sending overdue loans report")
            summary["errors"].append(f"overdue_report: {exc}")
    finally:
        db.close()
    return summary


# ---------------------------------------------------------------------------
# Scheduler lifecycle helpers
# ---------------------------------------------------------------------------

def start_scheduler() -> None:
    """Create and start the background scheduler."""
    global scheduler
    day_of_week = settings.WEEKLY_JOB_DAY_OF_WEEK
    hour = settings.WEEKLY_JOB_HOUR

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_weekly_tasks,
        trigger=CronTrigger(day_of_week=day_of_week, hour=hour, minute=0),
        id=JOB_ID,
        name="Loan due reminders & overdue report",
        replace_existing=True,
        max_instances=1,
    )
    scheduler.start()
    logger.info("Background scheduler started: weekly job on %s at %02d:00", day_of_week, hour)


def stop_scheduler() -> None:
    """Shut down the background scheduler gracefully."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
        scheduler = None


def get_scheduler_status() -> dict:
    """Return current scheduler state for the health endpoint."""
    if not scheduler or not scheduler.running:
        return {"running": False, "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
        })
    return {"running": True, "jobs": jobs}
