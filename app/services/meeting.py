import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.models.meeting import Meeting, Attendance, MeetingPayment
from app.models.user import User
from app.schemas.meeting import (
    AttendanceCreate,
    BulkAttendanceItem,
    BulkPaymentItem,
    ComprehensiveMeetingSummary,
    MeetingAttendee,
    MeetingCreate,
    MeetingPaymentCreate,
    MeetingPaymentUpdate,
    MeetingResponse,
    MeetingSummary,
    MeetingUpdate,
)

logger = logging.getLogger(__name__)


def _decimal(value) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------

def is_eligible_on(user: User, on_date: date) -> bool:
    """Member on the books at a date: joined on or before, not yet inactive."""
    if user.joining_date is not None and user.joining_date > on_date:
        return False
    if user.inactive_date is not None:
        return user.inactive_date > on_date
    return bool(user.is_active)


def eligible_users(db: Session, on_date: date) -> List[User]:
    users = db.query(User).options(joinedload(User.role)).order_by(User.name).all()
    return [u for u in users if is_eligible_on(u, on_date)]


def absence_reason(user: User, attendance: Optional[Attendance]) -> str:
    if attendance is not None and not attendance.is_present:
        return "Marked absent"
    if user.joining_date is None:
        return "User has no joining date recorded"
    return "Absent without specific reason"


# ---------------------------------------------------------------------------
# Meetings
# ---------------------------------------------------------------------------

def list_meetings(db: Session) -> List[Meeting]:
    return db.query(Meeting).order_by(Meeting.date.desc(), Meeting.id.desc()).all()


def get_meeting(db: Session, meeting_id: int) -> Optional[Meeting]:
    return db.query(Meeting).filter(Meeting.id == meeting_id).first()


def require_meeting(db: Session, meeting_id: int) -> Meeting:
    meeting = get_meeting(db, meeting_id)
    if not meeting:
        raise LookupError(f"Meeting {meeting_id} not found")
    return meeting


def create_meeting(db: Session, data: MeetingCreate) -> Meeting:
    meeting = Meeting(**data.model_dump())
    db.add(meeting)
    db.commit()
    db.refresh(meeting)
    logger.info("Created meeting %s on %s", meeting.id, meeting.date)
    return meeting


def update_meeting(db: Session, meeting: Meeting, data: MeetingUpdate) -> Meeting:
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(meeting, field, value)
    db.commit()
    db.refresh(meeting)
    return meeting


def delete_meeting(db: Session, meeting: Meeting) -> None:
    """Deletes the meeting with its attendance and payments."""
    db.delete(meeting)
    db.commit()
    logger.info("Deleted meeting %s", meeting.id)


def save_minutes(db: Session, meeting: Meeting, minutes: str) -> Meeting:
    meeting.meeting_minutes = minutes
    db.commit()
    db.refresh(meeting)
    return meeting


def meeting_totals(db: Session, meeting_ids: List[int]) -> Dict[int, dict]:
    """Payment and attendance totals per meeting, in two grouped queries."""
    totals = {
        mid: {"main": Decimal("0"), "weekly": Decimal("0"), "present": 0, "absent": 0}
        for mid in meeting_ids
    }
    if not meeting_ids:
        return totals

    payment_rows = (
        db.query(
            MeetingPayment.meeting_id,
            func.coalesce(func.sum(MeetingPayment.main_payment), 0),
            func.coalesce(func.sum(MeetingPayment.weekly_payment), 0),
        )
        .filter(MeetingPayment.meeting_id.in_(meeting_ids))
        .group_by(MeetingPayment.meeting_id)
        .all()
    )
    for meeting_id, main, weekly in payment_rows:
        totals[meeting_id]["main"] = _decimal(main)
        totals[meeting_id]["weekly"] = _decimal(weekly)

    attendance_rows = (
        db.query(Attendance.meeting_id, Attendance.is_present, func.count(Attendance.id))
        .filter(Attendance.meeting_id.in_(meeting_ids))
        .group_by(Attendance.meeting_id, Attendance.is_present)
        .all()
    )
    for meeting_id, is_present, count in attendance_rows:
        totals[meeting_id]["present" if is_present else "absent"] += count
    return totals


def to_summary(meeting: Meeting, totals: dict) -> MeetingSummary:
    return MeetingSummary(
        meeting_id=meeting.id,
        date=meeting.date,
        time=meeting.time,
        description=meeting.description,
        location=meeting.location,
        total_main_payment=float(totals["main"]),
        total_weekly_payment=float(totals["weekly"]),
        present_count=totals["present"],
        absent_count=totals["absent"],
        total_attendees=totals["present"] + totals["absent"],
    )


def get_meeting_summary(db: Session, meeting: Meeting) -> MeetingSummary:
    return to_summary(meeting, meeting_totals(db, [meeting.id])[meeting.id])


def get_meeting_summaries(db: Session) -> List[MeetingSummary]:
    meetings = list_meetings(db)
    totals = meeting_totals(db, [m.id for m in meetings])
    return [to_summary(m, totals[m.id]) for m in meetings]


def get_comprehensive_summary(db: Session, meeting: Meeting) -> ComprehensiveMeetingSummary:
    """Eligible members at the meeting date, split into attended and absent."""
    attendances = {a.user_id: a for a in db.query(Attendance).filter(Attendance.meeting_id == meeting.id).all()}
    payments = {p.user_id: p for p in db.query(MeetingPayment).filter(MeetingPayment.meeting_id == meeting.id).all()}

    attended: List[MeetingAttendee] = []
    absent: List[MeetingAttendee] = []
    for user in eligible_users(db, meeting.date):
        attendance = attendances.get(user.id)
        payment = payments.get(user.id)
        present = attendance is not None and attendance.is_present
        attendee = MeetingAttendee(
            user_id=user.id,
            name=user.name,
            email=user.email,
            phone=user.phone or "",
            is_present=present,
            main_payment=float(payment.main_payment) if payment else 0.0,
            weekly_payment=float(payment.weekly_payment) if payment else 0.0,
            absence_reason=None if present else absence_reason(user, attendance),
        )
        (attended if present else absent).append(attendee)

    total_eligible = len(attended) + len(absent)
    totals = meeting_totals(db, [meeting.id])[meeting.id]
    return ComprehensiveMeetingSummary(
        meeting=MeetingResponse.model_validate(meeting),
        total_eligible_users=total_eligible,
        attended_count=len(attended),
        absent_count=len(absent),
        attendance_percentage=round(len(attended) / total_eligible * 100, 2) if total_eligible else 0.0,
        total_main_payment=float(totals["main"]),
        total_weekly_payment=float(totals["weekly"]),
        attended_users=attended,
        absent_users=absent,
    )


# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------

def _require_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise LookupError(f"User {user_id} not found")
    return user


def list_attendance(db: Session, meeting_id: Optional[int] = None) -> List[Attendance]:
    query = db.query(Attendance).options(joinedload(Attendance.user))
    if meeting_id is not None:
        query = query.filter(Attendance.meeting_id == meeting_id)
    return query.order_by(Attendance.meeting_id, Attendance.user_id).all()


def get_attendance(db: Session, attendance_id: int) -> Optional[Attendance]:
    return db.query(Attendance).filter(Attendance.id == attendance_id).first()


def create_attendance(db: Session, data: AttendanceCreate) -> Attendance:
    _require_user(db, data.user_id)
    require_meeting(db, data.meeting_id)
    existing = db.query(Attendance).filter(
        Attendance.user_id == data.user_id,
        Attendance.meeting_id == data.meeting_id,
    ).first()
    if existing:
        raise ValueError("Attendance already recorded for this user and meeting")
    attendance = Attendance(user_id=data.user_id, meeting_id=data.meeting_id, is_present=data.is_present)
    db.add(attendance)
    db.commit()
    db.refresh(attendance)
    return attendance


def update_attendance(db: Session, attendance: Attendance, is_present: bool) -> Attendance:
    attendance.is_present = is_present
    db.commit()
    db.refresh(attendance)
    return attendance


def delete_attendance(db: Session, attendance: Attendance) -> None:
    db.delete(attendance)
    db.commit()


def bulk_replace_attendance(db: Session, meeting_id: int, items: List[BulkAttendanceItem]) -> List[Attendance]:
    """Replace every attendance row of a meeting in one transaction."""
    require_meeting(db, meeting_id)
    user_ids = [item.user_id for item in items]
    if len(set(user_ids)) != len(user_ids):
        raise ValueError("Duplicate user in attendance list")
    _check_users_exist(db, user_ids)

    db.query(Attendance).filter(Attendance.meeting_id == meeting_id).delete(synchronize_session=False)
    rows = [Attendance(user_id=i.user_id, meeting_id=meeting_id, is_present=i.is_present) for i in items]
    db.add_all(rows)
    db.commit()
    logger.info("Replaced attendance for meeting %s with %d record(s)", meeting_id, len(rows))
    return list_attendance(db, meeting_id)


# ---------------------------------------------------------------------------
# Meeting payments
# ---------------------------------------------------------------------------

def _check_users_exist(db: Session, user_ids: List[int]) -> None:
    if not user_ids:
        return
    found = {row[0] for row in db.query(User.id).filter(User.id.in_(set(user_ids))).all()}
    missing = sorted(set(user_ids) - found)
    if missing:
        raise LookupError(f"Users not found: {', '.join(str(m) for m in missing)}")


def list_payments(db: Session, meeting_id: Optional[int] = None) -> List[MeetingPayment]:
    query = db.query(MeetingPayment).options(joinedload(MeetingPayment.user))
    if meeting_id is not None:
        query = query.filter(MeetingPayment.meeting_id == meeting_id)
    return query.order_by(MeetingPayment.meeting_id, MeetingPayment.user_id).all()


def get_payment(db: Session, payment_id: int) -> Optional[MeetingPayment]:
    return db.query(MeetingPayment).filter(MeetingPayment.id == payment_id).first()


def create_payment(db: Session, data: MeetingPaymentCreate) -> MeetingPayment:
    _require_user(db, data.user_id)
    require_meeting(db, data.meeting_id)
    payment = MeetingPayment(
        user_id=data.user_id,
        meeting_id=data.meeting_id,
        main_payment=_decimal(data.main_payment),
        weekly_payment=_decimal(data.weekly_payment),
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def update_payment(db: Session, payment: MeetingPayment, data: MeetingPaymentUpdate) -> MeetingPayment:
    if data.main_payment is not None:
        payment.main_payment = _decimal(data.main_payment)
    if data.weekly_payment is not None:
        payment.weekly_payment = _decimal(data.weekly_payment)
    db.commit()
    db.refresh(payment)
    return payment


def delete_payment(db: Session, payment: MeetingPayment) -> None:
    db.delete(payment)
    db.commit()


def bulk_replace_payments(db: Session, meeting_id: int, items: List[BulkPaymentItem]) -> List[MeetingPayment]:
    """Replace every payment row of a meeting in one transaction.

    All users must exist and amounts must be non-negative; nothing is
    changed otherwise.
    """
    require_meeting(db, meeting_id)
    for item in items:
        if item.main_payment < 0 or item.weekly_payment < 0:
            raise ValueError(f"Payment amounts must be non-negative (user {item.user_id})")
    _check_users_exist(db, [item.user_id for item in items])

    try:
        db.query(MeetingPayment).filter(MeetingPayment.meeting_id == meeting_id).delete(synchronize_session=False)
        db.add_all([
            MeetingPayment(
                user_id=item.user_id,
                meeting_id=meeting_id,
                main_payment=_decimal(item.main_payment),
                weekly_payment=_decimal(item.weekly_payment),
            )
            for item in items
        ])
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Replaced payments for meeting %s with %d record(s)", meeting_id, len(items))
    return list_payments(db, meeting_id)
