from sqlalchemy import Column, Integer, String, Boolean, Date, Time, DateTime, Numeric, Text, ForeignKey, UniqueConstraint, text
from sqlalchemy.orm import relationship
from app.db.base import Base


class Meeting(Base):
    """Weekly association meeting."""
    __tablename__ = "meeting"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, index=True)
    time = Column(Time, nullable=False)
    description = Column(String(200), nullable=True)
    location = Column(String(100), nullable=True)
    meeting_minutes = Column(Text, nullable=True)

    # Relationships
    attendances = relationship("Attendance", back_populates="meeting", cascade="all, delete-orphan")
    meeting_payments = relationship("MeetingPayment", back_populates="meeting", cascade="all, delete-orphan")


class Attendance(Base):
    """Presence of a member at a meeting."""
    __tablename__ = "attendance"
    __table_args__ = (UniqueConstraint("user_id", "meeting_id", name="uq_attendance_user_meeting"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    meeting_id = Column(Integer, ForeignKey("meeting.id"), nullable=False, index=True)
    is_present = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    user = relationship("User", back_populates="attendances")
    meeting = relationship("Meeting", back_populates="attendances")


class MeetingPayment(Base):
    """Main and weekly dues paid by a member at a meeting."""
    __tablename__ = "meeting_payment"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    meeting_id = Column(Integer, ForeignKey("meeting.id"), nullable=False, index=True)
    main_payment = Column(Numeric(12, 2), nullable=False, default=0)
    weekly_payment = Column(Numeric(12, 2), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    user = relationship("User", back_populates="meeting_payments")
    meeting = relationship("Meeting", back_populates="meeting_payments")
