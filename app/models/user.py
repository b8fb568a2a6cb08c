from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, ForeignKey, text
from sqlalchemy.orm import relationship
from app.db.base import Base


class User(Base):
    """Association member. Deletion is soft: is_active/inactive_date."""
    __tablename__ = "user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    address = Column(String(200), nullable=False, default="")
    email = Column(String(100), nullable=False, unique=True, index=True)
    phone = Column(String(20), nullable=False, default="")
    user_role_id = Column(Integer, ForeignKey("user_role.id"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    joining_date = Column(Date, nullable=True)
    inactive_date = Column(Date, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    role = relationship("Role", back_populates="users")
    login = relationship("UserLogin", back_populates="user", uselist=False)
    attendances = relationship("Attendance", back_populates="user")
    meeting_payments = relationship("MeetingPayment", back_populates="user")
    loans = relationship("Loan", back_populates="user")

    @property
    def role_name(self) -> str:
        return self.role.name if self.role else "Member"


class UserLogin(Base):
    """Login credentials, 1:1 with user."""
    __tablename__ = "user_login"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, unique=True, index=True)
    username = Column(String(100), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)

    # Relationships
    user = relationship("User", back_populates="login")
