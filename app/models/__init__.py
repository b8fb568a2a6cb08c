from app.db.base import Base

# Import all models so Alembic can detect them
from app.models.role import Role
from app.models.user import User, UserLogin
from app.models.meeting import Meeting, Attendance, MeetingPayment
from app.models.loan import LoanType, Loan, LoanRequest
from app.models.activity import UserActivity

__all__ = [
    "Base",
    "Role",
    "User",
    "UserLogin",
    "Meeting",
    "Attendance",
    "MeetingPayment",
    "LoanType",
    "Loan",
    "LoanRequest",
    "UserActivity",
]
