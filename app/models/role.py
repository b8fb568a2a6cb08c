from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship
from app.db.base import Base
import enum


class RoleName(str, enum.Enum):
    """Role names carried in the JWT role claim."""
    SECRETARY = "Secretary"
    PRESIDENT = "President"
    TREASURER = "Treasurer"
    MEMBER = "Member"


# Roles allowed to manage meetings, loans and the activity log
COMMITTEE_ROLES = (RoleName.SECRETARY.value, RoleName.PRESIDENT.value, RoleName.TREASURER.value)


class Role(Base):
    """Role definitions (one role per user)."""
    __tablename__ = "user_role"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False, unique=True, index=True)
    description = Column(String(200), nullable=True)

    # Relationships
    users = relationship("User", back_populates="role")
