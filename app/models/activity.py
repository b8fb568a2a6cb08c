from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Index
from app.db.base import Base


class UserActivity(Base):
    """Write-once record of who did what. Populated by the activity sink."""
    __tablename__ = "user_activity"
    __table_args__ = (
        Index("ix_user_activity_user_timestamp", "user_id", "timestamp"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=True, index=True)
    user_name = Column(String(100), nullable=True)
    user_role = Column(String(50), nullable=True)
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)
    details = Column(Text, nullable=True)
    http_method = Column(String(10), nullable=True)
    endpoint = Column(String(255), nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    status_code = Column(Integer, nullable=False, default=200)
    is_success = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text, nullable=True)
    timestamp = Column(DateTime, nullable=False, index=True)
    duration = Column(Integer, nullable=True)  # milliseconds
