from sqlalchemy import Column, Integer, String, Date, DateTime, Numeric, Text, ForeignKey, Enum as SQLEnum, text
from sqlalchemy.orm import relationship
from app.db.base import Base
import enum


class LoanStatus(str, enum.Enum):
    """Loan status enum."""
    ACTIVE = "active"
    CLOSED = "closed"
    SANCTIONED = "Sanctioned"


class LoanRequestStatus(str, enum.Enum):
    """Loan request status enum. Requested moves once to Accepted or Rejected."""
    REQUESTED = "Requested"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class LoanType(Base):
    """Loan type reference data with monthly interest rate (percent)."""
    __tablename__ = "loan_type"

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_type_name = Column(String(50), nullable=False, unique=True)
    interest_rate = Column(Numeric(5, 2), nullable=False)

    # Relationships
    loans = relationship("Loan", back_populates="loan_type")
    loan_requests = relationship("LoanRequest", back_populates="loan_type")


class Loan(Base):
    """Loan issued to a member."""
    __tablename__ = "loan"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    loan_type_id = Column(Integer, ForeignKey("loan_type.id"), nullable=False)
    date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    closed_date = Column(Date, nullable=True)
    interest_received = Column(Numeric(12, 2), nullable=False, default=0)
    loan_term = Column(Integer, nullable=False, default=1)  # months
    status = Column(SQLEnum(LoanStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=LoanStatus.ACTIVE, nullable=False)
    cheque_number = Column(String(50), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    user = relationship("User", back_populates="loans")
    loan_type = relationship("LoanType", back_populates="loans")


class LoanRequest(Base):
    """Borrower-submitted loan proposal. Retained after processing."""
    __tablename__ = "loan_request"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    loan_type_id = Column(Integer, ForeignKey("loan_type.id"), nullable=False)
    date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    loan_term = Column(Integer, nullable=False, default=1)
    description = Column(Text, nullable=True)
    cheque_number = Column(String(50), nullable=True)
    status = Column(SQLEnum(LoanRequestStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=LoanRequestStatus.REQUESTED, nullable=False, index=True)
    request_date = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    processed_date = Column(DateTime, nullable=True)
    processed_by_user_id = Column(Integer, ForeignKey("user.id"), nullable=True)

    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    processed_by = relationship("User", foreign_keys=[processed_by_user_id])
    loan_type = relationship("LoanType", back_populates="loan_requests")
