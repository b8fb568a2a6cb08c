"""
Test configuration and fixtures for the Phoenix Sangam API tests.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import date, time
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.audit import ActivitySink, set_activity_sink
from app.core.security import create_user_token, get_password_hash
from app.db.base import get_db, get_session_factory
from app.main import app
from app.models import Base
from app.models.loan import Loan, LoanStatus, LoanType
from app.models.meeting import Meeting
from app.models.role import Role, RoleName
from app.models.user import User, UserLogin
from scripts.seed_data import seed_loan_types, seed_roles


# ============================================================
# Database Fixtures
# ============================================================

@pytest.fixture
def test_engine(tmp_path):
    """File-backed SQLite so the activity writer thread gets its own connection"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def db_session(session_factory):
    """Session with roles and loan types seeded"""
    db = session_factory()
    seed_roles(db, verbose=False)
    seed_loan_types(db, verbose=False)
    yield db
    db.close()


@pytest.fixture
def activity_sink(session_factory):
    sink = ActivitySink(session_factory, maxsize=100)
    sink.start()
    set_activity_sink(sink)
    yield sink
    sink.stop()
    set_activity_sink(None)


@pytest.fixture
def client(db_session, session_factory, activity_sink):
    """Test client with every request on its own session of the test database"""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    yield TestClient(app)

    app.dependency_overrides.clear()


# ============================================================
# User Fixtures
# ============================================================

def make_user(db, name, email, role=RoleName.MEMBER, username=None, password="Password123!",
              joining_date=date(2024, 1, 1), is_active=True, inactive_date=None):
    role_row = db.query(Role).filter(Role.name == role.value).one()
    user = User(
        name=name,
        address="",
        email=email,
        phone="",
        user_role_id=role_row.id,
        is_active=is_active,
        joining_date=joining_date,
        inactive_date=inactive_date,
    )
    db.add(user)
    db.flush()
    if username:
        db.add(UserLogin(user_id=user.id, username=username, password_hash=get_password_hash(password)))
    db.commit()
    db.refresh(user)
    return user


def auth_headers_for(user):
    return {"Authorization": f"Bearer {create_user_token(user)}"}


@pytest.fixture
def secretary(db_session):
    return make_user(db_session, "Sita Secretary", "secretary@sangam.org", RoleName.SECRETARY, username="secretary")


@pytest.fixture
def member(db_session):
    return make_user(db_session, "Mohan Member", "member@sangam.org", RoleName.MEMBER, username="member")


@pytest.fixture
def secretary_headers(secretary):
    return auth_headers_for(secretary)


@pytest.fixture
def member_headers(member):
    return auth_headers_for(member)


# ============================================================
# Domain Fixtures
# ============================================================

@pytest.fixture
def personal_loan_type(db_session):
    """Personal Loan at 2.5% per month"""
    return db_session.query(LoanType).filter(LoanType.loan_type_name == "Personal Loan").one()


@pytest.fixture
def meeting(db_session):
    row = Meeting(date=date(2024, 6, 2), time=time(10, 0), description="June meeting", location="Hall")
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


def make_loan(db, user, loan_type, issued, due, amount="10000", status=LoanStatus.ACTIVE, closed_date=None):
    loan = Loan(
        user_id=user.id,
        loan_type_id=loan_type.id,
        date=issued,
        due_date=due,
        amount=Decimal(amount),
        interest_received=Decimal("0"),
        loan_term=1,
        status=status,
        closed_date=closed_date,
    )
    db.add(loan)
    db.commit()
    db.refresh(loan)
    return loan
