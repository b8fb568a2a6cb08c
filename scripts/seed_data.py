"""
Seed reference data: roles and loan types.
Usage: python scripts/seed_data.py
"""
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from app.db.base import SessionLocal
from app.models.role import Role, RoleName
from app.models.loan import LoanType
from decimal import Decimal

ROLES = [
    {"name": RoleName.SECRETARY.value, "description": "Secretary with full access"},
    {"name": RoleName.MEMBER.value, "description": "Regular member with limited access"},
    {"name": RoleName.PRESIDENT.value, "description": "President of the association"},
    {"name": RoleName.TREASURER.value, "description": "Treasurer of the association"},
]

LOAN_TYPES = [
    {"loan_type_name": "Marriage Loan", "interest_rate": Decimal("1.5")},
    {"loan_type_name": "Personal Loan", "interest_rate": Decimal("2.5")},
]


def seed_roles(db, verbose: bool = True):
    """Seed default roles."""
    if verbose:
        print("Seeding roles...")
    for role_data in ROLES:
        existing = db.query(Role).filter(Role.name == role_data["name"]).first()
        if not existing:
            db.add(Role(**role_data))
    db.commit()
    if verbose:
        print("Roles seeded")


def seed_loan_types(db, verbose: bool = True):
    """Seed loan types with their monthly interest rates."""
    if verbose:
        print("Seeding loan types...")
    for type_data in LOAN_TYPES:
        existing = db.query(LoanType).filter(LoanType.loan_type_name == type_data["loan_type_name"]).first()
        if not existing:
            db.add(LoanType(**type_data))
    db.commit()
    if verbose:
        print("Loan types seeded")


if __name__ == "__main__":
    db = SessionLocal()
    try:
        seed_roles(db)
        seed_loan_types(db)
        print("\nSeed data complete!")
    except Exception as e:
        db.rollback()
        print(f"Error seeding data: {e}")
        raise
    finally:
        db.close()
