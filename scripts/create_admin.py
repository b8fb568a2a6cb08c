"""
Create the first Secretary with a login.
Usage: python scripts/create_admin.py
"""
import sys
from pathlib import Path
from datetime import date

# Add project root to Python path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from app.db.base import SessionLocal
from app.core.security import get_password_hash
from app.models.user import User, UserLogin
from app.models.role import Role, RoleName


def create_admin(
    db,
    username: str = "secretary",
    password: str = "secretary123",
    name: str = "Secretary",
    email: str = "secretary@sangam.local",
):
    """Create a Secretary user with login credentials. Returns the user or None."""
    existing_login = db.query(UserLogin).filter(UserLogin.username == username).first()
    if existing_login:
        print(f"Login {username} already exists!")
        return None
    if db.query(User).filter(User.email == email).first():
        print(f"User with email {email} already exists!")
        return None

    secretary_role = db.query(Role).filter(Role.name == RoleName.SECRETARY.value).first()
    if not secretary_role:
        print("Secretary role not found! Please run seed_data.py first.")
        return None

    user = User(
        name=name,
        email=email,
        address="",
        phone="",
        user_role_id=secretary_role.id,
        is_active=True,
        joining_date=date.today(),
    )
    db.add(user)
    db.flush()
    db.add(UserLogin(user_id=user.id, username=username, password_hash=get_password_hash(password)))
    db.commit()
    db.refresh(user)
    return user


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Create the first Secretary user")
    parser.add_argument("--username", default="secretary", help="Login username")
    parser.add_argument("--password", default="secretary123", help="Login password")
    parser.add_argument("--name", default="Secretary", help="Display name")
    parser.add_argument("--email", default="secretary@sangam.local", help="Email")

    args = parser.parse_args()

    db = SessionLocal()
    try:
        user = create_admin(db, args.username, args.password, args.name, args.email)
        if user:
            print(f"✅ Secretary user created successfully!")
            print(f"   Username: {args.username}")
            print(f"   Role: Secretary")
            print(f"\n⚠️  Please change the password after first login!")
    except Exception as e:
        db.rollback()
        print(f"❌ Error creating secretary user: {e}")
        raise
    finally:
        db.close()
