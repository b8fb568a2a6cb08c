import logging
from datetime import date
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from app.core.security import get_password_hash
from app.models.role import Role, RoleName
from app.models.user import User, UserLogin
from app.schemas.user import UserCreate, UserUpdate

logger = logging.getLogger(__name__)


def get_role(db: Session, role_id: int) -> Optional[Role]:
    return db.query(Role).filter(Role.id == role_id).first()


def get_role_by_name(db: Session, name: str) -> Optional[Role]:
    return db.query(Role).filter(Role.name == name).first()


def _resolve_role(db: Session, role_id: Optional[int]) -> Role:
    if role_id is None:
        role = get_role_by_name(db, RoleName.MEMBER.value)
        if role is None:
            raise ValueError("Member role is not configured")
        return role
    role = get_role(db, role_id)
    if role is None:
        raise ValueError(f"Role {role_id} does not exist")
    return role


def list_users(db: Session, include_inactive: bool = True) -> List[User]:
    query = db.query(User).options(joinedload(User.role))
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.name).all()


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).options(joinedload(User.role)).filter(User.id == user_id).first()


def users_with_roles(db: Session, role_names) -> List[User]:
    return (
        db.query(User)
        .join(Role)
        .filter(Role.name.in_(list(role_names)), User.is_active.is_(True))
        .all()
    )


def create_user(db: Session, data: UserCreate, today: date) -> User:
    """Create a user, optionally with a login. Raises ValueError on conflicts."""
    if db.query(User).filter(User.email == data.email).first():
        raise ValueError("Email already registered")
    if bool(data.username) != bool(data.password):
        raise ValueError("Username and password must be given together")
    if data.username and db.query(UserLogin).filter(UserLogin.username == data.username).first():
        raise ValueError("Username already taken")

    role = _resolve_role(db, data.user_role_id)
    user = User(
        name=data.name,
        address=data.address,
        email=data.email,
        phone=data.phone,
        user_role_id=role.id,
        is_active=True,
        joining_date=data.joining_date or today,
    )
    db.add(user)
    try:
        db.flush()
        if data.username:
            db.add(UserLogin(
                user_id=user.id,
                username=data.username,
                password_hash=get_password_hash(data.password),
            ))
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Integrity error creating user %s", data.email, exc_info=True)
        raise ValueError("User could not be created; email or username already in use")
    db.refresh(user)
    logger.info("Created user %s (%s) with role %s", user.id, user.email, role.name)
    return user


def update_user(db: Session, user: User, data: UserUpdate) -> User:
    changes = data.model_dump(exclude_unset=True)
    if changes.get("email") and changes["email"] != user.email:
        if db.query(User).filter(User.email == changes["email"], User.id != user.id).first():
            raise ValueError("Email already registered")
    if "user_role_id" in changes and changes["user_role_id"] is not None:
        _resolve_role(db, changes["user_role_id"])

    for field, value in changes.items():
        if value is None and field not in ("inactive_date", "joining_date"):
            continue
        setattr(user, field, value)

    # Reactivation clears the inactive date
    if changes.get("is_active") is True and "inactive_date" not in changes:
        user.inactive_date = None

    db.commit()
    db.refresh(user)
    return user


def deactivate_user(db: Session, user: User, today: date) -> User:
    """Soft delete: history (attendance, payments, loans) stays attached."""
    user.is_active = False
    user.inactive_date = today
    db.commit()
    db.refresh(user)
    logger.info("Deactivated user %s", user.id)
    return user
