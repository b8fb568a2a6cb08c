import logging
from typing import Optional
from sqlalchemy.orm import Session, joinedload
from app.models.user import User, UserLogin
from app.core.security import verify_password, create_user_token

logger = logging.getLogger(__name__)


def authenticate_user(db: Session, username: str, password: str) -> Optional[User]:
    """Return the active user owning these credentials, else None."""
    login = (
        db.query(UserLogin)
        .options(joinedload(UserLogin.user).joinedload(User.role))
        .filter(UserLogin.username == username)
        .first()
    )
    if not login:
        logger.debug("Login not found: %s", username)
        return None

    if not verify_password(password, login.password_hash):
        logger.debug("Password verification failed for login: %s", username)
        return None

    user = login.user
    if user is None or not user.is_active:
        logger.debug("Login %s belongs to an inactive user, login denied", username)
        return None

    logger.debug("Authentication successful for login: %s", username)
    return user


def create_access_token_for_user(user: User) -> str:
    """Create access token for user."""
    return create_user_token(user)
