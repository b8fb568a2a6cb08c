from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from app.db.base import get_db
from app.models.user import User
from app.models.role import COMMITTEE_ROLES, RoleName
from app.core.security import decode_access_token
from app.core.audit import RequestContext

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/user/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated, active user from JWT token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_access_token(token)
    if payload is None:
        raise credentials_exception

    user_id_str = payload.get("sub")
    if user_id_str is None:
        raise credentials_exception

    try:
        user_id = int(user_id_str)
    except (ValueError, TypeError):
        raise credentials_exception

    user = db.query(User).filter(User.id == user_id).first()
    if user is None or not user.is_active:
        raise credentials_exception

    return user


def has_role(user: User, role_name: str) -> bool:
    """Check if the user's single role matches."""
    return user.role_name == role_name


def is_committee(user: User) -> bool:
    return user.role_name in COMMITTEE_ROLES


def require_role(role_name: str):
    """Dependency factory for requiring a specific role."""
    async def role_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if not has_role(current_user, role_name):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User does not have required role: {role_name}"
            )
        return current_user
    return role_checker


def require_any_role(*role_names: str):
    """Dependency factory for requiring any of the specified roles."""
    async def role_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        for role_name in role_names:
            if has_role(current_user, role_name):
                return current_user
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"User does not have any of the required roles: {', '.join(role_names)}"
        )
    return role_checker


# Role-specific dependencies
require_secretary = require_role(RoleName.SECRETARY.value)
require_committee = require_any_role(*COMMITTEE_ROLES)


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _context_from_request(request: Request, user: User = None) -> RequestContext:
    return RequestContext(
        user_id=user.id if user else None,
        user_name=user.name if user else None,
        user_role=user.role_name if user else None,
        http_method=request.method,
        endpoint=request.url.path,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent", "unknown"),
    )


async def get_request_context(
    request: Request,
    current_user: User = Depends(get_current_user)
) -> RequestContext:
    """Explicit audit context for an authenticated request."""
    return _context_from_request(request, current_user)


async def get_anonymous_context(request: Request) -> RequestContext:
    """Audit context for unauthenticated endpoints such as login."""
    return _context_from_request(request)
