import logging
from datetime import date
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.db.base import get_db
from app.core.audit import RequestContext, record_activity
from app.core.dependencies import get_current_user, get_request_context, get_anonymous_context, require_secretary
from app.core.email import send_welcome_email
from app.models.user import User
from app.schemas.user import LoginRequest, LoginResponse, UserSummary, UserCreate, UserUpdate, UserResponse
from app.services.auth import authenticate_user, create_access_token_for_user
from app.services.user import list_users, get_user, create_user, update_user, deactivate_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["user"])


@router.post("/login", response_model=LoginResponse)
def login(
    credentials: LoginRequest,
    context: RequestContext = Depends(get_anonymous_context),
    db: Session = Depends(get_db)
):
    """Login and get JWT token."""
    user = authenticate_user(db, credentials.username, credentials.password)
    if not user:
        record_activity(
            context, "Login", "User",
            description=f"Failed login for {credentials.username}",
            details={"username": credentials.username},
            status_code=401, is_success=False, error_message="Invalid username or password",
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = create_access_token_for_user(user)
    record_activity(context.for_user(user), "Login", "User", entity_id=user.id, description=f"{user.name} logged in")
    return LoginResponse(
        token=token,
        user=UserSummary(id=user.id, name=user.name, email=user.email, role=user.role_name),
    )


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_current_user)):
    """Get the authenticated user's profile."""
    return UserResponse.from_model(current_user)


@router.get("", response_model=List[UserResponse])
def get_users(
    include_inactive: bool = True,
    current_user: User = Depends(require_secretary),
    db: Session = Depends(get_db)
):
    return [UserResponse.from_model(u) for u in list_users(db, include_inactive=include_inactive)]


@router.get("/{user_id}", response_model=UserResponse)
def get_user_by_id(
    user_id: int,
    current_user: User = Depends(require_secretary),
    db: Session = Depends(get_db)
):
    user = get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail=f"User with ID {user_id} not found")
    return UserResponse.from_model(user)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_new_user(
    user_data: UserCreate,
    current_user: User = Depends(require_secretary),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """Create a member, optionally with login credentials, and send a welcome email."""
    try:
        user = create_user(db, user_data, today=date.today())
    except ValueError as e:
        record_activity(context, "Create", "User", description="Failed to create user",
                        details={"email": user_data.email}, status_code=400, is_success=False,
                        error_message=str(e))
        raise HTTPException(status_code=400, detail=str(e))

    send_welcome_email(user.email, user.name)
    record_activity(
        context, "Create", "User", entity_id=user.id,
        description=f"Created user {user.name}",
        details={"name": user.name, "email": user.email, "role": user.role_name,
                 "hasLogin": bool(user_data.username)},
        status_code=201,
    )
    return UserResponse.from_model(user)


@router.put("/{user_id}", response_model=UserResponse)
def update_existing_user(
    user_id: int,
    user_data: UserUpdate,
    current_user: User = Depends(require_secretary),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    user = get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail=f"User with ID {user_id} not found")
    before = UserResponse.from_model(user).model_dump(mode="json")
    try:
        user = update_user(db, user, user_data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    after = UserResponse.from_model(user).model_dump(mode="json")
    record_activity(context, "Update", "User", entity_id=user.id,
                    description=f"Updated user {user.name}",
                    details={"before": before, "after": after})
    return UserResponse.from_model(user)


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    current_user: User = Depends(require_secretary),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """Soft delete: mark the user inactive as of today."""
    user = get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail=f"User with ID {user_id} not found")
    if user.id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    deactivate_user(db, user, today=date.today())
    record_activity(context, "Delete", "User", entity_id=user.id, description=f"Deactivated user {user.name}")
    return {"message": "User deactivated", "id": user.id}
