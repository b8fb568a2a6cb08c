from pydantic import EmailStr, Field
from typing import Optional
from datetime import date
from app.schemas.common import CamelModel


class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserSummary(CamelModel):
    id: int
    name: str
    email: str
    role: str


class LoginResponse(CamelModel):
    token: str
    token_type: str = "bearer"
    user: UserSummary


class UserCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    address: str = ""
    email: EmailStr
    phone: str = ""
    user_role_id: Optional[int] = Field(None, description="Role id; defaults to Member")
    joining_date: Optional[date] = None
    username: Optional[str] = Field(None, description="Provision a login when given with password")
    password: Optional[str] = None


class UserUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    address: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    user_role_id: Optional[int] = None
    is_active: Optional[bool] = None
    joining_date: Optional[date] = None
    inactive_date: Optional[date] = None


class UserResponse(CamelModel):
    id: int
    name: str
    address: str
    email: str
    phone: str
    user_role_id: int
    role: str
    is_active: bool
    joining_date: Optional[date] = None
    inactive_date: Optional[date] = None

    @classmethod
    def from_model(cls, user):
        return cls(
            id=user.id,
            name=user.name,
            address=user.address or "",
            email=user.email,
            phone=user.phone or "",
            user_role_id=user.user_role_id,
            role=user.role_name,
            is_active=bool(user.is_active),
            joining_date=user.joining_date,
            inactive_date=user.inactive_date,
        )
