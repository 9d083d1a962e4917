"""User schemas."""
from datetime import datetime
from pydantic import BaseModel, EmailStr
from typing import Optional

from changetrack.models.user import UserRole


class UserBase(BaseModel):
    email: EmailStr
    full_name: str


class UserCreate(UserBase):
    password: str
    role: UserRole = UserRole.APPLICATION_OWNER


class UserBrief(BaseModel):
    """Compact user reference embedded in other responses."""
    user_id: int
    full_name: str
    email: str

    class Config:
        from_attributes = True


class UserResponse(UserBase):
    user_id: int
    role: str
    role_display: Optional[str] = None
    capabilities: dict = {}
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
