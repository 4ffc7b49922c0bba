from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr

from crm.models.user import Role


class UserBrief(BaseModel):
    id: int
    username: str
    email: str

    class Config:
        from_attributes = True


class UserPublic(UserBrief):
    role: Role
    created_at: datetime


class UserCreate(BaseModel):
    # presence checked in the route so missing fields answer 400, not 422
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    role: Optional[str] = None


class UserUpdate(BaseModel):
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdate(BaseModel):
    username: Optional[str] = None
    email: Optional[EmailStr] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str
