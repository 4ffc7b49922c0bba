from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr

from crm.models.member import MembershipType
from crm.schemas.user import UserBrief


class MemberCreate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    category: Optional[str] = None
    membership_type: Optional[MembershipType] = None
    notes: Optional[str] = None


class MemberUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    category: Optional[str] = None
    membership_type: Optional[MembershipType] = None
    notes: Optional[str] = None


class MemberPublic(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    category: Optional[str] = None
    membership_type: MembershipType
    joined_at: datetime
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class NoteCreate(BaseModel):
    note: Optional[str] = None


class NotePublic(BaseModel):
    id: int
    member_id: int
    user_id: int
    note: str
    created_at: datetime
    author: UserBrief

    class Config:
        from_attributes = True


class HistoryMeeting(BaseModel):
    id: int
    title: str
    date: datetime
    location: Optional[str] = None


class HistoryAttendance(BaseModel):
    id: int
    status: str
    checked_in_at: Optional[datetime] = None
    meeting: HistoryMeeting


class HistoryGroup(BaseModel):
    id: int
    group_id: int
    group_name: str
    joined_at: datetime


class MemberHistory(BaseModel):
    attendance: list[HistoryAttendance]
    groups: list[HistoryGroup]
