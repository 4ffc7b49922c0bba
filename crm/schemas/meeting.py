from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel

from crm.models.attendance import AttendanceStatus
from crm.schemas.member import MemberPublic
from crm.schemas.user import UserBrief


class MeetingCreate(BaseModel):
    group_id: Optional[int] = None
    title: Optional[str] = None
    date: Optional[datetime] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class MeetingUpdate(BaseModel):
    title: Optional[str] = None
    date: Optional[datetime] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class MeetingGroup(BaseModel):
    id: int
    name: str
    leader_id: int
    leader: UserBrief

    class Config:
        from_attributes = True


class AttendancePublic(BaseModel):
    id: int
    meeting_id: int
    member_id: int
    status: AttendanceStatus
    checked_in_at: Optional[datetime] = None
    member: MemberPublic

    class Config:
        from_attributes = True


class MeetingPublic(BaseModel):
    id: int
    group_id: int
    title: str
    date: datetime
    location: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    group: MeetingGroup
    attendance: List[AttendancePublic] = []

    class Config:
        from_attributes = True


class AttendanceUpdate(BaseModel):
    member_id: Optional[int] = None
    status: Optional[str] = None


class BulkAttendanceUpdate(BaseModel):
    updates: Optional[List[AttendanceUpdate]] = None
