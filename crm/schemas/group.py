from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from crm.schemas.member import MemberPublic
from crm.schemas.user import UserBrief


class GroupCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    meeting_frequency: Optional[str] = None
    location: Optional[str] = None
    leader_id: Optional[int] = None


class GroupUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    meeting_frequency: Optional[str] = None
    location: Optional[str] = None
    leader_id: Optional[int] = None


class GroupPublic(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    leader_id: int
    meeting_frequency: Optional[str] = None
    location: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    leader: UserBrief

    class Config:
        from_attributes = True


class GroupMemberAdd(BaseModel):
    member_id: Optional[int] = Field(default=None, alias="memberId")

    class Config:
        populate_by_name = True


class GroupMembershipPublic(BaseModel):
    id: int
    group_id: int
    member_id: int
    joined_at: datetime
    member: MemberPublic

    class Config:
        from_attributes = True


class GroupDetail(GroupPublic):
    memberships: list[GroupMembershipPublic] = []
