from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.core.database import Base
from crm.models import utcnow

if TYPE_CHECKING:
    from crm.models.attendance import Attendance
    from crm.models.member_note import MemberNote
    from crm.models.membership import GroupMember


class MembershipType(StrEnum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    PENDING = "PENDING"
    EXPIRED = "EXPIRED"


def normalize_category(category: str | None) -> str | None:
    """Comparison key for category exclusivity; blank means no category."""
    if category is None:
        return None
    key = category.strip().lower()
    return key or None


class Member(Base):
    __tablename__ = "members"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    membership_type: Mapped[MembershipType] = mapped_column(default=MembershipType.PENDING, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    group_memberships: Mapped[list["GroupMember"]] = relationship(
        back_populates="member", cascade="all,delete-orphan"
    )
    attendance: Mapped[list["Attendance"]] = relationship(
        back_populates="member", cascade="all,delete-orphan"
    )
    member_notes: Mapped[list["MemberNote"]] = relationship(
        back_populates="member", cascade="all,delete-orphan"
    )

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def category_key(self) -> str | None:
        return normalize_category(self.category)
