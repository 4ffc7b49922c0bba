from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.core.database import Base
from crm.models import utcnow

if TYPE_CHECKING:
    from crm.models.meeting import Meeting
    from crm.models.membership import GroupMember
    from crm.models.user import User


class Group(Base):
    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    leader_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    meeting_frequency: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    leader: Mapped["User"] = relationship(back_populates="led_groups")
    memberships: Mapped[list["GroupMember"]] = relationship(
        back_populates="group",
        cascade="all,delete-orphan",
        order_by="GroupMember.joined_at.desc()",
    )
    meetings: Mapped[list["Meeting"]] = relationship(back_populates="group", cascade="all,delete-orphan")
