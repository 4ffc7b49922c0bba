from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.core.database import Base
from crm.models import utcnow

if TYPE_CHECKING:
    from crm.models.group import Group
    from crm.models.member import Member


class GroupMember(Base):
    __tablename__ = "group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "member_id", name="uq_group_member"),
        # one member per category per group; NULL keys never collide
        UniqueConstraint("group_id", "category_key", name="uq_group_category"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    # normalized copy of member.category, kept in sync by the membership manager
    category_key: Mapped[str | None] = mapped_column(String(255), nullable=True)

    group: Mapped["Group"] = relationship(back_populates="memberships")
    member: Mapped["Member"] = relationship(back_populates="group_memberships")
