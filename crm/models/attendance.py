from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.core.database import Base

if TYPE_CHECKING:
    from crm.models.meeting import Meeting
    from crm.models.member import Member


class AttendanceStatus(StrEnum):
    UNRECORDED = "UNRECORDED"  # seeded at meeting creation, never set by an update
    ATTENDED = "ATTENDED"
    NO_SHOW = "NO_SHOW"
    CANCELLED = "CANCELLED"
    EXCUSED = "EXCUSED"


RECORDABLE_STATUSES = (
    AttendanceStatus.ATTENDED,
    AttendanceStatus.NO_SHOW,
    AttendanceStatus.CANCELLED,
    AttendanceStatus.EXCUSED,
)


class Attendance(Base):
    __tablename__ = "attendance"
    __table_args__ = (UniqueConstraint("meeting_id", "member_id", name="uq_meeting_member"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    meeting_id: Mapped[int] = mapped_column(ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    status: Mapped[AttendanceStatus] = mapped_column(default=AttendanceStatus.UNRECORDED, nullable=False)
    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    meeting: Mapped["Meeting"] = relationship(back_populates="attendance")
    member: Mapped["Member"] = relationship(back_populates="attendance")
