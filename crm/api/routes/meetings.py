import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from crm.api.deps import get_db
from crm.core.auth import get_current_user
from crm.core.errors import AttendanceNotFound, GroupNotFound, InvalidInput, MeetingNotFound
from crm.core.locks import group_lock
from crm.core.permissions import ensure_can_mutate
from crm.models import utcnow
from crm.models.attendance import Attendance, AttendanceStatus, RECORDABLE_STATUSES
from crm.models.group import Group
from crm.models.meeting import Meeting
from crm.models.membership import GroupMember
from crm.models.user import User
from crm.realtime.sse import CrmEvent, publish
from crm.schemas.meeting import (
    AttendancePublic,
    AttendanceUpdate,
    BulkAttendanceUpdate,
    MeetingCreate,
    MeetingPublic,
    MeetingUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/meetings", tags=["meetings"])


def _to_utc_naive(dt: datetime) -> datetime:
    """
    Dates are stored as naive UTC.
    - naive input is assumed to already be UTC
    - aware input is converted to UTC and stripped
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _get_meeting_or_404(db: Session, meeting_id: int) -> Meeting:
    meeting = db.get(Meeting, meeting_id)
    if not meeting:
        raise MeetingNotFound()
    return meeting


def _parse_status(value: str | None) -> AttendanceStatus:
    try:
        status = AttendanceStatus(value)
    except ValueError:
        raise InvalidInput("Invalid status")
    if status not in RECORDABLE_STATUSES:
        raise InvalidInput("Invalid status")
    return status


def _apply_status(record: Attendance, status: AttendanceStatus) -> None:
    record.status = status
    record.checked_in_at = utcnow() if status == AttendanceStatus.ATTENDED else None


@router.get("", response_model=list[MeetingPublic])
def list_meetings(
    group_id: int | None = None,
    upcoming: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    stmt = select(Meeting).options(
        selectinload(Meeting.group).selectinload(Group.leader),
        selectinload(Meeting.attendance).selectinload(Attendance.member),
    )
    if group_id is not None:
        stmt = stmt.where(Meeting.group_id == group_id)
    if upcoming:
        stmt = stmt.where(Meeting.date >= utcnow())

    return db.execute(stmt.order_by(Meeting.date.desc())).scalars().all()


@router.post("", response_model=MeetingPublic, status_code=201)
def create_meeting(
    payload: MeetingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    title = payload.title.strip() if payload.title else None
    if payload.group_id is None or not title or payload.date is None:
        raise HTTPException(status_code=400, detail="Group, title, and date are required")

    # same lock as membership changes: the roster below is a consistent snapshot
    with group_lock(payload.group_id):
        group = db.get(Group, payload.group_id)
        if not group:
            raise GroupNotFound()
        ensure_can_mutate(current_user, group.leader_id)

        meeting = Meeting(
            group_id=group.id,
            title=title,
            date=_to_utc_naive(payload.date),
            location=(payload.location.strip() or None) if payload.location else None,
            notes=(payload.notes.strip() or None) if payload.notes else None,
        )
        db.add(meeting)

        member_ids = db.execute(
            select(GroupMember.member_id).where(GroupMember.group_id == group.id)
        ).scalars().all()
        for member_id in member_ids:
            meeting.attendance.append(
                Attendance(member_id=member_id, status=AttendanceStatus.UNRECORDED, checked_in_at=None)
            )

        db.commit()
        db.refresh(meeting)

    logger.info("Meeting %s created for group %s with %d attendance rows", meeting.id, group.id, len(member_ids))
    publish(
        CrmEvent.MEETING_CREATED,
        {
            "id": meeting.id,
            "group_id": meeting.group_id,
            "group_name": group.name,
            "title": meeting.title,
            "date": meeting.date.isoformat(),
        },
    )
    return meeting


@router.get("/{meeting_id}", response_model=MeetingPublic)
def get_meeting(
    meeting_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _get_meeting_or_404(db, meeting_id)


@router.patch("/{meeting_id}", response_model=MeetingPublic)
def update_meeting(
    meeting_id: int,
    payload: MeetingUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    meeting = _get_meeting_or_404(db, meeting_id)
    ensure_can_mutate(current_user, meeting.group.leader_id)

    changes = payload.model_dump(exclude_unset=True)
    if "title" in changes:
        title = (changes["title"] or "").strip()
        if not title:
            raise HTTPException(status_code=400, detail="Title cannot be empty")
        meeting.title = title
    if "date" in changes:
        if changes["date"] is None:
            raise HTTPException(status_code=400, detail="Date cannot be empty")
        meeting.date = _to_utc_naive(changes["date"])
    if "location" in changes:
        meeting.location = changes["location"]
    if "notes" in changes:
        meeting.notes = changes["notes"]

    db.commit()
    db.refresh(meeting)
    return meeting


@router.delete("/{meeting_id}")
def delete_meeting(
    meeting_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    meeting = _get_meeting_or_404(db, meeting_id)
    ensure_can_mutate(current_user, meeting.group.leader_id)

    group_id = meeting.group_id
    db.delete(meeting)
    db.commit()

    logger.info("Meeting %s deleted by user %s", meeting_id, current_user.id)
    publish(CrmEvent.MEETING_DELETED, {"meeting_id": meeting_id, "group_id": group_id})
    return {"success": True}


@router.patch("/{meeting_id}/attendance", response_model=AttendancePublic)
def update_attendance(
    meeting_id: int,
    payload: AttendanceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if payload.member_id is None or not payload.status:
        raise HTTPException(status_code=400, detail="Member ID and status are required")
    status = _parse_status(payload.status)

    meeting = _get_meeting_or_404(db, meeting_id)
    ensure_can_mutate(current_user, meeting.group.leader_id)

    record = db.execute(
        select(Attendance).where(
            Attendance.meeting_id == meeting_id,
            Attendance.member_id == payload.member_id,
        )
    ).scalar_one_or_none()
    if not record:
        raise AttendanceNotFound()

    _apply_status(record, status)
    db.commit()
    db.refresh(record)

    publish(
        CrmEvent.ATTENDANCE_UPDATED,
        {"meeting_id": meeting_id, "member_id": record.member_id, "status": record.status.value},
    )
    return record


@router.post("/{meeting_id}/attendance", response_model=MeetingPublic)
def bulk_update_attendance(
    meeting_id: int,
    payload: BulkAttendanceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if payload.updates is None:
        raise HTTPException(status_code=400, detail="Updates array is required")

    meeting = _get_meeting_or_404(db, meeting_id)
    ensure_can_mutate(current_user, meeting.group.leader_id)

    records = {record.member_id: record for record in meeting.attendance}

    # validate everything first: either every row changes or none does
    planned = []
    for update in payload.updates:
        if update.member_id is None or not update.status:
            raise HTTPException(status_code=400, detail="Member ID and status are required")
        status = _parse_status(update.status)
        record = records.get(update.member_id)
        if record is None:
            raise AttendanceNotFound(f"No attendance record for member {update.member_id}")
        planned.append((record, status))

    for record, status in planned:
        _apply_status(record, status)
    db.commit()
    db.refresh(meeting)

    publish(
        CrmEvent.ATTENDANCE_UPDATED,
        {"meeting_id": meeting_id, "member_ids": [record.member_id for record, _ in planned]},
    )
    return meeting
