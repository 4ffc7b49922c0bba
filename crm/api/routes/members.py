import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from crm.api.deps import get_db
from crm.core.auth import get_current_user
from crm.core.errors import MemberNotFound, NoteNotFound
from crm.core.permissions import ensure_can_mutate
from crm.models.attendance import Attendance
from crm.models.group import Group
from crm.models.meeting import Meeting
from crm.models.member import Member, MembershipType
from crm.models.member_note import MemberNote
from crm.models.membership import GroupMember
from crm.models.user import User
from crm.schemas.member import (
    HistoryAttendance,
    HistoryGroup,
    HistoryMeeting,
    MemberCreate,
    MemberHistory,
    MemberPublic,
    MemberUpdate,
    NoteCreate,
    NotePublic,
)
from crm.services.memberships import MembershipManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/members", tags=["members"])

_OPTIONAL_TEXT_FIELDS = ("phone", "company", "category", "notes")


def _get_member_or_404(db: Session, member_id: int) -> Member:
    member = db.get(Member, member_id)
    if not member:
        raise MemberNotFound()
    return member


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


@router.get("", response_model=list[MemberPublic])
def list_members(
    search: str | None = None,
    status: MembershipType | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    stmt = select(Member)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Member.first_name.ilike(pattern),
                Member.last_name.ilike(pattern),
                Member.email.ilike(pattern),
                Member.company.ilike(pattern),
            )
        )
    if status:
        stmt = stmt.where(Member.membership_type == status)

    return db.execute(stmt.order_by(Member.created_at.desc(), Member.id.desc())).scalars().all()


@router.post("", response_model=MemberPublic, status_code=201)
def create_member(
    payload: MemberCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    first_name = _blank_to_none(payload.first_name)
    last_name = _blank_to_none(payload.last_name)
    if not first_name or not last_name or not payload.email:
        raise HTTPException(status_code=400, detail="First name, last name, and email are required")

    member = Member(
        first_name=first_name,
        last_name=last_name,
        email=payload.email,
        phone=_blank_to_none(payload.phone),
        company=_blank_to_none(payload.company),
        category=_blank_to_none(payload.category),
        membership_type=payload.membership_type or MembershipType.PENDING,
        notes=_blank_to_none(payload.notes),
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


@router.get("/{member_id}", response_model=MemberPublic)
def get_member(
    member_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _get_member_or_404(db, member_id)


@router.patch("/{member_id}", response_model=MemberPublic)
def update_member(
    member_id: int,
    payload: MemberUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    member = _get_member_or_404(db, member_id)

    changes = payload.model_dump(exclude_unset=True)
    for field in ("first_name", "last_name"):
        if field in changes:
            changes[field] = _blank_to_none(changes[field])
    for field in ("first_name", "last_name", "email", "membership_type"):
        if field in changes and not changes[field]:
            raise HTTPException(status_code=400, detail=f"{field} cannot be empty")
    for field in _OPTIONAL_TEXT_FIELDS:
        if field in changes:
            changes[field] = _blank_to_none(changes[field])

    # category edits must not break exclusivity in any group the member is in
    return MembershipManager(db).update_member(member, changes)


@router.delete("/{member_id}")
def delete_member(
    member_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    member = _get_member_or_404(db, member_id)
    db.delete(member)
    db.commit()

    logger.info("Member %s deleted by user %s", member_id, current_user.id)
    return {"success": True}


@router.get("/{member_id}/history", response_model=MemberHistory)
def member_history(
    member_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    _get_member_or_404(db, member_id)

    attendance_rows = db.execute(
        select(Attendance, Meeting)
        .join(Meeting, Meeting.id == Attendance.meeting_id)
        .where(Attendance.member_id == member_id)
        .order_by(Meeting.date.desc())
    ).all()

    group_rows = db.execute(
        select(GroupMember, Group)
        .join(Group, Group.id == GroupMember.group_id)
        .where(GroupMember.member_id == member_id)
        .order_by(GroupMember.joined_at.desc())
    ).all()

    return MemberHistory(
        attendance=[
            HistoryAttendance(
                id=a.id,
                status=a.status.value,
                checked_in_at=a.checked_in_at,
                meeting=HistoryMeeting(id=m.id, title=m.title, date=m.date, location=m.location),
            )
            for (a, m) in attendance_rows
        ],
        groups=[
            HistoryGroup(id=gm.id, group_id=g.id, group_name=g.name, joined_at=gm.joined_at)
            for (gm, g) in group_rows
        ],
    )


@router.get("/{member_id}/notes", response_model=list[NotePublic])
def list_notes(
    member_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    _get_member_or_404(db, member_id)
    return db.execute(
        select(MemberNote)
        .options(selectinload(MemberNote.author))
        .where(MemberNote.member_id == member_id)
        .order_by(MemberNote.created_at.desc(), MemberNote.id.desc())
    ).scalars().all()


@router.post("/{member_id}/notes", response_model=NotePublic, status_code=201)
def create_note(
    member_id: int,
    payload: NoteCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not payload.note or not payload.note.strip():
        raise HTTPException(status_code=400, detail="Note content is required")
    _get_member_or_404(db, member_id)

    note = MemberNote(member_id=member_id, user_id=current_user.id, note=payload.note.strip())
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


@router.delete("/{member_id}/notes/{note_id}")
def delete_note(
    member_id: int,
    note_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    note = db.execute(
        select(MemberNote).where(MemberNote.id == note_id, MemberNote.member_id == member_id)
    ).scalar_one_or_none()
    if not note:
        raise NoteNotFound()

    # notes belong to their author
    ensure_can_mutate(current_user, note.user_id)

    db.delete(note)
    db.commit()
    return {"success": True}
