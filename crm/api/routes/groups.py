import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from crm.api.deps import get_db
from crm.core.auth import get_current_user
from crm.core.errors import Forbidden, GroupNotFound
from crm.core.locks import group_lock
from crm.core.permissions import ensure_can_mutate, is_super_admin
from crm.models.group import Group
from crm.models.membership import GroupMember
from crm.models.user import User
from crm.realtime.sse import CrmEvent, publish
from crm.schemas.group import (
    GroupCreate,
    GroupDetail,
    GroupMemberAdd,
    GroupMembershipPublic,
    GroupPublic,
    GroupUpdate,
)
from crm.services.memberships import MembershipManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/groups", tags=["groups"])


def _get_group_or_404(db: Session, group_id: int) -> Group:
    group = db.get(Group, group_id)
    if not group:
        raise GroupNotFound()
    return group


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


@router.get("", response_model=list[GroupDetail])
def list_groups(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    # everyone may read every group; only writes are gated
    groups = db.execute(
        select(Group)
        .options(
            selectinload(Group.leader),
            selectinload(Group.memberships).selectinload(GroupMember.member),
        )
        .order_by(Group.created_at.desc(), Group.id.desc())
    ).scalars().all()
    return groups


@router.post("", response_model=GroupPublic, status_code=201)
def create_group(
    payload: GroupCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    name = _clean(payload.name)
    if not name:
        raise HTTPException(status_code=400, detail="Group name is required")

    leader_id = current_user.id
    if is_super_admin(current_user) and payload.leader_id is not None:
        if not db.get(User, payload.leader_id):
            raise HTTPException(status_code=400, detail="Invalid leader specified")
        leader_id = payload.leader_id

    group = Group(
        name=name,
        description=_clean(payload.description),
        meeting_frequency=_clean(payload.meeting_frequency),
        location=_clean(payload.location),
        leader_id=leader_id,
    )
    db.add(group)
    db.commit()
    db.refresh(group)

    logger.info("Group %s created by user %s (leader %s)", group.id, current_user.id, leader_id)
    return group


@router.get("/{group_id}", response_model=GroupDetail)
def get_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _get_group_or_404(db, group_id)


@router.patch("/{group_id}", response_model=GroupPublic)
def update_group(
    group_id: int,
    payload: GroupUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = _get_group_or_404(db, group_id)
    ensure_can_mutate(current_user, group.leader_id)

    changes = payload.model_dump(exclude_unset=True)

    if "leader_id" in changes:
        new_leader_id = changes.pop("leader_id")
        if new_leader_id != group.leader_id:
            if not is_super_admin(current_user):
                raise Forbidden("Only super admins can change the group leader")
            if new_leader_id is None or not db.get(User, new_leader_id):
                raise HTTPException(status_code=400, detail="Invalid leader specified")
            group.leader_id = new_leader_id

    if "name" in changes:
        name = _clean(changes.pop("name"))
        if not name:
            raise HTTPException(status_code=400, detail="Group name cannot be empty")
        group.name = name

    for field, value in changes.items():
        setattr(group, field, _clean(value))

    db.commit()
    db.refresh(group)
    return group


@router.delete("/{group_id}")
def delete_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    with group_lock(group_id):
        group = _get_group_or_404(db, group_id)
        ensure_can_mutate(current_user, group.leader_id)

        # memberships, meetings and their attendance go with the group
        db.delete(group)
        db.commit()

    logger.info("Group %s deleted by user %s", group_id, current_user.id)
    publish(CrmEvent.GROUP_DELETED, {"group_id": group_id})

    return {"success": True, "deleted_group_id": group_id}


@router.get("/{group_id}/members", response_model=list[GroupMembershipPublic])
def list_members(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = _get_group_or_404(db, group_id)
    return group.memberships


@router.post("/{group_id}/members", response_model=GroupMembershipPublic, status_code=201)
def add_member(
    group_id: int,
    payload: GroupMemberAdd,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if payload.member_id is None:
        raise HTTPException(status_code=400, detail="Member ID is required")

    membership = MembershipManager(db).add_member(group_id, payload.member_id, current_user)

    publish(
        CrmEvent.GROUP_MEMBER_ADDED,
        {"group_id": group_id, "member_id": membership.member_id},
    )
    return membership


@router.delete("/{group_id}/members/{member_id}")
def remove_member(
    group_id: int,
    member_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    MembershipManager(db).remove_member(group_id, member_id, current_user)

    publish(CrmEvent.GROUP_MEMBER_REMOVED, {"group_id": group_id, "member_id": member_id})
    return {"success": True}
