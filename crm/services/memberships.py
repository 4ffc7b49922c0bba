"""
Group membership changes and the category-exclusivity rule.

A group holds at most one member per business category (compared
case-insensitively, blank categories exempt). Every change runs under the
group's lock, and every change touching one member also holds that member's
lock: load, check, write, commit.
"""

import logging
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from crm.core.errors import (
    AlreadyMember,
    CategoryConflict,
    GroupNotFound,
    MemberNotFound,
    NotAMember,
    PersistenceError,
)
from crm.core.locks import group_lock, group_locks, member_lock
from crm.core.permissions import ensure_can_mutate
from crm.models import utcnow
from crm.models.group import Group
from crm.models.member import Member, normalize_category
from crm.models.membership import GroupMember
from crm.models.user import User

logger = logging.getLogger(__name__)


def find_category_conflict(
    memberships: Iterable[GroupMember],
    category: str | None,
    exclude_member_id: int | None = None,
) -> Member | None:
    """Return the first member already holding `category`, if any."""
    key = normalize_category(category)
    if key is None:
        return None
    for membership in memberships:
        member = membership.member
        if member.id == exclude_member_id:
            continue
        if member.category_key == key:
            return member
    return None


class MembershipManager:
    def __init__(self, db: Session):
        self.db = db

    def add_member(self, group_id: int, member_id: int, actor: User) -> GroupMember:
        with member_lock(member_id), group_lock(group_id):
            group = self._get_group(group_id)
            ensure_can_mutate(actor, group.leader_id)

            member = self.db.get(Member, member_id)
            if not member:
                raise MemberNotFound()
            # the category may have changed since this session last read it
            self.db.refresh(member)

            memberships = self.list_memberships(group_id)
            if any(m.member_id == member_id for m in memberships):
                raise AlreadyMember()

            conflict = find_category_conflict(memberships, member.category)
            if conflict:
                logger.info(
                    "Member %s blocked from group %s: category %r held by member %s",
                    member_id, group_id, member.category, conflict.id,
                )
                raise CategoryConflict(conflict.id, conflict.display_name, conflict.category)

            membership = GroupMember(
                group_id=group_id,
                member_id=member_id,
                joined_at=utcnow(),
                category_key=member.category_key,
            )
            self.db.add(membership)
            self._commit()
            self.db.refresh(membership)

        logger.info("Member %s added to group %s by user %s", member_id, group_id, actor.id)
        return membership

    def remove_member(self, group_id: int, member_id: int, actor: User) -> None:
        with member_lock(member_id), group_lock(group_id):
            group = self._get_group(group_id)
            ensure_can_mutate(actor, group.leader_id)

            membership = self.db.execute(
                select(GroupMember).where(
                    GroupMember.group_id == group_id,
                    GroupMember.member_id == member_id,
                )
            ).scalar_one_or_none()
            if not membership:
                raise NotAMember()

            # past attendance stays: it is history, not membership
            self.db.delete(membership)
            self._commit()

        logger.info("Member %s removed from group %s by user %s", member_id, group_id, actor.id)

    def update_member(self, member: Member, changes: dict) -> Member:
        """Apply field edits to a member, re-checking every group if the category moves."""
        with member_lock(member.id):
            # group set and category are stable while the member lock is held
            self.db.refresh(member)
            new_key = normalize_category(changes["category"]) if "category" in changes else member.category_key
            rows = self._memberships_of(member.id) if new_key != member.category_key else []

            with group_locks(row.group_id for row in rows):
                if new_key is not None:
                    for row in rows:
                        conflict = find_category_conflict(
                            self.list_memberships(row.group_id), changes["category"], exclude_member_id=member.id
                        )
                        if conflict:
                            raise CategoryConflict(conflict.id, conflict.display_name, conflict.category)

                for field, value in changes.items():
                    setattr(member, field, value)
                for row in rows:
                    row.category_key = new_key
                self._commit()

        self.db.refresh(member)
        return member

    def list_memberships(self, group_id: int) -> list[GroupMember]:
        return list(
            self.db.execute(
                select(GroupMember)
                .options(joinedload(GroupMember.member))
                .where(GroupMember.group_id == group_id)
                .order_by(GroupMember.id.asc())
            ).scalars().all()
        )

    def _memberships_of(self, member_id: int) -> list[GroupMember]:
        return list(
            self.db.execute(
                select(GroupMember)
                .where(GroupMember.member_id == member_id)
                .order_by(GroupMember.group_id.asc())
            ).scalars().all()
        )

    def _get_group(self, group_id: int) -> Group:
        group = self.db.get(Group, group_id)
        if not group:
            raise GroupNotFound()
        return group

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Membership change could not be committed")
            raise PersistenceError() from exc
