"""
Write-access rules.

Reads are never checked here: every authenticated user may view every
group, meeting and member.
"""

import logging

from crm.core.errors import Forbidden
from crm.models.user import Role

logger = logging.getLogger(__name__)


def can_mutate(actor_role: str, actor_id: int, resource_owner_id: int | None) -> bool:
    """Super admins may change anything; admins only what they own."""
    if actor_role == Role.SUPER_ADMIN:
        return True
    if actor_role == Role.ADMIN and resource_owner_id is not None:
        return actor_id == resource_owner_id
    return False


def ensure_can_mutate(actor, resource_owner_id: int | None) -> None:
    if not can_mutate(actor.role, actor.id, resource_owner_id):
        logger.warning(
            "User %s (%s) denied write on resource owned by %s",
            actor.id, actor.role, resource_owner_id,
        )
        raise Forbidden()


def is_super_admin(actor) -> bool:
    return actor.role == Role.SUPER_ADMIN


def ensure_super_admin(actor) -> None:
    if not is_super_admin(actor):
        raise Forbidden("Only super admins can manage users")


def ensure_not_self(actor, user_id: int, message: str) -> None:
    # own account goes through /settings, never through user management
    if actor.id == user_id:
        raise Forbidden(message)
