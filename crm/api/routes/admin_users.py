import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.api.deps import get_db
from crm.core.auth import get_super_admin
from crm.core.errors import DuplicateUser, UserLeadsGroups, UserNotFound
from crm.core.permissions import ensure_not_self
from crm.core.security import hash_password
from crm.models.group import Group
from crm.models.user import Role, User
from crm.schemas.user import UserCreate, UserPublic, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/users", tags=["admin"])


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise UserNotFound()
    return user


def _parse_role(value: str) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid role")


def _hash_or_400(password: str) -> str:
    try:
        return hash_password(password)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def ensure_unique_identity(db: Session, username: str | None, email: str | None, user_id: int | None = None) -> None:
    """Username and email are unique across users; `user_id` is the row being edited."""
    if username is not None:
        taken = db.execute(select(User).where(User.username == username)).scalar_one_or_none()
        if taken and taken.id != user_id:
            raise DuplicateUser("Username already exists")
    if email is not None:
        taken = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if taken and taken.id != user_id:
            raise DuplicateUser("Email already exists")


@router.get("", response_model=list[UserPublic])
def list_users(
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    return db.execute(select(User).order_by(User.created_at.desc(), User.id.desc())).scalars().all()


@router.post("", response_model=UserPublic, status_code=201)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    username = payload.username.strip() if payload.username else None
    if not username or not payload.email or not payload.password or not payload.role:
        raise HTTPException(status_code=400, detail="Username, email, password, and role are required")

    role = _parse_role(payload.role)
    ensure_unique_identity(db, username, payload.email)

    user = User(
        username=username,
        email=payload.email,
        hashed_password=_hash_or_400(payload.password),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("User %s (%s) created by super admin %s", user.id, user.role, admin.id)
    return user


@router.get("/{user_id}", response_model=UserPublic)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    return _get_user_or_404(db, user_id)


@router.patch("/{user_id}", response_model=UserPublic)
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    user = _get_user_or_404(db, user_id)
    ensure_not_self(admin, user.id, "Cannot modify your own account through this endpoint")

    username = payload.username.strip() if payload.username is not None else None
    if username is not None and not username:
        raise HTTPException(status_code=400, detail="Username cannot be empty")
    ensure_unique_identity(db, username, payload.email, user_id=user.id)

    if username is not None:
        user.username = username
    if payload.email is not None:
        user.email = payload.email
    if payload.role is not None:
        user.role = _parse_role(payload.role)
    if payload.password is not None and payload.password.strip():
        user.hashed_password = _hash_or_400(payload.password)

    db.commit()
    db.refresh(user)
    return user


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    user = _get_user_or_404(db, user_id)
    ensure_not_self(admin, user.id, "Cannot delete your own account")

    leads = db.execute(select(Group.id).where(Group.leader_id == user.id).limit(1)).first()
    if leads:
        raise UserLeadsGroups("Reassign this user's groups before deleting them")

    db.delete(user)
    db.commit()

    logger.info("User %s deleted by super admin %s", user_id, admin.id)
    return {"success": True}
