from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from crm.api.deps import get_db
from crm.api.routes.admin_users import ensure_unique_identity
from crm.core.auth import get_current_user
from crm.core.security import hash_password, verify_password
from crm.models.user import User
from crm.schemas.user import PasswordChange, ProfileUpdate, UserPublic

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/profile", response_model=UserPublic)
def get_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/profile", response_model=UserPublic)
def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    username = payload.username.strip() if payload.username else None
    if username == current_user.username:
        username = None
    email = payload.email if payload.email != current_user.email else None

    if username is None and email is None:
        raise HTTPException(status_code=400, detail="No changes to update")

    ensure_unique_identity(db, username, email, user_id=current_user.id)
    if username is not None:
        current_user.username = username
    if email is not None:
        current_user.email = email

    db.commit()
    db.refresh(current_user)
    return current_user


@router.post("/password")
def change_password(
    payload: PasswordChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not verify_password(payload.current_password, current_user.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    if not payload.new_password.strip():
        raise HTTPException(status_code=400, detail="New password cannot be empty")

    try:
        current_user.hashed_password = hash_password(payload.new_password)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    db.commit()
    return {"success": True}
