import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.api.deps import get_db
from crm.core.auth import get_current_user
from crm.core.security import create_access_token, verify_password
from crm.models.user import User
from crm.schemas.auth import LoginRequest, TokenResponse
from crm.schemas.user import UserPublic

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.execute(select(User).where(User.username == payload.username)).scalar_one_or_none()
    if not user or not verify_password(payload.password, user.hashed_password):
        logger.info("Failed login for username %r", payload.username)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token(str(user.id))
    return TokenResponse(access_token=token)

@router.get("/me", response_model=UserPublic)
def me(user: User = Depends(get_current_user)):
    return user
