"""
Create the initial super admin.

    python -m crm.seed

Idempotent: an existing user with the configured username is left alone.
"""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.core.config import settings
from crm.core.database import Base, SessionLocal, engine
from crm.core.security import hash_password
from crm.models.user import Role, User

logger = logging.getLogger(__name__)


def seed_super_admin(db: Session) -> User:
    existing = db.execute(
        select(User).where(User.username == settings.SEED_ADMIN_USERNAME)
    ).scalar_one_or_none()
    if existing:
        logger.info("Super admin %r already exists, skipping", existing.username)
        return existing

    user = User(
        username=settings.SEED_ADMIN_USERNAME,
        email=settings.SEED_ADMIN_EMAIL,
        hashed_password=hash_password(settings.SEED_ADMIN_PASSWORD),
        role=Role.SUPER_ADMIN,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("Super admin %r created", user.username)
    if not settings.is_production:
        logger.warning("Remember to change the seeded password before going to production")
    return user


def main() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    # registers every table on Base.metadata
    import crm.main  # noqa: F401

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_super_admin(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
