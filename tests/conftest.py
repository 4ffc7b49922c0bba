import os

# must be set before crm.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test_secret"
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from crm.api.deps import get_db
from crm.core.database import Base, enable_sqlite_foreign_keys
from crm.core.security import create_access_token, hash_password
from crm.main import app
from crm.models.group import Group
from crm.models.member import Member, MembershipType
from crm.models.membership import GroupMember
from crm.models.user import Role, User

PASSWORD = "secret123"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _make_user(db, username, role):
    user = User(
        username=username,
        email=f"{username}@example.com",
        hashed_password=hash_password(PASSWORD),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def super_admin(db):
    return _make_user(db, "root", Role.SUPER_ADMIN)


@pytest.fixture
def admin(db):
    return _make_user(db, "alice", Role.ADMIN)


@pytest.fixture
def other_admin(db):
    return _make_user(db, "bob", Role.ADMIN)


@pytest.fixture
def auth_headers():
    return _auth_headers


def _auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest.fixture
def make_member(db):
    counter = {"n": 0}

    def factory(first_name="Pat", last_name=None, category=None, **kwargs):
        counter["n"] += 1
        member = Member(
            first_name=first_name,
            last_name=last_name or f"Member{counter['n']}",
            email=kwargs.pop("email", f"member{counter['n']}@example.com"),
            category=category,
            membership_type=kwargs.pop("membership_type", MembershipType.ACTIVE),
            **kwargs,
        )
        db.add(member)
        db.commit()
        db.refresh(member)
        return member

    return factory


@pytest.fixture
def make_group(db):
    def factory(leader, name="Tuesday Breakfast", members=()):
        group = Group(name=name, leader_id=leader.id)
        db.add(group)
        db.commit()
        for member in members:
            db.add(GroupMember(group_id=group.id, member_id=member.id, category_key=member.category_key))
        db.commit()
        db.refresh(group)
        return group

    return factory


@pytest.fixture
def threaded_session_factory(tmp_path):
    """Sessions on a file database, one real connection each, safe to use from worker threads."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'crm.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()
