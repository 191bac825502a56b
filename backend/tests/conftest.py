import os

# Settings are read at import time; point them at throwaway resources first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_INIT_MODE", "off")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RUN_EMBEDDED_SWEEPER", "false")

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.core.security import Identity, PasswordHasher, TokenSigner
from app.models.enums import UserRole
from app.schemas.user import UserCreate
from app.services.achievement_workflow import AchievementWorkflow
from app.services.refresh_token_store import RefreshTokenStore
from app.services.session_manager import SessionManager
from app.services.user_service import UserService

TEST_SECRET = "test-secret-key-for-unit-tests-only-0123456789"


class FrozenClock:
    """Clock that only moves when told to"""

    def __init__(self, start=datetime(2026, 3, 2, 9, 30, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def signer(clock):
    return TokenSigner(secret_key=TEST_SECRET, clock=clock)


@pytest.fixture
def token_store(clock):
    return RefreshTokenStore(clock=clock)


@pytest.fixture
def users(hasher, token_store, clock):
    return UserService(hasher=hasher, token_store=token_store, clock=clock)


@pytest.fixture
def sessions(signer, token_store, hasher, users):
    return SessionManager(signer=signer, store=token_store, hasher=hasher, users=users)


@pytest.fixture
def workflow(clock):
    return AchievementWorkflow(clock=clock)


@pytest.fixture
def make_user(db, users):
    counter = {"n": 0}

    def _make(role=UserRole.STUDENT, email=None, password="password123", name=None, **extra):
        counter["n"] += 1
        email = email or f"{UserRole(role).value}{counter['n']}@example.com"
        return users.create_user(
            db,
            UserCreate(
                name=name or f"User {counter['n']}",
                email=email,
                password=password,
                role=role,
                **extra,
            ),
        )

    return _make


def identity_of(user):
    return Identity(user_id=user.id, email=user.email, role=UserRole(user.role))


@pytest.fixture
def as_identity():
    return identity_of
