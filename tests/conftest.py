"""Shared test fixtures for the casegate test suite.

All tests run against one in-memory SQLite database shared through
StaticPool. Tables are created once and emptied before each test.

Time is controlled with the ``clock`` fixture, which overrides the
``get_clock`` dependency; tokens minted in tests should use ``clock.now``
so the session monitor sees a consistent timeline.
"""

import os

# Use an in-memory database and readable logs before any app imports.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_FORMAT"] = "text"
os.environ["ADMIN_EMAIL"] = ""
os.environ["ADMIN_PASSWORD"] = ""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from casegate.database import Base, SessionLocal, engine, get_db, init_db
from casegate.main import app
from casegate.core.auth import get_clock
from casegate.middleware.request_context import _rate_buckets
from casegate.models.grant import JurisdictionGrant, PersonGrant
from casegate.models.resource import Jurisdiction, Person
from casegate.models.user import User
from casegate.services.auth_service import hash_password
from casegate.services.token_service import issue_tokens

init_db()

PASSWORD = "Correcto123!"

# bcrypt is slow on purpose; hash the shared test password once.
_PASSWORD_HASH = hash_password(PASSWORD)


class FakeClock:
    """Mutable time source. Call it to read the time, ``advance`` to move it."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def _clean_tables():
    """Empty every table before each test (children first)."""
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    _rate_buckets.clear()
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def clock():
    return FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture()
def client(db, clock):
    """TestClient using the test session and the fake clock."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# --- factories ---


def make_user(
    db,
    email: str = "colaborador@bufete.ec",
    role: str = "COLLABORATOR",
    is_active: bool = True,
    is_first_login: bool = False,
    is_profile_completed: bool = True,
    token_version: int = 0,
) -> User:
    user = User(
        email=email,
        display_name=email.split("@")[0],
        password_hash=_PASSWORD_HASH,
        role=role,
        is_active=is_active,
        is_first_login=is_first_login,
        is_profile_completed=is_profile_completed,
        token_version=token_version,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_jurisdiction(db, name: str = "Quito", created_by=None) -> Jurisdiction:
    jurisdiction = Jurisdiction(name=name, created_by=created_by)
    db.add(jurisdiction)
    db.commit()
    db.refresh(jurisdiction)
    return jurisdiction


def make_person(db, jurisdiction: Jurisdiction, full_name: str = "Juan Pérez", created_by=None) -> Person:
    person = Person(jurisdiction_id=jurisdiction.id, full_name=full_name, created_by=created_by)
    db.add(person)
    db.commit()
    db.refresh(person)
    return person


def grant_jurisdiction(db, user, jurisdiction, can_view=True, can_create=False, can_edit=False):
    grant = JurisdictionGrant(
        user_id=user.id,
        jurisdiction_id=jurisdiction.id,
        can_view=can_view,
        can_create=can_create,
        can_edit=can_edit,
    )
    db.add(grant)
    db.commit()
    return grant


def grant_person(db, user, person, can_view=True, can_create=False, can_edit=False):
    grant = PersonGrant(
        user_id=user.id,
        person_id=person.id,
        jurisdiction_id=person.jurisdiction_id,
        can_view=can_view,
        can_create=can_create,
        can_edit=can_edit,
    )
    db.add(grant)
    db.commit()
    return grant


def bearer(db, user, clock) -> dict:
    """Authorization header with a freshly issued access token."""
    pair = issue_tokens(db, user, clock())
    return {"Authorization": f"Bearer {pair.access_token}"}


@pytest.fixture()
def admin(db):
    return make_user(db, email="admin@bufete.ec", role="ADMIN")


@pytest.fixture()
def collaborator(db):
    return make_user(db)
