"""Shared fixtures for unit and integration tests.

Sets up environment variables required for module imports, then provides
an in-memory SQLite database and seeded users and credentials.
"""

import os

# Set test environment variables before any imports
os.environ.setdefault("JWT_SECRET", "test-secret-for-unit-tests")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_URL", "https://app.example.com")

from datetime import timedelta
from typing import Optional
from uuid import UUID

import pytest
from sqlmodel import Session, SQLModel

from publisher.db import models  # noqa: F401
from publisher.db.engine import build_engine
from publisher.db.models import (
    Credential,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
    SocialPlatform,
    User,
    utc_now,
)


@pytest.fixture
def test_engine():
    """Fresh in-memory database with every table created."""
    engine = build_engine("sqlite://")
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(test_engine):
    with Session(test_engine) as session:
        yield session


def _create_user(session: Session, email: str, premium: bool = True) -> User:
    user = User(full_name=email.split("@")[0].title(), email=email)
    session.add(user)
    session.commit()
    session.refresh(user)

    if premium:
        session.add(
            Subscription(
                user_id=user.id,
                plan=SubscriptionPlan.premium_monthly,
                status=SubscriptionStatus.active,
                current_period_end=utc_now() + timedelta(days=30),
            )
        )
        session.commit()
    return user


def _create_credential(
    session: Session,
    user_id: UUID,
    platform: SocialPlatform,
    external_account_id: Optional[str] = None,
    expires_in: Optional[timedelta] = timedelta(days=30),
    **fields,
) -> Credential:
    """Persist a credential; expires_in=None stores a non-expiring token."""
    fields.setdefault("access_token", f"{platform.value}-access-token")
    credential = Credential(
        user_id=user_id,
        platform=platform,
        external_account_id=external_account_id or f"{platform.value}-account",
        expires_at=utc_now() + expires_in if expires_in is not None else None,
        **fields,
    )
    session.add(credential)
    session.commit()
    session.refresh(credential)
    return credential


@pytest.fixture
def make_user(session):
    """Factory creating users, premium unless premium=False."""

    def factory(email: str, premium: bool = True) -> User:
        return _create_user(session, email, premium)

    return factory


@pytest.fixture
def make_credential(session):
    """Factory persisting credentials in the test session."""

    def factory(user_id: UUID, platform: SocialPlatform, **kwargs) -> Credential:
        return _create_credential(session, user_id, platform, **kwargs)

    return factory


@pytest.fixture
def premium_user(session):
    return _create_user(session, "premium@example.com", premium=True)


@pytest.fixture
def free_user(session):
    return _create_user(session, "free@example.com", premium=False)
