"""
Pytest configuration and fixtures

Tests run against an in-memory SQLite database by default (set
TEST_DATABASE_URL to point at PostgreSQL instead). The schema is created
fresh for every test and dropped afterwards, so nothing leaks between tests
even though the AI usage gate commits mid-operation.
"""
import pytest
import sys
import os
from uuid import uuid4

# Must be set before core.config is imported
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-at-least-32-characters")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.database import Base, SessionLocal, engine
from core.security import create_access_token
from models import SubscriptionTier, User
from services.badge_catalog import sync_badge_catalog
from fixtures.fake_ai_provider import FakeAIProvider


@pytest.fixture(scope="function")
def db_session():
    """
    Fresh schema + session per test.

    The badge catalog is synced up front so user_badge rows can reference it.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    sync_badge_catalog(session)
    session.commit()

    yield session

    session.rollback()
    session.close()
    Base.metadata.drop_all(bind=engine)


def _make_user(db_session, tier: str, **overrides) -> User:
    user = User(
        email=f"test_{uuid4()}@example.com",
        display_name="Test User",
        subscription_tier=tier,
        ai_usage_count=overrides.pop("ai_usage_count", 0),
        sprint_duration_weeks=overrides.pop("sprint_duration_weeks", 2),
        **overrides,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def free_user(db_session):
    return _make_user(db_session, SubscriptionTier.FREE.value)


@pytest.fixture
def pro_user(db_session):
    return _make_user(db_session, SubscriptionTier.PRO.value)


@pytest.fixture
def make_user(db_session):
    """Factory for users with custom tier/counter/timezone."""
    def _factory(tier: str = SubscriptionTier.FREE.value, **overrides) -> User:
        return _make_user(db_session, tier, **overrides)
    return _factory


@pytest.fixture
def fake_provider():
    return FakeAIProvider()


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        token = create_access_token(user.id)
        return {"Authorization": f"Bearer {token}"}
    return _headers
