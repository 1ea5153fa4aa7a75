"""
Tests for the AI usage gate: free-tier cap, paid-tier bypass,
cancellation and the failed-call counting policy.
"""
import asyncio
import os
import pytest
from uuid import uuid4

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from core.database import Base
from models import SubscriptionTier, User
from services.ai_provider import AIProviderError
from services.ai_usage_gate import AIUsageGate, check_quota


def _counter(db_session, user) -> int:
    db_session.expire_all()
    return db_session.query(User).filter(User.id == user.id).one().ai_usage_count


class TestCheckQuota:
    """Pure quota decision."""

    def test_free_under_limit_allowed(self):
        decision = check_quota("free", 3, 10)
        assert decision.allowed is True
        assert decision.remaining == 7

    def test_free_at_limit_denied(self):
        decision = check_quota("free", 10, 10)
        assert decision.allowed is False
        assert decision.reason == "free_tier_limit"
        assert decision.remaining == 0

    @pytest.mark.parametrize("tier", ["pro", "enterprise"])
    def test_paid_tiers_unlimited(self, tier):
        decision = check_quota(tier, 10_000, 10)
        assert decision.allowed is True
        assert decision.remaining is None

    def test_unknown_tier_is_rejected(self):
        with pytest.raises(ValueError):
            check_quota("gold", 0, 10)

    @pytest.mark.parametrize("tier", [t.value for t in SubscriptionTier])
    def test_user_flag_agrees_with_quota_decision(self, tier):
        user = User(subscription_tier=tier, ai_usage_count=10)
        decision = check_quota(user.subscription_tier, user.ai_usage_count, 10)
        assert user.is_free_tier is (decision.reason != "paid_tier")

    def test_database_refuses_unknown_tier(self, db_session):
        db_session.add(User(email=f"gold_{uuid4()}@example.com", subscription_tier="gold"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()


class TestFreeTierQuota:

    @pytest.mark.asyncio
    async def test_counter_never_exceeds_limit(self, db_session, free_user):
        """Every call either increments by exactly one or is denied with no change."""
        gate = AIUsageGate(db_session, limit=10)
        invoked = 0

        async def op():
            nonlocal invoked
            invoked += 1
            return ["ok"]

        previous = 0
        for _ in range(15):
            result = await gate.run(free_user, op, fallback=[])
            current = _counter(db_session, free_user)
            if result.quota_exceeded:
                assert current == previous
                assert result.value == []
            else:
                assert current == previous + 1
            assert current <= 10
            previous = current

        assert invoked == 10
        assert previous == 10

    @pytest.mark.asyncio
    async def test_exhausted_user_gets_fallback_without_invocation(self, db_session, make_user):
        """A free user at 10 gets [] back, the provider is not called, counter stays 10."""
        user = make_user(SubscriptionTier.FREE.value, ai_usage_count=10)
        gate = AIUsageGate(db_session, limit=10)

        async def op():
            raise AssertionError("operation must not run when quota is exhausted")

        result = await gate.run(user, op, fallback=[])

        assert result.value == []
        assert result.quota_exceeded is True
        assert _counter(db_session, user) == 10

    @pytest.mark.asyncio
    async def test_success_returns_value_and_counts_once(self, db_session, free_user):
        gate = AIUsageGate(db_session, limit=10)

        async def op():
            return ["a", "b"]

        result = await gate.run(free_user, op, fallback=[])

        assert result.value == ["a", "b"]
        assert result.quota_exceeded is False
        assert result.usage_count == 1
        assert _counter(db_session, free_user) == 1

    @pytest.mark.asyncio
    async def test_none_fallback_for_single_object_operations(self, db_session, make_user):
        user = make_user(SubscriptionTier.FREE.value, ai_usage_count=10)
        gate = AIUsageGate(db_session, limit=10)

        async def op():
            return {"summary": "x"}

        result = await gate.run(user, op, fallback=None)

        assert result.value is None
        assert result.quota_exceeded is True


class TestPaidTiers:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tier", [SubscriptionTier.PRO.value, SubscriptionTier.ENTERPRISE.value])
    async def test_never_blocked_and_counter_untouched(self, db_session, make_user, tier):
        user = make_user(tier, ai_usage_count=50)
        gate = AIUsageGate(db_session, limit=10)

        async def op():
            return "answer"

        for _ in range(12):
            result = await gate.run(user, op, fallback=None)
            assert result.value == "answer"
            assert result.quota_exceeded is False

        assert _counter(db_session, user) == 50


@pytest.fixture
def shared_engine(tmp_path):
    """A database several sessions can open at once (in-memory SQLite cannot)."""
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite:///{tmp_path / 'quota.db'}"
    engine = create_engine(url)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


class TestConcurrentReservations:

    @pytest.mark.asyncio
    async def test_two_sessions_cannot_both_take_the_last_unit(self, shared_engine):
        make_session = sessionmaker(bind=shared_engine, expire_on_commit=False)
        with make_session() as setup:
            user = User(email=f"race_{uuid4()}@example.com", subscription_tier="free", ai_usage_count=9)
            setup.add(user)
            setup.commit()
            user_id = user.id

        sessions = [make_session(), make_session()]
        release = asyncio.Event()
        invoked = []

        def operation(name):
            async def _call():
                invoked.append(name)
                await release.wait()
                return [name]
            return _call

        async def gated(session, name):
            gate = AIUsageGate(session, limit=10)
            return await gate.run(session.get(User, user_id), operation(name), fallback=[])

        async def open_release():
            # The first call is parked inside its operation, still holding its unit
            for _ in range(100):
                if invoked:
                    break
                await asyncio.sleep(0)
            release.set()

        try:
            first, second, _ = await asyncio.wait_for(
                asyncio.gather(gated(sessions[0], "a"), gated(sessions[1], "b"), open_release()),
                timeout=5,
            )
        finally:
            for session in sessions:
                session.close()

        assert len(invoked) == 1
        assert sorted([first.quota_exceeded, second.quota_exceeded]) == [False, True]
        denied = first if first.quota_exceeded else second
        assert denied.value == []

        with make_session() as check:
            assert check.get(User, user_id).ai_usage_count == 10



class TestCancellationAndFailures:

    @pytest.mark.asyncio
    async def test_cancellation_releases_reservation(self, db_session, free_user):
        gate = AIUsageGate(db_session, limit=10)

        async def op():
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await gate.run(free_user, op, fallback=[])

        assert _counter(db_session, free_user) == 0

    @pytest.mark.asyncio
    async def test_timeout_releases_reservation(self, db_session, free_user):
        gate = AIUsageGate(db_session, limit=10)

        async def op():
            await asyncio.sleep(1)
            return []

        with pytest.raises(asyncio.TimeoutError):
            await gate.run(free_user, op, fallback=[], timeout_s=0.01)

        assert _counter(db_session, free_user) == 0

    @pytest.mark.asyncio
    async def test_failed_call_counts_by_default(self, db_session, free_user):
        gate = AIUsageGate(db_session, limit=10, count_failed_calls=True)

        async def op():
            raise AIProviderError("boom")

        with pytest.raises(AIProviderError):
            await gate.run(free_user, op, fallback=[])

        assert _counter(db_session, free_user) == 1

    @pytest.mark.asyncio
    async def test_failed_call_released_when_policy_disabled(self, db_session, free_user):
        gate = AIUsageGate(db_session, limit=10, count_failed_calls=False)

        async def op():
            raise AIProviderError("boom")

        with pytest.raises(AIProviderError):
            await gate.run(free_user, op, fallback=[])

        assert _counter(db_session, free_user) == 0


class TestUsageStatus:

    def test_free_user_status(self, db_session, make_user):
        user = make_user(SubscriptionTier.FREE.value, ai_usage_count=10)
        status = AIUsageGate(db_session, limit=10).get_usage_status(user)
        assert status == {
            "subscription_tier": "free",
            "used": 10,
            "limit": 10,
            "remaining": 0,
            "upgrade_required": True,
        }

    def test_paid_user_status_is_unlimited(self, db_session, pro_user):
        status = AIUsageGate(db_session, limit=10).get_usage_status(pro_user)
        assert status["limit"] is None
        assert status["remaining"] is None
        assert status["upgrade_required"] is False
