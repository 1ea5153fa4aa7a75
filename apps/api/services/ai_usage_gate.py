"""
AI Usage Gate

Caps free-tier users at a flat number of AI calls (no reset window) while
paid tiers bypass the cap entirely.

Check-and-increment is one conditional UPDATE:

    UPDATE app_user SET ai_usage_count = ai_usage_count + 1
    WHERE id = :id AND subscription_tier = 'free' AND ai_usage_count < :limit

so two concurrent calls for the same user cannot both pass the check. The
reservation is committed before the AI call and released again if the call
is cancelled or times out, so only a returned result counts as usage.
Whether a call that raised still counts is a policy (AI_COUNT_FAILED_CALLS).

Quota exhaustion is not an exception: the operation is skipped and the
caller's fallback is returned with quota_exceeded=True.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar
import asyncio
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from core.config import settings
from models import SubscriptionTier, User

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    reason: str  # 'paid_tier', 'ok', 'free_tier_limit'
    remaining: Optional[int]  # None = unlimited


@dataclass
class GateResult(Generic[T]):
    """Outcome of a gated call. quota_exceeded drives the upgrade prompt."""
    value: T
    quota_exceeded: bool
    usage_count: int


def check_quota(tier: str, usage_count: int, limit: int) -> QuotaDecision:
    """
    Pure quota decision for a tier and current counter value.

    Raises ValueError for a tier outside SubscriptionTier.
    """
    if SubscriptionTier(tier) != SubscriptionTier.FREE:
        return QuotaDecision(allowed=True, reason="paid_tier", remaining=None)
    remaining = max(0, limit - usage_count)
    if usage_count >= limit:
        return QuotaDecision(allowed=False, reason="free_tier_limit", remaining=0)
    return QuotaDecision(allowed=True, reason="ok", remaining=remaining)


class AIUsageGate:
    """
    Wraps AI-backed operations with the tier quota.

    Usage:
        gate = AIUsageGate(db)
        result = await gate.run(user, lambda: provider.suggest_subtasks(title), fallback=[])
        if result.quota_exceeded:
            ...  # prompt upgrade
    """

    def __init__(
        self,
        db: Session,
        limit: Optional[int] = None,
        count_failed_calls: Optional[bool] = None,
    ):
        self.db = db
        self.limit = settings.FREE_TIER_AI_LIMIT if limit is None else limit
        self.count_failed_calls = (
            settings.AI_COUNT_FAILED_CALLS if count_failed_calls is None else count_failed_calls
        )

    # -----------------------------------------------------------------------
    # Counter primitives
    # -----------------------------------------------------------------------

    def _reserve(self, user: User) -> bool:
        """Atomically take one unit of quota. False when none is left."""
        result = self.db.execute(
            update(User)
            .where(
                User.id == user.id,
                User.subscription_tier == SubscriptionTier.FREE.value,
                User.ai_usage_count < self.limit,
            )
            .values(ai_usage_count=User.ai_usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(user)
        return result.rowcount == 1

    def _release(self, user: User) -> None:
        """Give back a reserved unit (cancelled or uncounted call)."""
        self.db.execute(
            update(User)
            .where(User.id == user.id, User.ai_usage_count > 0)
            .values(ai_usage_count=User.ai_usage_count - 1)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(user)

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def run(
        self,
        user: User,
        operation: Callable[[], Awaitable[T]],
        fallback: T,
        timeout_s: Optional[float] = None,
    ) -> GateResult[T]:
        """
        Invoke operation under the user's quota.

        Raises whatever the operation raises (after applying the failure
        policy); never retries.
        """
        if not user.is_free_tier:
            value = await self._invoke(operation, timeout_s)
            return GateResult(value=value, quota_exceeded=False, usage_count=user.ai_usage_count)

        if not self._reserve(user):
            logger.info(
                f"AI quota exceeded for user {user.id}",
                extra={"extra_fields": {"user_id": str(user.id), "usage_count": user.ai_usage_count}},
            )
            return GateResult(value=fallback, quota_exceeded=True, usage_count=user.ai_usage_count)

        try:
            value = await self._invoke(operation, timeout_s)
        except (asyncio.CancelledError, asyncio.TimeoutError):
            self._release(user)
            logger.info(f"AI call cancelled for user {user.id}; quota unit released")
            raise
        except Exception as e:
            if not self.count_failed_calls:
                self._release(user)
            logger.warning(
                f"AI call failed for user {user.id}: {type(e).__name__}",
                extra={"extra_fields": {"user_id": str(user.id), "counted": self.count_failed_calls}},
            )
            raise

        return GateResult(value=value, quota_exceeded=False, usage_count=user.ai_usage_count)

    @staticmethod
    async def _invoke(operation: Callable[[], Awaitable[T]], timeout_s: Optional[float]) -> T:
        if timeout_s is None:
            return await operation()
        return await asyncio.wait_for(operation(), timeout=timeout_s)

    def get_usage_status(self, user: User) -> Dict[str, Any]:
        """Usage summary for the settings/upgrade UI."""
        decision = check_quota(user.subscription_tier, user.ai_usage_count, self.limit)
        return {
            "subscription_tier": user.subscription_tier,
            "used": user.ai_usage_count,
            "limit": None if decision.remaining is None else self.limit,
            "remaining": decision.remaining,
            "upgrade_required": not decision.allowed,
        }
