import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.billing.models import PlanTier, Subscription, SubscriptionStatus, UsageCounter

logger = logging.getLogger(__name__)

# Committed captures allowed per tier; None means unlimited.
TIER_CAPTURE_LIMITS: dict[PlanTier, Optional[int]] = {
    PlanTier.FREE: 5,
    PlanTier.STARTER: 20,
    PlanTier.ALPHA: None,
    PlanTier.PRO: None,
    PlanTier.ENTERPRISE: None,
}

_COUNTING_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING)


class UsageGate:
    """Tier check in front of paid extraction calls, and the usage counter behind commits."""

    def __init__(self, db: AsyncSession, user_id: UUID):
        self.db = db
        self.user_id = user_id

    async def get_tier(self) -> PlanTier:
        result = await self.db.execute(
            select(Subscription).where(Subscription.user_id == self.user_id)
        )
        subscription = result.scalars().first()
        if subscription is None or subscription.status not in _COUNTING_STATUSES:
            return PlanTier.FREE
        return subscription.plan_tier

    async def _get_counter(self) -> Optional[UsageCounter]:
        result = await self.db.execute(
            select(UsageCounter)
            .where(UsageCounter.user_id == self.user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def remaining(self) -> Optional[int]:
        """Captures left on the current tier, or None when unlimited."""
        limit = TIER_CAPTURE_LIMITS.get(await self.get_tier(), TIER_CAPTURE_LIMITS[PlanTier.FREE])
        if limit is None:
            return None
        counter = await self._get_counter()
        used = counter.captures_committed if counter else 0
        return max(limit - used, 0)

    async def can_submit(self) -> bool:
        remaining = await self.remaining()
        return remaining is None or remaining > 0

    async def increment_usage(self) -> None:
        """Count one committed capture. Runs inside the caller's transaction; does not commit."""
        counter = await self._get_counter()
        if counter is None:
            counter = UsageCounter(user_id=self.user_id, captures_committed=0)
            self.db.add(counter)
        counter.captures_committed = (counter.captures_committed or 0) + 1
        await self.db.flush()
        logger.debug("Usage for user %s now %s", self.user_id, counter.captures_committed)
