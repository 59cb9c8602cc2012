"""Campaign store - campaign definitions, status transitions and counters."""
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..errors import NotFoundError
from ..models import Campaign, CampaignStatus
from ..utils.clock import utcnow
from ..utils.db_utils import store_operation

logger = logging.getLogger(__name__)

# Counters that may be incremented through update()
COUNTER_FIELDS = ("sent_count", "success_count", "failed_count")

# A processing claim older than this is treated as abandoned
DEFAULT_CLAIM_TIMEOUT = timedelta(minutes=15)


def merge_reason_counts(current: Optional[Dict[str, int]], new: Dict[str, int]) -> Dict[str, int]:
    """Add per-pass failure counts onto the stored ones."""
    merged = dict(current or {})
    for reason, count in new.items():
        merged[reason] = merged.get(reason, 0) + count
    return merged


class CampaignStore:
    """SQLAlchemy-backed campaign store."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        claim_timeout: timedelta = DEFAULT_CLAIM_TIMEOUT,
    ):
        self._session_factory = session_factory
        self._claim_timeout = claim_timeout

    def _claimable(self, now: datetime):
        """Pending campaigns, plus processing ones whose claim has gone stale."""
        return or_(
            Campaign.status == CampaignStatus.PENDING.value,
            and_(
                Campaign.status == CampaignStatus.PROCESSING.value,
                Campaign.claimed_at <= now - self._claim_timeout,
            ),
        )

    @store_operation
    async def find_due(self, now: datetime) -> List[Campaign]:
        """Claimable campaigns whose send time has passed, oldest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Campaign)
                .where(self._claimable(now), Campaign.send_at <= now)
                .order_by(Campaign.send_at)
            )
            return list(result.scalars().all())

    @store_operation
    async def claim(self, campaign_id: str, now: datetime) -> bool:
        """Move a campaign to processing and stamp the claim time.

        The transition is a single conditional UPDATE, so of several concurrent
        callers exactly one gets True. A stale processing claim can be taken
        over the same way.
        """
        async with self._session_factory() as session:
            result = await session.execute(
                update(Campaign)
                .where(Campaign.id == campaign_id, self._claimable(now))
                .values(status=CampaignStatus.PROCESSING.value, claimed_at=now, updated_at=utcnow())
            )
            await session.commit()
            return result.rowcount == 1

    @store_operation
    async def release(self, campaign_id: str) -> bool:
        """Hand a claimed campaign back to the pending pool."""
        async with self._session_factory() as session:
            result = await session.execute(
                update(Campaign)
                .where(
                    Campaign.id == campaign_id,
                    Campaign.status == CampaignStatus.PROCESSING.value,
                )
                .values(status=CampaignStatus.PENDING.value, claimed_at=None, updated_at=utcnow())
            )
            await session.commit()
            return result.rowcount == 1

    @store_operation
    async def update(
        self,
        campaign_id: str,
        fields: Optional[dict] = None,
        increments: Optional[Dict[str, int]] = None,
        merge_reasons: Optional[Dict[str, int]] = None,
    ) -> None:
        """Set fields, increment counters and merge failure reasons in one transaction.

        Raises:
            NotFoundError: no campaign has this id
            ValueError: an increment names something other than a counter
        """
        async with self._session_factory() as session:
            result = await session.execute(
                select(Campaign).where(Campaign.id == campaign_id).with_for_update()
            )
            campaign = result.scalar_one_or_none()
            if campaign is None:
                raise NotFoundError(f"Campaign {campaign_id} not found")

            for name, value in (fields or {}).items():
                setattr(campaign, name, value)

            for name, amount in (increments or {}).items():
                if name not in COUNTER_FIELDS:
                    raise ValueError(f"Not a counter: {name}")
                # Evaluated by the database, not from the loaded value
                setattr(campaign, name, getattr(Campaign, name) + amount)

            if merge_reasons:
                campaign.failed_reasons = merge_reason_counts(campaign.failed_reasons, merge_reasons)

            await session.commit()
