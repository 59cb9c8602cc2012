"""Delivery ledger - append-only per-device delivery records."""
import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import DeliveryRecord
from ..utils.db_utils import store_operation

logger = logging.getLogger(__name__)


class DeliveryLedger:
    """SQLAlchemy-backed delivery ledger."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @store_operation
    async def batch_insert(self, records: List[DeliveryRecord]) -> None:
        """Write all records in one transaction, or none of them."""
        if not records:
            return
        async with self._session_factory() as session:
            session.add_all(records)
            await session.commit()
        logger.debug(f"Ledger appended {len(records)} records")

    @store_operation
    async def find_one(self, token: str, campaign_id: str) -> Optional[DeliveryRecord]:
        """First record for this device and campaign.

        A campaign that was double-sent can have several; only the oldest is returned.
        """
        async with self._session_factory() as session:
            result = await session.execute(
                select(DeliveryRecord)
                .where(
                    DeliveryRecord.device_token == token,
                    DeliveryRecord.campaign_id == campaign_id,
                )
                .order_by(DeliveryRecord.created_at)
                .limit(1)
            )
            return result.scalar_one_or_none()

    @store_operation
    async def update(self, record_id: str, fields: dict) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(DeliveryRecord)
                .where(DeliveryRecord.id == record_id)
                .values(**fields)
            )
            await session.commit()
