"""Delivery acknowledgement from receiving devices."""
import logging
from typing import Optional

from ..errors import NotFoundError, ValidationError
from ..models import DeliveryStatus
from ..stores import DeliveryLedger
from ..utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)


class AcknowledgementService:
    """Marks ledger records as delivered."""

    def __init__(self, ledger: DeliveryLedger, clock: Clock = utcnow):
        self._ledger = ledger
        self._clock = clock

    async def acknowledge_delivery(self, token: Optional[str], campaign_id: Optional[str]) -> str:
        """Set the record for this device and campaign to delivered.

        Returns the id of the updated record. Only the first matching record
        is touched.

        Raises:
            ValidationError: token or campaign_id missing
            NotFoundError: no record for this pair
            PermissionDeniedError: the ledger refused the update
        """
        if not token or not campaign_id:
            raise ValidationError("FCM token and campaign ID are required")

        record = await self._ledger.find_one(token, campaign_id)
        if record is None:
            raise NotFoundError("No notification found for the provided token and campaign ID")

        await self._ledger.update(record.id, {
            "status": DeliveryStatus.DELIVERED.value,
            "delivered_at": self._clock(),
        })
        logger.info(f"Delivery acknowledged: campaign {campaign_id}, token {token[:16]}...")
        return record.id
