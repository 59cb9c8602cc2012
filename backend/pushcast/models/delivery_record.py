"""DeliveryRecord model - per-device delivery attempts."""
import enum
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.clock import utcnow


class DeliveryStatus(str, enum.Enum):
    """Outcome of a push to one device."""

    SUCCESS = "success"
    FAILED = "failed"
    DELIVERED = "delivered"  # acknowledged by the device


class DeliveryRecord(Base):
    """One push attempt for a (campaign, device) pair."""

    __tablename__ = "delivery_records"
    __table_args__ = (
        Index("ix_delivery_records_token_campaign", "device_token", "campaign_id"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    campaign_id = Column(String(36), ForeignKey("campaigns.id"), nullable=False)
    device_token = Column(String, nullable=False)
    status = Column(String, nullable=False)
    error_code = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    delivered_at = Column(DateTime, nullable=True)

    campaign = relationship("Campaign", back_populates="deliveries")
