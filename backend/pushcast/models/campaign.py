"""Campaign model - scheduled broadcast notifications and their counters."""
import enum
import uuid
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.clock import utcnow


class CampaignStatus(str, enum.Enum):
    """Lifecycle of a campaign."""

    PENDING = "pending"
    PROCESSING = "processing"  # claimed by a dispatch pass, reclaimable once stale
    COMPLETED = "completed"
    FAILED = "failed"  # pushes went out but counters could not be written


class Campaign(Base):
    """A scheduled push notification sent to every registered device."""

    __tablename__ = "campaigns"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String, nullable=False)
    body_text = Column(String, nullable=False, default="")
    image_url = Column(String, nullable=True)
    status = Column(String, nullable=False, default=CampaignStatus.PENDING.value, index=True)
    send_at = Column(DateTime, nullable=False, index=True)
    claimed_at = Column(DateTime, nullable=True)  # set while processing

    # Counters only ever grow
    sent_count = Column(Integer, nullable=False, default=0)
    success_count = Column(Integer, nullable=False, default=0)
    failed_count = Column(Integer, nullable=False, default=0)
    failed_reasons = Column(JSON, nullable=False, default=dict)  # error code -> count

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    deliveries = relationship("DeliveryRecord", back_populates="campaign")
