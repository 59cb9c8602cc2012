"""DeviceRegistration model - push tokens registered by client apps."""
import uuid
from sqlalchemy import Column, String, DateTime

from ..database import Base
from ..utils.clock import utcnow


class DeviceRegistration(Base):
    """A device push token with a renewable expiry."""

    __tablename__ = "device_registrations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    token = Column(String, unique=True, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)  # advisory unless the sweep runs
