"""Token store - device registrations keyed by push token."""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..errors import ConflictError
from ..models import DeviceRegistration
from ..utils.db_utils import store_operation

logger = logging.getLogger(__name__)


class TokenStore:
    """SQLAlchemy-backed store of device registrations."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @store_operation
    async def find_by_token(self, token: str) -> Optional[DeviceRegistration]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(DeviceRegistration).where(DeviceRegistration.token == token).limit(1)
            )
            return result.scalar_one_or_none()

    @store_operation
    async def insert(self, registration: DeviceRegistration) -> str:
        """Insert a registration and return its id.

        Raises:
            ConflictError: another writer registered the same token first
        """
        async with self._session_factory() as session:
            session.add(registration)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConflictError(f"Token already registered: {registration.token[:16]}...") from e
            return registration.id

    @store_operation
    async def update(self, registration_id: str, fields: dict) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(DeviceRegistration)
                .where(DeviceRegistration.id == registration_id)
                .values(**fields)
            )
            await session.commit()

    @store_operation
    async def list_all(self) -> List[str]:
        """All registered tokens, expired or not."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(DeviceRegistration.token).order_by(DeviceRegistration.created_at)
            )
            return [token for token in result.scalars().all() if token]

    @store_operation
    async def delete_expired(self, now: datetime) -> int:
        """Delete registrations whose expiry has passed. Returns the number removed."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(DeviceRegistration).where(DeviceRegistration.expires_at < now)
            )
            await session.commit()
            return result.rowcount or 0
