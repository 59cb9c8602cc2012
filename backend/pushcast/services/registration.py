"""Device token registration."""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from ..errors import ConflictError, ValidationError
from ..models import DeviceRegistration
from ..stores import TokenStore
from ..utils.clock import Clock, utcnow
from ..utils.locks import KeyedLock

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)


@dataclass
class RegistrationResult:
    """Outcome of a registration call."""
    id: str
    created: bool


class RegistrationService:
    """Upserts device registrations by token."""

    def __init__(self, token_store: TokenStore, ttl: timedelta = DEFAULT_TTL, clock: Clock = utcnow):
        self._tokens = token_store
        self._ttl = ttl
        self._clock = clock
        self._locks = KeyedLock()

    async def register_token(self, token: Optional[str]) -> RegistrationResult:
        """Register a token, or refresh its expiry if it is already known.

        Calling this on every app launch is expected; repeat calls only push
        the expiry forward and always return the same id.

        Raises:
            ValidationError: token is missing or empty
        """
        if not token:
            raise ValidationError("Token is required")

        async with self._locks.hold(token):
            existing = await self._tokens.find_by_token(token)
            if existing is not None:
                return await self._refresh(existing)

            now = self._clock()
            registration = DeviceRegistration(
                token=token,
                created_at=now,
                updated_at=now,
                expires_at=now + self._ttl,
            )
            try:
                registration_id = await self._tokens.insert(registration)
            except ConflictError:
                # Registered by another process between our lookup and insert
                existing = await self._tokens.find_by_token(token)
                if existing is None:
                    raise
                return await self._refresh(existing)

        logger.info(f"New device registered: {token[:16]}...")
        return RegistrationResult(id=registration_id, created=True)

    async def _refresh(self, registration: DeviceRegistration) -> RegistrationResult:
        now = self._clock()
        await self._tokens.update(registration.id, {
            "updated_at": now,
            "expires_at": now + self._ttl,
        })
        logger.info(f"Device token refreshed: {registration.token[:16]}...")
        return RegistrationResult(id=registration.id, created=False)
