"""Push gateway client - batch sends through Firebase Cloud Messaging."""
import abc
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import firebase_admin
from firebase_admin import credentials, messaging
from firebase_admin.exceptions import FirebaseError

from ..errors import CollaboratorError

logger = logging.getLogger(__name__)

# FCM rejects multicast messages with more tokens than this
MAX_TOKENS_PER_MULTICAST = 500

# Error code recorded when the gateway gives no usable reason
UNKNOWN_ERROR_CODE = "Unknown"


@dataclass
class PushMessage:
    """Content of one campaign push."""
    title: str
    body: str
    image: Optional[str] = None


@dataclass
class SendOutcome:
    """Result of the push to one token."""
    success: bool
    error_code: Optional[str] = None


@dataclass
class FCMConfig:
    """FCM configuration."""
    credentials_path: Optional[str] = None  # service account JSON
    project_id: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return bool(self.credentials_path)


def error_code_for(exc: Optional[BaseException]) -> str:
    """Short error code for a failed send, e.g. ``Unregistered``.

    FCM raises one exception class per failure kind, so the class name is the
    most stable identifier available.
    """
    if not isinstance(exc, FirebaseError):
        return UNKNOWN_ERROR_CODE
    name = type(exc).__name__
    if name == "FirebaseError":
        return exc.code or UNKNOWN_ERROR_CODE
    return name[: -len("Error")] if name.endswith("Error") else name


class PushGateway(abc.ABC):
    """Sends one message to many tokens and reports per-token outcomes."""

    @abc.abstractmethod
    async def send_multicast(self, message: PushMessage, tokens: List[str]) -> List[SendOutcome]:
        """Send ``message`` to every token.

        Returns one outcome per token, in the order the tokens were given.

        Raises:
            CollaboratorError: the send failed before any token was pushed
        """


class FCMPushGateway(PushGateway):
    """Push gateway backed by the Firebase Admin SDK.

    SDK calls block, so they run in a worker thread. Tokens go out in chunks of
    MAX_TOKENS_PER_MULTICAST; if a later chunk fails, its tokens and those of the
    chunks after it are reported as failed sends instead of raising.
    """

    def __init__(self, config: FCMConfig, app_name: str = "pushcast"):
        self._config = config
        self._app_name = app_name
        self._app: Optional[firebase_admin.App] = None

        if not config.enabled:
            logger.info("FCM credentials not configured - campaign sends will fail")

    def _initialize(self) -> firebase_admin.App:
        """Initialize the Firebase app on first use."""
        if self._app is not None:
            return self._app

        if not self._config.enabled:
            raise CollaboratorError("Push gateway not configured")

        creds_path = Path(self._config.credentials_path)
        if not creds_path.exists():
            raise CollaboratorError(f"FCM credentials file not found: {creds_path}")

        try:
            self._app = firebase_admin.get_app(self._app_name)
        except ValueError:
            options = {"projectId": self._config.project_id} if self._config.project_id else None
            self._app = firebase_admin.initialize_app(
                credentials.Certificate(str(creds_path)),
                options=options,
                name=self._app_name,
            )
            logger.info(f"Firebase Admin SDK initialized (app={self._app_name})")

        return self._app

    def _build_message(self, message: PushMessage, tokens: List[str]) -> messaging.MulticastMessage:
        return messaging.MulticastMessage(
            notification=messaging.Notification(
                title=message.title,
                body=message.body,
                image=message.image,
            ),
            tokens=tokens,
        )

    async def send_multicast(self, message: PushMessage, tokens: List[str]) -> List[SendOutcome]:
        if not tokens:
            return []

        app = self._initialize()
        outcomes: List[SendOutcome] = []

        for start in range(0, len(tokens), MAX_TOKENS_PER_MULTICAST):
            chunk = tokens[start:start + MAX_TOKENS_PER_MULTICAST]
            try:
                response = await asyncio.to_thread(
                    messaging.send_each_for_multicast,
                    self._build_message(message, chunk),
                    app=app,
                )
            except (FirebaseError, ValueError) as e:
                if start == 0:
                    raise CollaboratorError(f"FCM multicast failed: {e}") from e
                # Earlier chunks are already out
                logger.error(f"FCM multicast failed after {start} of {len(tokens)} tokens: {e}")
                code = error_code_for(e)
                outcomes.extend(SendOutcome(success=False, error_code=code) for _ in tokens[start:])
                break

            for resp in response.responses:
                if resp.success:
                    outcomes.append(SendOutcome(success=True))
                else:
                    outcomes.append(SendOutcome(success=False, error_code=error_code_for(resp.exception)))

            logger.info(
                f"FCM multicast: {response.success_count} success, "
                f"{response.failure_count} failed ({len(chunk)} tokens)"
            )

        return outcomes
