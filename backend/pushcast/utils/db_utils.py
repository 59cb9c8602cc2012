"""Database utility functions."""
import asyncio
import functools
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from ..errors import CollaboratorError, DispatcherError, PermissionDeniedError

logger = logging.getLogger(__name__)

T = TypeVar('T')

# SQLSTATE for insufficient_privilege
PERMISSION_DENIED_SQLSTATE = "42501"


def translate_store_error(exc: Exception) -> DispatcherError:
    """Map a database exception onto the dispatcher error taxonomy.

    Authorization denials (PostgreSQL SQLSTATE 42501, or a read-only SQLite
    file) become PermissionDeniedError so the API can answer 403. Everything
    else, timeouts included, is a CollaboratorError.
    """
    if isinstance(exc, DispatcherError):
        return exc

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return CollaboratorError("Store operation timed out")

    if isinstance(exc, DBAPIError) and exc.orig is not None:
        orig = exc.orig
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        error_str = str(orig).lower()
        if sqlstate == PERMISSION_DENIED_SQLSTATE or any(msg in error_str for msg in [
            "permission denied",
            "readonly database",
            "read-only database",
        ]):
            return PermissionDeniedError(str(orig))
        # The driver message without the SQL statement appended
        return CollaboratorError(str(orig))

    return CollaboratorError(str(exc))


def store_operation(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Decorate a store coroutine so database failures surface as dispatcher errors."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> T:
        try:
            return await func(*args, **kwargs)
        except (SQLAlchemyError, asyncio.TimeoutError) as e:
            error = translate_store_error(e)
            logger.warning(f"{func.__qualname__} failed: {error.message}")
            raise error from e

    return wrapper
