"""Error taxonomy shared by handlers, stores and the HTTP layer.

Every error carries the HTTP status the API answers with.
"""


class DispatcherError(Exception):
    """Base class for errors raised by the dispatcher."""

    status_code = 500
    code = "unknown"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(DispatcherError):
    """Required input is missing or empty."""

    status_code = 400
    code = "invalid-argument"


class NotFoundError(DispatcherError):
    """No record matches the lookup."""

    status_code = 404
    code = "not-found"


class PermissionDeniedError(DispatcherError):
    """A store refused the operation for lack of privileges."""

    status_code = 403
    code = "permission-denied"


class CollaboratorError(DispatcherError):
    """Any other store or gateway failure."""

    status_code = 500
    code = "unavailable"


class ConflictError(DispatcherError):
    """A unique key already exists in the store."""

    status_code = 409
    code = "already-exists"
