"""Error taxonomy for the attribution service.

Every error carries the HTTP status it maps to and a message that is safe to
show to the caller. Internal causes are chained with ``raise ... from`` and
logged, never put in ``message``.
"""


class RackerError(Exception):
    """Base exception for all service errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(RackerError):
    """A required field is absent or malformed."""

    status_code = 400


class AuthError(RackerError):
    """Caller identity is missing."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class NotFoundError(RackerError):
    """Referenced record does not exist or is not owned by the caller."""

    status_code = 404


class ConflictError(RackerError):
    """Request conflicts with the record's current state."""

    status_code = 409


class StoreError(RackerError):
    """Transient or unexpected failure from the record store."""

    status_code = 503


class UnexpectedError(RackerError):
    """Anything else; the caller only sees the generic message."""

    status_code = 500
