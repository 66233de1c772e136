"""Custom exceptions for network clients."""

from datetime import datetime


class ClientError(Exception):
    """Base exception for all client errors."""

    def __init__(self, message: str, *args, **kwargs):
        self.message = message
        super().__init__(message, *args, **kwargs)


class TransportError(ClientError):
    """Raised when a request never produced an HTTP response (DNS, connect, timeout)."""

    pass


ConnectionError = TransportError


class APIError(ClientError):
    """Raised when the API returns a non-2xx response."""

    def __init__(self, message: str, status_code: int, *args, **kwargs):
        self.status_code = status_code
        super().__init__(message, *args, **kwargs)


class UnauthorizedError(APIError):
    """Raised when the API rejects the credentials (401)."""

    def __init__(self, message: str = "Token invalid or expired"):
        super().__init__(message, status_code=401)


class PermissionDeniedError(APIError):
    """Raised when the token lacks access to the resource (403)."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message, status_code=403)


class RateLimitError(APIError):
    """Raised when the API rate limit is exhausted.

    Attributes:
        reset_at: When the quota resets, if the API reported it
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        reset_at: datetime | None = None,
        status_code: int = 429,
    ):
        self.reset_at = reset_at
        super().__init__(message, status_code=status_code)


class NotFoundError(APIError):
    """Raised when the API returns a 404 not found response."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=404)


class ConflictError(APIError):
    """Raised when an optimistic-concurrency check fails (branch moved, stale sha)."""

    def __init__(self, message: str = "Conflict", status_code: int = 409):
        super().__init__(message, status_code=status_code)


class ValidationError(ClientError):
    """Raised when response data fails schema validation."""

    def __init__(self, message: str, errors: list | None = None, *args, **kwargs):
        self.errors = errors or []
        super().__init__(message, *args, **kwargs)
