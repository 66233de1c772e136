"""Network clients for the remote repository."""

from .client import Client
from .exceptions import (
    APIError,
    ClientError,
    ConflictError,
    ConnectionError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    TransportError,
    UnauthorizedError,
    ValidationError,
)
from .github_client import GitHubClient

__all__ = [
    "Client",
    "GitHubClient",
    "ClientError",
    "TransportError",
    "ConnectionError",
    "APIError",
    "UnauthorizedError",
    "PermissionDeniedError",
    "RateLimitError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
]
