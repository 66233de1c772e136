"""Base HTTP client shared by the remote repository clients."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from time import sleep
from typing import Any

import httpx

from .exceptions import (
    APIError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    TransportError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

# Failures worth another attempt; HTTP error statuses never are
RETRYABLE_ERRORS = (httpx.ConnectError, httpx.TimeoutException)


def parse_rate_limit_reset(response: httpx.Response) -> datetime | None:
    """Read the X-RateLimit-Reset header (epoch seconds) as a UTC datetime."""
    value = response.headers.get("x-ratelimit-reset")
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError):
        return None


def error_message(response: httpx.Response) -> str | None:
    """Extract the "message" field of a JSON error body, if any."""
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        return data.get("message")
    return None


class Client(ABC):
    """Base class for REST API clients.

    Owns a lazily created httpx.Client. Requests that cannot connect or time
    out are retried; error statuses are raised at once as ClientError
    subclasses.

    Config keys:
        base_url (required): Base URL for all requests
        timeout: Default request timeout in seconds (default: 30)
        retry_attempts: Attempts per request on transport failures (default: 3)
        retry_delay: Seconds to wait between attempts (default: 1)
        headers: Headers sent with every request

    Example:
        class StatusClient(Client):
            def fetch(self):
                return self.get("/status").json()

        with StatusClient({"base_url": "https://api.example.org"}) as client:
            client.fetch()
    """

    def __init__(self, config: dict):
        if "base_url" not in config:
            raise ValueError("config must include 'base_url'")

        self.base_url = str(config["base_url"])
        self.timeout = float(config.get("timeout", 30))
        self.retry_attempts = int(config.get("retry_attempts", 3))
        self.retry_delay = float(config.get("retry_delay", 1))
        self.headers: dict[str, str] = dict(config.get("headers", {}))
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            logger.debug(f"Opening HTTP client for {self.base_url}")
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
            )
        return self._client

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def raise_for_status(self, response: httpx.Response) -> httpx.Response:
        """Return a successful response, or raise the error its status maps to.

        403 means a rate limit when the quota header reads 0, and a permission
        problem otherwise. The API's own error message, when present, is
        appended to the exception message.

        Raises:
            UnauthorizedError: 401
            RateLimitError: 429, or 403 with an exhausted quota
            PermissionDeniedError: Any other 403
            NotFoundError: 404
            ConflictError: 409
            APIError: Any other non-2xx status
        """
        if response.is_success:
            return response

        status_code = response.status_code
        url = response.url
        detail = error_message(response)
        suffix = f" ({detail})" if detail else ""

        if status_code == 429 or (
            status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0"
        ):
            reset_at = parse_rate_limit_reset(response)
            raise RateLimitError(
                f"Rate limited, resets at {reset_at or 'unknown'}: {url}",
                reset_at=reset_at,
                status_code=status_code,
            )
        if status_code == 401:
            raise UnauthorizedError(f"Token invalid or expired: {url}{suffix}")
        if status_code == 403:
            raise PermissionDeniedError(f"Access forbidden: {url}{suffix}")
        if status_code == 404:
            raise NotFoundError(f"Resource not found: {url}")
        if status_code == 409:
            raise ConflictError(f"Conflict: {url}{suffix}")
        raise APIError(f"API error {status_code}: {url}{suffix}", status_code=status_code)

    def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request, retrying transport failures.

        Args:
            method: HTTP method
            path: URL path relative to base_url
            **kwargs: Passed through to httpx.Client.request (json, params, timeout, ...)

        Raises:
            TransportError: When every attempt failed to connect or timed out,
                or on any other transport failure (not retried)
            ClientError: When the API answered with an error status
        """
        failure: Exception | None = None

        for attempt in range(1, self.retry_attempts + 1):
            try:
                response = self.client.request(method, path, **kwargs)
            except RETRYABLE_ERRORS as e:
                failure = e
                kind = "Timeout" if isinstance(e, httpx.TimeoutException) else "Connection error"
                logger.warning(
                    f"{kind} on {method} {path} (attempt {attempt}/{self.retry_attempts}): {e}"
                )
                if attempt < self.retry_attempts:
                    sleep(self.retry_delay)
                continue
            except httpx.TransportError as e:
                # The request may have reached the server; not safe to resend
                logger.warning(f"Transport error on {method} {path}: {e}")
                raise TransportError(f"{method} {path} failed: {e}") from e
            return self.raise_for_status(response)

        raise TransportError(
            f"{method} {path} failed after {self.retry_attempts} attempts"
        ) from failure

    def get(self, path: str, **kwargs) -> httpx.Response:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs) -> httpx.Response:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs) -> httpx.Response:
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs) -> httpx.Response:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs) -> httpx.Response:
        # httpx.Client.delete() takes no body, so go through request()
        return self.request("DELETE", path, **kwargs)

    @abstractmethod
    def fetch(self, *args, **kwargs) -> Any:
        """Fetch the client's primary resource."""
        pass
