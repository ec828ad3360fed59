"""JSON-over-HTTP client for settlement relays.

Status reads are retried with exponential backoff. Anything that may move
funds is sent with ``NO_RETRY_CONFIG``: a submission that timed out may
still have been accepted, so it is reported instead of repeated.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

import requests
from requests.exceptions import (
    ConnectionError,
    HTTPError,
    JSONDecodeError,
    RequestException,
    Timeout,
)

logger = logging.getLogger(__name__)

USER_AGENT = "multisend"


class NetworkErrorType(Enum):
    TIMEOUT = "timeout"
    CONNECTION_ERROR = "connection_error"
    HTTP_ERROR = "http_error"
    INVALID_RESPONSE = "invalid_response"
    UNKNOWN = "unknown"


@dataclass
class NetworkError(Exception):
    error_type: NetworkErrorType
    message: str
    original_error: Exception | None = None
    status_code: int | None = None
    response_text: str | None = None

    def __str__(self) -> str:
        return self.message


@dataclass
class TimeoutConfig:
    connect_timeout: float = 5.0
    read_timeout: float = 15.0

    @property
    def request_timeout(self) -> tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)


@dataclass
class RetryConfig:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    retryable_status_codes: set[int] = field(
        default_factory=lambda: {408, 429, 500, 502, 503, 504}
    )

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    def calculate_delay(self, attempt: int, retry_after: float | None = None) -> float:
        """Backoff before retry ``attempt`` (0-based); a server hint wins."""
        if retry_after is not None:
            return min(max(retry_after, 0.0), self.max_delay)
        delay = self.base_delay * (self.exponential_base**attempt)
        return min(delay, self.max_delay)


DEFAULT_TIMEOUT_CONFIG = TimeoutConfig()
DEFAULT_RETRY_CONFIG = RetryConfig()
NO_RETRY_CONFIG = RetryConfig(max_retries=0)


def _status_code(error: Exception) -> int | None:
    return getattr(getattr(error, "response", None), "status_code", None)


def retry_after_seconds(error: Exception) -> float | None:
    """Seconds from a ``Retry-After`` header, if the server sent one."""
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None) or {}
    value = headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def classify_error(error: Exception) -> NetworkErrorType:
    if isinstance(error, Timeout):
        return NetworkErrorType.TIMEOUT
    if isinstance(error, ConnectionError):
        return NetworkErrorType.CONNECTION_ERROR
    if isinstance(error, HTTPError):
        return NetworkErrorType.HTTP_ERROR
    if isinstance(error, JSONDecodeError):
        return NetworkErrorType.INVALID_RESPONSE
    return NetworkErrorType.UNKNOWN


def describe_error(error: Exception, url: str, context: str = "") -> NetworkError:
    """Wrap a transport failure in a ``NetworkError`` naming the relay URL."""
    error_type = classify_error(error)
    prefix = f"{context}: " if context else ""

    if error_type == NetworkErrorType.HTTP_ERROR:
        status_code = _status_code(error)
        response_text = getattr(getattr(error, "response", None), "text", None)
        return NetworkError(
            error_type=error_type,
            message=f"{prefix}{url} answered HTTP {status_code}: {response_text or 'no body'}",
            original_error=error,
            status_code=status_code,
            response_text=response_text,
        )

    messages = {
        NetworkErrorType.TIMEOUT: f"{prefix}Request to {url} timed out",
        NetworkErrorType.CONNECTION_ERROR: f"{prefix}Cannot reach relay at {url}",
        NetworkErrorType.INVALID_RESPONSE: f"{prefix}{url} did not return JSON",
    }
    return NetworkError(
        error_type=error_type,
        message=messages.get(error_type, f"{prefix}Request to {url} failed: {error}"),
        original_error=error,
    )


def is_retryable(error: Exception, retry_config: RetryConfig) -> bool:
    if isinstance(error, (Timeout, ConnectionError)):
        return True
    if isinstance(error, HTTPError):
        return _status_code(error) in retry_config.retryable_status_codes
    return False


class NetworkClient:
    """Small JSON client bound to one base URL.

    ``get`` expects a JSON object back. ``post`` also accepts an empty or
    plain-text body, returned as ``{"message": text}``.
    """

    def __init__(
        self,
        base_url: str,
        timeout_config: TimeoutConfig | None = None,
        retry_config: RetryConfig | None = None,
        on_retry: Callable[[int, Exception, float], None] | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_config = timeout_config or DEFAULT_TIMEOUT_CONFIG
        self.retry_config = retry_config or DEFAULT_RETRY_CONFIG
        self.on_retry = on_retry
        self.headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        self.headers.update(headers or {})

    def request(
        self,
        method: str,
        endpoint: str,
        context: str = "",
        retry_config: RetryConfig | None = None,
        **kwargs,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{endpoint}"
        retry_config = retry_config or self.retry_config
        kwargs.setdefault("timeout", self.timeout_config.request_timeout)
        kwargs["headers"] = {**self.headers, **kwargs.get("headers", {})}
        attempts = retry_config.max_retries + 1
        attempt = 0

        while True:
            try:
                response = requests.request(method, url, **kwargs)
                response.raise_for_status()
                return self._decode(method, response)
            except RequestException as e:
                if attempt + 1 >= attempts or not is_retryable(e, retry_config):
                    raise describe_error(e, url, context) from e

                delay = retry_config.calculate_delay(attempt, retry_after_seconds(e))
                logger.warning(
                    "%s %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    method,
                    url,
                    attempt + 1,
                    attempts,
                    delay,
                    e,
                )
                if self.on_retry:
                    self.on_retry(attempt + 1, e, delay)
                time.sleep(delay)
                attempt += 1

    @staticmethod
    def _decode(method: str, response: requests.Response) -> dict[str, Any]:
        if method == "GET":
            return response.json()
        if not response.content:
            return {"message": ""}
        try:
            return response.json()
        except ValueError:
            return {"message": response.text}

    def get(self, endpoint: str, context: str = "", **kwargs) -> dict[str, Any]:
        return self.request("GET", endpoint, context, **kwargs)

    def post(
        self,
        endpoint: str,
        context: str = "",
        retry_config: RetryConfig | None = None,
        **kwargs,
    ) -> dict[str, Any]:
        return self.request("POST", endpoint, context, retry_config, **kwargs)
