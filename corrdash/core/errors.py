"""
Error Classification

Defines the error types raised by the market data layer.
Errors are classified as recoverable (the fetcher retries them) or
unrecoverable (surfaced to the caller as-is).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Categories of errors for retry decisions."""

    NETWORK = "network"                    # No response from upstream
    RATE_LIMIT = "rate_limit"              # HTTP 429
    UPSTREAM_STATUS = "upstream_status"    # Any other non-2xx response
    INVALID_RESPONSE = "invalid_response"  # Body could not be parsed
    VALIDATION = "validation"              # Bad caller input
    SCHEDULER = "scheduler"                # Request queue shut down
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = True
    status_code: Optional[int] = None
    url: Optional[str] = None
    attempts: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)


class MarketDataError(Exception):
    """Base class for every error raised by the market data layer."""

    recoverable: bool = False

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.context = context or ErrorContext(category=category, recoverable=self.recoverable)


class RecoverableError(MarketDataError):
    """
    Transient upstream failure. The fetcher retries these:
    - Network issues
    - Rate limits
    - Non-2xx responses
    """

    recoverable = True


class UnrecoverableError(MarketDataError):
    """Failure that retrying will not fix."""

    recoverable = False


class NetworkError(RecoverableError):
    """Upstream could not be reached."""

    def __init__(self, message: str = "Network error", url: Optional[str] = None):
        super().__init__(
            message,
            category=ErrorCategory.NETWORK,
            context=ErrorContext(category=ErrorCategory.NETWORK, recoverable=True, url=url),
        )


class RateLimitError(RecoverableError):
    """A single HTTP 429 response."""

    def __init__(self, message: str = "Too many requests", url: Optional[str] = None):
        super().__init__(
            message,
            category=ErrorCategory.RATE_LIMIT,
            context=ErrorContext(
                category=ErrorCategory.RATE_LIMIT,
                recoverable=True,
                status_code=429,
                url=url,
            ),
        )


class UpstreamStatusError(RecoverableError):
    """Upstream answered with a non-success status."""

    def __init__(self, status_code: int, url: Optional[str] = None):
        super().__init__(
            f"HTTP error! status: {status_code}",
            category=ErrorCategory.UPSTREAM_STATUS,
            context=ErrorContext(
                category=ErrorCategory.UPSTREAM_STATUS,
                recoverable=True,
                status_code=status_code,
                url=url,
            ),
        )
        self.status_code = status_code


class RateLimitExceededError(UnrecoverableError):
    """Retry budget exhausted while upstream kept answering 429."""

    def __init__(self, url: Optional[str] = None, attempts: Optional[int] = None):
        super().__init__(
            "Rate limit exceeded",
            category=ErrorCategory.RATE_LIMIT,
            context=ErrorContext(
                category=ErrorCategory.RATE_LIMIT,
                recoverable=False,
                status_code=429,
                url=url,
                attempts=attempts,
            ),
        )


class InvalidResponseError(UnrecoverableError):
    """Upstream body was not the JSON shape we expect."""

    def __init__(self, message: str = "Invalid upstream response", url: Optional[str] = None):
        super().__init__(
            message,
            category=ErrorCategory.INVALID_RESPONSE,
            context=ErrorContext(category=ErrorCategory.INVALID_RESPONSE, recoverable=False, url=url),
        )


class InvalidWindowError(UnrecoverableError, ValueError):
    """Unknown history window label."""

    def __init__(self, window: str):
        super().__init__(
            f"Unsupported history window: {window!r}",
            category=ErrorCategory.VALIDATION,
            context=ErrorContext(
                category=ErrorCategory.VALIDATION,
                recoverable=False,
                details={"window": window},
            ),
        )
        self.window = window


class SchedulerClosedError(UnrecoverableError):
    """The request scheduler was closed before the request ran."""

    def __init__(self, message: str = "Request scheduler closed"):
        super().__init__(message, category=ErrorCategory.SCHEDULER)
