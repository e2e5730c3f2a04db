from .errors import (
    ErrorCategory,
    ErrorContext,
    MarketDataError,
    RecoverableError,
    UnrecoverableError,
    NetworkError,
    RateLimitError,
    UpstreamStatusError,
    RateLimitExceededError,
    InvalidResponseError,
    InvalidWindowError,
    SchedulerClosedError,
)

__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "MarketDataError",
    "RecoverableError",
    "UnrecoverableError",
    "NetworkError",
    "RateLimitError",
    "UpstreamStatusError",
    "RateLimitExceededError",
    "InvalidResponseError",
    "InvalidWindowError",
    "SchedulerClosedError",
]
