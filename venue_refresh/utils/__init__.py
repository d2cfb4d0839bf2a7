"""Utility modules for venue-refresh.

Available utility modules (all re-exported here for convenience):

- **errors** -- Domain-specific exception hierarchy rooted at
  VenueRefreshError; each failure class maps to one handling policy
  (escalate, back off, abort).
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **clock** -- Injectable wall clock / calendar day / sleep, so rotation
  and hour-long backoff waits are testable without real time passing.
- **rate_limiter** -- Token bucket that spaces LLM calls within a tier.
- **text_normalizer** -- Page text noise stripping and the 128-bit content
  fingerprint used by change detection.
"""

# -- Domain exception hierarchy --------------------------------------------
from venue_refresh.utils.errors import (
    ConfigurationError,
    FetchError,
    LLMError,
    LLMTimeoutError,
    PersistenceError,
    PipelineError,
    RateLimitError,
    RetryBudgetExhaustedError,
    SnapshotCorruptError,
    VenueRefreshError,
)

# -- Structured logging setup ----------------------------------------------
from venue_refresh.utils.logging import configure_logging, get_logger

# -- Time source and call spacing -------------------------------------------
from venue_refresh.utils.clock import Clock, SystemClock
from venue_refresh.utils.rate_limiter import TokenBucketRateLimiter

# -- Text normalization and fingerprinting ---------------------------------
from venue_refresh.utils.text_normalizer import fingerprint, normalize_text, normalize_url

__all__ = [
    "Clock",
    "ConfigurationError",
    "FetchError",
    "LLMError",
    "LLMTimeoutError",
    "PersistenceError",
    "PipelineError",
    "RateLimitError",
    "RetryBudgetExhaustedError",
    "SnapshotCorruptError",
    "SystemClock",
    "TokenBucketRateLimiter",
    "VenueRefreshError",
    "configure_logging",
    "fingerprint",
    "get_logger",
    "normalize_text",
    "normalize_url",
]
