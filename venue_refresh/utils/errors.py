"""Exception hierarchy for venue-refresh.

Every error carries a message and, when an external service is involved,
the name of that service (``"openai"``, ``"http"``, ``"sqlite"``...), which
``__str__`` prefixes in brackets: ``[anthropic] rate limit: ...``.

    VenueRefreshError
    +-- ConfigurationError        fatal, raised before the lock is taken
    +-- FetchError                one venue's pages; counted, never fatal
    +-- SnapshotCorruptError      stored snapshot unreadable; delta treats it as changed
    +-- LLMError                  provider failure or unusable answer; escalate
    |   +-- LLMTimeoutError
    +-- RateLimitError            HTTP 429; back off, never "not found"
    +-- RetryBudgetExhaustedError run-fatal
    +-- PersistenceError          run-fatal
    +-- PipelineError             illegal state transition, lost lock

Where each is handled: the retry orchestrator catches only RateLimitError,
the tier coordinator catches LLMError, and the pipeline driver records a
failed run for the fatal ones and re-raises.
"""


class VenueRefreshError(Exception):
    """Base class.  Subclasses only override :attr:`default_message`."""

    default_message = "venue refresh failed"

    def __init__(self, message: str | None = None, provider_name: str | None = None) -> None:
        self._message = message or self.default_message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------

class ConfigurationError(VenueRefreshError):
    default_message = "Invalid or missing configuration"


# ---------------------------------------------------------------------------
# Content and snapshots
# ---------------------------------------------------------------------------

class FetchError(VenueRefreshError):
    """A venue's web pages could not be fetched."""

    default_message = "Content fetch failed"


class SnapshotCorruptError(VenueRefreshError):
    default_message = "Snapshot is unreadable"


# ---------------------------------------------------------------------------
# LLM calls
# ---------------------------------------------------------------------------

class LLMError(VenueRefreshError):
    """An LLM call failed or returned nothing usable."""

    default_message = "LLM API call failed"


class LLMTimeoutError(LLMError):
    default_message = "LLM API call timed out"


class RateLimitError(VenueRefreshError):
    """The provider answered HTTP 429.

    Not an :class:`LLMError`: the coordinator must never
    escalate past a tier just because the provider asked us to wait.
    """

    default_message = "Rate limit exceeded"


class RetryBudgetExhaustedError(VenueRefreshError):
    """The run-wide rate-limit retry budget is spent."""

    default_message = "Rate-limit retry budget exhausted"

    def __init__(
        self,
        message: str | None = None,
        provider_name: str | None = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._attempts = attempts

    @property
    def attempts(self) -> int:
        return self._attempts


# ---------------------------------------------------------------------------
# Persistence and orchestration
# ---------------------------------------------------------------------------

class PersistenceError(VenueRefreshError):
    default_message = "Result persistence failed"


class PipelineError(VenueRefreshError):
    default_message = "Pipeline orchestration failed"
