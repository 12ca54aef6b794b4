"""Custom exception hierarchy for the techno.dog knowledge layer.

All application exceptions inherit from :class:`TechnoDogError`, which
carries an optional ``provider_name`` naming the external service (e.g.
"openai", "wikipedia", "sqlite") that caused the failure.

    TechnoDogError  (base)
    +-- ConfigurationError       (missing API key / invalid setup)
    +-- LLMError                 (LLM call failed or returned garbage)
    +-- RateLimitError           (provider rate-limit exceeded)
    +-- EmbeddingError           (embedding API failure)
    +-- StorageError             (database read/write failure)
    +-- ResearchError            (web search / scraping)
    +-- ExtractionError          (claim or entity extraction)
    +-- VerificationError        (claim verification)
    +-- NotFoundError            (unknown artist / claim / document)

Only ConfigurationError and NotFoundError abort an operation.  Every other
failure is turned into a degraded result or a per-item error string by the
service that catches it.
"""


class TechnoDogError(Exception):
    """Base exception for all techno.dog errors.

    ``str(exc)`` prefixes the provider name in brackets for log output,
    e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
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
# Configuration
# ---------------------------------------------------------------------------

class ConfigurationError(TechnoDogError):
    """Raised when configuration needed by an operation is missing or invalid."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class LLMError(TechnoDogError):
    """Raised when an LLM API call fails or returns an unparseable response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(TechnoDogError):
    """Raised when an API rate limit is exceeded.

    :class:`~technodog.utils.concurrency.RequestPacer` retries these with
    linear backoff.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(TechnoDogError):
    """Raised when the embeddings API fails."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(TechnoDogError):
    """Raised when a database read or write fails."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Pipeline stage errors
# ---------------------------------------------------------------------------

class ResearchError(TechnoDogError):
    """Raised when web search or scraping fails."""

    def __init__(
        self,
        message: str = "Research failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(TechnoDogError):
    """Raised when claim or entity extraction fails."""

    def __init__(
        self,
        message: str = "Extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class VerificationError(TechnoDogError):
    """Raised when claim verification fails."""

    def __init__(
        self,
        message: str = "Verification failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NotFoundError(TechnoDogError):
    """Raised when a referenced artist, claim or document does not exist."""

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
