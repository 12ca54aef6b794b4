"""Utility modules for the techno.dog knowledge layer.

- **errors** -- exception hierarchy rooted at TechnoDogError.
- **logging** -- structlog setup (console in development, JSON in production).
- **query_hash** -- JS-compatible cache keys for knowledge queries.
- **concurrency** -- background task tracking and request pacing.
"""

from technodog.utils.concurrency import RequestPacer, TaskTracker
from technodog.utils.errors import (
    ConfigurationError,
    EmbeddingError,
    ExtractionError,
    LLMError,
    NotFoundError,
    RateLimitError,
    ResearchError,
    StorageError,
    TechnoDogError,
    VerificationError,
)
from technodog.utils.logging import configure_logging, get_logger
from technodog.utils.query_hash import generate_query_hash

__all__ = [
    "ConfigurationError",
    "EmbeddingError",
    "ExtractionError",
    "LLMError",
    "NotFoundError",
    "RateLimitError",
    "RequestPacer",
    "ResearchError",
    "StorageError",
    "TaskTracker",
    "TechnoDogError",
    "VerificationError",
    "configure_logging",
    "generate_query_hash",
    "get_logger",
]
