"""Custom exception hierarchy for the FBK assistant.

All application exceptions inherit from :class:`AssistantError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "chromadb", "sqlite") caused the failure.

The hierarchy is organized by pipeline stage:

    AssistantError  (base -- catch-all for any assistant error)
    +-- ExtractionError          (ingestion: bytes-to-text extraction)
    +-- EmbeddingError           (ingestion + retrieval: vectorization)
    +-- StoreError               (document / chat / vector persistence)
    |   +-- DocumentNotFoundError
    +-- ConfigurationError       (startup / missing config)
    +-- LLMError                 (completion backend failure)

Ingestion errors are recorded on the Document and re-raised, retrieval
errors degrade to an empty result set, and anything raised mid-stream is
turned into an in-band ``error`` event by the chat service.
"""


class AssistantError(Exception):
    """Base exception for all assistant errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
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
# Ingestion errors
# ---------------------------------------------------------------------------

class ExtractionError(AssistantError):
    """Raised when source bytes cannot be parsed as their declared format."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(AssistantError):
    """Raised when the embedding backend fails during vectorization.

    The embedder never retries internally; callers decide whether to
    abort (ingestion) or degrade (retrieval).
    """

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Persistence errors
# ---------------------------------------------------------------------------

class StoreError(AssistantError):
    """Raised when a persistence read or write fails."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentNotFoundError(StoreError):
    """Raised when a document id does not exist in the document store."""

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration / backend errors
# ---------------------------------------------------------------------------

class ConfigurationError(AssistantError):
    """Raised when required configuration is missing or invalid.

    Fatal at startup: ``_build_all`` raises this before any provider is
    constructed.
    """

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(AssistantError):
    """Raised when a completion backend call fails (timeout, bad response, etc.)."""

    def __init__(
        self,
        message: str = "LLM request failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
