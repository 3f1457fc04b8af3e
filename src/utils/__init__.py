"""Utility modules for the FBK assistant.

Available utility modules (re-exported here for convenience):

- **errors** -- Domain-specific exception hierarchy rooted at AssistantError;
  each layer raises its own subclass so callers can handle failures
  granularly without broad ``except Exception`` blocks.
- **concurrency** -- fire-and-forget task bookkeeping for best-effort
  background work such as session touches.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    AssistantError,
    ConfigurationError,
    DocumentNotFoundError,
    EmbeddingError,
    ExtractionError,
    LLMError,
    StoreError,
)

# -- Background tasks --------------------------------------------------------
from src.utils.concurrency import fire_and_forget

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

__all__ = [
    "AssistantError",
    "ConfigurationError",
    "DocumentNotFoundError",
    "EmbeddingError",
    "ExtractionError",
    "LLMError",
    "StoreError",
    "configure_logging",
    "fire_and_forget",
    "get_logger",
]
