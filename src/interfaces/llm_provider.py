"""Abstract base class for chat-completion providers.

Defines the contract for the model backend that generates assistant
answers.  Answers are always streamed: the chat endpoint forwards each
delta to the visitor as soon as it arrives.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator


# Concrete implementations: OpenAILLMProvider
# Located in: src/providers/llm/
class ILLMProvider(ABC):
    """Contract for streaming chat-completion services."""

    @abstractmethod
    def stream_chat(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.3,
        max_tokens: int = 1024,
    ) -> AsyncIterator[str]:
        """Stream a chat completion as a sequence of text deltas.

        Implementations are async generators.  Closing the generator early
        (``aclose()``, e.g. on client disconnect) must abandon the upstream
        request.

        Parameters
        ----------
        messages:
            Ordered role-tagged messages, each ``{"role": ..., "content": ...}``
            with role ``system``, ``user`` or ``assistant``.
        temperature:
            Sampling temperature.
        max_tokens:
            Upper bound on generated tokens.

        Raises
        ------
        src.utils.errors.LLMError
            If the request fails before or during streaming.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier used in logs and error messages."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and usable."""
