"""OpenAI-compatible LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
When a custom ``openai_base_url`` is configured (e.g. TogetherAI, Groq,
Fireworks, a self-hosted vLLM), the client points at that URL instead of
the default OpenAI endpoint, so one adapter covers every backend that
speaks the chat-completions protocol.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import openai
import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import ILLMProvider
from src.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)


class OpenAILLMProvider(ILLMProvider):
    """Streaming chat-completion provider backed by an OpenAI-compatible API.

    The model comes from ``settings.chat_model``.  The rest of the app never
    imports ``openai`` directly; SDK errors are wrapped in :class:`LLMError`.
    """

    def __init__(
        self, settings: Settings, http_client: httpx.AsyncClient | None = None
    ) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        # The read timeout bounds the gap between streamed chunks, not the
        # whole answer.
        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(60.0, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url
        if http_client is not None:
            client_kwargs["http_client"] = http_client

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.chat_model or "gpt-4o-mini"
        self._provider_label = (
            "openai-compatible" if settings.openai_base_url else "openai"
        )

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def stream_chat(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.3,
        max_tokens: int = 1024,
    ) -> AsyncIterator[str]:
        """Stream a chat completion, yielding each non-empty content delta.

        The upstream HTTP stream is closed in ``finally`` so an early
        ``aclose()`` from the caller (client disconnect) stops generation.
        """
        try:
            stream = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
        except openai.APITimeoutError as exc:
            raise LLMError(
                message=f"{self._provider_label} timed out opening the stream",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise LLMError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        deltas = 0
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    deltas += 1
                    yield content
        except openai.APIError as exc:
            raise LLMError(
                message=f"{self._provider_label} stream interrupted: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        finally:
            await stream.close()
            logger.info(
                "openai_stream_closed",
                model=self._model,
                provider=self._provider_label,
                deltas=deltas,
            )

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        """Return 'openai' or 'openai-compatible' depending on configuration."""
        return self._provider_label
