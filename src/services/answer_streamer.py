"""Grounded answer generation: prompt assembly, streaming, citation parsing.

Builds the completion request for one chat turn and hands back the model's
token stream.  The data flow:

  1. POLICY     -- a system prompt built from the :class:`AssistantProfile`:
                   persona, topic restriction, privacy rule, link
                   allowlist, decline line, citation format.
  2. CONTEXT    -- retrieved chunks rendered as numbered ``[Source i]``
                   blocks appended to the system prompt.  With no chunks,
                   a notice tells the model to stay on general knowledge.
  3. HISTORY    -- the last few persisted turns, oldest first.
  4. USER TURN  -- the new message.

The model may finish its answer with a hidden citation block::

    <!--SOURCES_JSON
    [{"title": "...", "url": "...", "snippet": "..."}]
    SOURCES_JSON-->

:func:`parse_sources_from_reply` strips that block from the visible text
and prefers its sources over the retrieval-derived fallback.
:class:`HiddenBlockFilter` keeps the block out of the streamed tokens.
"""

from __future__ import annotations

import json
import re
from collections.abc import AsyncIterator

import structlog
from pydantic import TypeAdapter, ValidationError

from src.config.assistant_profile import AssistantProfile
from src.interfaces.llm_provider import ILLMProvider
from src.models.chat import ChatMessage, Source
from src.models.rag import RetrievedChunk
from src.services.retriever import chunks_to_sources
from src.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

SOURCES_START = "<!--SOURCES_JSON"
SOURCES_END = "SOURCES_JSON-->"

_SOURCES_BLOCK_RE = re.compile(r"<!--SOURCES_JSON\s*([\s\S]*?)\s*SOURCES_JSON-->")
_SOURCE_LIST = TypeAdapter(list[Source])

_CONTEXT_SEPARATOR = "\n\n---\n\n"


def parse_sources_from_reply(text: str, fallback: list[Source]) -> tuple[str, list[Source]]:
    """Split a completed reply into visible text and its citations.

    The visible text is everything before :data:`SOURCES_START`, trimmed,
    which is exactly what :class:`HiddenBlockFilter` lets through while
    streaming.  Anything the model writes after the block is dropped, and
    an unterminated block is dropped as well.

    - No block: the text is returned trimmed with *fallback*.
    - A valid, non-empty JSON array of ``{title, url, snippet}`` replaces
      *fallback*; malformed JSON, a schema mismatch, an empty array or an
      unterminated block keeps *fallback*.
    """
    start = text.find(SOURCES_START)
    if start == -1:
        return text.strip(), fallback

    visible = text[:start].strip()
    match = _SOURCES_BLOCK_RE.match(text, start)
    if match is None:
        logger.debug("sources_block_unterminated")
        return visible, fallback

    try:
        parsed = _SOURCE_LIST.validate_python(json.loads(match.group(1)))
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.debug("sources_block_invalid", error=str(exc)[:200])
        return visible, fallback

    if not parsed:
        return visible, fallback
    return visible, parsed


class HiddenBlockFilter:
    """Passes streamed tokens through until the hidden sources block begins.

    Text that could be the start of :data:`SOURCES_START` is held back until
    the next token decides it.  Once the marker is seen, everything after
    it is swallowed.
    """

    def __init__(self, marker: str = SOURCES_START) -> None:
        self._marker = marker
        self._pending = ""
        self._closed = False

    def feed(self, token: str) -> str:
        """Return the part of *token* that is safe to show now."""
        if self._closed:
            return ""
        text = self._pending + token
        idx = text.find(self._marker)
        if idx != -1:
            self._closed = True
            self._pending = ""
            return text[:idx]

        held = 0
        for n in range(min(len(self._marker) - 1, len(text)), 0, -1):
            if self._marker.startswith(text[-n:]):
                held = n
                break
        self._pending = text[len(text) - held :]
        return text[: len(text) - held]

    def flush(self) -> str:
        """Release held-back text at end of stream."""
        out = "" if self._closed else self._pending
        self._pending = ""
        return out


class AnswerStreamer:
    """Builds the grounded prompt and streams the completion.

    Parameters
    ----------
    llm:
        Streaming completion backend.
    profile:
        Organisation profile the policy prompt is built from.
    temperature:
        Sampling temperature (default 0.3).
    max_tokens:
        Completion length cap (default 1024).
    history_turns:
        How many prior messages go into the prompt (default 6).
    """

    def __init__(
        self,
        llm: ILLMProvider,
        profile: AssistantProfile,
        temperature: float = 0.3,
        max_tokens: int = 1024,
        history_turns: int = 6,
    ) -> None:
        self._llm = llm
        self._profile = profile
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._history_turns = history_turns
        self._system_prompt = self._build_system_prompt(profile)

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    # ------------------------------------------------------------------
    # Prompt assembly
    # ------------------------------------------------------------------

    @staticmethod
    def _build_system_prompt(profile: AssistantProfile) -> str:
        allowlist = "\n".join(f"   - {url}" for url in profile.link_allowlist) or "   (none)"
        org = profile.organisation
        return (
            f"You are the {profile.assistant_name}, a helpful assistant for {org} "
            f"({profile.website}).\n\n"
            "RULES:\n"
            f"1. Only answer questions about {org}: its programs, membership, events, "
            "resources and mission. Politely decline unrelated requests.\n"
            "2. Never reveal private member data or personal information about individuals.\n"
            "3. Only include URLs that appear in the CONTEXT below or in this allowlist:\n"
            f"{allowlist}\n"
            "4. If the CONTEXT does not contain enough information to answer, reply: "
            f'"{profile.decline_line}"\n'
            "5. Be concise and use markdown formatting where it helps.\n"
            '6. Cite sources naturally, e.g. "According to the Member Handbook...".\n\n'
            "At the very end of your answer you MAY append a hidden block listing the "
            "sources you actually used, in exactly this format:\n"
            f"{SOURCES_START}\n"
            '[{"title": "...", "url": "...", "snippet": "..."}]\n'
            f"{SOURCES_END}"
        )

    def _build_context(self, chunks: list[RetrievedChunk]) -> str:
        if not chunks:
            return self._profile.no_context_notice
        blocks = []
        for i, r in enumerate(chunks, start=1):
            title = r.chunk.title or self._profile.fallback_source_title
            url = r.chunk.source_url or self._profile.website
            blocks.append(f"[Source {i}] {title} ({url})\n{r.chunk.text}")
        return _CONTEXT_SEPARATOR.join(blocks)

    def build_messages(
        self,
        user_message: str,
        history: list[ChatMessage],
        chunks: list[RetrievedChunk],
    ) -> list[dict[str, str]]:
        """Assemble the role-tagged message list for one completion request."""
        system = f"{self._system_prompt}\n\nCONTEXT:\n{self._build_context(chunks)}"
        messages = [{"role": "system", "content": system}]
        recent = history[-self._history_turns :] if self._history_turns > 0 else []
        messages.extend({"role": m.role.value, "content": m.content} for m in recent)
        messages.append({"role": "user", "content": user_message})
        return messages

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def fallback_sources(self, chunks: list[RetrievedChunk]) -> list[Source]:
        return chunks_to_sources(
            chunks,
            fallback_title=self._profile.fallback_source_title,
            fallback_url=self._profile.website,
        )

    def stream(
        self,
        user_message: str,
        history: list[ChatMessage],
        chunks: list[RetrievedChunk],
    ) -> tuple[AsyncIterator[str], list[Source]]:
        """Start a completion for this turn.

        Returns the (not yet started) token stream together with the
        citations derived from *chunks*.  The caller owns the stream and
        must close it if it stops consuming early.
        """
        messages = self.build_messages(user_message, history, chunks)
        logger.info(
            "answer_stream_started",
            provider=self._llm.get_provider_name(),
            context_chunks=len(chunks),
            history_messages=len(messages) - 2,
        )
        tokens = self._llm.stream_chat(
            messages,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        return tokens, self.fallback_sources(chunks)
