"""One chat turn, from visitor message to persisted assistant answer.

A turn has two phases so the HTTP layer can validate and set up before it
commits to a streaming response:

  1. :meth:`ChatService.start_turn` -- validate the message, resolve the
     session, load history, persist the user message, check the FAQ
     fast-path.  Errors here surface to the caller as exceptions.
  2. :meth:`ChatService.stream_turn` -- an async generator of
     :class:`ChatEvent`.  It yields ``token`` events and ends with exactly
     one ``done`` or one ``error``; it never raises except on cancellation.

The assistant message is persisted only after the answer completes.  A
client disconnect cancels the generator, closes the upstream completion
stream, and leaves no partial message behind.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import aclosing
from datetime import datetime, timezone

import structlog
from pydantic import BaseModel, ConfigDict, Field

from src.interfaces.chat_store import IChatStore
from src.models.chat import ChatEvent, ChatMessage, ChatRole, Source
from src.services.answer_streamer import (
    AnswerStreamer,
    HiddenBlockFilter,
    parse_sources_from_reply,
)
from src.services.faq_matcher import FaqMatcher, split_answer_tokens
from src.services.retriever import Retriever
from src.utils.concurrency import fire_and_forget

logger = structlog.get_logger(logger_name=__name__)

GENERIC_ERROR_MESSAGE = "Sorry, something went wrong while answering. Please try again."


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class ChatTurn(BaseModel):
    """State carried from :meth:`ChatService.start_turn` into the stream."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    message: str
    history: list[ChatMessage] = Field(
        default_factory=list,
        description="Messages before this turn, oldest first.",
    )
    faq_answer: str | None = Field(default=None, description="Canned answer, if one matched.")
    is_new_session: bool = False


class ChatService:
    """Coordinates sessions, the FAQ fast-path, retrieval and generation.

    Parameters
    ----------
    chat_store:
        Session and message persistence.
    retriever:
        Semantic search over the corpus.
    streamer:
        Prompt assembly and completion streaming.
    faq:
        Canned-answer matcher.
    history_limit:
        Messages of history loaded per turn (default 10).
    retrieval_k:
        Chunks retrieved per turn (default 5).
    """

    def __init__(
        self,
        chat_store: IChatStore,
        retriever: Retriever,
        streamer: AnswerStreamer,
        faq: FaqMatcher,
        history_limit: int = 10,
        retrieval_k: int = 5,
    ) -> None:
        self._store = chat_store
        self._retriever = retriever
        self._streamer = streamer
        self._faq = faq
        self._history_limit = history_limit
        self._retrieval_k = retrieval_k

    # ------------------------------------------------------------------
    # Phase 1: set-up
    # ------------------------------------------------------------------

    async def start_turn(self, message: str, session_id: str | None = None) -> ChatTurn:
        """Persist the visitor's message and prepare the turn.

        Raises
        ------
        ValueError
            If *message* is empty or whitespace.
        """
        text = (message or "").strip()
        if not text:
            raise ValueError("message is required")

        is_new = not session_id
        if is_new:
            session_id = str(uuid.uuid4())
            await self._store.create_session(session_id)
        else:
            await self._store.ensure_session(session_id)
            fire_and_forget(self._store.touch_session(session_id), name=f"touch:{session_id}")

        # History is read before the new message is written so the prompt
        # does not contain the current question twice.
        history = await self._store.get_recent_messages(session_id, limit=self._history_limit)

        await self._store.add_message(
            ChatMessage(
                id=str(uuid.uuid4()),
                session_id=session_id,
                role=ChatRole.USER,
                content=text,
                created_at=_utcnow(),
            )
        )

        faq_answer = self._faq.match(text)
        logger.info(
            "chat_turn_started",
            session_id=session_id,
            new_session=is_new,
            history_messages=len(history),
            faq=faq_answer is not None,
        )
        return ChatTurn(
            session_id=session_id,
            message=text,
            history=history,
            faq_answer=faq_answer,
            is_new_session=is_new,
        )

    # ------------------------------------------------------------------
    # Phase 2: streaming
    # ------------------------------------------------------------------

    async def stream_turn(self, turn: ChatTurn) -> AsyncIterator[ChatEvent]:
        """Yield the turn's events: tokens, then ``done`` or ``error``."""
        start_time = time.monotonic()
        try:
            if turn.faq_answer is not None:
                for token in split_answer_tokens(turn.faq_answer):
                    yield ChatEvent.token_event(token)
                saved = await self._save_answer(turn.session_id, turn.faq_answer, [])
                logger.info("chat_turn_done", session_id=turn.session_id, path="faq")
                yield ChatEvent.done_event(saved.id, turn.session_id, [])
                return

            chunks = await self._retriever.retrieve(turn.message, k=self._retrieval_k)
            token_stream, fallback = self._streamer.stream(turn.message, turn.history, chunks)

            parts: list[str] = []
            gate = HiddenBlockFilter()
            async with aclosing(token_stream) as tokens:
                async for token in tokens:
                    parts.append(token)
                    visible = gate.feed(token)
                    if visible:
                        yield ChatEvent.token_event(visible)
            tail = gate.flush()
            if tail:
                yield ChatEvent.token_event(tail)

            answer, sources = parse_sources_from_reply("".join(parts), fallback)
            saved = await self._save_answer(turn.session_id, answer, sources)
            logger.info(
                "chat_turn_done",
                session_id=turn.session_id,
                path="rag" if chunks else "unguided",
                context_chunks=len(chunks),
                sources=len(sources),
                characters=len(answer),
                elapsed_s=round(time.monotonic() - start_time, 2),
            )
            yield ChatEvent.done_event(saved.id, turn.session_id, sources)

        except asyncio.CancelledError:
            logger.info("chat_turn_cancelled", session_id=turn.session_id)
            raise
        except Exception as exc:
            logger.error(
                "chat_turn_failed",
                session_id=turn.session_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            yield ChatEvent.error_event(GENERIC_ERROR_MESSAGE)

    async def _save_answer(
        self, session_id: str, content: str, sources: list[Source]
    ) -> ChatMessage:
        return await self._store.add_message(
            ChatMessage(
                id=str(uuid.uuid4()),
                session_id=session_id,
                role=ChatRole.ASSISTANT,
                content=content,
                sources=sources,
                created_at=_utcnow(),
            )
        )
