"""Unit tests for ChatService: session handling, FAQ fast-path, streaming turns."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config.assistant_profile import AssistantProfile
from src.interfaces.chat_store import IChatStore
from src.interfaces.llm_provider import ILLMProvider
from src.models.chat import ChatEvent, ChatRole, Source
from src.services.answer_streamer import AnswerStreamer
from src.services.chat_service import GENERIC_ERROR_MESSAGE, ChatService
from src.services.faq_matcher import FaqMatcher
from src.services.retriever import Retriever
from tests.conftest import make_message, make_retrieved, token_stream

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _mock_retriever(chunks=None) -> MagicMock:  # noqa: ANN001
    mock = MagicMock(spec=Retriever)
    mock.retrieve = AsyncMock(return_value=chunks if chunks is not None else [make_retrieved()])
    return mock


def _make_service(
    chat_store: IChatStore,
    llm: ILLMProvider,
    profile: AssistantProfile,
    retriever: MagicMock | None = None,
) -> ChatService:
    return ChatService(
        chat_store=chat_store,
        retriever=retriever or _mock_retriever(),
        streamer=AnswerStreamer(llm, profile),
        faq=FaqMatcher(profile.faq_rules),
    )


async def _collect(events: AsyncIterator[ChatEvent]) -> list[ChatEvent]:
    return [event async for event in events]


def _saved_messages(chat_store: MagicMock) -> list:
    return [c.args[0] for c in chat_store.add_message.await_args_list]


# ---------------------------------------------------------------------------
# start_turn
# ---------------------------------------------------------------------------


class TestStartTurn:
    @pytest.mark.asyncio
    async def test_new_session_is_created(
        self, mock_chat_store: MagicMock, mock_llm_provider: ILLMProvider, profile: AssistantProfile
    ) -> None:
        service = _make_service(mock_chat_store, mock_llm_provider, profile)

        turn = await service.start_turn("Tell me about mentors")

        assert turn.is_new_session is True
        assert turn.session_id
        mock_chat_store.create_session.assert_awaited_once_with(turn.session_id)
        mock_chat_store.ensure_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_existing_session_is_ensured_and_touched(
        self, mock_chat_store: MagicMock, mock_llm_provider: ILLMProvider, profile: AssistantProfile
    ) -> None:
        service = _make_service(mock_chat_store, mock_llm_provider, profile)

        turn = await service.start_turn("Tell me about mentors", session_id="sess-42")
        await asyncio.sleep(0)

        assert turn.session_id == "sess-42"
        assert turn.is_new_session is False
        mock_chat_store.create_session.assert_not_awaited()
        mock_chat_store.ensure_session.assert_awaited_once_with("sess-42")
        mock_chat_store.touch_session.assert_awaited_once_with("sess-42")

    @pytest.mark.asyncio
    async def test_history_is_loaded_before_user_message_is_saved(
        self, mock_chat_store: MagicMock, mock_llm_provider: ILLMProvider, profile: AssistantProfile
    ) -> None:
        history = [make_message(ChatRole.USER, "earlier question")]
        mock_chat_store.get_recent_messages.return_value = history
        service = _make_service(mock_chat_store, mock_llm_provider, profile)

        turn = await service.start_turn("  Tell me about mentors  ", session_id="sess-1")

        calls = [name for name, _, _ in mock_chat_store.mock_calls]
        assert calls.index("get_recent_messages") < calls.index("add_message")
        mock_chat_store.get_recent_messages.assert_awaited_once_with("sess-1", limit=10)
        assert turn.history == history
        [saved] = _saved_messages(mock_chat_store)
        assert saved.role == ChatRole.USER
        assert saved.content == "Tell me about mentors"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", ["", "   ", "\n\t"])
    async def test_blank_message_is_rejected(
        self,
        mock_chat_store: MagicMock,
        mock_llm_provider: ILLMProvider,
        profile: AssistantProfile,
        message: str,
    ) -> None:
        service = _make_service(mock_chat_store, mock_llm_provider, profile)

        with pytest.raises(ValueError):
            await service.start_turn(message)

        mock_chat_store.add_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_faq_answer_is_attached(
        self, mock_chat_store: MagicMock, mock_llm_provider: ILLMProvider, profile: AssistantProfile
    ) -> None:
        service = _make_service(mock_chat_store, mock_llm_provider, profile)

        turn = await service.start_turn("How can I donate?")

        assert turn.faq_answer is not None
        assert "fbk.org/donate" in turn.faq_answer


# ---------------------------------------------------------------------------
# stream_turn
# ---------------------------------------------------------------------------


class TestFaqFastPath:
    @pytest.mark.asyncio
    async def test_faq_never_touches_retrieval_or_llm(
        self, mock_chat_store: MagicMock, mock_llm_provider: MagicMock, profile: AssistantProfile
    ) -> None:
        retriever = _mock_retriever()
        service = _make_service(mock_chat_store, mock_llm_provider, profile, retriever)

        turn = await service.start_turn("How can I donate?")
        events = await _collect(service.stream_turn(turn))

        retriever.retrieve.assert_not_awaited()
        mock_llm_provider.stream_chat.assert_not_called()

        tokens = [e.token for e in events if e.type == "token"]
        assert "".join(tokens) == turn.faq_answer
        done = events[-1]
        assert done.type == "done"
        assert done.sources == []
        assert done.session_id == turn.session_id

        answer = _saved_messages(mock_chat_store)[-1]
        assert answer.role == ChatRole.ASSISTANT
        assert answer.content == turn.faq_answer
        assert done.message_id == answer.id


class TestRagPath:
    @pytest.mark.asyncio
    async def test_tokens_then_done_with_fallback_sources(
        self, mock_chat_store: MagicMock, mock_llm_provider: MagicMock, profile: AssistantProfile
    ) -> None:
        retriever = _mock_retriever([make_retrieved()])
        service = _make_service(mock_chat_store, mock_llm_provider, profile, retriever)

        turn = await service.start_turn("When does the founders cohort start?")
        events = await _collect(service.stream_turn(turn))

        retriever.retrieve.assert_awaited_once_with("When does the founders cohort start?", k=5)
        assert [e.type for e in events] == ["token", "token", "token", "done"]
        done = events[-1]
        assert done.sources == [
            Source(
                title="Member Handbook",
                url="https://fbk.org/handbook",
                snippet="The Founders Program runs twice a year.",
            )
        ]
        answer = _saved_messages(mock_chat_store)[-1]
        assert answer.content == "The Founders Program runs twice a year."
        assert answer.sources == done.sources

    @pytest.mark.asyncio
    async def test_no_chunks_still_answers_without_sources(
        self, mock_chat_store: MagicMock, mock_llm_provider: MagicMock, profile: AssistantProfile
    ) -> None:
        service = _make_service(mock_chat_store, mock_llm_provider, profile, _mock_retriever([]))

        turn = await service.start_turn("When does the founders cohort start?")
        events = await _collect(service.stream_turn(turn))

        assert events[-1].type == "done"
        assert events[-1].sources == []
        system_prompt = mock_llm_provider.stream_chat.call_args.args[0][0]["content"]
        assert system_prompt.endswith(profile.no_context_notice)

    @pytest.mark.asyncio
    async def test_hidden_block_is_not_streamed_and_its_sources_win(
        self, mock_chat_store: MagicMock, mock_llm_provider: MagicMock, profile: AssistantProfile
    ) -> None:
        mock_llm_provider.stream_chat.side_effect = token_stream(
            [
                "Cohorts start in spring.",
                "\n<!--SOURCES",
                '_JSON\n[{"title": "Calendar", "url": "https://fbk.org/events", ',
                '"snippet": "Spring cohort"}]\nSOURCES_JSON-->',
            ]
        )
        service = _make_service(mock_chat_store, mock_llm_provider, profile)

        turn = await service.start_turn("When does the founders cohort start?")
        events = await _collect(service.stream_turn(turn))

        streamed = "".join(e.token for e in events if e.type == "token")
        assert "SOURCES_JSON" not in streamed
        assert streamed.strip() == "Cohorts start in spring."
        assert events[-1].sources == [
            Source(title="Calendar", url="https://fbk.org/events", snippet="Spring cohort")
        ]
        assert _saved_messages(mock_chat_store)[-1].content == "Cohorts start in spring."

    @pytest.mark.asyncio
    async def test_text_after_hidden_block_is_neither_streamed_nor_saved(
        self, mock_chat_store: MagicMock, mock_llm_provider: MagicMock, profile: AssistantProfile
    ) -> None:
        mock_llm_provider.stream_chat.side_effect = token_stream(
            [
                "Cohorts start in spring.",
                '\n<!--SOURCES_JSON\n[]\nSOURCES_JSON-->',
                "\nLet me know if you need more!",
            ]
        )
        service = _make_service(mock_chat_store, mock_llm_provider, profile)

        turn = await service.start_turn("When does the founders cohort start?")
        events = await _collect(service.stream_turn(turn))

        streamed = "".join(e.token for e in events if e.type == "token")
        saved = _saved_messages(mock_chat_store)[-1].content
        assert saved == "Cohorts start in spring."
        assert streamed.strip() == saved

    @pytest.mark.asyncio
    async def test_history_reaches_the_prompt(
        self, mock_chat_store: MagicMock, mock_llm_provider: MagicMock, profile: AssistantProfile
    ) -> None:
        mock_chat_store.get_recent_messages.return_value = [
            make_message(ChatRole.USER, "Who runs FBK?"),
            make_message(ChatRole.ASSISTANT, "A volunteer board."),
        ]
        service = _make_service(mock_chat_store, mock_llm_provider, profile)

        turn = await service.start_turn("And who funds it?", session_id="sess-1")
        await _collect(service.stream_turn(turn))

        messages = mock_llm_provider.stream_chat.call_args.args[0]
        assert [m["content"] for m in messages[1:]] == [
            "Who runs FBK?",
            "A volunteer board.",
            "And who funds it?",
        ]


class TestFailures:
    @pytest.mark.asyncio
    async def test_upstream_failure_yields_single_error_and_closes_stream(
        self, mock_chat_store: MagicMock, mock_llm_provider: MagicMock, profile: AssistantProfile
    ) -> None:
        failing = token_stream(["partial", " answer", " never"], fail_after=1)
        mock_llm_provider.stream_chat.side_effect = failing
        service = _make_service(mock_chat_store, mock_llm_provider, profile)

        turn = await service.start_turn("Tell me about mentors")
        events = await _collect(service.stream_turn(turn))

        assert [e.type for e in events] == ["token", "error"]
        assert events[-1].error == GENERIC_ERROR_MESSAGE
        assert failing.closed == [True]
        # Only the user message was persisted.
        assert [m.role for m in _saved_messages(mock_chat_store)] == [ChatRole.USER]

    @pytest.mark.asyncio
    async def test_failure_to_save_answer_yields_error(
        self, mock_chat_store: MagicMock, mock_llm_provider: MagicMock, profile: AssistantProfile
    ) -> None:
        service = _make_service(mock_chat_store, mock_llm_provider, profile)
        turn = await service.start_turn("Tell me about mentors")
        mock_chat_store.add_message.side_effect = RuntimeError("disk full")

        events = await _collect(service.stream_turn(turn))

        assert events[-1].type == "error"
        assert not any(e.type == "done" for e in events)

    @pytest.mark.asyncio
    async def test_closing_early_persists_nothing_and_closes_upstream(
        self, mock_chat_store: MagicMock, mock_llm_provider: MagicMock, profile: AssistantProfile
    ) -> None:
        upstream = token_stream(["one", " two", " three"])
        mock_llm_provider.stream_chat.side_effect = upstream
        service = _make_service(mock_chat_store, mock_llm_provider, profile)
        turn = await service.start_turn("Tell me about mentors")

        events = service.stream_turn(turn)
        first = await events.__anext__()
        await events.aclose()

        assert first.token == "one"
        assert upstream.closed == [True]
        assert [m.role for m in _saved_messages(mock_chat_store)] == [ChatRole.USER]

    @pytest.mark.asyncio
    async def test_cancellation_propagates(
        self, mock_chat_store: MagicMock, mock_llm_provider: MagicMock, profile: AssistantProfile
    ) -> None:
        started = asyncio.Event()

        def _slow_stream(messages, temperature=0.3, max_tokens=1024):  # noqa: ANN001, ANN202
            async def _gen() -> AsyncIterator[str]:
                yield "thinking"
                started.set()
                await asyncio.sleep(3600)
                yield "never"

            return _gen()

        mock_llm_provider.stream_chat.side_effect = _slow_stream
        service = _make_service(mock_chat_store, mock_llm_provider, profile)
        turn = await service.start_turn("Tell me about mentors")

        task = asyncio.create_task(_collect(service.stream_turn(turn)))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert [m.role for m in _saved_messages(mock_chat_store)] == [ChatRole.USER]
