"""Server-sent-event framing for streamed chat turns.

Every event is one ``data: {json}\\n\\n`` frame.  The stream always ends with
the literal ``data: [DONE]\\n\\n`` frame, after the turn's ``done`` or
``error`` event, so the widget can tell a finished stream from a dropped
connection.

Wire shapes::

    {"type": "token", "token": "..."}
    {"type": "done",  "messageId": "...", "sessionId": "...", "sources": [...]}
    {"type": "error", "error": "..."}
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

from src.models.chat import ChatEvent

DONE_FRAME = "data: [DONE]\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


def event_payload(event: ChatEvent) -> dict[str, Any]:
    """Map a :class:`ChatEvent` to its JSON wire object."""
    if event.type == "token":
        return {"type": "token", "token": event.token or ""}
    if event.type == "done":
        return {
            "type": "done",
            "messageId": event.message_id,
            "sessionId": event.session_id,
            "sources": [s.model_dump() for s in event.sources or []],
        }
    return {"type": "error", "error": event.error or ""}


def format_event(event: ChatEvent) -> str:
    return f"data: {json.dumps(event_payload(event), ensure_ascii=False)}\n\n"


async def encode_events(events: AsyncIterator[ChatEvent]) -> AsyncIterator[str]:
    """Frame *events* and terminate with ``[DONE]``.

    The source generator is closed deterministically if the client goes
    away mid-stream.
    """
    async with aclosing(events) as stream:
        async for event in stream:
            yield format_event(event)
    yield DONE_FRAME
