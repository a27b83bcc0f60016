"""
Chat endpoints.

``/v1/chat/stream`` relays a turn as Server-Sent Events. Text deltas are
plain ``data:`` lines; every other event kind is a named SSE event; the
stream always ends with ``data: [DONE]`` or an ``error`` event.
"""

import json
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ...orchestration import EventKind, StreamEvent
from ...runtime import Runtime
from ..deps import get_runtime
from ..schemas import ChatRequest, ChatResponse, ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _sse(data: str, event: str = "") -> str:
    if event:
        return f"event: {event}\ndata: {data}\n\n"
    return f"data: {data}\n\n"


def format_sse(event: StreamEvent) -> str:
    """Frame a StreamEvent for the wire."""
    kind = event.kind
    if kind == EventKind.TEXT:
        return _sse(json.dumps({"type": "text", "text": event.payload["text"]}))
    if kind in (
        EventKind.TOOL_CALL_REQUESTED,
        EventKind.TOOL_RESULT,
        EventKind.ACTION_CARD,
        EventKind.METADATA,
    ):
        return _sse(json.dumps(event.payload, ensure_ascii=False), event=kind.value)
    if kind == EventKind.DONE:
        return _sse("[DONE]")
    if kind == EventKind.ERROR:
        return _sse(json.dumps(event.payload), event="error")
    raise ValueError(f"Unhandled stream event kind: {kind}")


async def _stream_turn(
    runtime: Runtime, conversation_id: str, message: str
) -> AsyncIterator[str]:
    count = 0
    async for event in runtime.orchestrator.run_turn(conversation_id, message):
        count += 1
        if event.kind == EventKind.TOOL_CALL_REQUESTED:
            logger.info(f"Sending tool_call event: {event.payload['name']}")
        yield format_sse(event)
    logger.debug(f"Stream for {conversation_id} complete after {count} events")


def _conversation_id(runtime: Runtime, request: ChatRequest) -> str:
    return request.conversation_id or runtime.orchestrator.start_conversation()


@router.post(
    "/v1/chat/stream",
    summary="Stream a chat turn",
    description=(
        "Run one conversational turn and stream text, tool calls, tool results, "
        "action cards and usage as Server-Sent Events."
    ),
)
async def stream_chat(
    request: ChatRequest, runtime: Runtime = Depends(get_runtime)
) -> StreamingResponse:
    conversation_id = _conversation_id(runtime, request)
    logger.info(f"Streaming turn for {conversation_id}: {request.message[:100]}")
    return StreamingResponse(
        _stream_turn(runtime, conversation_id, request.message),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Conversation-Id": conversation_id,
        },
    )


@router.post(
    "/v1/chat",
    response_model=ChatResponse,
    responses={500: {"model": ErrorResponse}},
    summary="Run a chat turn",
    description="Run one conversational turn and return the collected result.",
)
async def chat(
    request: ChatRequest, runtime: Runtime = Depends(get_runtime)
) -> ChatResponse:
    conversation_id = _conversation_id(runtime, request)
    response = ChatResponse(conversation_id=conversation_id)
    text_parts = []

    async for event in runtime.orchestrator.run_turn(conversation_id, request.message):
        if event.kind == EventKind.TEXT:
            text_parts.append(event.payload["text"])
        elif event.kind == EventKind.TOOL_CALL_REQUESTED:
            response.tool_calls.append(event.payload)
        elif event.kind == EventKind.ACTION_CARD:
            response.action_cards.append(event.payload)
        elif event.kind == EventKind.METADATA:
            response.usage = event.payload.get("usage", {})
        elif event.kind == EventKind.ERROR:
            response.error = event.payload.get("message")

    response.text = "".join(text_parts)
    return response
