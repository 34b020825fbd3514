"""Provider stream -> canonical (Anthropic Messages) event stream.

The provider stream is a sequence of SSE frames carrying one JSON fragment
each. Every frame goes through a pure step::

    provider.translate_stream_frame(frame, cursor) -> (events, cursor)

with a :class:`StreamCursor` value threaded from one step to the next. The
cursor is created per response and never shared.

Canonical output for a text fragment "Hi" at text index 0::

    event: content_block_start
    data: {"type":"content_block_start","index":0,"content_block":{"type":"text","text":""}}

    event: content_block_delta
    data: {"type":"content_block_delta","index":0,"delta":{"type":"text_delta","text":"Hi"}}

    event: content_block_stop
    data: {"type":"content_block_stop","index":0}

Tool calls produce the same triple with a ``tool_use`` block and an
``input_json_delta`` at the tool index. Text and tool indices are separate
counters. ``message_start`` precedes the first frame's output;
``message_delta`` and ``message_stop`` follow only when the provider sent a
finish indicator.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, AsyncIterator, Iterable, Mapping, Optional, Union

import httpx

from ..core.sse import DONE_SENTINEL, SSEDecoder, SSEEvent, format_sse_event

if TYPE_CHECKING:
    from ..core.transport import ProviderResponse
    from ..providers.base import Provider

logger = logging.getLogger("claude-proxy")


@dataclass(frozen=True)
class StreamCursor:
    """Running state of one streamed response.

    Attributes:
        text_block_index: Index for the next text block.
        tool_block_index: Index for the next tool_use block.
        started: ``message_start`` has been emitted.
        finished: ``message_stop`` has been emitted.
        stop_reason: Canonical stop reason from the provider's finish
            indicator, not yet corrected for tool use.
        usage: Canonical usage, when the provider reported it.
    """

    text_block_index: int = 0
    tool_block_index: int = 0
    started: bool = False
    finished: bool = False
    stop_reason: Optional[str] = None
    usage: Optional[Mapping[str, int]] = None


def new_message_id() -> str:
    return f"msg_{uuid.uuid4().hex[:24]}"


def new_tool_use_id() -> str:
    return f"toolu_{uuid.uuid4().hex[:24]}"


def message_start_event(message_id: str, model: str) -> bytes:
    message = {
        "id": message_id,
        "type": "message",
        "role": "assistant",
        "content": [],
        "model": model,
        "stop_reason": None,
        "stop_sequence": None,
    }
    return format_sse_event("message_start", {"type": "message_start", "message": message})


def _block_events(index: int, content_block: dict[str, Any], delta: dict[str, Any]) -> list[bytes]:
    return [
        format_sse_event(
            "content_block_start",
            {"type": "content_block_start", "index": index, "content_block": content_block},
        ),
        format_sse_event(
            "content_block_delta",
            {"type": "content_block_delta", "index": index, "delta": delta},
        ),
        format_sse_event(
            "content_block_stop",
            {"type": "content_block_stop", "index": index},
        ),
    ]


def text_block_events(text: str, index: int) -> list[bytes]:
    """start/delta/stop events for one text fragment."""
    return _block_events(
        index,
        {"type": "text", "text": ""},
        {"type": "text_delta", "text": text},
    )


def tool_use_block_events(tool_id: str, name: str, tool_input: Any, index: int) -> list[bytes]:
    """start/delta/stop events for one complete tool call."""
    return _block_events(
        index,
        {"type": "tool_use", "id": tool_id, "name": name, "input": {}},
        {"type": "input_json_delta", "partial_json": json.dumps(tool_input, ensure_ascii=False)},
    )


def message_delta_event(stop_reason: str, usage: Optional[Mapping[str, int]]) -> bytes:
    event_data: dict[str, Any] = {
        "type": "message_delta",
        "delta": {"stop_reason": stop_reason, "stop_sequence": None},
    }
    if usage is not None:
        event_data["usage"] = dict(usage)
    return format_sse_event("message_delta", event_data)


def message_stop_event() -> bytes:
    return format_sse_event("message_stop", {"type": "message_stop"})


def error_event(message: str, error_type: str = "api_error") -> bytes:
    return format_sse_event(
        "error", {"type": "error", "error": {"type": error_type, "message": message}}
    )


def add_text(cursor: StreamCursor, text: str) -> tuple[list[bytes], StreamCursor]:
    """Emit one text block at the text index and advance it."""
    events = text_block_events(text, cursor.text_block_index)
    return events, replace(cursor, text_block_index=cursor.text_block_index + 1)


def add_tool_use(
    cursor: StreamCursor, tool_id: str, name: str, tool_input: Any
) -> tuple[list[bytes], StreamCursor]:
    """Emit one tool_use block at the tool index and advance it."""
    events = tool_use_block_events(tool_id, name, tool_input, cursor.tool_block_index)
    return events, replace(cursor, tool_block_index=cursor.tool_block_index + 1)


def finish_stream(cursor: StreamCursor) -> tuple[list[bytes], StreamCursor]:
    """Emit message_delta + message_stop if a finish indicator was seen."""
    if cursor.finished or cursor.stop_reason is None:
        return [], cursor
    stop_reason = "tool_use" if cursor.tool_block_index > 0 else cursor.stop_reason
    events = [message_delta_event(stop_reason, cursor.usage), message_stop_event()]
    return events, replace(cursor, finished=True)


def step_frame(
    provider: "Provider",
    event: Union[SSEEvent, Mapping[str, Any], str],
    cursor: StreamCursor,
    message_id: str,
) -> tuple[list[bytes], StreamCursor]:
    """Translate one provider frame.

    ``event`` may be a decoded :class:`SSEEvent`, its raw ``data`` string or
    an already parsed JSON object.
    """
    if isinstance(event, SSEEvent):
        if event.data is None:
            return [], cursor
        event = event.data

    if isinstance(event, str):
        if event.strip() == DONE_SENTINEL:
            return finish_stream(cursor)
        try:
            frame = json.loads(event)
        except json.JSONDecodeError:
            logger.warning("Skipping undecodable stream frame: %s", event[:200])
            return [], cursor
    else:
        frame = event

    if not isinstance(frame, Mapping):
        logger.warning("Skipping non-object stream frame: %r", frame)
        return [], cursor

    events: list[bytes] = []
    if not cursor.started:
        events.append(message_start_event(message_id, provider.frame_model(frame)))
        cursor = replace(cursor, started=True)

    frame_events, cursor = provider.translate_stream_frame(frame, cursor)
    events.extend(frame_events)
    return events, cursor


def translate_frames(
    provider: "Provider",
    frames: Iterable[Union[Mapping[str, Any], str]],
    message_id: str = "msg_test",
) -> list[bytes]:
    """Run the stream translation over a finite frame sequence.

    End of the sequence plays the role of the provider closing the stream.
    """
    cursor = StreamCursor()
    output: list[bytes] = []
    for frame in frames:
        events, cursor = step_frame(provider, frame, cursor, message_id)
        output.extend(events)
    events, cursor = finish_stream(cursor)
    output.extend(events)
    return output


async def _next_chunk(chunks: AsyncIterator[bytes], deadline: Optional[float]) -> bytes:
    if deadline is None:
        return await chunks.__anext__()
    remaining = deadline - asyncio.get_running_loop().time()
    return await asyncio.wait_for(chunks.__anext__(), remaining)


async def translate_stream(
    provider: "Provider",
    response: "ProviderResponse",
    message_id: Optional[str] = None,
) -> AsyncIterator[bytes]:
    """Consume an open provider event stream and yield canonical SSE bytes.

    The upstream response is closed when iteration ends for any reason,
    including cancellation by a disconnecting client. A stream still open
    at the response deadline ends with an error event.
    """
    message_id = message_id or new_message_id()
    decoder = SSEDecoder()
    cursor = StreamCursor()
    try:
        if response.stream is not None:
            chunks = response.stream.__aiter__()
            while True:
                try:
                    chunk = await _next_chunk(chunks, response.deadline)
                except StopAsyncIteration:
                    break
                for event in decoder.feed(chunk):
                    events, cursor = step_frame(provider, event, cursor, message_id)
                    for item in events:
                        yield item
        for event in decoder.flush():
            events, cursor = step_frame(provider, event, cursor, message_id)
            for item in events:
                yield item
        events, cursor = finish_stream(cursor)
        for item in events:
            yield item
    except httpx.HTTPError as exc:
        logger.error(
            "Error during streaming from %s backend: %s (%s)",
            provider.name,
            exc,
            exc.__class__.__name__,
        )
        yield error_event("Upstream stream failed")
    except asyncio.TimeoutError:
        logger.error("Stream from %s backend exceeded its deadline", provider.name)
        yield error_event("Upstream stream timed out")
    finally:
        logger.debug(
            "Stream from %s finished: text_blocks=%d tool_blocks=%d",
            provider.name,
            cursor.text_block_index,
            cursor.tool_block_index,
        )
        await response.aclose()
