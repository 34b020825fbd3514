"""Tests for provider stream -> canonical event stream translation."""

import asyncio
import json

import httpx
import pytest

from claude_proxy.core.transport import ProviderResponse
from claude_proxy.messages.stream import (
    StreamCursor,
    add_text,
    add_tool_use,
    finish_stream,
    translate_frames,
    translate_stream,
)
from claude_proxy.providers import OpenAIProvider

provider = OpenAIProvider()


async def _aiter(chunks: list[bytes]):
    """Helper to create async iterator from list of bytes."""
    for chunk in chunks:
        yield chunk


def _parse_events(raw_events: list[bytes]) -> list[dict]:
    """Parse SSE events from raw bytes."""
    events = []
    for raw in b"".join(raw_events).decode("utf-8").split("\n\n"):
        lines = [line for line in raw.split("\n") if line]
        event_line = next((line for line in lines if line.startswith("event: ")), None)
        data_line = next((line for line in lines if line.startswith("data: ")), None)
        if event_line and data_line:
            events.append({
                "event": event_line[len("event: "):],
                "data": json.loads(data_line[len("data: "):]),
            })
    return events


def _chunk(delta: dict, finish_reason=None, **extra) -> dict:
    frame = {"id": "chatcmpl-1", "model": "gpt-4o", "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}]}
    frame.update(extra)
    return frame


class TestCursorSteps:
    """Tests for the pure cursor steps."""

    def test_steps_return_new_cursor(self):
        cursor = StreamCursor()
        _, after_text = add_text(cursor, "x")
        _, after_tool = add_tool_use(after_text, "toolu_1", "f", {})
        assert cursor == StreamCursor()
        assert (after_text.text_block_index, after_text.tool_block_index) == (1, 0)
        assert (after_tool.text_block_index, after_tool.tool_block_index) == (1, 1)

    def test_finish_without_indicator_emits_nothing(self):
        events, cursor = finish_stream(StreamCursor(started=True))
        assert events == []
        assert not cursor.finished

    def test_finish_emits_once(self):
        cursor = StreamCursor(started=True, stop_reason="end_turn")
        events, cursor = finish_stream(cursor)
        assert len(events) == 2
        again, _ = finish_stream(cursor)
        assert again == []


class TestTranslateFrames:
    """Tests for translate_frames() over OpenAI chunks."""

    def test_text_then_tool_call_then_finish(self):
        frames = [
            _chunk({"role": "assistant", "content": "Hi"}),
            _chunk(
                {
                    "tool_calls": [
                        {
                            "index": 0,
                            "id": "call_1",
                            "type": "function",
                            "function": {"name": "get_weather", "arguments": '{"city": "Paris"}'},
                        }
                    ]
                }
            ),
            _chunk({}, finish_reason="tool_calls"),
        ]
        events = _parse_events(translate_frames(provider, frames, message_id="msg_abc"))

        assert [e["event"] for e in events] == [
            "message_start",
            "content_block_start",
            "content_block_delta",
            "content_block_stop",
            "content_block_start",
            "content_block_delta",
            "content_block_stop",
            "message_delta",
            "message_stop",
        ]
        message = events[0]["data"]["message"]
        assert message["id"] == "msg_abc"
        assert message["model"] == "gpt-4o"
        assert "usage" not in message

        assert events[1]["data"] == {
            "type": "content_block_start",
            "index": 0,
            "content_block": {"type": "text", "text": ""},
        }
        assert events[2]["data"]["delta"] == {"type": "text_delta", "text": "Hi"}
        assert events[3]["data"]["index"] == 0

        assert events[4]["data"] == {
            "type": "content_block_start",
            "index": 0,
            "content_block": {"type": "tool_use", "id": "call_1", "name": "get_weather", "input": {}},
        }
        assert events[5]["data"]["delta"] == {"type": "input_json_delta", "partial_json": '{"city": "Paris"}'}
        assert events[6]["data"]["index"] == 0

        assert events[7]["data"]["delta"]["stop_reason"] == "tool_use"
        assert "usage" not in events[7]["data"]

    def test_text_and_tool_indices_start_at_zero(self):
        frames = [
            _chunk({"content": "Hi"}),
            _chunk({"tool_calls": [{"id": "c1", "function": {"name": "f", "arguments": "{}"}}]}),
        ]
        events = _parse_events(translate_frames(provider, frames))
        deltas = [e["data"] for e in events if e["event"] == "content_block_delta"]
        assert [(d["delta"]["type"], d["index"]) for d in deltas] == [
            ("text_delta", 0),
            ("input_json_delta", 0),
        ]

    def test_indices_increase_per_kind(self):
        frames = [
            _chunk({"content": "a"}),
            _chunk({"content": "b"}),
            _chunk({"tool_calls": [{"id": "c1", "function": {"name": "f", "arguments": "{}"}}]}),
            _chunk({"tool_calls": [{"id": "c2", "function": {"name": "g", "arguments": "{}"}}]}),
        ]
        events = _parse_events(translate_frames(provider, frames))
        starts = [e["data"] for e in events if e["event"] == "content_block_start"]
        assert [(s["content_block"]["type"], s["index"]) for s in starts] == [
            ("text", 0),
            ("text", 1),
            ("tool_use", 0),
            ("tool_use", 1),
        ]

    def test_partial_tool_fragments_are_skipped(self):
        frames = [
            _chunk({"tool_calls": [{"index": 0, "id": "c1", "function": {"name": "f", "arguments": ""}}]}),
            _chunk({"tool_calls": [{"index": 0, "function": {"arguments": '{"a": 1}'}}]}),
        ]
        events = _parse_events(translate_frames(provider, frames))
        assert [e["event"] for e in events] == ["message_start"]

    def test_single_quoted_arguments_are_repaired(self):
        frames = [_chunk({"tool_calls": [{"id": "c1", "function": {"name": "f", "arguments": "{'a': 1}"}}]})]
        events = _parse_events(translate_frames(provider, frames))
        delta = next(e for e in events if e["event"] == "content_block_delta")
        assert json.loads(delta["data"]["delta"]["partial_json"]) == {"a": 1}

    def test_length_finish_and_trailing_usage(self):
        frames = [
            _chunk({"content": "partial"}),
            _chunk({}, finish_reason="length"),
            {"id": "chatcmpl-1", "choices": [], "usage": {"prompt_tokens": 7, "completion_tokens": 100}},
            "[DONE]",
        ]
        events = _parse_events(translate_frames(provider, frames))
        message_delta = next(e for e in events if e["event"] == "message_delta")
        assert message_delta["data"]["delta"]["stop_reason"] == "max_tokens"
        assert message_delta["data"]["usage"] == {"input_tokens": 7, "output_tokens": 100}
        assert [e["event"] for e in events].count("message_stop") == 1

    def test_partial_stream_usage_is_not_padded(self):
        frames = [
            _chunk({"content": "x"}, finish_reason="stop"),
            {"choices": [], "usage": {"completion_tokens": 3}},
        ]
        events = _parse_events(translate_frames(provider, frames))
        message_delta = next(e for e in events if e["event"] == "message_delta")
        assert message_delta["data"]["usage"] == {"output_tokens": 3}

    def test_undecodable_frames_are_skipped(self):
        frames = ["{broken", _chunk({"content": "ok"}, finish_reason="stop")]
        events = _parse_events(translate_frames(provider, frames))
        assert [e["event"] for e in events][0] == "message_start"
        assert any(e["data"].get("delta", {}).get("text") == "ok" for e in events)

    def test_stream_without_finish_has_no_message_stop(self):
        events = _parse_events(translate_frames(provider, [_chunk({"content": "hi"})]))
        assert "message_delta" not in [e["event"] for e in events]
        assert "message_stop" not in [e["event"] for e in events]


class TestTranslateStream:
    """Tests for the async stream driver."""

    @pytest.mark.asyncio
    async def test_frames_split_across_chunks(self):
        closed = []

        async def closer():
            closed.append(True)

        chunks = [
            b'data: {"model":"gpt-4o","choices":[{"delta":{"content":"Hel',
            b'lo"},"index":0}]}\n\ndata: {"choices":[{"delta":{},"finish_reason":"stop","index":0}]}\n\n',
            b"data: [DONE]\n\n",
        ]
        response = ProviderResponse(
            status_code=200,
            headers={"content-type": "text/event-stream"},
            stream=_aiter(chunks),
            _closer=closer,
        )

        raw_events = [event async for event in translate_stream(provider, response)]
        events = _parse_events(raw_events)

        assert events[0]["event"] == "message_start"
        assert events[0]["data"]["message"]["id"].startswith("msg_")
        assert events[2]["data"]["delta"]["text"] == "Hello"
        assert [e["event"] for e in events][-2:] == ["message_delta", "message_stop"]
        assert events[-2]["data"]["delta"]["stop_reason"] == "end_turn"
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_unterminated_last_frame_is_flushed(self):
        chunks = [b'data: {"choices":[{"delta":{"content":"x"},"finish_reason":"stop"}]}']
        response = ProviderResponse(status_code=200, headers={}, stream=_aiter(chunks))
        events = _parse_events([event async for event in translate_stream(provider, response)])
        assert [e["event"] for e in events][-1] == "message_stop"

    @pytest.mark.asyncio
    async def test_transport_failure_emits_error_event(self):
        closed = []

        async def closer():
            closed.append(True)

        async def failing():
            yield b'data: {"choices":[{"delta":{"content":"Hi"}}]}\n\n'
            raise httpx.ReadTimeout("read timed out")

        response = ProviderResponse(status_code=200, headers={}, stream=failing(), _closer=closer)
        events = _parse_events([event async for event in translate_stream(provider, response)])

        assert events[-1]["event"] == "error"
        assert events[-1]["data"] == {
            "type": "error",
            "error": {"type": "api_error", "message": "Upstream stream failed"},
        }
        assert "message_stop" not in [e["event"] for e in events]
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_multibyte_text_split_across_chunks(self):
        raw = 'data: {"choices":[{"delta":{"content":"你好"},"finish_reason":"stop"}]}\n\n'.encode("utf-8")
        cut = raw.index("你".encode("utf-8")) + 1
        response = ProviderResponse(status_code=200, headers={}, stream=_aiter([raw[:cut], raw[cut:]]))
        events = _parse_events([event async for event in translate_stream(provider, response)])
        texts = [e["data"]["delta"]["text"] for e in events if e["event"] == "content_block_delta"]
        assert texts == ["你好"]

    @pytest.mark.asyncio
    async def test_client_disconnect_closes_upstream(self):
        closed = []

        async def closer():
            closed.append(True)

        async def endless():
            yield b'data: {"choices":[{"delta":{"content":"Hi"}}]}\n\n'
            while True:
                await asyncio.sleep(1)
                yield b": keep-alive\n\n"

        response = ProviderResponse(status_code=200, headers={}, stream=endless(), _closer=closer)
        agen = translate_stream(provider, response)
        first = await agen.__anext__()
        assert first.startswith(b"event: message_start")
        await agen.aclose()
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_deadline_ends_slow_stream_with_error(self):
        closed = []

        async def closer():
            closed.append(True)

        async def trickle():
            while True:
                yield b'data: {"choices":[{"delta":{"content":"."}}]}\n\n'
                await asyncio.sleep(0.02)

        deadline = asyncio.get_running_loop().time() + 0.1
        response = ProviderResponse(
            status_code=200, headers={}, stream=trickle(), deadline=deadline, _closer=closer
        )
        events = _parse_events([event async for event in translate_stream(provider, response)])

        assert events[-1]["data"] == {
            "type": "error",
            "error": {"type": "api_error", "message": "Upstream stream timed out"},
        }
        assert "message_stop" not in [e["event"] for e in events]
        assert closed == [True]
