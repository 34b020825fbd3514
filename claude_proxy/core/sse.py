"""SSE (Server-Sent Events) framing for provider and canonical streams."""

import codecs
import json
from dataclasses import dataclass, field
from typing import Any, Optional


DONE_SENTINEL = "[DONE]"


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


@dataclass
class SSEEvent:
    """One decoded SSE event: its ``data`` payload and any other lines."""

    data: Optional[str]
    event: Optional[str] = None
    other_lines: list[str] = field(default_factory=list)

    @property
    def is_done(self) -> bool:
        return self.data is not None and self.data.strip() == DONE_SENTINEL


class SSEDecoder:
    """Incremental SSE decoder.

    Provider chunks do not respect event boundaries, so bytes are buffered
    until a blank line closes an event.
    """

    def __init__(self) -> None:
        self._buffer = ""
        # Multi-byte characters may straddle chunk boundaries
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending_cr = ""

    def feed(self, chunk: bytes) -> list[SSEEvent]:
        if not chunk:
            return []
        text = self._pending_cr + self._utf8.decode(chunk)
        self._pending_cr = ""
        if text.endswith("\r"):
            # the matching \n may arrive with the next chunk
            text, self._pending_cr = text[:-1], "\r"
        self._buffer += _normalize_newlines(text)
        events: list[SSEEvent] = []

        while True:
            sep_index = self._buffer.find("\n\n")
            if sep_index == -1:
                break
            raw_event = self._buffer[:sep_index]
            self._buffer = self._buffer[sep_index + 2:]
            if not raw_event.strip():
                continue
            events.append(self._parse_event(raw_event))

        return events

    def flush(self) -> list[SSEEvent]:
        """Decode whatever is left once the transport has closed."""
        tail = self._pending_cr + self._utf8.decode(b"", final=True)
        self._pending_cr = ""
        self._buffer += _normalize_newlines(tail)
        if not self._buffer.strip():
            self._buffer = ""
            return []
        leftover = self._buffer
        self._buffer = ""
        return [self._parse_event(leftover.strip("\n"))]

    @staticmethod
    def _parse_event(raw: str) -> SSEEvent:
        data_lines: list[str] = []
        other_lines: list[str] = []
        event_name: Optional[str] = None
        for line in raw.split("\n"):
            if line.startswith("data:"):
                data_lines.append(line[5:].lstrip())
            elif line.startswith("event:"):
                event_name = line[6:].strip()
            else:
                other_lines.append(line)
        data = "\n".join(data_lines) if data_lines else None
        return SSEEvent(data=data, event=event_name, other_lines=other_lines)


def format_sse_event(event_type: str, data: dict[str, Any]) -> bytes:
    """Format a canonical SSE event.

    Args:
        event_type: Event type name
        data: Event data

    Returns:
        SSE formatted bytes
    """
    json_str = json.dumps(data, ensure_ascii=False)
    return f"event: {event_type}\ndata: {json_str}\n\n".encode("utf-8")
