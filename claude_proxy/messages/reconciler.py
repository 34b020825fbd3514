"""Tool-call / tool-result reconciliation.

Providers reject conversations where a function call has no answer, so the
message history is cleaned before translation:

- a message holding a ``tool_use`` with no ``tool_result`` anywhere in the
  conversation is dropped whole, sibling text included;
- a ``tool_use`` whose result is an error survives here, and the request
  mapper later recodes it as commentary instead of a machine tool call.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Literal, Mapping, Sequence

logger = logging.getLogger("claude-proxy")

INTERRUPTED_MARKER = "Interrupted by user"

ResultKind = Literal["success", "error", "interrupted"]


def iter_blocks(messages: Iterable[Mapping[str, Any]]) -> Iterable[Mapping[str, Any]]:
    """Yield every content block of every block-list message."""
    for message in messages:
        content = message.get("content")
        if isinstance(content, list):
            for block in content:
                if isinstance(block, Mapping):
                    yield block


def is_error_result(block: Mapping[str, Any]) -> bool:
    return block.get("is_error") is True


def result_ids(messages: Sequence[Mapping[str, Any]]) -> set[str]:
    """Ids referenced by any ``tool_result`` block."""
    return {
        block.get("tool_use_id", "")
        for block in iter_blocks(messages)
        if block.get("type") == "tool_result"
    }


def successful_result_ids(messages: Sequence[Mapping[str, Any]]) -> set[str]:
    """Ids referenced by ``tool_result`` blocks that are not errors."""
    return {
        block.get("tool_use_id", "")
        for block in iter_blocks(messages)
        if block.get("type") == "tool_result" and not is_error_result(block)
    }


def stringify_result_content(content: Any) -> str:
    """Render tool result content as text: strings as-is, the rest as JSON."""
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False)


def classify_result(block: Mapping[str, Any]) -> ResultKind:
    """Classify a ``tool_result`` block as success, error or interrupted."""
    if not is_error_result(block):
        return "success"
    if INTERRUPTED_MARKER in stringify_result_content(block.get("content")):
        return "interrupted"
    return "error"


def _incomplete_tool_uses(
    message: Mapping[str, Any], answered: set[str]
) -> list[Mapping[str, Any]]:
    content = message.get("content")
    if not isinstance(content, list):
        return []
    return [
        block
        for block in content
        if isinstance(block, Mapping)
        and block.get("type") == "tool_use"
        and block.get("id") not in answered
    ]


def reconcile(messages: Sequence[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    """Drop messages that hold a tool call nobody answered.

    Pure: the input is not modified, kept messages are returned as-is.
    Dropping a message can take tool results with it, so passes repeat until
    nothing changes; the result is therefore a fixed point.
    """
    kept = list(messages)
    while True:
        answered = result_ids(kept)
        survivors: list[Mapping[str, Any]] = []
        for message in kept:
            incomplete = _incomplete_tool_uses(message, answered)
            if incomplete:
                logger.debug(
                    "Removing message with incomplete tool uses: %s",
                    [{"id": b.get("id"), "name": b.get("name")} for b in incomplete],
                )
                continue
            survivors.append(message)
        if len(survivors) == len(kept):
            return survivors
        kept = survivors
