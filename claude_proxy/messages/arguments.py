"""Decoding of tool-call argument strings."""

import json
import logging
from typing import Any

logger = logging.getLogger("claude-proxy")


def decode_tool_arguments(arguments: Any) -> Any:
    """Decode a tool call's arguments into a JSON value.

    Some models (Qwen3-coder among them) emit JSON-like strings with single
    quotes, so a failed strict parse is retried with single quotes swapped
    for double quotes. If that fails too the call gets an empty object and
    the failure is only logged; it is never reported to the client.
    """
    if arguments is None or arguments == "":
        return {}
    if not isinstance(arguments, str):
        return arguments

    try:
        return json.loads(arguments)
    except json.JSONDecodeError:
        logger.debug("Failed to parse arguments directly, trying to fix single quotes: %s", arguments)

    repaired = arguments.replace("'", '"')
    try:
        return json.loads(repaired)
    except json.JSONDecodeError as exc:
        logger.error(
            "Failed to parse tool arguments after fixing single quotes: %s (%s)",
            repaired,
            exc,
        )
        return {}
