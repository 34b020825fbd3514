"""Shape validation for inbound canonical requests.

Runs before any provider call; every failure is an
:class:`~claude_proxy.core.exceptions.InvalidRequestError` naming the
offending parameter.
"""

from __future__ import annotations

from numbers import Real
from typing import Any, Mapping

from ..core.exceptions import InvalidRequestError
from ..types import CanonicalRequest

VALID_ROLES = {"user", "assistant"}


def _require(condition: bool, message: str, param: str) -> None:
    if not condition:
        raise InvalidRequestError(message, code="invalid_parameter", param=param)


def _validate_block(block: Any, param: str) -> None:
    _require(isinstance(block, Mapping), "content block must be an object", param)
    block_type = block.get("type")
    _require(isinstance(block_type, str), "content block requires a type", f"{param}.type")

    if block_type == "text":
        _require(isinstance(block.get("text"), str), "text block requires text", f"{param}.text")
    elif block_type == "tool_use":
        _require(isinstance(block.get("id"), str), "tool_use block requires an id", f"{param}.id")
        _require(
            isinstance(block.get("name"), str), "tool_use block requires a name", f"{param}.name"
        )
    elif block_type == "tool_result":
        _require(
            isinstance(block.get("tool_use_id"), str),
            "tool_result block requires a tool_use_id",
            f"{param}.tool_use_id",
        )
        _require(
            "is_error" not in block or isinstance(block["is_error"], bool),
            "is_error must be a boolean",
            f"{param}.is_error",
        )


def _validate_message(message: Any, param: str) -> None:
    _require(isinstance(message, Mapping), "message must be an object", param)
    _require(
        message.get("role") in VALID_ROLES,
        "role must be 'user' or 'assistant'",
        f"{param}.role",
    )
    content = message.get("content")
    if isinstance(content, str):
        return
    _require(
        isinstance(content, list), "content must be a string or a list", f"{param}.content"
    )
    for index, block in enumerate(content):
        _validate_block(block, f"{param}.content.{index}")


def _validate_tools(tools: Any) -> None:
    _require(isinstance(tools, list), "tools must be a list", "tools")
    for index, tool in enumerate(tools):
        param = f"tools.{index}"
        _require(isinstance(tool, Mapping), "tool must be an object", param)
        _require(isinstance(tool.get("name"), str), "tool requires a name", f"{param}.name")
        schema = tool.get("input_schema", {})
        _require(
            isinstance(schema, Mapping), "input_schema must be an object", f"{param}.input_schema"
        )


def validate_canonical_request(payload: Any) -> CanonicalRequest:
    """Check that ``payload`` is a well-formed Messages request.

    Returns the payload unchanged, typed as a ``CanonicalRequest``.
    """
    if not isinstance(payload, Mapping):
        raise InvalidRequestError("Request body must be a JSON object", code="invalid_json_shape")

    model = payload.get("model")
    if not isinstance(model, str) or not model:
        raise InvalidRequestError(
            "You must provide a model parameter", code="missing_parameter", param="model"
        )

    messages = payload.get("messages")
    _require(isinstance(messages, list), "messages must be a list", "messages")
    for index, message in enumerate(messages):
        _validate_message(message, f"messages.{index}")

    if "stream" in payload:
        _require(isinstance(payload["stream"], bool), "stream must be a boolean", "stream")
    if payload.get("temperature") is not None:
        temperature = payload["temperature"]
        _require(
            isinstance(temperature, Real) and not isinstance(temperature, bool),
            "temperature must be a number",
            "temperature",
        )
    if payload.get("max_tokens") is not None:
        max_tokens = payload["max_tokens"]
        _require(
            isinstance(max_tokens, int) and not isinstance(max_tokens, bool) and max_tokens > 0,
            "max_tokens must be a positive integer",
            "max_tokens",
        )
    if payload.get("tools") is not None:
        _validate_tools(payload["tools"])

    return payload  # type: ignore[return-value]
