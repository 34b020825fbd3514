"""Canonical (Anthropic Messages) types.

These describe the JSON the inbound client sends and receives. Bodies stay
plain dicts on the wire; the TypedDicts document their shape.
"""

from typing import Any, Literal, Union
from typing_extensions import NotRequired, TypedDict


class TextBlock(TypedDict):
    """A text content block."""
    type: Literal["text"]
    text: str


class ToolUseBlock(TypedDict):
    """A tool invocation made by the assistant.

    Attributes:
        id: Identifier referenced by the matching ``ToolResultBlock``.
        name: Name of the tool to call.
        input: Decoded JSON arguments.
    """
    type: Literal["tool_use"]
    id: str
    name: str
    input: Any


class ToolResultBlock(TypedDict):
    """The result of running a tool, sent back by the user.

    Attributes:
        tool_use_id: Id of the ``ToolUseBlock`` this answers.
        content: String or list of content blocks.
        is_error: True when the tool failed or the user interrupted it.
    """
    type: Literal["tool_result"]
    tool_use_id: str
    content: Any
    is_error: NotRequired[bool]


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


class CanonicalMessage(TypedDict):
    """A conversation turn. ``content`` is a string or a list of blocks."""
    role: Literal["user", "assistant"]
    content: Union[str, list[ContentBlock]]


class ToolSpec(TypedDict):
    """A tool the model may call, described by a JSON schema."""
    name: str
    description: NotRequired[str]
    input_schema: dict[str, Any]


class CanonicalRequest(TypedDict):
    """An inbound Messages API request."""
    model: str
    messages: list[CanonicalMessage]
    stream: NotRequired[bool]
    system: NotRequired[Union[str, list[TextBlock]]]
    temperature: NotRequired[float]
    max_tokens: NotRequired[int]
    tools: NotRequired[list[ToolSpec]]


class CanonicalUsage(TypedDict, total=False):
    """Token usage reported back to the client, only the counts the provider gave."""
    input_tokens: int
    output_tokens: int


StopReason = Literal["end_turn", "max_tokens", "tool_use"]


class CanonicalResponse(TypedDict):
    """A buffered Messages API response."""
    id: str
    type: Literal["message"]
    role: Literal["assistant"]
    content: list[Union[TextBlock, ToolUseBlock]]
    model: NotRequired[str]
    stop_reason: NotRequired[StopReason]
    usage: NotRequired[CanonicalUsage]


class CanonicalStreamEvent(TypedDict, total=False):
    """A canonical stream event (``data:`` payload of one SSE frame).

    Attributes:
        type: message_start, content_block_start, content_block_delta,
            content_block_stop, message_delta, message_stop or error.
        index: Block index for the ``content_block_*`` events.
    """
    type: str
    index: int
    message: dict[str, Any]
    content_block: dict[str, Any]
    delta: dict[str, Any]
    usage: dict[str, Any]
    error: dict[str, Any]
