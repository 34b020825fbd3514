"""OpenAI-compatible Chat Completions types."""

from typing import Any
from typing_extensions import TypedDict


class FunctionCall(TypedDict, total=False):
    """A function call within a tool call.

    Attributes:
        name: Name of the function to call. Can be None for streamed
            follow-up chunks where the name was already stated.
        arguments: JSON string containing the arguments. Some models emit
            single-quoted, JSON-like strings here.
    """
    name: str | None
    arguments: str | None


class ToolCall(TypedDict, total=False):
    """A tool call in a chat message or stream delta.

    Attributes:
        id: Unique identifier, echoed back by the ``tool`` message.
        type: Always "function".
        function: The function to call with its arguments.
        index: Position in the tool_calls array (streaming only).
    """
    id: str
    type: str
    function: FunctionCall
    index: int


class ChatMessage(TypedDict, total=False):
    """A message in a Chat Completions conversation."""
    role: str
    content: str | None
    tool_calls: list[ToolCall]
    tool_call_id: str


class FunctionDefinition(TypedDict, total=False):
    name: str
    description: str
    parameters: dict[str, Any]


class ChatTool(TypedDict):
    type: str
    function: FunctionDefinition


class ChatCompletionRequest(TypedDict, total=False):
    model: str
    messages: list[ChatMessage]
    stream: bool
    stream_options: dict[str, Any]
    tools: list[ChatTool]
    temperature: float
    max_tokens: int


class Usage(TypedDict, total=False):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class Choice(TypedDict, total=False):
    """A choice in a buffered response (``message``) or chunk (``delta``)."""
    index: int
    message: ChatMessage
    delta: ChatMessage
    finish_reason: str | None


class ChatCompletionResponse(TypedDict, total=False):
    id: str
    object: str
    model: str
    choices: list[Choice]
    usage: Usage
