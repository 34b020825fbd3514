"""Type definitions for the proxy."""

from .messages import (
    CanonicalMessage,
    CanonicalRequest,
    CanonicalResponse,
    CanonicalStreamEvent,
    CanonicalUsage,
    ContentBlock,
    StopReason,
    TextBlock,
    ToolResultBlock,
    ToolSpec,
    ToolUseBlock,
)

__all__ = [
    "CanonicalMessage",
    "CanonicalRequest",
    "CanonicalResponse",
    "CanonicalStreamEvent",
    "CanonicalUsage",
    "ContentBlock",
    "StopReason",
    "TextBlock",
    "ToolResultBlock",
    "ToolSpec",
    "ToolUseBlock",
]
