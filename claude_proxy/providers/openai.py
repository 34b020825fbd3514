"""Anthropic Messages <-> OpenAI Chat Completions translation.

Key mappings:
- Anthropic system (top-level) -> OpenAI system message
- Anthropic content blocks -> OpenAI content string / tool_calls / tool messages
- Anthropic tools -> OpenAI function tools
- OpenAI finish_reason -> Anthropic stop_reason

Reference:
- Anthropic Messages API: https://docs.anthropic.com/en/api/messages
- OpenAI Chat Completions: https://platform.openai.com/docs/api-reference/chat
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Any, Mapping

from ..messages.arguments import decode_tool_arguments
from ..messages.schema import OPENAI_SCHEMA_RULES, clean_json_schema
from ..messages.stream import StreamCursor, add_text, add_tool_use, new_tool_use_id
from ..types import CanonicalRequest, CanonicalResponse
from ..types.openai import ChatCompletionRequest, ChatMessage, ChatTool, ToolCall
from .base import ConvertedTurn, Provider, convert_system, map_usage

logger = logging.getLogger("claude-proxy")


class OpenAIProvider(Provider):
    """Translator for OpenAI-compatible ``/chat/completions`` backends.

    The base URL given by the router is the complete endpoint URL and is
    used as-is.

    With ``include_stream_usage`` set, streamed requests ask for a trailing
    usage chunk via ``stream_options``. Servers that reject the field need it
    turned off.
    """

    name = "openai"
    schema_rules = OPENAI_SCHEMA_RULES
    truncation_reasons = frozenset({"length"})

    def __init__(self, include_stream_usage: bool = True) -> None:
        self.include_stream_usage = include_stream_usage

    def build_url(self, base_url: str, request: CanonicalRequest) -> str:
        return base_url

    def build_headers(self, credential: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credential}",
            "Content-Type": "application/json",
        }

    def build_payload(self, request: CanonicalRequest) -> dict[str, Any]:
        messages: list[dict[str, Any]] = []
        system = convert_system(request.get("system"))
        if system:
            messages.append({"role": "system", "content": system})
        messages.extend(self.convert_messages(request.get("messages", [])))

        payload: ChatCompletionRequest = {
            "model": request["model"],
            "messages": messages,
            "stream": bool(request.get("stream", False)),
        }
        if payload["stream"] and self.include_stream_usage:
            payload["stream_options"] = {"include_usage": True}

        tools = self.convert_tools(request.get("tools"))
        if tools:
            payload["tools"] = tools

        if request.get("temperature") is not None:
            payload["temperature"] = request["temperature"]
        if request.get("max_tokens") is not None:
            payload["max_tokens"] = request["max_tokens"]
        return dict(payload)

    def convert_tools(self, tools: Any) -> list[ChatTool]:
        """Anthropic ``{name, description, input_schema}`` -> OpenAI function tools."""
        if not tools:
            return []
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.get("name", ""),
                    "description": tool.get("description", ""),
                    "parameters": clean_json_schema(tool.get("input_schema", {}), self.schema_rules),
                },
            }
            for tool in tools
        ]

    def format_turn(self, turn: ConvertedTurn, tool_names: Mapping[str, str]) -> list[dict[str, Any]]:
        rendered: list[dict[str, Any]] = []
        if turn.texts or turn.tool_calls:
            message: ChatMessage = {"role": turn.role}
            if turn.texts:
                message["content"] = turn.text
            if turn.tool_calls:
                message["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": json.dumps(call.input, ensure_ascii=False),
                        },
                    }
                    for call in turn.tool_calls
                ]
            rendered.append(dict(message))

        # Successful results follow as separate tool messages
        for result in turn.tool_results:
            rendered.append(
                {"role": "tool", "tool_call_id": result.tool_use_id, "content": result.content}
            )
        return rendered

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def _tool_use_block(self, call: ToolCall) -> dict[str, Any]:
        function = call.get("function") or {}
        return {
            "type": "tool_use",
            "id": call.get("id") or new_tool_use_id(),
            "name": function.get("name") or "",
            "input": decode_tool_arguments(function.get("arguments") or "{}"),
        }

    def to_canonical_response(self, data: Mapping[str, Any]) -> CanonicalResponse:
        response = self.new_response(data.get("model"))
        choices = data.get("choices") or []

        if choices:
            choice = choices[0]
            message = choice.get("message") or {}
            content = message.get("content")
            if content:
                response["content"].append({"type": "text", "text": content})

            tool_calls = message.get("tool_calls") or []
            for call in tool_calls:
                response["content"].append(self._tool_use_block(call))
            response["stop_reason"] = self.stop_reason_for(
                choice.get("finish_reason"), bool(tool_calls)
            )

        usage = map_usage(data.get("usage"), "prompt_tokens", "completion_tokens")
        if usage is not None:
            response["usage"] = usage
        return response

    def translate_stream_frame(
        self, frame: Mapping[str, Any], cursor: StreamCursor
    ) -> tuple[list[bytes], StreamCursor]:
        events: list[bytes] = []

        usage = map_usage(frame.get("usage"), "prompt_tokens", "completion_tokens")
        if usage is not None:
            cursor = replace(cursor, usage=usage)

        choices = frame.get("choices") or []
        if not choices:
            return events, cursor

        choice = choices[0]
        delta = choice.get("delta") or {}

        content = delta.get("content")
        if content:
            new_events, cursor = add_text(cursor, content)
            events.extend(new_events)

        for call in delta.get("tool_calls") or []:
            function = call.get("function") or {}
            name = function.get("name")
            arguments = function.get("arguments")
            if not (name and arguments):
                logger.debug("Skipping partial tool call fragment: %s", call)
                continue
            new_events, cursor = add_tool_use(
                cursor,
                call.get("id") or new_tool_use_id(),
                name,
                decode_tool_arguments(arguments),
            )
            events.extend(new_events)

        finish_reason = choice.get("finish_reason")
        if finish_reason:
            cursor = replace(cursor, stop_reason=self.stop_reason_for(finish_reason, False))
        return events, cursor
