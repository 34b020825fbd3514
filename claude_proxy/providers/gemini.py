"""Anthropic Messages <-> Gemini generateContent translation.

Key differences from the Messages format:
- Role "assistant" becomes "model"; roles must alternate, so consecutive
  same-role contents are merged.
- Tool calls are ``functionCall`` parts without ids; results are
  ``functionResponse`` parts addressed by function name.
- The system prompt goes to ``systemInstruction``; sampling parameters to
  ``generationConfig``.
- Streaming uses ``:streamGenerateContent?alt=sse``, one candidate chunk per
  SSE frame.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Mapping

from ..messages.arguments import decode_tool_arguments
from ..messages.schema import GEMINI_SCHEMA_RULES, clean_json_schema
from ..messages.stream import StreamCursor, add_text, add_tool_use, new_tool_use_id
from ..types import CanonicalRequest, CanonicalResponse
from ..types.gemini import Content, GenerateContentRequest, Part
from .base import ConvertedTurn, Provider, convert_system, map_usage

logger = logging.getLogger("claude-proxy")

API_VERSION = "v1beta"


def _as_args(value: Any) -> dict[str, Any]:
    """Gemini wants ``args`` as an object."""
    if isinstance(value, Mapping):
        return dict(value)
    if value is None:
        return {}
    return {"value": value}


class GeminiProvider(Provider):
    """Translator for the Gemini ``generateContent`` API."""

    name = "gemini"
    schema_rules = GEMINI_SCHEMA_RULES
    truncation_reasons = frozenset({"MAX_TOKENS"})

    def build_url(self, base_url: str, request: CanonicalRequest) -> str:
        base = base_url.rstrip("/")
        if not base.endswith(("/v1beta", "/v1")):
            base = f"{base}/{API_VERSION}"
        model = request["model"]
        if request.get("stream"):
            return f"{base}/models/{model}:streamGenerateContent?alt=sse"
        return f"{base}/models/{model}:generateContent"

    def build_headers(self, credential: str) -> dict[str, str]:
        return {
            "x-goog-api-key": credential,
            "Content-Type": "application/json",
        }

    def build_payload(self, request: CanonicalRequest) -> dict[str, Any]:
        payload: GenerateContentRequest = {
            "contents": self.convert_messages(request.get("messages", [])),
        }

        system = convert_system(request.get("system"))
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}

        declarations = self.convert_tools(request.get("tools"))
        if declarations:
            payload["tools"] = [{"functionDeclarations": declarations}]

        generation_config: dict[str, Any] = {}
        if request.get("temperature") is not None:
            generation_config["temperature"] = request["temperature"]
        if request.get("max_tokens") is not None:
            generation_config["maxOutputTokens"] = request["max_tokens"]
        if generation_config:
            payload["generationConfig"] = generation_config  # type: ignore[typeddict-item]
        return dict(payload)

    def convert_tools(self, tools: Any) -> list[dict[str, Any]]:
        if not tools:
            return []
        declarations = []
        for tool in tools:
            declaration: dict[str, Any] = {
                "name": tool.get("name", ""),
                "description": tool.get("description", ""),
            }
            parameters = clean_json_schema(tool.get("input_schema", {}), self.schema_rules)
            # Gemini rejects an object schema with no properties
            if parameters.get("properties") or parameters.get("type") not in (None, "object"):
                declaration["parameters"] = parameters
            declarations.append(declaration)
        return declarations

    def format_turn(self, turn: ConvertedTurn, tool_names: Mapping[str, str]) -> list[dict[str, Any]]:
        rendered: list[dict[str, Any]] = []

        # Function responses lead the user turn that carries them
        if turn.tool_results:
            rendered.append(
                {
                    "role": "user",
                    "parts": [
                        {
                            "functionResponse": {
                                "name": tool_names.get(result.tool_use_id, result.tool_use_id),
                                "response": {"content": result.content},
                            }
                        }
                        for result in turn.tool_results
                    ],
                }
            )

        parts: list[Part] = []
        text = turn.text
        if text:
            parts.append({"text": text})
        for call in turn.tool_calls:
            parts.append({"functionCall": {"name": call.name, "args": _as_args(call.input)}})
        if parts:
            role = "model" if turn.role == "assistant" else "user"
            rendered.append({"role": role, "parts": parts})
        return rendered

    def finalize_messages(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        merged: list[dict[str, Any]] = []
        for content in messages:
            if merged and merged[-1]["role"] == content["role"]:
                merged[-1]["parts"].extend(content["parts"])
            else:
                merged.append({"role": content["role"], "parts": list(content["parts"])})
        return merged

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    @staticmethod
    def _parts(data: Mapping[str, Any]) -> tuple[list[Part], Any]:
        candidates = data.get("candidates") or []
        if not candidates:
            return [], None
        candidate = candidates[0]
        content: Content = candidate.get("content") or {}
        return list(content.get("parts") or []), candidate.get("finishReason")

    @staticmethod
    def _usage(data: Mapping[str, Any]) -> dict[str, int] | None:
        return map_usage(data.get("usageMetadata"), "promptTokenCount", "candidatesTokenCount")

    def to_canonical_response(self, data: Mapping[str, Any]) -> CanonicalResponse:
        response = self.new_response(data.get("modelVersion"))
        parts, finish_reason = self._parts(data)

        texts = [part["text"] for part in parts if "text" in part and not part.get("thought")]
        if any(texts):
            response["content"].append({"type": "text", "text": "".join(texts)})

        calls = [part["functionCall"] for part in parts if "functionCall" in part]
        for call in calls:
            response["content"].append(
                {
                    "type": "tool_use",
                    "id": new_tool_use_id(),
                    "name": call.get("name", ""),
                    "input": decode_tool_arguments(call.get("args")),
                }
            )

        if data.get("candidates"):
            response["stop_reason"] = self.stop_reason_for(finish_reason, bool(calls))

        usage = self._usage(data)
        if usage is not None:
            response["usage"] = usage
        return response

    def translate_stream_frame(
        self, frame: Mapping[str, Any], cursor: StreamCursor
    ) -> tuple[list[bytes], StreamCursor]:
        events: list[bytes] = []

        usage = self._usage(frame)
        if usage is not None:
            cursor = replace(cursor, usage=usage)

        parts, finish_reason = self._parts(frame)
        for part in parts:
            if part.get("thought"):
                continue
            if part.get("text"):
                new_events, cursor = add_text(cursor, part["text"])
                events.extend(new_events)
            elif "functionCall" in part:
                call = part["functionCall"]
                if not call.get("name"):
                    logger.debug("Skipping unnamed function call part: %s", call)
                    continue
                new_events, cursor = add_tool_use(
                    cursor, new_tool_use_id(), call["name"], decode_tool_arguments(call.get("args"))
                )
                events.extend(new_events)

        if finish_reason:
            cursor = replace(cursor, stop_reason=self.stop_reason_for(finish_reason, False))
        return events, cursor

    def frame_model(self, frame: Mapping[str, Any]) -> str:
        return str(frame.get("modelVersion") or "")
