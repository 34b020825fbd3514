"""Provider contract shared by every backend.

A provider is a capability pair:

- :meth:`Provider.build_request` maps a canonical request to a ready-to-send
  :class:`ProviderHttpRequest`;
- :meth:`Provider.translate_response` maps what the backend answered to the
  canonical response, streamed or buffered, chosen by content type.

The conversation walk (reconciliation, text accumulation, recoding of failed
tool calls) is shared here; subclasses only render the provider's own
message, tool and response shapes.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from fastapi import Response
from fastapi.responses import JSONResponse, StreamingResponse

from ..core.transport import ProviderHttpRequest, ProviderResponse, filter_response_headers
from ..messages.reconciler import (
    classify_result,
    reconcile,
    stringify_result_content,
    successful_result_ids,
)
from ..messages.schema import SchemaRules
from ..messages.stream import StreamCursor, new_message_id, translate_stream
from ..types import CanonicalRequest, CanonicalResponse, StopReason

logger = logging.getLogger("claude-proxy")

INTERRUPTED_FEEDBACK = (
    "[User provided feedback: The previous action was interrupted. Please pay attention "
    "to the new user input and adjust your approach accordingly.]"
)


def interrupted_call_text(name: str) -> str:
    return f"[User interrupted: {name} operation was cancelled by user]"


def tool_error_text(content: str) -> str:
    return f"[Tool execution error: {content}]"


@dataclass
class ToolCallSpec:
    """A tool call that will be sent to the provider."""

    id: str
    name: str
    input: Any


@dataclass
class ToolResultSpec:
    """A successful tool result that will be sent to the provider."""

    tool_use_id: str
    content: str


@dataclass
class ConvertedTurn:
    """One canonical message, flattened for rendering by a provider.

    Attributes:
        role: "assistant" or "user".
        texts: Text lines in original order, including the commentary that
            replaces failed tool calls and erroring results.
        tool_calls: Calls that have a successful result.
        tool_results: Successful results, each rendered as its own message.
    """

    role: str
    texts: list[str] = field(default_factory=list)
    tool_calls: list[ToolCallSpec] = field(default_factory=list)
    tool_results: list[ToolResultSpec] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(self.texts)


def convert_system(system: Any) -> Optional[str]:
    """Flatten a top-level ``system`` (string or text blocks) to one string."""
    if system is None:
        return None
    if isinstance(system, str):
        return system or None

    text_parts: list[str] = []
    for block in system:
        if isinstance(block, Mapping) and block.get("type") == "text":
            text_parts.append(block.get("text", ""))
        else:
            logger.warning("Non-text block in system parameter: %r", block)
    return "\n".join(text_parts) if text_parts else None


def map_usage(
    raw: Any, input_key: str, output_key: str
) -> Optional[dict[str, int]]:
    """Copy the token counts a provider actually reported.

    Missing counts stay missing; ``None`` when neither is present.
    """
    if not isinstance(raw, Mapping):
        return None
    usage: dict[str, int] = {}
    for source, target in ((input_key, "input_tokens"), (output_key, "output_tokens")):
        value = raw.get(source)
        if isinstance(value, int) and not isinstance(value, bool):
            usage[target] = value
    return usage or None


class Provider(ABC):
    """Base class for backend translators."""

    #: Registry key, also used for ``{NAME}_API_KEY`` lookups
    name: str = ""
    schema_rules: SchemaRules = SchemaRules()
    #: Provider finish indicators that mean the output was truncated
    truncation_reasons: frozenset[str] = frozenset()

    # ------------------------------------------------------------------
    # Request direction
    # ------------------------------------------------------------------

    def build_request(
        self, request: CanonicalRequest, base_url: str, credential: str
    ) -> ProviderHttpRequest:
        """Build the outbound request for ``request``."""
        payload = self.build_payload(request)
        stream = bool(request.get("stream"))
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        return ProviderHttpRequest(
            method="POST",
            url=self.build_url(base_url, request),
            headers=self.build_headers(credential),
            body=body,
            stream=stream,
        )

    def convert_messages(self, messages: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """Reconcile the history and render it as provider messages."""
        cleaned = reconcile(messages)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "convert_messages - cleaned messages: %s",
                json.dumps(cleaned, ensure_ascii=False, default=str),
            )
        successful = successful_result_ids(cleaned)
        logger.debug("convert_messages - successful tool result ids: %s", sorted(successful))

        tool_names: dict[str, str] = {}
        provider_messages: list[dict[str, Any]] = []
        for message in cleaned:
            turn = self._flatten_message(message, successful, tool_names)
            provider_messages.extend(self.format_turn(turn, tool_names))
        return self.finalize_messages(provider_messages)

    def _flatten_message(
        self,
        message: Mapping[str, Any],
        successful: set[str],
        tool_names: dict[str, str],
    ) -> ConvertedTurn:
        role = "assistant" if message.get("role") == "assistant" else "user"
        content = message.get("content")
        turn = ConvertedTurn(role=role)

        if isinstance(content, str):
            turn.texts.append(content)
            return turn

        for block in content or []:
            block_type = block.get("type")
            if block_type == "text":
                turn.texts.append(block.get("text", ""))
            elif block_type == "tool_use":
                tool_id = block.get("id", "")
                name = block.get("name", "")
                tool_names[tool_id] = name
                if tool_id in successful:
                    turn.tool_calls.append(
                        ToolCallSpec(id=tool_id, name=name, input=block.get("input", {}))
                    )
                else:
                    logger.debug("Tool call %s has no successful result, converting to text", tool_id)
                    turn.texts.append(interrupted_call_text(name))
            elif block_type == "tool_result":
                kind = classify_result(block)
                rendered = stringify_result_content(block.get("content"))
                if kind == "success":
                    turn.tool_results.append(
                        ToolResultSpec(tool_use_id=block.get("tool_use_id", ""), content=rendered)
                    )
                elif kind == "interrupted":
                    turn.texts.append(INTERRUPTED_FEEDBACK)
                else:
                    turn.texts.append(tool_error_text(rendered))
            else:
                logger.debug("Dropping unsupported content block type during translation: %s", block_type)
        return turn

    def finalize_messages(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Hook for provider-wide fixups of the rendered message list."""
        return messages

    @abstractmethod
    def build_url(self, base_url: str, request: CanonicalRequest) -> str:
        ...

    @abstractmethod
    def build_headers(self, credential: str) -> dict[str, str]:
        ...

    @abstractmethod
    def build_payload(self, request: CanonicalRequest) -> dict[str, Any]:
        ...

    @abstractmethod
    def format_turn(self, turn: ConvertedTurn, tool_names: Mapping[str, str]) -> list[dict[str, Any]]:
        """Render one flattened canonical message as provider messages."""

    # ------------------------------------------------------------------
    # Response direction
    # ------------------------------------------------------------------

    async def translate_response(self, response: ProviderResponse) -> Response:
        """Map a backend response to the outbound canonical response."""
        if not response.is_success:
            body = await response.aread()
            logger.warning("%s backend returned status %s, relaying", self.name, response.status_code)
            return Response(
                content=body,
                status_code=response.status_code,
                headers=filter_response_headers(response.headers),
            )

        if response.is_event_stream:
            return StreamingResponse(
                translate_stream(self, response),
                status_code=response.status_code,
                media_type="text/event-stream",
                headers={"cache-control": "no-cache"},
            )

        body = await response.aread()
        try:
            data = json.loads(body)
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse %s response: %s", self.name, exc)
            return Response(
                content=body,
                status_code=response.status_code,
                headers=filter_response_headers(response.headers),
            )
        return JSONResponse(self.to_canonical_response(data), status_code=response.status_code)

    def stop_reason_for(self, finish_reason: Any, has_tool_calls: bool) -> StopReason:
        if has_tool_calls:
            return "tool_use"
        if finish_reason in self.truncation_reasons:
            return "max_tokens"
        return "end_turn"

    def new_response(self, model: Optional[str] = None) -> CanonicalResponse:
        response: CanonicalResponse = {
            "id": new_message_id(),
            "type": "message",
            "role": "assistant",
            "content": [],
        }
        if model:
            response["model"] = model
        return response

    @abstractmethod
    def to_canonical_response(self, data: Mapping[str, Any]) -> CanonicalResponse:
        """Map a buffered provider response body to a canonical response."""

    @abstractmethod
    def translate_stream_frame(
        self, frame: Mapping[str, Any], cursor: StreamCursor
    ) -> tuple[list[bytes], StreamCursor]:
        """Translate one parsed provider stream frame."""

    def frame_model(self, frame: Mapping[str, Any]) -> str:
        """Model name to report in ``message_start``."""
        return str(frame.get("model") or "")
