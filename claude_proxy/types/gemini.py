"""Gemini ``generateContent`` types."""

from typing import Any
from typing_extensions import TypedDict


class FunctionCallPart(TypedDict, total=False):
    name: str
    args: dict[str, Any]


class FunctionResponsePart(TypedDict, total=False):
    name: str
    response: dict[str, Any]


class Part(TypedDict, total=False):
    """One part of a Gemini content; exactly one field is set."""
    text: str
    functionCall: FunctionCallPart
    functionResponse: FunctionResponsePart


class Content(TypedDict, total=False):
    """A conversation turn. Roles are "user" and "model"."""
    role: str
    parts: list[Part]


class FunctionDeclaration(TypedDict, total=False):
    name: str
    description: str
    parameters: dict[str, Any]


class GenerationConfig(TypedDict, total=False):
    temperature: float
    maxOutputTokens: int


class GenerateContentRequest(TypedDict, total=False):
    contents: list[Content]
    systemInstruction: Content
    tools: list[dict[str, list[FunctionDeclaration]]]
    generationConfig: GenerationConfig


class Candidate(TypedDict, total=False):
    content: Content
    finishReason: str
    index: int


class UsageMetadata(TypedDict, total=False):
    promptTokenCount: int
    candidatesTokenCount: int
    totalTokenCount: int


class GenerateContentResponse(TypedDict, total=False):
    candidates: list[Candidate]
    usageMetadata: UsageMetadata
    modelVersion: str
