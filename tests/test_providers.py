"""Tests for the provider registry and shared translation helpers."""

import pytest

from claude_proxy.core.exceptions import ProviderNotFoundError
from claude_proxy.providers import PROVIDERS, GeminiProvider, OpenAIProvider, get_provider, register_provider
from claude_proxy.providers.base import ConvertedTurn, convert_system


class TestRegistry:
    """Tests for provider lookup."""

    def test_builtin_providers(self):
        assert isinstance(get_provider("openai"), OpenAIProvider)
        assert isinstance(get_provider("gemini"), GeminiProvider)

    def test_unknown_provider(self):
        with pytest.raises(ProviderNotFoundError):
            get_provider("mistral")

    def test_register_provider(self, monkeypatch):
        monkeypatch.setattr("claude_proxy.providers.PROVIDERS", dict(PROVIDERS))

        class CompatProvider(OpenAIProvider):
            name = "compat"

        register_provider(CompatProvider())
        assert isinstance(get_provider("compat"), CompatProvider)

    def test_register_requires_name(self):
        class Nameless(OpenAIProvider):
            name = ""

        with pytest.raises(ValueError):
            register_provider(Nameless())


class TestSharedHelpers:
    """Tests for helpers in providers.base."""

    def test_convert_system(self):
        assert convert_system(None) is None
        assert convert_system("") is None
        assert convert_system("s") == "s"
        assert convert_system([{"type": "text", "text": "a"}, {"type": "image"}]) == "a"

    def test_turn_text_is_newline_joined(self):
        assert ConvertedTurn(role="user", texts=["a", "b"]).text == "a\nb"

    def test_stop_reason_precedence(self):
        provider = OpenAIProvider()
        assert provider.stop_reason_for("length", True) == "tool_use"
        assert provider.stop_reason_for("length", False) == "max_tokens"
        assert provider.stop_reason_for("stop", False) == "end_turn"
        assert provider.stop_reason_for(None, False) == "end_turn"
