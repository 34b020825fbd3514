"""Tests for request path parsing and API key extraction."""

import pytest

from claude_proxy.api.paths import parse_provider_path
from claude_proxy.auth.api_key import extract_api_key
from claude_proxy.core.exceptions import InvalidProviderPathError, MissingApiKeyError


class TestParseProviderPath:
    """Tests for parse_provider_path()."""

    @pytest.mark.parametrize(
        "path, provider, base_url",
        [
            ("/gemini/generativelanguage.googleapis.com", "gemini", "https://generativelanguage.googleapis.com"),
            ("/gemini/generativelanguage.googleapis.com/v1/messages", "gemini", "https://generativelanguage.googleapis.com"),
            (
                "/openai/api.openai.com/v1/chat/completions/v1/messages",
                "openai",
                "https://api.openai.com/v1/chat/completions",
            ),
            ("/openai/http:/localhost:8000/v1/chat/completions", "openai", "http://localhost:8000/v1/chat/completions"),
            ("/openai/https:/api.example.test/v1/chat/completions", "openai", "https://api.example.test/v1/chat/completions"),
            ("//openai//api.example.test//v1/chat/completions", "openai", "https://api.example.test/v1/chat/completions"),
        ],
    )
    def test_valid_paths(self, path, provider, base_url):
        assert parse_provider_path(path) == (provider, base_url)

    def test_too_few_segments(self):
        with pytest.raises(InvalidProviderPathError, match="Invalid path format"):
            parse_provider_path("/openai")

    def test_only_messages_suffix(self):
        with pytest.raises(InvalidProviderPathError):
            parse_provider_path("/openai/v1/messages")


class TestExtractApiKey:
    """Tests for extract_api_key()."""

    def test_x_api_key_header_wins(self):
        headers = {"x-api-key": "header-key", "authorization": "Bearer bearer-key"}
        assert extract_api_key(headers, "openai", environ={"OPENAI_API_KEY": "env"}) == "header-key"

    def test_bearer_token(self):
        assert extract_api_key({"authorization": "Bearer bearer-key"}, "openai", environ={}) == "bearer-key"

    def test_other_authorization_schemes_are_ignored(self):
        with pytest.raises(MissingApiKeyError):
            extract_api_key({"authorization": "Basic abc"}, "openai", environ={})

    def test_provider_environment_variable(self):
        assert extract_api_key({}, "gemini", environ={"GEMINI_API_KEY": "env-key"}) == "env-key"

    def test_missing_everywhere(self):
        with pytest.raises(MissingApiKeyError) as exc_info:
            extract_api_key({}, "gemini", environ={"OPENAI_API_KEY": "wrong-provider"})
        assert exc_info.value.status_code == 401
