"""claude-proxy - Claude Local Proxy

Serves the Anthropic Messages API and translates each call to a Gemini or
OpenAI-compatible backend named in the request path.

This module provides:
- create_app: FastAPI application factory
- Provider translators for Gemini and OpenAI Chat Completions
- Tool-call history reconciliation and streaming event translation

Example:
    >>> from claude_proxy import create_app
    >>> import uvicorn
    >>> uvicorn.run(create_app(), host="0.0.0.0", port=3000)
"""

from .config_loader import ProxySettings, load_config, load_settings
from .logging import logger, setup_logging
from .main import create_app, main

__version__ = "0.1.0"

__all__ = [
    "ProxySettings",
    "create_app",
    "load_config",
    "load_settings",
    "logger",
    "main",
    "setup_logging",
]
