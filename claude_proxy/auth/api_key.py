"""Credential lookup for outbound provider calls."""

from __future__ import annotations

import logging
import os
from typing import Mapping, Optional

from ..core.exceptions import MissingApiKeyError

logger = logging.getLogger("claude-proxy")

DEFAULT_HEADER_NAME = "x-api-key"

SUPPORTED_METHODS = ["x-api-key header", "environment variable"]


def api_key_env_var(provider: str) -> str:
    """Environment variable holding the fallback key, e.g. ``GEMINI_API_KEY``."""
    return f"{provider.upper()}_API_KEY"


def extract_api_key(
    headers: Mapping[str, str],
    provider: str,
    environ: Optional[Mapping[str, str]] = None,
) -> str:
    """Return the credential to forward to ``provider``.

    Looks at the ``x-api-key`` header first, then ``Authorization: Bearer``
    (what Claude clients send), then ``{PROVIDER}_API_KEY`` in the
    environment.

    Raises:
        MissingApiKeyError: None of the three sources has a key.
    """
    api_key = headers.get(DEFAULT_HEADER_NAME)

    if not api_key:
        auth_header = headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            api_key = auth_header[7:].strip()

    if not api_key:
        env = os.environ if environ is None else environ
        api_key = env.get(api_key_env_var(provider))
        if api_key:
            logger.debug("Using API key from %s", api_key_env_var(provider))

    if not api_key:
        raise MissingApiKeyError(
            "Missing API key. Please provide it via x-api-key header or environment "
            "variable (GEMINI_API_KEY or OPENAI_API_KEY)"
        )
    return api_key
