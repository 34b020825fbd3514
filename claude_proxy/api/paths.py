"""Parsing of ``/{provider}/{provider_url}`` request paths."""

from __future__ import annotations

from typing import NamedTuple

from ..core.exceptions import InvalidProviderPathError

MESSAGES_SUFFIX = ("v1", "messages")


class ProviderPath(NamedTuple):
    provider: str
    base_url: str


def parse_provider_path(path: str) -> ProviderPath:
    """Split a request path into the provider name and the backend base URL.

    Claude clients append ``/v1/messages`` to whatever base URL they are
    given, so a trailing ``v1/messages`` is removed. The remaining segments
    are either a full URL (``https:/host/...``, the double slash having been
    collapsed) or a bare host path that gets an ``https://`` prefix.

    >>> parse_provider_path("/openai/api.openai.com/v1/chat/completions/v1/messages")
    ProviderPath(provider='openai', base_url='https://api.openai.com/v1/chat/completions')
    """
    parts = [part for part in path.split("/") if part]
    if len(parts) < 2:
        raise InvalidProviderPathError(
            "Invalid path format. Expected: /{type}/{provider_url}"
        )

    provider, url_parts = parts[0], parts[1:]
    if tuple(url_parts[-2:]) == MESSAGES_SUFFIX:
        url_parts = url_parts[:-2]
    if not url_parts:
        raise InvalidProviderPathError("Missing type or provider_url in path")

    if url_parts[0] in ("https:", "http:"):
        base_url = url_parts[0] + "//" + "/".join(url_parts[1:])
    else:
        base_url = "https://" + "/".join(url_parts)
    return ProviderPath(provider, base_url)
