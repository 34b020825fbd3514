"""Provider registry.

Backends are looked up by the identifier in the request path. Adding a
backend means adding a :class:`Provider` subclass and registering it here.
"""

from ..core.exceptions import ProviderNotFoundError
from .base import Provider
from .gemini import GeminiProvider
from .openai import OpenAIProvider

PROVIDERS: dict[str, Provider] = {
    GeminiProvider.name: GeminiProvider(),
    OpenAIProvider.name: OpenAIProvider(),
}


def register_provider(provider: Provider) -> None:
    """Register (or replace) a provider under its ``name``."""
    if not provider.name:
        raise ValueError("provider name is required")
    PROVIDERS[provider.name] = provider


def get_provider(name: str) -> Provider:
    """Return the provider registered as ``name``.

    Raises:
        ProviderNotFoundError: Nothing is registered under ``name``.
    """
    provider = PROVIDERS.get(name)
    if provider is None:
        raise ProviderNotFoundError(name)
    return provider


__all__ = [
    "GeminiProvider",
    "OpenAIProvider",
    "PROVIDERS",
    "Provider",
    "get_provider",
    "register_provider",
]
