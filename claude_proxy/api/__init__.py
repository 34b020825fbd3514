"""HTTP surface of the proxy."""

from .paths import ProviderPath, parse_provider_path

__all__ = ["ProviderPath", "parse_provider_path"]
