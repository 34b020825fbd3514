"""Core module initialization."""

from .exceptions import (
    ConfigurationError,
    InvalidProviderPathError,
    InvalidRequestError,
    MissingApiKeyError,
    ProviderNotFoundError,
    ProxyError,
    UpstreamTransportError,
)
from .transport import (
    ProviderHttpRequest,
    ProviderResponse,
    filter_response_headers,
    format_httpx_error,
    send_provider_request,
)

__all__ = [
    "ConfigurationError",
    "InvalidProviderPathError",
    "InvalidRequestError",
    "MissingApiKeyError",
    "ProviderHttpRequest",
    "ProviderNotFoundError",
    "ProviderResponse",
    "ProxyError",
    "UpstreamTransportError",
    "filter_response_headers",
    "format_httpx_error",
    "send_provider_request",
]
