"""Core exceptions for the proxy."""

from typing import Optional


class ProxyError(Exception):
    """Base exception for proxy errors.

    Subclasses carry the HTTP status and the canonical error type they are
    reported with, so routes can render them without inspecting the class.
    """

    status_code = 500
    error_type = "api_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequestError(ProxyError):
    """Raised when an incoming request is invalid."""

    status_code = 400
    error_type = "invalid_request_error"

    def __init__(
        self,
        message: str,
        code: str = "invalid_request",
        param: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.param = param


class InvalidProviderPathError(InvalidRequestError):
    """Raised when the request path does not name a provider and a URL."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="invalid_path")


class ProviderNotFoundError(InvalidRequestError):
    """Raised when the path names a provider that is not registered."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Provider {provider} not supported", code="provider_not_supported")
        self.provider = provider


class MissingApiKeyError(ProxyError):
    """Raised when no credential could be found for the target provider."""

    status_code = 401
    error_type = "authentication_error"


class UpstreamTransportError(ProxyError):
    """Raised when the backend could not be reached or timed out.

    The message is for logs only; clients get a generic internal error.
    """

    def __init__(self, message: str, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out


class ConfigurationError(ProxyError):
    """Raised when there's an issue with the configuration."""
    pass
