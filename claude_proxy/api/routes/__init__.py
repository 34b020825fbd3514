"""API routes for the proxy."""

from .health import health
from .messages import proxy_messages

__all__ = ["health", "proxy_messages"]
