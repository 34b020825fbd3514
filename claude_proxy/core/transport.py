"""Outbound HTTP transport shim.

Sends a ready-built provider request with httpx and normalizes what comes
back into a :class:`ProviderResponse`, either buffered or as an open byte
stream. This module knows nothing about any wire protocol beyond the
``text/event-stream`` content type.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Mapping, Optional
from urllib.parse import urlparse

import httpx

from ..logging import safe_headers_for_log
from .exceptions import UpstreamTransportError

logger = logging.getLogger("claude-proxy")

DEFAULT_TIMEOUT = 60.0

HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}


# In-process transports keyed by lowercased netloc; tests plug fake backends in here
_HOST_TRANSPORTS: dict[str, httpx.AsyncBaseTransport] = {}


def register_host_transport(host: str, transport: httpx.AsyncBaseTransport) -> None:
    """Route every backend call to ``host`` (e.g. 'api.openai.test') through ``transport``."""
    if not host:
        raise ValueError("host is required")
    _HOST_TRANSPORTS[host.strip().lower()] = transport
    logger.debug("Registered transport for host '%s'", host)


def register_transport_for_url(url: str, transport: httpx.AsyncBaseTransport) -> None:
    register_host_transport(urlparse(url).netloc, transport)


def clear_host_transports() -> None:
    _HOST_TRANSPORTS.clear()


def transport_for_url(url: str) -> Optional[httpx.AsyncBaseTransport]:
    """Registered transport for the URL's host, if any."""
    host = urlparse(url).netloc if url else ""
    if not host:
        return None
    return _HOST_TRANSPORTS.get(host.lower())


@dataclass
class ProviderHttpRequest:
    """A ready-to-send request for a provider backend."""

    method: str
    url: str
    headers: dict[str, str]
    body: bytes
    stream: bool = False


@dataclass
class ProviderResponse:
    """Normalized backend response.

    Exactly one of ``body`` (buffered) and ``stream`` (open byte iterator)
    is set. A streamed response owns its upstream connection until
    :meth:`aclose` is awaited.
    ``deadline`` is the event-loop time by which the whole exchange, stream
    included, must be over.
    """

    status_code: int
    headers: Mapping[str, str]
    body: Optional[bytes] = None
    stream: Optional[AsyncIterator[bytes]] = None
    deadline: Optional[float] = None
    _closer: Optional[Callable[[], Awaitable[None]]] = field(default=None, repr=False)

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "") or ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_event_stream(self) -> bool:
        return "text/event-stream" in self.content_type.lower()

    async def aread(self) -> bytes:
        """Return the full body, draining and closing the stream if needed."""
        if self.body is not None:
            return self.body
        chunks = bytearray()
        try:
            if self.stream is not None:
                async for chunk in self.stream:
                    chunks.extend(chunk)
        finally:
            await self.aclose()
        self.body = bytes(chunks)
        self.stream = None
        return self.body

    async def aclose(self) -> None:
        closer, self._closer = self._closer, None
        if closer is not None:
            await closer()


def filter_response_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Filter response headers, removing hop-by-hop headers."""
    filtered: dict[str, str] = {}
    for key, value in headers.items():
        key_lower = key.lower()
        # Drop headers Starlette will recompute or that no longer match the payload
        if key_lower in HOP_BY_HOP_HEADERS or key_lower in {
            "content-length",
            "transfer-encoding",
            "content-encoding",
        }:
            continue
        filtered[key] = value
    return filtered


def format_httpx_error(exc: httpx.HTTPError, url: str, timeout: float) -> str:
    """Produce a detailed, log-only description of an httpx error."""
    parts = [exc.__class__.__name__]
    message = str(exc).strip()
    if message:
        parts.append(message)
    parts.append(f"url={url}")
    if isinstance(exc, httpx.TimeoutException):
        parts.append(f"timeout={timeout}s")
    return "; ".join(parts)


async def _open(
    request: ProviderHttpRequest,
    timeout: float,
    proxy_url: Optional[str],
    deadline: float,
) -> ProviderResponse:
    transport = transport_for_url(request.url)
    # A registered in-process transport always wins over the outbound proxy
    proxy = proxy_url if transport is None else None
    client = httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        transport=transport,
        proxy=proxy,
        trust_env=False,
        follow_redirects=True,
    )
    try:
        outbound = client.build_request(
            request.method, request.url, headers=request.headers, content=request.body
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Sending %s %s (proxy=%s) headers=%s",
                outbound.method,
                outbound.url,
                bool(proxy),
                safe_headers_for_log(outbound.headers),
            )
        resp = await client.send(outbound, stream=True)
    except BaseException:
        await client.aclose()
        raise

    closed = False

    async def close_stream() -> None:
        nonlocal closed
        if closed:
            return
        closed = True
        await resp.aclose()
        await client.aclose()

    logger.debug("Response status: %s", resp.status_code)
    response = ProviderResponse(
        status_code=resp.status_code,
        headers=resp.headers,
        stream=resp.aiter_bytes(),
        deadline=deadline,
        _closer=close_stream,
    )
    if not (response.is_success and response.is_event_stream):
        await response.aread()
    return response


async def _open_before(
    deadline: float,
    request: ProviderHttpRequest,
    timeout: float,
    proxy_url: Optional[str],
) -> ProviderResponse:
    remaining = deadline - asyncio.get_running_loop().time()
    return await asyncio.wait_for(_open(request, timeout, proxy_url, deadline), remaining)


async def send_provider_request(
    request: ProviderHttpRequest,
    timeout: float = DEFAULT_TIMEOUT,
    proxy_url: Optional[str] = None,
) -> ProviderResponse:
    """Send a provider request and normalize the response.

    Successful ``text/event-stream`` responses come back open; everything
    else is read fully and closed. When ``proxy_url`` is set and the proxied
    attempt fails at transport level, the call is made once more directly.

    ``timeout`` bounds each network operation and, as a deadline, the whole
    exchange: both attempts and the reading of a streamed body.

    Raises:
        UpstreamTransportError: No response could be obtained.
    """
    deadline = asyncio.get_running_loop().time() + timeout
    try:
        if proxy_url:
            try:
                return await _open_before(deadline, request, timeout, proxy_url)
            except httpx.TransportError as exc:
                logger.warning(
                    "Proxy request failed (%s), falling back to direct connection",
                    format_httpx_error(exc, request.url, timeout),
                )
        return await _open_before(deadline, request, timeout, None)
    except asyncio.TimeoutError as exc:
        detail = f"deadline of {timeout}s exceeded; url={request.url}"
        logger.error("Backend request timed out: %s", detail)
        raise UpstreamTransportError(detail, timed_out=True) from exc
    except httpx.TimeoutException as exc:
        detail = format_httpx_error(exc, request.url, timeout)
        logger.error("Backend request timed out: %s", detail)
        raise UpstreamTransportError(detail, timed_out=True) from exc
    except httpx.HTTPError as exc:
        detail = format_httpx_error(exc, request.url, timeout)
        logger.error("Backend request failed: %s", detail)
        raise UpstreamTransportError(detail) from exc
