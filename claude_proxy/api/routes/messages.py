"""Anthropic-compatible Messages endpoint fronting the provider backends."""

import json
import logging
import time
import uuid
from typing import Any, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.requests import ClientDisconnect

from ...auth import SUPPORTED_METHODS, extract_api_key
from ...config_loader import ProxySettings
from ...core.exceptions import (
    InvalidRequestError,
    MissingApiKeyError,
    ProxyError,
    UpstreamTransportError,
)
from ...core.transport import send_provider_request
from ...messages.validation import validate_canonical_request
from ...providers import get_provider
from ..paths import parse_provider_path

logger = logging.getLogger("claude-proxy")

INTERNAL_ERROR_MESSAGE = "Internal server error"


def _anthropic_error_response(
    message: str,
    *,
    error_type: str = "invalid_request_error",
    status_code: int = 400,
    error_code: Optional[str] = None,
    param: Optional[str] = None,
    **extra: Any,
) -> JSONResponse:
    error: dict[str, Any] = {"type": error_type, "message": message}
    if error_code:
        error["code"] = error_code
    if param:
        error["param"] = param
    payload: dict[str, Any] = {"type": "error", "error": error}
    payload.update(extra)
    return JSONResponse(payload, status_code=status_code)


def _error_response_for(exc: ProxyError) -> JSONResponse:
    if isinstance(exc, InvalidRequestError):
        return _anthropic_error_response(
            exc.message,
            error_type=exc.error_type,
            status_code=exc.status_code,
            error_code=exc.code,
            param=exc.param,
        )
    if isinstance(exc, MissingApiKeyError):
        return _anthropic_error_response(
            exc.message,
            error_type=exc.error_type,
            status_code=exc.status_code,
            supported_methods=SUPPORTED_METHODS,
        )
    # Transport and internal failures never expose details to the client
    return _anthropic_error_response(
        INTERNAL_ERROR_MESSAGE, error_type="api_error", status_code=500
    )


def _settings_for(request: Request) -> ProxySettings:
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else ProxySettings()


async def proxy_messages(request: Request) -> Response:
    """POST /{provider}/{provider_url} - Messages API translated to a backend."""
    # Generate request ID for log correlation
    req_id = uuid.uuid4().hex[:8]
    start_time = time.perf_counter()
    settings = _settings_for(request)

    client_host = request.client.host if request.client else "unknown"
    logger.info(f"[{req_id}] Messages request from {client_host}: {request.url.path}")

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"[{req_id}] Full request URL: {request.url}")

    try:
        provider_name, base_url = parse_provider_path(request.url.path)
        provider = get_provider(provider_name)
        logger.info(f"[{req_id}] Received request for provider: {provider_name}, url: {base_url}")
        api_key = extract_api_key(request.headers, provider_name)

        try:
            body = await request.body()
        except ClientDisconnect:
            elapsed = time.perf_counter() - start_time
            logger.warning(f"[{req_id}] ClientDisconnect after {elapsed:.3f}s")
            return Response(status_code=499)  # Client Closed Request

        try:
            payload = json.loads(body or b"{}")
        except json.JSONDecodeError as exc:
            raise InvalidRequestError(f"Invalid JSON payload: {exc}", code="invalid_json") from exc

        canonical = validate_canonical_request(payload)
        provider_request = provider.build_request(canonical, base_url, api_key)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"[{req_id}] Forwarding to {provider.name}: url={provider_request.url}, "
                f"stream={provider_request.stream}, proxy={settings.proxy_url or 'none'}"
            )

        provider_response = await send_provider_request(
            provider_request,
            timeout=settings.timeout,
            proxy_url=settings.proxy_url,
        )
        response = await provider.translate_response(provider_response)
    except UpstreamTransportError as exc:
        elapsed = time.perf_counter() - start_time
        logger.error(f"[{req_id}] Backend unreachable after {elapsed:.3f}s: {exc.message}")
        return _error_response_for(exc)
    except ProxyError as exc:
        logger.warning(f"[{req_id}] Rejected request: {exc.message}")
        return _error_response_for(exc)
    except Exception as exc:
        logger.exception(f"[{req_id}] Error processing request: {exc}")
        return _anthropic_error_response(
            INTERNAL_ERROR_MESSAGE, error_type="api_error", status_code=500
        )

    elapsed = time.perf_counter() - start_time
    if isinstance(response, StreamingResponse):
        logger.info(
            f"[{req_id}] Starting streaming response from {provider.name}, "
            f"setup took {elapsed:.3f}s"
        )
    else:
        logger.info(
            f"[{req_id}] Completed non-streaming response from {provider.name}, "
            f"status={response.status_code}, took {elapsed:.3f}s"
        )
    return response
