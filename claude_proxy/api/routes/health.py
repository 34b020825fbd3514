"""Liveness endpoint."""

from fastapi.responses import JSONResponse


async def health() -> JSONResponse:
    """GET /health"""
    return JSONResponse({"status": "ok", "message": "Claude Local Proxy is running"})
