"""Main FastAPI application for claude-proxy."""

import socket
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from .api.routes import health, proxy_messages
from .config_loader import ProxySettings, load_settings
from .logging import setup_logging
from .providers import PROVIDERS, OpenAIProvider, register_provider


def create_app(settings: Optional[ProxySettings] = None) -> FastAPI:
    """Factory function to create the FastAPI application.

    Args:
        settings: Process settings. Loaded from the config file and the
            environment when omitted.
    """
    if settings is None:
        settings = load_settings()
    logger = setup_logging(settings.debug)
    register_provider(OpenAIProvider(include_stream_usage=settings.openai_stream_usage))

    app = FastAPI(title="Claude Local Proxy")
    app.state.settings = settings

    app.get("/health")(health)
    app.post("/{provider}/{provider_url:path}")(proxy_messages)

    @app.on_event("startup")
    async def startup_event():
        logger.info("Claude Local Proxy starting up...")
        logger.info("Configured bind address %s:%s", settings.host, settings.port)
        if settings.host == "0.0.0.0":
            hostname = socket.gethostname()
            logger.info("Reachable on local network at http://%s:%s", hostname, settings.port)
        logger.info("Available providers: %s", sorted(PROVIDERS))
        logger.info("Backend timeout: %ss, outbound proxy: %s", settings.timeout, settings.proxy_url or "none")

    return app


def main() -> None:
    """Run the proxy with uvicorn."""
    load_dotenv()
    settings = load_settings()
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level="debug" if settings.debug else "info")


__all__ = ["create_app", "main"]
