"""FastAPI application for the relay.

This module provides:
- create_app: application factory wired from a RelayConfig
- /healthz: liveness and configured entity listing
- catch-all 404 with usage hints
- error mapping from RelayError to {"ok": false, "error": ...}
"""

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from webhook_relay import __version__
from webhook_relay.api.webhooks import WebhookRelay, create_webhook_router
from webhook_relay.config import RelayConfig
from webhook_relay.errors import ConfigFault, RelayError
from webhook_relay.observability.hooks import RelayObserver
from webhook_relay.webhooks.forwarder import Forwarder
from webhook_relay.webhooks.resolver import AddressingConvention

logger = structlog.get_logger(__name__)

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

_USAGE_PATTERNS = {
    AddressingConvention.SOURCE_FIRST: (
        "POST {prefix}/:source/hosts/:host",
        "POST {prefix}/:source/:host",
    ),
    AddressingConvention.DESTINATION_FIRST: (
        "POST {prefix}/:host/apps/:source",
        "POST {prefix}/:host/:source",
    ),
    AddressingConvention.FIXED: ("POST {prefix}",),
}


def usage_lines(config: RelayConfig) -> list[str]:
    """Usage hints listed in the not-found response."""
    return [
        pattern.format(prefix=mount.prefix)
        for mount in config.routes
        for pattern in _USAGE_PATTERNS[mount.convention]
    ]


def create_app(
    config: RelayConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    observer: RelayObserver | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Validated relay configuration.
        transport: Outbound HTTP transport (defaults to httpx's pool).
        observer: Lifecycle log hooks (one is created if not provided).

    Returns:
        Configured FastAPI application.
    """
    observer = observer or RelayObserver(config.service_name)
    client = httpx.AsyncClient(transport=transport, follow_redirects=False)

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # noqa: ARG001
        """Application lifespan handler."""
        logger.info(
            "relay_starting",
            service=config.service_name,
            host=config.host,
            port=config.port,
        )
        yield
        await client.aclose()
        logger.info("relay_shutting_down", service=config.service_name)

    app = FastAPI(
        title=config.service_name,
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    if config.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(config.allowed_origins),
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )

    @app.exception_handler(RelayError)
    async def relay_error_handler(
        request: Request, exc: RelayError  # noqa: ARG001
    ) -> JSONResponse:
        if isinstance(exc, ConfigFault):
            observer.config_fault(exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception  # noqa: ARG001
    ) -> JSONResponse:
        logger.error("unhandled_exception", error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "internal_error"},
        )

    relay = WebhookRelay(config, Forwarder(client), observer)
    register_routes(app, config, relay, observer)

    return app


def register_routes(
    app: FastAPI,
    config: RelayConfig,
    relay: WebhookRelay,
    observer: RelayObserver,
) -> None:
    """Register all routes on the application.

    The catch-all is registered last so every configured route wins.
    """

    @app.get("/healthz", tags=["Health"])
    async def healthz() -> dict[str, Any]:
        """Liveness check listing the configured entities."""
        return {
            "ok": True,
            "service": config.service_name,
            "sources": config.plain_source_keys,
            "apps": config.app_keys,
            "hosts": list(config.destinations),
            "routes": [mount.pattern for mount in config.routes],
        }

    for mount in config.routes:
        app.include_router(create_webhook_router(mount, relay, observer))

    usage = usage_lines(config)

    @app.api_route("/{full_path:path}", methods=ALL_METHODS, include_in_schema=False)
    async def not_found(full_path: str) -> JSONResponse:  # noqa: ARG001
        return JSONResponse(
            status_code=404,
            content={
                "ok": False,
                "error": "not_found",
                "usage": usage,
                "sources": config.plain_source_keys,
                "hosts": list(config.destinations),
            },
        )
