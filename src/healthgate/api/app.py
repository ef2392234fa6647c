"""FastAPI application factory for the healthgate gateway."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from healthgate import __version__
from healthgate.api.routes import events, forward, health, schema
from healthgate.config.loader import load_config
from healthgate.config.models import GatewayConfig
from healthgate.errors import DownstreamForwardError, GatewayUnavailableError, UnknownServiceError
from healthgate.events.emitter import EventEmitter
from healthgate.events.log import EventLog
from healthgate.events.webhook import WebhookListener
from healthgate.gateway.composer import Composer


def create_app(
    config: Optional[GatewayConfig] = None,
    *,
    probe_transport: Optional[httpx.AsyncBaseTransport] = None,
    forward_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the gateway app.

    Configuration errors (including an empty registry) raise here, before the
    server accepts any traffic. The lifespan runs the initial probe cycle and
    drains forwards on shutdown. The transports replace the network in tests.
    """
    if config is None:
        config = load_config()

    event_log = EventLog(config.event_log_size)
    emitter = EventEmitter()
    emitter.add_listener(event_log)
    if config.webhooks:
        emitter.add_listener(WebhookListener(config.webhooks))

    composer = Composer.from_config(
        config,
        emitter=emitter,
        probe_transport=probe_transport,
        forward_transport=forward_transport,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await composer.start()
        try:
            yield
        finally:
            await composer.shutdown()

    app = FastAPI(
        title=config.gateway.name,
        version=__version__,
        description="Service health aggregator and gateway",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.composer = composer
    app.state.event_log = event_log
    app.state.emitter = emitter

    @app.exception_handler(DownstreamForwardError)
    async def _downstream_error(request: Request, exc: DownstreamForwardError) -> JSONResponse:
        return JSONResponse(status_code=exc.response_status, content=exc.to_dict())

    @app.exception_handler(UnknownServiceError)
    async def _unknown_service(request: Request, exc: UnknownServiceError) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"error": {"type": "unknown_service", "message": str(exc), "service": exc.name}},
        )

    @app.exception_handler(GatewayUnavailableError)
    async def _unavailable(request: Request, exc: GatewayUnavailableError) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={"error": {"type": "gateway_unavailable", "message": str(exc)}},
        )

    @app.get("/health", tags=["meta"])
    async def healthcheck() -> dict[str, str]:
        return composer.health_check()

    app.include_router(health.router, prefix="/api")
    app.include_router(schema.router, prefix="/api")
    app.include_router(forward.router, prefix="/api")
    app.include_router(events.router, prefix="/api")

    return app
