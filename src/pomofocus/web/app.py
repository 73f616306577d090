"""FastAPI application exposing the timer over REST and WebSocket."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from pomofocus import __version__
from pomofocus.core.config import get_config
from pomofocus.core.orchestrator import Orchestrator

logger = logging.getLogger(__name__)


def get_app_orchestrator(request: Request) -> Orchestrator:
    """Get the orchestrator serving this app."""
    return request.app.state.orchestrator


def get_ws_orchestrator(websocket: WebSocket) -> Orchestrator:
    return websocket.app.state.orchestrator


def create_app(orchestrator: Orchestrator | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = orchestrator.config if orchestrator else get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        logger.info("Starting Pomofocus API...")
        orch = orchestrator or Orchestrator(config)
        app.state.orchestrator = orch
        await orch.start()

        yield

        await orch.stop()
        logger.info("API shutdown complete")

    app = FastAPI(
        title="Pomofocus",
        description="Pomodoro timer with task tracking and session history",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.web.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from pomofocus.web.routes import api

    app.include_router(api.router, prefix="/api")

    return app


def run_server(host: str | None = None, port: int | None = None) -> None:
    """Run the web server."""
    import uvicorn

    config = get_config()
    host = host or config.web.host
    port = port or config.web.port

    logger.info(f"Starting API at http://{host}:{port}")

    uvicorn.run(
        "pomofocus.web.app:create_app",
        host=host,
        port=port,
        factory=True,
        log_level="info",
    )
