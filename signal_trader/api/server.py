"""FastAPI application exposing the control loop's configuration surface."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from signal_trader.api.routes import router
from signal_trader.engine.control_loop import ControlLoop
from signal_trader.telemetry.journal import TradeJournal

logger = logging.getLogger(__name__)


def create_app(loop: ControlLoop, journal: TradeJournal | None = None) -> FastAPI:
    """Build the API app bound to ``loop`` and, optionally, ``journal``.

    The loop is stopped when the app shuts down.
    """
    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        logger.info("API shutting down, stopping control loop")
        loop.stop()

    app = FastAPI(
        title="Signal Trader API",
        version="0.1.0",
        description="Control surface for the periodic signal trading loop",
        lifespan=lifespan,
    )
    app.state.loop = loop
    app.state.journal = journal
    app.include_router(router)

    return app


def serve(app: FastAPI, host: str = "127.0.0.1", port: int = 8000) -> None:
    """Run ``app`` with uvicorn (blocking)."""
    import uvicorn

    logger.info("Starting API server on http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level="info")


__all__ = ["create_app", "serve"]
