"""HTTP routes for controlling the loop and reading telemetry.

Endpoints:
- GET    /health
- GET    /config
- PATCH  /config
- POST   /start
- POST   /stop
- GET    /status
- GET    /positions
- DELETE /positions/{instrument}
- GET    /stats
- GET    /logs/{kind}
- GET    /logs/{kind}/export
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse

from signal_trader.core.errors import InvalidConfig, SchedulerError
from signal_trader.core.models import CloseReason
from signal_trader.engine.control_loop import ControlLoop
from signal_trader.telemetry.journal import TradeJournal

router = APIRouter()

_KINDS = ("trades", "decisions", "risk")


def _loop(request: Request) -> ControlLoop:
    return request.app.state.loop


def _journal(request: Request) -> TradeJournal:
    journal = request.app.state.journal
    if journal is None:
        raise HTTPException(status_code=404, detail="Telemetry journal not configured")
    return journal


def _status(loop: ControlLoop) -> dict[str, Any]:
    return {
        "state": loop.state.value,
        "instruments": list(loop.instruments),
        "open_positions": len(loop.store),
        "ticks": loop.stats.ticks,
    }


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/config")
def get_config(request: Request) -> dict[str, Any]:
    return _loop(request).get_config().model_dump()


@router.patch("/config")
def update_config(request: Request, changes: dict[str, Any]) -> dict[str, Any]:
    """Merge ``changes`` into the active configuration.

    Raises:
        HTTPException: 400 if the merged configuration is invalid
    """
    try:
        config = _loop(request).set_config(changes)
    except InvalidConfig as e:
        raise HTTPException(status_code=400, detail=f"Invalid configuration: {e}")
    return config.model_dump()


@router.post("/start")
def start_loop(request: Request) -> dict[str, Any]:
    loop = _loop(request)
    try:
        loop.start()
    except InvalidConfig as e:
        raise HTTPException(status_code=400, detail=f"Invalid configuration: {e}")
    except SchedulerError as e:
        raise HTTPException(status_code=500, detail=f"Failed to start scheduler: {e}")
    return _status(loop)


@router.post("/stop")
def stop_loop(request: Request) -> dict[str, Any]:
    loop = _loop(request)
    loop.stop()
    return _status(loop)


@router.get("/status")
def get_status(request: Request) -> dict[str, Any]:
    return _status(_loop(request))


@router.get("/positions")
def list_positions(request: Request) -> dict[str, list[dict[str, Any]]]:
    positions = _loop(request).get_open_positions()
    return {"positions": [position.to_dict() for position in positions]}


@router.delete("/positions/{instrument}")
def close_position(request: Request, instrument: str, price: float | None = None) -> dict[str, Any]:
    """Manually close the position for ``instrument``.

    Raises:
        HTTPException: 404 if no position is open
    """
    if price is not None and price <= 0:
        raise HTTPException(status_code=400, detail="price must be positive")
    position = _loop(request).close_position(instrument.upper(), CloseReason.MANUAL, price)
    if position is None:
        raise HTTPException(status_code=404, detail=f"No open position for {instrument}")
    return {"status": "closed", "reason": CloseReason.MANUAL.value, "position": position.to_dict()}


@router.get("/stats")
async def get_statistics(request: Request) -> dict[str, Any]:
    return _journal(request).statistics()


@router.get("/logs/{kind}")
async def get_logs(request: Request, kind: str, symbol: str | None = None, limit: int = 100) -> dict[str, Any]:
    if kind not in _KINDS:
        raise HTTPException(status_code=404, detail=f"Unknown log kind: {kind}")
    journal = _journal(request)
    if kind == "trades":
        records = journal.get_trades(symbol=symbol, limit=limit)
    elif kind == "decisions":
        records = journal.get_decisions(symbol=symbol, limit=limit)
    else:
        records = journal.get_risk_checks(limit=limit)
    return {"items": [asdict(record) for record in records]}


@router.get("/logs/{kind}/export")
async def export_logs(request: Request, kind: str, fmt: str = "json") -> PlainTextResponse:
    if kind not in _KINDS and kind != "all":
        raise HTTPException(status_code=404, detail=f"Unknown log kind: {kind}")
    if fmt not in ("json", "csv"):
        raise HTTPException(status_code=400, detail=f"Unsupported format: {fmt}")
    media_type = "application/json" if fmt == "json" else "text/csv"
    return PlainTextResponse(_journal(request).export(kind, fmt), media_type=media_type)
