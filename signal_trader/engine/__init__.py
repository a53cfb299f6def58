"""Engine utilities exposed for external use."""

from signal_trader.engine.control_loop import (
    MIN_CONFIDENCE,
    ControlLoop,
    LoopState,
    LoopStats,
    RouteOutcome,
    TickReport,
)
from signal_trader.engine.scheduler import TickScheduler

__all__ = [
    "ControlLoop",
    "LoopState",
    "LoopStats",
    "RouteOutcome",
    "TickReport",
    "TickScheduler",
    "MIN_CONFIDENCE",
]
