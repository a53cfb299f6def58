"""Core trading primitives: signals, positions, sizing and exits."""

from signal_trader.core.errors import (
    DataUnavailable,
    ExecutionFailure,
    InvalidConfig,
    InvalidEquity,
    InvalidPrice,
    PositionConflict,
    SchedulerError,
    TradingError,
)
from signal_trader.core.models import (
    CloseReason,
    ExitDecision,
    MarketSignal,
    Position,
    PositionSide,
    SignalAction,
)

__all__ = [
    "TradingError",
    "DataUnavailable",
    "InvalidConfig",
    "InvalidPrice",
    "InvalidEquity",
    "ExecutionFailure",
    "PositionConflict",
    "SchedulerError",
    "SignalAction",
    "PositionSide",
    "ExitDecision",
    "CloseReason",
    "MarketSignal",
    "Position",
]
