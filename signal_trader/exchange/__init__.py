"""Collaborator interfaces and venue implementations.

The ccxt-backed live venue lives in ``signal_trader.exchange.ccxt_venue`` and
is imported explicitly where needed.
"""

from signal_trader.exchange.base import (
    CloseAck,
    ExecutionStatus,
    ExecutionVenue,
    IndicatorReading,
    Ledger,
    MarketDataFeed,
    NullTelemetry,
    OrderHandle,
    Telemetry,
)
from signal_trader.exchange.paper import PaperExecutionVenue, PaperLedger

__all__ = [
    "CloseAck",
    "ExecutionStatus",
    "ExecutionVenue",
    "IndicatorReading",
    "Ledger",
    "MarketDataFeed",
    "NullTelemetry",
    "OrderHandle",
    "Telemetry",
    "PaperExecutionVenue",
    "PaperLedger",
]
