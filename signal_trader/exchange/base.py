"""Collaborator protocols and data structures used by the trading core.

The core only depends on these narrow interfaces. Market data, account
equity, order execution and telemetry are supplied by implementations that
can be swapped between paper and live setups.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Mapping, Protocol, Sequence

from signal_trader.core.models import CloseReason, IndicatorSnapshot, Position, utc_now

# Type aliases for clarity
ExecutionStatus = Literal["PENDING", "FILLED", "CANCELLED", "FAILED", "SIMULATED"]
TradeAction = Literal["BUY", "SELL", "CLOSE"]
RiskAction = Literal["RISK_CHECK", "POSITION_SIZE", "STOP_LOSS", "DRAWDOWN_CHECK"]


@dataclass(slots=True)
class IndicatorReading:
    """Primitive indicator values for one instrument.

    Attributes:
        rsi: Relative strength index in [0, 100]
        macd: MACD line value (any real number)
        volume: Traded volume over the observation window
        price: Last traded price
    """

    rsi: float
    macd: float
    volume: float
    price: float


@dataclass(slots=True)
class OrderHandle:
    """Venue acknowledgement of an opening order.

    Attributes:
        order_id: Venue-assigned order ID
        instrument: Instrument symbol
        side: "buy" or "sell"
        quantity: Requested quantity
        price: Fill or reference price
        status: Execution status reported by the venue
        timestamp: Acknowledgement time
        fees: Trading fee paid, when known
    """

    order_id: str
    instrument: str
    side: Literal["buy", "sell"]
    quantity: float
    price: float
    status: ExecutionStatus = "FILLED"
    timestamp: datetime = field(default_factory=utc_now)
    fees: float | None = None


@dataclass(slots=True)
class CloseAck:
    """Venue acknowledgement of a closing order."""

    order_id: str
    instrument: str
    reason: CloseReason
    status: ExecutionStatus = "FILLED"
    timestamp: datetime = field(default_factory=utc_now)
    fees: float | None = None


class MarketDataFeed(Protocol):
    """Source of primitive indicator values."""

    def fetch_indicators(self, instrument: str) -> IndicatorReading:
        """Fetch current indicators for ``instrument``.

        Raises:
            DataUnavailable: If data cannot be obtained this tick
        """
        ...


class Ledger(Protocol):
    """Source of account equity used for sizing."""

    def get_account_equity(self) -> float:
        ...


class ExecutionVenue(Protocol):
    """Outbound order submission.

    Failures are reported by raising; the core logs them and never retries.
    """

    def submit_order(self, position: Position) -> OrderHandle:
        ...

    def submit_close_order(self, position: Position, reason: CloseReason) -> CloseAck:
        ...


class Telemetry(Protocol):
    """Append-only sink for decision, trade and risk records."""

    def record_decision(
        self,
        *,
        symbol: str,
        strategy: str,
        market_condition: str,
        indicators: IndicatorSnapshot,
        decision: str,
        confidence: float,
        reasons: Sequence[str],
        processing_time: float,
    ) -> str:
        ...

    def record_trade(
        self,
        *,
        symbol: str,
        action: TradeAction,
        price: float,
        size: float,
        reason: str,
        confidence: float,
        strategy: str,
        is_dry_run: bool,
        status: ExecutionStatus,
        order_id: str | None = None,
        fees: float | None = None,
        slippage: float | None = None,
        profit: float | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> str:
        ...

    def record_risk(
        self,
        *,
        action: RiskAction,
        current_drawdown: float,
        daily_loss: float,
        position_size: float,
        risk_level: str,
        approved: bool,
        reason: str,
    ) -> str:
        ...


class NullTelemetry:
    """Telemetry sink that discards every record."""

    def record_decision(self, **_: Any) -> str:
        return ""

    def record_trade(self, **_: Any) -> str:
        return ""

    def record_risk(self, **_: Any) -> str:
        return ""


__all__ = [
    "ExecutionStatus",
    "TradeAction",
    "RiskAction",
    "IndicatorReading",
    "OrderHandle",
    "CloseAck",
    "MarketDataFeed",
    "Ledger",
    "ExecutionVenue",
    "Telemetry",
    "NullTelemetry",
]
