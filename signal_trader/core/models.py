"""Value types shared by the trading core.

MarketSignal is immutable and produced once per instrument per tick.
Position is the only mutable record; it is created by the open transition
and deleted by the close transition.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Union

IndicatorValue = Union[float, str]
IndicatorSnapshot = Mapping[str, IndicatorValue]


class SignalAction(str, Enum):
    """Directional recommendation carried by a signal."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class PositionSide(str, Enum):
    """Direction of an open position."""

    LONG = "LONG"
    SHORT = "SHORT"


class ExitDecision(str, Enum):
    """Outcome of evaluating an open position against a signal."""

    NONE = "NONE"
    TAKE_PROFIT = "TAKE_PROFIT"
    STOP_LOSS = "STOP_LOSS"


class CloseReason(str, Enum):
    """Reason code attached to a position close."""

    PROFIT_TARGET = "PROFIT_TARGET"
    STOP_LOSS = "STOP_LOSS"
    MANUAL = "MANUAL"


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class MarketSignal:
    """Scored directional signal for one instrument.

    Attributes:
        instrument: Instrument symbol (e.g. "BTCUSDT")
        action: BUY, SELL or HOLD
        confidence: Score in [0, 100]
        price: Observed price, strictly positive
        observed_at: When the market data was observed
        indicators: Read-only snapshot of indicator values (rsi, macd,
            volume, trend label)
    """

    instrument: str
    action: SignalAction
    confidence: float
    price: float
    observed_at: datetime = field(default_factory=utc_now)
    indicators: IndicatorSnapshot = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.instrument:
            raise ValueError("MarketSignal.instrument must be a non-empty string")
        if not isinstance(self.action, SignalAction):
            object.__setattr__(self, "action", SignalAction(self.action))
        if not (0.0 <= self.confidence <= 100.0):
            raise ValueError(f"MarketSignal.confidence must be in [0, 100], got {self.confidence}")
        if not math.isfinite(self.price) or self.price <= 0:
            raise ValueError(f"MarketSignal.price must be positive, got {self.price}")
        object.__setattr__(self, "indicators", MappingProxyType(dict(self.indicators)))


@dataclass(slots=True)
class Position:
    """Open directional exposure in one instrument.

    Exit thresholds are copied from the configuration at open time and are
    never re-read, so reconfiguring the loop does not move the exits of a
    position that is already open.
    """

    instrument: str
    side: PositionSide
    entry_price: float
    quantity: float
    profit_target_percent: float
    stop_loss_percent: float
    opened_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not isinstance(self.side, PositionSide):
            self.side = PositionSide(self.side)
        if not math.isfinite(self.entry_price) or self.entry_price <= 0:
            raise ValueError(f"Position.entry_price must be positive, got {self.entry_price}")
        if not math.isfinite(self.quantity) or self.quantity <= 0:
            raise ValueError(f"Position.quantity must be positive, got {self.quantity}")

    def snapshot(self) -> Position:
        """Return an independent copy safe to hand to callers."""
        return replace(self)

    def unrealized_pnl(self, price: float) -> float:
        """Profit in quote currency if the position were closed at ``price``."""
        if self.side is PositionSide.LONG:
            return (price - self.entry_price) * self.quantity
        return (self.entry_price - price) * self.quantity

    def to_dict(self) -> dict[str, object]:
        return {
            "instrument": self.instrument,
            "side": self.side.value,
            "entry_price": self.entry_price,
            "quantity": self.quantity,
            "profit_target_percent": self.profit_target_percent,
            "stop_loss_percent": self.stop_loss_percent,
            "opened_at": self.opened_at.isoformat(),
        }


__all__ = [
    "IndicatorSnapshot",
    "IndicatorValue",
    "SignalAction",
    "PositionSide",
    "ExitDecision",
    "CloseReason",
    "MarketSignal",
    "Position",
    "utc_now",
]
