"""Signal generation from primitive indicator values.

Classification:
    rsi < 30 and macd > 0  -> BUY,  confidence 75 + U(0, 20)
    rsi > 70 and macd < 0  -> SELL, confidence 75 + U(0, 20)
    otherwise              -> HOLD, confidence 40 + U(0, 30)

The uniform draw is delegated to a ConfidenceScorer so a deterministic
scorer can replace the random one without touching the classification.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Protocol

from signal_trader.core.errors import DataUnavailable
from signal_trader.core.models import MarketSignal, SignalAction, utc_now
from signal_trader.exchange.base import IndicatorReading, MarketDataFeed

logger = logging.getLogger(__name__)

OVERSOLD_RSI = 30.0
OVERBOUGHT_RSI = 70.0

DIRECTIONAL_BASE = 75.0
DIRECTIONAL_SPREAD = 20.0
HOLD_BASE = 40.0
HOLD_SPREAD = 30.0


class ConfidenceScorer(Protocol):
    """Returns a value in [0, spread] added to the base confidence."""

    def draw(self, spread: float) -> float:
        ...


class RandomConfidenceScorer:
    """Uniform random scorer; seed it for reproducible runs."""

    def __init__(self, seed: int | None = None, rng: random.Random | None = None) -> None:
        self._rng = rng if rng is not None else random.Random(seed)

    def draw(self, spread: float) -> float:
        return self._rng.uniform(0.0, spread)


class FixedConfidenceScorer:
    """Deterministic scorer returning ``fraction`` of the spread."""

    def __init__(self, fraction: float = 0.5) -> None:
        if not 0.0 <= fraction <= 1.0:
            raise ValueError(f"fraction must be in [0, 1], got {fraction}")
        self.fraction = fraction

    def draw(self, spread: float) -> float:
        return spread * self.fraction


@dataclass(frozen=True, slots=True)
class Classification:
    """Action chosen for a reading together with the reasons behind it."""

    action: SignalAction
    base: float
    spread: float
    reasons: tuple[str, ...]


def trend_label(macd: float) -> str:
    return "bullish" if macd > 0 else "bearish"


def classify(rsi: float, macd: float) -> Classification:
    """Classify an (rsi, macd) pair into an action.

    Returns:
        Classification with the base confidence and spread for the action
    """
    if rsi < OVERSOLD_RSI and macd > 0:
        return Classification(
            action=SignalAction.BUY,
            base=DIRECTIONAL_BASE,
            spread=DIRECTIONAL_SPREAD,
            reasons=(f"RSI oversold ({rsi:.2f} < {OVERSOLD_RSI:g})", f"MACD positive ({macd:.2f})"),
        )
    if rsi > OVERBOUGHT_RSI and macd < 0:
        return Classification(
            action=SignalAction.SELL,
            base=DIRECTIONAL_BASE,
            spread=DIRECTIONAL_SPREAD,
            reasons=(f"RSI overbought ({rsi:.2f} > {OVERBOUGHT_RSI:g})", f"MACD negative ({macd:.2f})"),
        )
    return Classification(
        action=SignalAction.HOLD,
        base=HOLD_BASE,
        spread=HOLD_SPREAD,
        reasons=(f"No directional setup (RSI={rsi:.2f}, MACD={macd:.2f})",),
    )


class SignalGenerator:
    """Produces a scored MarketSignal for one instrument.

    Attributes:
        feed: Market data collaborator
        scorer: Source of the confidence draw
    """

    def __init__(self, feed: MarketDataFeed, scorer: ConfidenceScorer | None = None) -> None:
        self.feed = feed
        self.scorer = scorer if scorer is not None else RandomConfidenceScorer()

    def generate(self, instrument: str) -> MarketSignal:
        """Fetch indicators for ``instrument`` and classify them.

        Raises:
            DataUnavailable: If the feed cannot supply data this tick
        """
        reading = self.feed.fetch_indicators(instrument)
        return self.from_reading(instrument, reading)

    def from_reading(self, instrument: str, reading: IndicatorReading) -> MarketSignal:
        """Classify an indicator reading into a signal.

        Raises:
            DataUnavailable: If the reading carries a non-positive or
                non-finite price, or non-finite indicators
        """
        if not math.isfinite(reading.price) or reading.price <= 0:
            raise DataUnavailable(instrument, f"unusable price {reading.price}")
        if not (math.isfinite(reading.rsi) and math.isfinite(reading.macd)):
            raise DataUnavailable(
                instrument, f"non-finite indicators rsi={reading.rsi} macd={reading.macd}"
            )

        classification = classify(reading.rsi, reading.macd)
        confidence = classification.base + self.scorer.draw(classification.spread)
        signal = MarketSignal(
            instrument=instrument,
            action=classification.action,
            confidence=min(100.0, max(0.0, confidence)),
            price=reading.price,
            observed_at=utc_now(),
            indicators={
                "rsi": reading.rsi,
                "macd": reading.macd,
                "volume": reading.volume,
                "trend": trend_label(reading.macd),
            },
        )
        logger.debug(
            "Signal %s %s confidence=%.2f price=%.2f",
            instrument, signal.action.value, signal.confidence, signal.price,
        )
        return signal


__all__ = [
    "ConfidenceScorer",
    "RandomConfidenceScorer",
    "FixedConfidenceScorer",
    "Classification",
    "SignalGenerator",
    "classify",
    "trend_label",
]
