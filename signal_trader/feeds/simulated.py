"""Simulated market data feed for paper runs and demos."""

from __future__ import annotations

import random
import threading

from signal_trader.core.errors import DataUnavailable
from signal_trader.exchange.base import IndicatorReading


class SimulatedMarketDataFeed:
    """Draws independent random indicator values on every call.

    price  ~ U(30000, 80000)
    rsi    ~ U(0, 100)
    macd   ~ U(-500, 500)
    volume ~ U(0, 1e9)

    Attributes:
        instruments: Known instruments; others raise DataUnavailable
        failure_rate: Probability in [0, 1] that a fetch fails
    """

    def __init__(
        self,
        instruments: list[str] | tuple[str, ...] | None = None,
        seed: int | None = None,
        failure_rate: float = 0.0,
    ) -> None:
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be in [0, 1], got {failure_rate}")
        self.instruments = set(instruments) if instruments else None
        self.failure_rate = failure_rate
        self._rng = random.Random(seed)
        # random.Random is not safe to share across fetch threads
        self._lock = threading.Lock()

    def fetch_indicators(self, instrument: str) -> IndicatorReading:
        if self.instruments is not None and instrument not in self.instruments:
            raise DataUnavailable(instrument, "unknown instrument")

        with self._lock:
            if self.failure_rate and self._rng.random() < self.failure_rate:
                raise DataUnavailable(instrument, "simulated feed outage")
            return IndicatorReading(
                rsi=self._rng.uniform(0.0, 100.0),
                macd=(self._rng.random() - 0.5) * 1000.0,
                volume=self._rng.uniform(0.0, 1_000_000_000.0),
                price=self._rng.uniform(30_000.0, 80_000.0),
            )


__all__ = ["SimulatedMarketDataFeed"]
