"""Indicator math used by the market data feeds.

All functions take closes oldest first and return None when the series is
too short for the requested period.
"""

from __future__ import annotations

from typing import Sequence


def ema(closes: Sequence[float], period: int) -> float | None:
    """Exponential moving average seeded with the SMA of the first window."""
    if period <= 0 or len(closes) < period:
        return None

    alpha = 2.0 / (period + 1)
    smoothed = sum(closes[:period]) / period
    for close in closes[period:]:
        smoothed += alpha * (close - smoothed)
    return smoothed


def rsi(closes: Sequence[float], period: int = 14) -> float | None:
    """Relative Strength Index with Wilder smoothing.

    Returns:
        RSI in [0, 100]. A flat series reads 50, one with no losses reads 100.
    """
    if period <= 0 or len(closes) <= period:
        return None

    deltas = [curr - prev for prev, curr in zip(closes, closes[1:])]
    gains = [max(d, 0.0) for d in deltas]
    losses = [max(-d, 0.0) for d in deltas]

    up = sum(gains[:period]) / period
    down = sum(losses[:period]) / period
    for gain, loss in zip(gains[period:], losses[period:]):
        up = (up * (period - 1) + gain) / period
        down = (down * (period - 1) + loss) / period

    if down == 0:
        return 100.0 if up > 0 else 50.0
    return 100.0 - 100.0 / (1.0 + up / down)


def macd_line(closes: Sequence[float], fast: int = 12, slow: int = 26) -> float | None:
    """MACD line (fast EMA minus slow EMA)."""
    if not 0 < fast < slow:
        return None
    fast_value = ema(closes, fast)
    slow_value = ema(closes, slow)
    if fast_value is None or slow_value is None:
        return None
    return fast_value - slow_value


__all__ = ["ema", "rsi", "macd_line"]
