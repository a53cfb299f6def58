"""Market data feed backed by Binance public klines.

Fetches recent candles over REST and derives RSI(14) and the MACD line from
closing prices. Any transport or parsing problem surfaces as
DataUnavailable; retries are left to the caller's next tick.
"""

from __future__ import annotations

import logging

import pandas as pd
import requests

from signal_trader.core.errors import DataUnavailable
from signal_trader.exchange.base import IndicatorReading
from signal_trader.feeds.indicators import macd_line, rsi

logger = logging.getLogger(__name__)

KLINE_COLUMNS = [
    "open_time",
    "open",
    "high",
    "low",
    "close",
    "volume",
    "close_time",
    "quote_volume",
    "trades",
    "taker_buy_base",
    "taker_buy_quote",
    "ignore",
]


class BinanceMarketDataFeed:
    """Binance spot klines feed.

    Attributes:
        base_url: REST base URL
        interval: Kline interval (e.g. "1m", "5m")
        limit: Number of klines per request (must cover MACD's slow EMA)
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: str = "https://api.binance.com",
        interval: str = "1m",
        limit: int = 100,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.interval = interval
        self.limit = limit
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_klines(self, instrument: str) -> pd.DataFrame:
        """Download recent klines for ``instrument``.

        Raises:
            DataUnavailable: On HTTP errors, timeouts or malformed payloads
        """
        url = f"{self.base_url}/api/v3/klines"
        params = {"symbol": instrument, "interval": self.interval, "limit": self.limit}
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise DataUnavailable(instrument, f"request failed: {exc}") from exc
        except ValueError as exc:
            raise DataUnavailable(instrument, f"invalid JSON: {exc}") from exc

        if not isinstance(payload, list) or not payload:
            raise DataUnavailable(instrument, "empty kline payload")

        try:
            df = pd.DataFrame(payload, columns=KLINE_COLUMNS).drop(columns=["ignore"])
        except ValueError as exc:
            raise DataUnavailable(instrument, f"unexpected kline shape: {exc}") from exc

        for column in ("open", "high", "low", "close", "volume"):
            df[column] = pd.to_numeric(df[column], errors="coerce")
        df = df.dropna(subset=["close", "volume"])
        if df.empty:
            raise DataUnavailable(instrument, "no numeric klines")
        return df

    def fetch_indicators(self, instrument: str) -> IndicatorReading:
        df = self.fetch_klines(instrument)
        closes = df["close"].tolist()

        rsi_value = rsi(closes)
        macd_value = macd_line(closes)
        if rsi_value is None or macd_value is None:
            raise DataUnavailable(
                instrument, f"need at least 27 closes for indicators, got {len(closes)}"
            )

        price = float(closes[-1])
        if price <= 0:
            raise DataUnavailable(instrument, f"non-positive price {price}")

        logger.debug(
            "Fetched %d klines for %s: rsi=%.2f macd=%.4f price=%.2f",
            len(closes), instrument, rsi_value, macd_value, price,
        )
        return IndicatorReading(
            rsi=rsi_value,
            macd=macd_value,
            volume=float(df["volume"].iloc[-1]),
            price=price,
        )


__all__ = ["BinanceMarketDataFeed", "KLINE_COLUMNS"]
