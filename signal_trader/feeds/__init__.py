"""Market data feeds supplying indicator readings to the signal generator."""

from signal_trader.feeds.binance import BinanceMarketDataFeed
from signal_trader.feeds.simulated import SimulatedMarketDataFeed

__all__ = ["SimulatedMarketDataFeed", "BinanceMarketDataFeed"]
