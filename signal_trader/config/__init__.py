"""Configuration management package for the signal trader.

Usage:
    from signal_trader.config import load_config, save_config

    cfg = load_config()
    print(cfg.trading.profit_target_percent)
    print(cfg.universe.instruments)
"""

from signal_trader.config.models import (
    DEFAULT_INSTRUMENTS,
    AppConfig,
    FeedConfig,
    LedgerConfig,
    RiskLevel,
    TradingConfig,
    UniverseConfig,
    build_app_config,
    build_trading_config,
)
from signal_trader.config.service import (
    get_config_path,
    load_config,
    reload_config,
    save_config,
)

__all__ = [
    # Models
    "DEFAULT_INSTRUMENTS",
    "RiskLevel",
    "TradingConfig",
    "UniverseConfig",
    "FeedConfig",
    "LedgerConfig",
    "AppConfig",
    "build_trading_config",
    "build_app_config",
    # Service functions
    "get_config_path",
    "load_config",
    "save_config",
    "reload_config",
]
