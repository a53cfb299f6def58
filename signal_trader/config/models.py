"""Configuration models for the signal trader using Pydantic."""
from __future__ import annotations

from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from signal_trader.core.errors import InvalidConfig

RiskLevel = Literal["low", "medium", "high"]

DEFAULT_INSTRUMENTS: tuple[str, ...] = ("BTCUSDT", "ETHUSDT", "BNBUSDT")


class TradingConfig(BaseModel):
    """Thresholds and cadence for the control loop.

    Instances are immutable; use ``merged()`` to obtain a replacement.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    profit_target_percent: float = Field(
        default=2.0,
        gt=0.0,
        description="Take profit when unrealized gain reaches this percent of entry"
    )
    stop_loss_percent: float = Field(
        default=1.0,
        gt=0.0,
        description="Stop out when unrealized loss reaches this percent of entry"
    )
    max_position_size_percent: float = Field(
        default=10.0,
        gt=0.0,
        le=100.0,
        description="Percent of account equity committed per position"
    )
    tick_interval_millis: int = Field(
        default=1000,
        gt=0,
        description="Milliseconds between evaluation passes"
    )
    risk_level: RiskLevel = Field(
        default="medium",
        description="Risk level tag reported with risk records"
    )

    def merged(self, partial: Mapping[str, Any] | None = None, **changes: Any) -> TradingConfig:
        """Return a new validated config with ``partial`` applied.

        Raises:
            InvalidConfig: If the merged values fail validation
        """
        data = self.model_dump()
        if partial:
            data.update(partial)
        data.update(changes)
        return build_trading_config(data)


class UniverseConfig(BaseModel):
    """Instruments evaluated on every tick, in iteration order."""

    model_config = ConfigDict(extra="forbid")

    instruments: list[str] = Field(
        default_factory=lambda: list(DEFAULT_INSTRUMENTS),
        min_length=1,
        description="Instrument symbols (e.g. BTCUSDT)"
    )

    @field_validator("instruments")
    @classmethod
    def _normalize(cls, value: list[str]) -> list[str]:
        cleaned = [symbol.strip().upper() for symbol in value if symbol and symbol.strip()]
        if not cleaned:
            raise ValueError("at least one instrument is required")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("instruments must be unique")
        return cleaned


class FeedConfig(BaseModel):
    """Market data feed selection."""

    model_config = ConfigDict(extra="forbid")

    feed_type: Literal["simulated", "binance"] = Field(
        default="simulated",
        description="'simulated' for random data, 'binance' for public klines"
    )
    binance_base_url: str = "https://api.binance.com"
    kline_interval: str = Field(
        default="1m",
        description="Kline interval used to compute indicators"
    )
    kline_limit: int = Field(
        default=100,
        ge=35,
        le=1000,
        description="Number of klines fetched per instrument"
    )
    timeout_seconds: float = Field(default=10.0, gt=0.0)


class LedgerConfig(BaseModel):
    """Paper account settings."""

    model_config = ConfigDict(extra="forbid")

    paper_equity: float = Field(
        default=1000.0,
        gt=0.0,
        description="Starting equity for the paper ledger"
    )
    fee_rate: float = Field(
        default=0.0,
        ge=0.0,
        le=0.1,
        description="Simulated fee rate for paper fills (0.001 = 0.1%)"
    )


class AppConfig(BaseModel):
    """Root application configuration containing all sub-configs."""

    model_config = ConfigDict(extra="forbid")

    trading: TradingConfig = Field(default_factory=TradingConfig)
    universe: UniverseConfig = Field(default_factory=UniverseConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "config"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def build_trading_config(data: Mapping[str, Any] | None = None) -> TradingConfig:
    """Validate ``data`` into a TradingConfig.

    Raises:
        InvalidConfig: If any field is missing a constraint or unknown
    """
    try:
        return TradingConfig.model_validate(dict(data or {}))
    except ValidationError as exc:
        raise InvalidConfig(_describe(exc)) from exc


def build_app_config(data: Mapping[str, Any] | None = None) -> AppConfig:
    """Validate ``data`` into an AppConfig, raising InvalidConfig on failure."""
    try:
        return AppConfig.model_validate(dict(data or {}))
    except ValidationError as exc:
        raise InvalidConfig(_describe(exc)) from exc
