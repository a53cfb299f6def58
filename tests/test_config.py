"""Tests for configuration models and the config service."""

import json

import pytest
from pydantic import ValidationError

from signal_trader.config import (
    AppConfig,
    TradingConfig,
    UniverseConfig,
    build_app_config,
    build_trading_config,
    service,
)
from signal_trader.core.errors import InvalidConfig


class TestTradingConfig:
    def test_defaults(self):
        """Test default trading configuration values."""
        config = TradingConfig()
        assert config.profit_target_percent == 2.0
        assert config.stop_loss_percent == 1.0
        assert config.max_position_size_percent == 10.0
        assert config.tick_interval_millis == 1000
        assert config.risk_level == "medium"

    @pytest.mark.parametrize(
        "field, value",
        [
            ("profit_target_percent", 0.0),
            ("stop_loss_percent", -1.0),
            ("max_position_size_percent", 0.0),
            ("max_position_size_percent", 150.0),
            ("tick_interval_millis", 0),
            ("risk_level", "extreme"),
        ],
    )
    def test_invalid_values_raise_invalid_config(self, field, value):
        """Test that invalid values raise InvalidConfig naming the field."""
        with pytest.raises(InvalidConfig, match=field):
            build_trading_config({field: value})

    def test_unknown_field_rejected(self):
        """Test that unknown fields are rejected."""
        with pytest.raises(InvalidConfig):
            build_trading_config({"leverage": 5})

    def test_merged_returns_new_instance(self):
        """Test that merging leaves the original configuration untouched."""
        original = TradingConfig()
        updated = original.merged({"stop_loss_percent": 3.0}, tick_interval_millis=250)

        assert updated.stop_loss_percent == 3.0
        assert updated.tick_interval_millis == 250
        assert original.stop_loss_percent == 1.0

    def test_frozen(self):
        """Test that configuration instances are immutable."""
        with pytest.raises(ValidationError):
            TradingConfig().profit_target_percent = 5.0


class TestUniverseConfig:
    def test_normalizes_symbols(self):
        """Test symbol normalization."""
        assert UniverseConfig(instruments=[" btcusdt", "ETHUSDT "]).instruments == ["BTCUSDT", "ETHUSDT"]

    def test_rejects_duplicates(self):
        """Test that duplicate instruments are rejected."""
        with pytest.raises(ValidationError):
            UniverseConfig(instruments=["BTCUSDT", "btcusdt"])

    def test_default_universe(self):
        """Test the default instrument universe."""
        assert AppConfig().universe.instruments == ["BTCUSDT", "ETHUSDT", "BNBUSDT"]


def test_build_app_config_wraps_errors():
    """Test that validation errors surface as InvalidConfig."""
    with pytest.raises(InvalidConfig, match="feed"):
        build_app_config({"feed": {"feed_type": "carrier-pigeon"}})


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    monkeypatch.setenv("SIGNAL_TRADER_HOME", str(tmp_path))
    monkeypatch.setattr(service, "_APP_CONFIG", None)
    for name in (
        "PROFIT_TARGET_PERCENT",
        "STOP_LOSS_PERCENT",
        "MAX_POSITION_SIZE_PERCENT",
        "TICK_INTERVAL_MILLIS",
        "RISK_LEVEL",
        "INSTRUMENTS",
        "FEED_TYPE",
        "BINANCE_BASE_URL",
        "KLINE_INTERVAL",
        "PAPER_EQUITY",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


class TestConfigService:
    def test_config_path_uses_home_env(self, config_home):
        """Test that the config path follows SIGNAL_TRADER_HOME."""
        assert service.get_config_path() == config_home / "config.json"

    def test_first_load_comes_from_env_and_is_saved(self, config_home, monkeypatch):
        """Test that the first load reads env vars and writes config.json."""
        monkeypatch.setenv("STOP_LOSS_PERCENT", "1.5")
        monkeypatch.setenv("INSTRUMENTS", "BTCUSDT,SOLUSDT")

        cfg = service.load_config()

        assert cfg.trading.stop_loss_percent == 1.5
        assert cfg.universe.instruments == ["BTCUSDT", "SOLUSDT"]
        saved = json.loads((config_home / "config.json").read_text(encoding="utf-8"))
        assert saved["trading"]["stop_loss_percent"] == 1.5

    def test_unparsable_env_value_raises(self, config_home, monkeypatch):
        """Test that an unparsable env value raises InvalidConfig and writes nothing."""
        monkeypatch.setenv("TICK_INTERVAL_MILLIS", "soon")
        with pytest.raises(InvalidConfig, match="TICK_INTERVAL_MILLIS"):
            service.load_config()
        assert not (config_home / "config.json").exists()

    def test_load_is_cached(self, config_home):
        """Test that repeated loads return the cached instance."""
        assert service.load_config() is service.load_config()

    def test_save_then_reload(self, config_home):
        """Test saving and reloading the configuration."""
        cfg = AppConfig(trading=TradingConfig(profit_target_percent=4.0))
        service.save_config(cfg)
        service._APP_CONFIG = None

        reloaded = service.reload_config()

        assert reloaded.trading.profit_target_percent == 4.0

    def test_invalid_json_raises(self, config_home):
        """Test that a malformed config file raises InvalidConfig."""
        (config_home / "config.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(InvalidConfig, match="Invalid configuration file"):
            service.load_config()

    def test_invalid_values_in_file_raise(self, config_home):
        """Test that out-of-range values in the file raise InvalidConfig."""
        (config_home / "config.json").write_text(
            json.dumps({"trading": {"stop_loss_percent": -2}}), encoding="utf-8"
        )
        with pytest.raises(InvalidConfig):
            service.load_config()

    def test_reload_without_file_raises(self, config_home):
        """Test that reloading without a config file raises."""
        with pytest.raises(InvalidConfig, match="not found"):
            service.reload_config()
