"""Tests for the control loop CLI wiring."""

import pytest

from signal_trader.cli.run_loop_cli import apply_overrides, build_loop, parse_args, print_shutdown_summary
from signal_trader.config import AppConfig
from signal_trader.core.errors import InvalidConfig
from signal_trader.exchange.ccxt_venue import CcxtExecutionVenue, CcxtLedger
from signal_trader.exchange.paper import PaperExecutionVenue
from signal_trader.feeds import BinanceMarketDataFeed, SimulatedMarketDataFeed
from signal_trader.telemetry.journal import TradeJournal


def test_parse_args_defaults():
    """Test default command-line arguments."""
    args = parse_args([])
    assert args.feed is None
    assert args.serve is False
    assert args.log_level == "INFO"


def test_duration_must_be_positive():
    """Test that a non-positive duration is rejected."""
    with pytest.raises(SystemExit):
        parse_args(["--duration", "0"])


def test_overrides_apply_on_top_of_config():
    """Test that command-line values override the loaded configuration."""
    args = parse_args([
        "--feed", "binance",
        "--instruments", "btcusdt,solusdt",
        "--profit-target", "3",
        "--interval-ms", "500",
        "--equity", "2500",
    ])

    cfg = apply_overrides(AppConfig(), args)

    assert cfg.feed.feed_type == "binance"
    assert cfg.universe.instruments == ["BTCUSDT", "SOLUSDT"]
    assert cfg.trading.profit_target_percent == 3.0
    assert cfg.trading.stop_loss_percent == 1.0
    assert cfg.trading.tick_interval_millis == 500
    assert cfg.ledger.paper_equity == 2500.0


def test_invalid_override_raises():
    """Test that an out-of-range override raises InvalidConfig."""
    with pytest.raises(InvalidConfig):
        apply_overrides(AppConfig(), parse_args(["--stop-loss", "-1"]))


def test_build_loop_selects_feed():
    """Test feed selection from the configuration."""
    simulated = build_loop(AppConfig(), seed=1)
    assert isinstance(simulated.signal_generator.feed, SimulatedMarketDataFeed)
    assert simulated.instruments == ("BTCUSDT", "ETHUSDT", "BNBUSDT")

    binance = build_loop(AppConfig(feed={"feed_type": "binance"}))
    assert isinstance(binance.signal_generator.feed, BinanceMarketDataFeed)


def test_seeded_simulated_loop_runs_a_pass(capsys):
    """Test a full pass over the simulated feed with a journal attached."""
    journal = TradeJournal()
    loop = build_loop(AppConfig(), journal, seed=7)

    report = loop.run_once()
    print_shutdown_summary(loop, journal)

    assert set(report.outcomes) == {"BTCUSDT", "ETHUSDT", "BNBUSDT"}
    assert len(journal.records("decisions")) == sum(
        1 for outcome in report.outcomes.values() if outcome not in ("SKIPPED", "ERROR")
    )
    assert "Session Summary" in capsys.readouterr().out


def test_live_mode_requires_confirmation():
    """Test that live mode refuses to parse without the real-money flag."""
    with pytest.raises(SystemExit):
        parse_args(["--mode", "live"])
    assert parse_args(["--mode", "live", "--yes-i-know-this-is-real-money"]).mode == "live"


def test_live_mode_without_credentials_raises(monkeypatch):
    """Test that live wiring fails cleanly when API credentials are missing."""
    monkeypatch.delenv("BINANCE_API_KEY", raising=False)
    monkeypatch.delenv("BINANCE_API_SECRET", raising=False)
    with pytest.raises(InvalidConfig, match="BINANCE_API_KEY"):
        build_loop(AppConfig(), mode="live")


def test_live_mode_wires_ccxt_venue_and_ledger(monkeypatch):
    """Test that live mode sends orders through ccxt and sizes from the balance."""
    built = {}

    class StubExchange:
        def fetch_balance(self):
            return {"USDT": {"total": 500.0}}

    def fake_binance(api_key, api_secret, *, testnet=True, timeout=30):
        built.update(api_key=api_key, testnet=testnet, timeout=timeout)
        return CcxtExecutionVenue(StubExchange())

    monkeypatch.setenv("BINANCE_API_KEY", "key")
    monkeypatch.setenv("BINANCE_API_SECRET", "secret")
    monkeypatch.delenv("BINANCE_TESTNET", raising=False)
    monkeypatch.setattr(CcxtExecutionVenue, "binance", staticmethod(fake_binance))

    loop = build_loop(AppConfig(), mode="live")

    assert isinstance(loop.execution, CcxtExecutionVenue)
    assert isinstance(loop.ledger, CcxtLedger)
    assert loop.ledger.get_account_equity() == 500.0
    assert loop.dry_run is False
    assert built == {"api_key": "key", "testnet": True, "timeout": 10}


def test_paper_mode_is_dry_run():
    """Test that the default wiring uses the in-memory paper venue."""
    loop = build_loop(AppConfig(), seed=1)
    assert isinstance(loop.execution, PaperExecutionVenue)
    assert loop.dry_run is True
