"""CLI for running the signal trading control loop.

Runs the loop against a simulated or Binance public feed, filling orders on
a paper account or, with ``--mode live``, on Binance through ccxt. The HTTP
control surface can be served alongside.

Usage:
    signal-trader --feed simulated --interval-ms 1000
    signal-trader --feed binance --instruments BTCUSDT,ETHUSDT --duration 600
    signal-trader --serve --port 8000 --journal ~/.signal_trader/journal.jsonl
    signal-trader --mode live --feed binance --yes-i-know-this-is-real-money
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any

from signal_trader.config import AppConfig, build_app_config, load_config
from signal_trader.core.errors import InvalidConfig, SchedulerError
from signal_trader.core.signals import RandomConfidenceScorer, SignalGenerator
from signal_trader.engine.control_loop import ControlLoop, TickReport
from signal_trader.exchange.ccxt_venue import CcxtExecutionVenue, CcxtLedger
from signal_trader.exchange.paper import PaperExecutionVenue, PaperLedger
from signal_trader.feeds import BinanceMarketDataFeed, SimulatedMarketDataFeed
from signal_trader.telemetry.journal import TradeJournal

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the CLI.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Set specific levels for noisy libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("ccxt").setLevel(logging.WARNING)


def apply_overrides(cfg: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Return ``cfg`` with command-line values applied on top.

    Raises:
        InvalidConfig: If an override is out of range
    """
    trading: dict[str, Any] = {}
    if args.profit_target is not None:
        trading["profit_target_percent"] = args.profit_target
    if args.stop_loss is not None:
        trading["stop_loss_percent"] = args.stop_loss
    if args.max_position_size is not None:
        trading["max_position_size_percent"] = args.max_position_size
    if args.interval_ms is not None:
        trading["tick_interval_millis"] = args.interval_ms
    if args.risk_level is not None:
        trading["risk_level"] = args.risk_level

    data = cfg.model_dump()
    data["trading"] = cfg.trading.merged(trading).model_dump()
    if args.instruments:
        data["universe"]["instruments"] = args.instruments.split(",")
    if args.feed:
        data["feed"]["feed_type"] = args.feed
    if args.equity is not None:
        data["ledger"]["paper_equity"] = args.equity

    return build_app_config(data)


def live_credentials() -> tuple[str, str, bool]:
    """Read Binance credentials for live mode from the environment.

    Returns:
        (api_key, api_secret, testnet)

    Raises:
        InvalidConfig: If the key or secret is missing
    """
    api_key = os.getenv("BINANCE_API_KEY", "")
    api_secret = os.getenv("BINANCE_API_SECRET", "")
    if not api_key or not api_secret:
        raise InvalidConfig(
            "BINANCE_API_KEY and BINANCE_API_SECRET must be set for live trading"
        )
    testnet = os.getenv("BINANCE_TESTNET", "true").strip().lower() in ("1", "true", "yes")
    if testnet:
        logger.warning("BINANCE_TESTNET=true - orders go to the Binance testnet")
    else:
        logger.warning("BINANCE_TESTNET=false - REAL MONEY MODE, orders are live")
    return api_key, api_secret, testnet


def build_loop(
    cfg: AppConfig,
    journal: TradeJournal | None = None,
    seed: int | None = None,
    mode: str = "paper",
) -> ControlLoop:
    """Wire a ControlLoop from ``cfg``.

    Paper mode fills orders in memory against ``ledger.paper_equity``. Live
    mode sends them to Binance through ccxt and sizes from the account
    balance in the instruments' quote currency.

    Raises:
        InvalidConfig: If live mode is requested without credentials
    """
    instruments = cfg.universe.instruments
    if cfg.feed.feed_type == "binance":
        feed = BinanceMarketDataFeed(
            base_url=cfg.feed.binance_base_url,
            interval=cfg.feed.kline_interval,
            limit=cfg.feed.kline_limit,
            timeout=cfg.feed.timeout_seconds,
        )
    else:
        feed = SimulatedMarketDataFeed(instruments=instruments, seed=seed)

    if mode == "live":
        api_key, api_secret, testnet = live_credentials()
        venue = CcxtExecutionVenue.binance(
            api_key, api_secret, testnet=testnet, timeout=max(1, int(cfg.feed.timeout_seconds))
        )
        ledger = CcxtLedger(venue.exchange)
        execution = venue
    else:
        ledger = PaperLedger(cfg.ledger.paper_equity)
        execution = PaperExecutionVenue(fee_rate=cfg.ledger.fee_rate)

    return ControlLoop(
        config=cfg.trading,
        instruments=instruments,
        signal_generator=SignalGenerator(feed, RandomConfidenceScorer(seed=seed)),
        ledger=ledger,
        execution=execution,
        telemetry=journal,
        dry_run=mode != "live",
    )


def print_startup_banner(cfg: AppConfig, mode: str = "paper") -> None:
    print("\n" + "=" * 70)
    print("Signal Trader - Control Loop")
    print("=" * 70)
    print(f"Mode:          {mode.upper()}")
    print(f"Feed:          {cfg.feed.feed_type}")
    print(f"Instruments:   {', '.join(cfg.universe.instruments)}")
    print(f"Interval:      {cfg.trading.tick_interval_millis} ms")
    print(f"Profit target: {cfg.trading.profit_target_percent:.2f}%")
    print(f"Stop loss:     {cfg.trading.stop_loss_percent:.2f}%")
    print(f"Position size: {cfg.trading.max_position_size_percent:.2f}% of equity")
    if mode == "paper":
        print(f"Equity:        ${cfg.ledger.paper_equity:,.2f}")
    print("=" * 70 + "\n")


def print_shutdown_summary(loop: ControlLoop, journal: TradeJournal | None = None) -> None:
    """Print summary statistics on shutdown.

    Args:
        loop: The stopped control loop
        journal: Journal the loop recorded into, if any
    """
    stats = loop.stats

    print("\n" + "=" * 70)
    print("Session Summary")
    print("=" * 70)

    if stats.start_time and stats.end_time:
        duration = (stats.end_time - stats.start_time).total_seconds()
        print(f"Duration:           {duration:.1f} s")

    print(f"Ticks:              {stats.ticks}")
    print(f"Positions opened:   {stats.positions_opened}")
    print(f"Positions closed:   {stats.positions_closed}")
    print(f"Still open:         {len(loop.store)}")
    print(f"Execution failures: {stats.execution_failures}")

    if journal is not None:
        summary = journal.statistics()
        print(f"Success rate:       {summary['trades']['success_rate']:.1f}%")
        print(f"Net profit:         ${summary['performance']['net_profit']:+,.2f}")

    if stats.errors:
        errors = list(stats.errors)
        print(f"\nErrors:             {len(errors)}")
        for i, error in enumerate(errors[:5], 1):
            print(f"  {i}. {error}")
        if len(errors) > 5:
            print(f"  ... and {len(errors) - 5} more")

    print("=" * 70 + "\n")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Periodic signal trading control loop",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Simulated feed, one pass per second
  signal-trader --feed simulated --interval-ms 1000

  # Binance public klines for two instruments, stop after 10 minutes
  signal-trader --feed binance --instruments BTCUSDT,ETHUSDT --duration 600

  # Expose the HTTP control surface
  signal-trader --serve --port 8000

  # Live orders on Binance (testnet unless BINANCE_TESTNET=false)
  signal-trader --mode live --feed binance --yes-i-know-this-is-real-money

Environment Variables:
  SIGNAL_TRADER_HOME         Directory holding config.json
  PROFIT_TARGET_PERCENT      Take-profit threshold (default: 2.0)
  STOP_LOSS_PERCENT          Stop-loss threshold (default: 1.0)
  MAX_POSITION_SIZE_PERCENT  Percent of equity per position (default: 10.0)
  TICK_INTERVAL_MILLIS       Milliseconds between passes (default: 1000)
  INSTRUMENTS                Comma-separated instruments
  FEED_TYPE                  simulated or binance
  BINANCE_API_KEY            Binance API key (required for live)
  BINANCE_API_SECRET         Binance API secret (required for live)
  BINANCE_TESTNET            true for testnet, false for mainnet (default: true)
        """,
    )

    parser.add_argument("--mode", choices=["paper", "live"], default="paper",
                        help="Order handling: paper (in-memory fills) or live (Binance via ccxt)")
    parser.add_argument("--feed", choices=["simulated", "binance"], default=None,
                        help="Market data feed (default: from config)")
    parser.add_argument("--instruments", default=None,
                        help="Comma-separated instruments, e.g. BTCUSDT,ETHUSDT")

    parser.add_argument("--profit-target", type=float, default=None,
                        help="Take-profit threshold in percent")
    parser.add_argument("--stop-loss", type=float, default=None,
                        help="Stop-loss threshold in percent")
    parser.add_argument("--max-position-size", type=float, default=None,
                        help="Percent of equity committed per position")
    parser.add_argument("--interval-ms", type=int, default=None,
                        help="Milliseconds between evaluation passes")
    parser.add_argument("--risk-level", choices=["low", "medium", "high"], default=None,
                        help="Risk level tag for risk records")

    parser.add_argument("--equity", type=float, default=None,
                        help="Paper account equity in quote currency")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for the simulated feed and confidence draws")
    parser.add_argument("--duration", type=float, default=None,
                        help="Stop after this many seconds (default: run until Ctrl+C)")
    parser.add_argument("--journal", type=Path, default=None,
                        help="JSONL file for decision/trade/risk records")

    parser.add_argument("--yes-i-know-this-is-real-money", action="store_true",
                        help="Required with --mode live")

    parser.add_argument("--serve", action="store_true",
                        help="Serve the HTTP control surface with uvicorn")
    parser.add_argument("--host", default="127.0.0.1", help="API host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="API port (default: 8000)")

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    args = parser.parse_args(argv)

    if args.duration is not None and args.duration <= 0:
        parser.error("--duration must be positive")
    if args.mode == "live" and not args.yes_i_know_this_is_real_money:
        parser.error("--mode live requires --yes-i-know-this-is-real-money")
    if args.serve and args.duration is not None:
        parser.error("--duration cannot be combined with --serve")

    return args


def _log_tick(report: TickReport) -> None:
    if report.opened or report.closed:
        logger.info(
            "Tick %d: opened=%d closed=%d skipped=%d errors=%d",
            report.tick, report.opened, report.closed, report.skipped, report.errors,
        )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the control loop CLI.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        cfg = apply_overrides(load_config(), args)
    except InvalidConfig as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    journal = TradeJournal(path=args.journal) if args.journal else TradeJournal()
    try:
        loop = build_loop(cfg, journal, seed=args.seed, mode=args.mode)
    except InvalidConfig as e:
        logger.error("Cannot set up %s mode: %s", args.mode, e)
        return 1
    loop.on_tick = _log_tick

    print_startup_banner(cfg, args.mode)

    try:
        loop.start()
    except (InvalidConfig, SchedulerError) as e:
        logger.error("Failed to start control loop: %s", e)
        return 1

    try:
        if args.serve:
            from signal_trader.api import create_app, serve

            serve(create_app(loop, journal), host=args.host, port=args.port)
        else:
            print(f"[{datetime.now().strftime('%H:%M:%S')}] Loop started - Press Ctrl+C to stop\n")
            deadline = time.monotonic() + args.duration if args.duration else None
            while deadline is None or time.monotonic() < deadline:
                time.sleep(0.2)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
    finally:
        loop.stop()
        loop.wait_idle(timeout=10.0)

    print_shutdown_summary(loop, journal)
    return 0


if __name__ == "__main__":
    sys.exit(main())
