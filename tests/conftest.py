"""Pytest configuration and fake collaborators shared across the suite."""

from __future__ import annotations

import threading
from typing import Any, Callable, Iterator

import pytest

from signal_trader.config import TradingConfig
from signal_trader.core.models import CloseReason, MarketSignal, Position, SignalAction
from signal_trader.engine.control_loop import ControlLoop
from signal_trader.exchange.base import CloseAck, OrderHandle


def make_signal(
    instrument: str = "BTCUSDT",
    action: SignalAction = SignalAction.BUY,
    confidence: float = 80.0,
    price: float = 50000.0,
) -> MarketSignal:
    return MarketSignal(
        instrument=instrument,
        action=action,
        confidence=confidence,
        price=price,
        indicators={"rsi": 25.0, "macd": 10.0, "volume": 1000.0, "trend": "bullish"},
    )


class ScriptedSignalGenerator:
    """Returns the signal (or raises the exception) scripted per instrument."""

    def __init__(self, script: dict[str, MarketSignal | Exception] | None = None) -> None:
        self.script: dict[str, MarketSignal | Exception] = dict(script or {})
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def generate(self, instrument: str) -> MarketSignal:
        with self._lock:
            self.calls.append(instrument)
        outcome = self.script[instrument]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeLedger:
    def __init__(self, equity: float = 1000.0) -> None:
        self.equity = equity

    def get_account_equity(self) -> float:
        return self.equity


class RecordingExecution:
    """Execution venue that records submissions and can be told to fail."""

    def __init__(self, fail_open: bool = False, fail_close: bool = False) -> None:
        self.fail_open = fail_open
        self.fail_close = fail_close
        self.orders: list[Position] = []
        self.close_orders: list[tuple[Position, CloseReason]] = []
        self._lock = threading.Lock()

    def submit_order(self, position: Position) -> OrderHandle:
        if self.fail_open:
            raise ConnectionError("venue unreachable")
        with self._lock:
            self.orders.append(position.snapshot())
            order_id = f"order_{len(self.orders)}"
        side = "buy" if position.side.value == "LONG" else "sell"
        return OrderHandle(
            order_id=order_id,
            instrument=position.instrument,
            side=side,
            quantity=position.quantity,
            price=position.entry_price,
        )

    def submit_close_order(self, position: Position, reason: CloseReason) -> CloseAck:
        if self.fail_close:
            raise ConnectionError("venue unreachable")
        with self._lock:
            self.close_orders.append((position.snapshot(), reason))
            order_id = f"close_{len(self.close_orders)}"
        return CloseAck(order_id=order_id, instrument=position.instrument, reason=reason)


class RecordingTelemetry:
    def __init__(self) -> None:
        self.decisions: list[dict[str, Any]] = []
        self.trades: list[dict[str, Any]] = []
        self.risk: list[dict[str, Any]] = []

    def record_decision(self, **kwargs: Any) -> str:
        self.decisions.append(kwargs)
        return f"d{len(self.decisions)}"

    def record_trade(self, **kwargs: Any) -> str:
        self.trades.append(kwargs)
        return f"t{len(self.trades)}"

    def record_risk(self, **kwargs: Any) -> str:
        self.risk.append(kwargs)
        return f"r{len(self.risk)}"


class ManualScheduler:
    """Scheduler double that only fires when the test calls ``fire()``.

    ``fire()`` invokes the callback even after cancellation, standing in for
    a timer callback that raced with ``cancel()``.
    """

    def __init__(self, interval_sec: float, callback: Callable[[], None], name: str = "manual") -> None:
        self.interval_sec = interval_sec
        self.name = name
        self.started = False
        self.cancelled = False
        self._callback = callback

    @property
    def active(self) -> bool:
        return self.started and not self.cancelled

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self._callback()


class SchedulerRecorder:
    """Scheduler factory remembering every scheduler it built."""

    def __init__(self) -> None:
        self.created: list[ManualScheduler] = []

    def __call__(self, interval_sec: float, callback: Callable[[], None], name: str) -> ManualScheduler:
        scheduler = ManualScheduler(interval_sec, callback, name)
        self.created.append(scheduler)
        return scheduler

    @property
    def active(self) -> list[ManualScheduler]:
        return [s for s in self.created if s.active]


@pytest.fixture
def config() -> TradingConfig:
    return TradingConfig(
        profit_target_percent=2.0,
        stop_loss_percent=1.0,
        max_position_size_percent=10.0,
        tick_interval_millis=1000,
    )


@pytest.fixture
def execution() -> RecordingExecution:
    return RecordingExecution()


@pytest.fixture
def telemetry() -> RecordingTelemetry:
    return RecordingTelemetry()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger(1000.0)


@pytest.fixture
def generator() -> ScriptedSignalGenerator:
    return ScriptedSignalGenerator()


@pytest.fixture
def schedulers() -> SchedulerRecorder:
    return SchedulerRecorder()


@pytest.fixture
def loop(config, generator, ledger, execution, telemetry, schedulers) -> Iterator[ControlLoop]:
    """ControlLoop over BTC/ETH/BNB wired to fakes and a manual scheduler."""
    control_loop = ControlLoop(
        config=config,
        instruments=["BTCUSDT", "ETHUSDT", "BNBUSDT"],
        signal_generator=generator,
        ledger=ledger,
        execution=execution,
        telemetry=telemetry,
        scheduler_factory=schedulers,
    )
    yield control_loop
    control_loop.stop()
