"""Periodic control loop driving the per-instrument position lifecycle.

On every tick the loop evaluates the instrument universe, turns each
evaluation into a signal and routes it:

    confidence < 70            -> filtered, no state change
    no position, BUY           -> open LONG
    no position, SELL          -> open SHORT
    position open (any action) -> exit evaluation (take profit / stop loss)
    anything else              -> ignored

Signal fetches within a pass run concurrently; routing and every write to the
PositionStore happen one instrument at a time. Passes never overlap.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

from signal_trader.config.models import TradingConfig, build_trading_config
from signal_trader.core.errors import (
    DataUnavailable,
    ExecutionFailure,
    InvalidEquity,
    InvalidPrice,
    PositionConflict,
)
from signal_trader.core.exits import ExitEvaluator, profit_percent
from signal_trader.core.models import (
    CloseReason,
    ExitDecision,
    MarketSignal,
    Position,
    PositionSide,
    SignalAction,
    utc_now,
)
from signal_trader.core.position_store import PositionStore
from signal_trader.core.signals import SignalGenerator
from signal_trader.core.sizing import PositionSizer
from signal_trader.engine.scheduler import TickScheduler
from signal_trader.exchange.base import (
    ExecutionVenue,
    Ledger,
    NullTelemetry,
    Telemetry,
)

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 70.0
STRATEGY_TAG = "rsi_macd"

SchedulerFactory = Callable[[float, Callable[[], None], str], TickScheduler]


class LoopState(str, Enum):
    STOPPED = "STOPPED"
    RUNNING = "RUNNING"


class RouteOutcome(str, Enum):
    """What routing did with a signal."""

    FILTERED = "FILTERED"
    OPENED = "OPENED"
    CLOSED = "CLOSED"
    HELD = "HELD"
    IGNORED = "IGNORED"


@dataclass
class TickReport:
    """Summary of one evaluation pass.

    Attributes:
        tick: Sequence number of the pass
        started_at: Wall-clock start of the pass
        duration_ms: Pass duration in milliseconds
        outcomes: Per-instrument routing outcome, or "SKIPPED"/"ERROR"
        execution_failures: Venue calls that failed during the pass
    """

    tick: int
    started_at: datetime = field(default_factory=utc_now)
    duration_ms: float = 0.0
    outcomes: dict[str, str] = field(default_factory=dict)
    execution_failures: int = 0

    def count(self, outcome: str) -> int:
        return sum(1 for value in self.outcomes.values() if value == outcome)

    @property
    def opened(self) -> int:
        return self.count(RouteOutcome.OPENED.value)

    @property
    def closed(self) -> int:
        return self.count(RouteOutcome.CLOSED.value)

    @property
    def skipped(self) -> int:
        return self.count("SKIPPED")

    @property
    def errors(self) -> int:
        return self.count("ERROR")


@dataclass
class LoopStats:
    """Running totals for the lifetime of a loop.

    Attributes:
        ticks: Passes completed
        positions_opened: Open transitions performed
        positions_closed: Close transitions performed
        execution_failures: Venue calls that failed
        errors: Most recent error messages (bounded)
        start_time: Last time the loop entered RUNNING
        end_time: Last time the loop entered STOPPED
    """

    ticks: int = 0
    positions_opened: int = 0
    positions_closed: int = 0
    execution_failures: int = 0
    errors: deque[str] = field(default_factory=lambda: deque(maxlen=100))
    start_time: datetime | None = None
    end_time: datetime | None = None


@dataclass
class _Evaluation:
    instrument: str
    signal: MarketSignal | None = None
    error: Exception | None = None
    processing_ms: float = 0.0


class ControlLoop:
    """Scheduler and position-lifecycle state machine.

    The loop exclusively owns its scheduling timer and the iteration order of
    the instrument universe. Positions live in the PositionStore; nothing
    else creates, mutates or deletes them.

    Lock order is lifecycle -> store. A pass holds the pass lock, briefly
    takes the lifecycle lock to check it is still admitted, then takes the
    store lock per instrument while routing.
    """

    def __init__(
        self,
        config: TradingConfig,
        instruments: Sequence[str],
        signal_generator: SignalGenerator,
        ledger: Ledger,
        execution: ExecutionVenue,
        telemetry: Telemetry | None = None,
        *,
        store: PositionStore | None = None,
        sizer: PositionSizer | None = None,
        exit_evaluator: ExitEvaluator | None = None,
        dry_run: bool = True,
        fetch_workers: int | None = None,
        scheduler_factory: SchedulerFactory = TickScheduler,
    ) -> None:
        """Initialize the control loop.

        Args:
            config: Initial trading configuration
            instruments: Fixed instrument universe, evaluated in this order
            signal_generator: Produces signals from market data
            ledger: Supplies account equity for sizing
            execution: Venue receiving open/close orders
            telemetry: Sink for decision/trade/risk records
            store: Position store (a fresh one by default)
            sizer: Position sizer
            exit_evaluator: Exit evaluator
            dry_run: Tag trade records as simulated
            fetch_workers: Threads used to fetch signals concurrently
                (defaults to one per instrument)
            scheduler_factory: Builds the scheduling timer
        """
        if not instruments:
            raise ValueError("instrument universe must not be empty")
        if len(set(instruments)) != len(instruments):
            raise ValueError("instrument universe must not contain duplicates")

        self._config = build_trading_config(config.model_dump())
        self._instruments: tuple[str, ...] = tuple(instruments)
        self.signal_generator = signal_generator
        self.ledger = ledger
        self.execution = execution
        self.telemetry: Telemetry = telemetry if telemetry is not None else NullTelemetry()
        self.store = store if store is not None else PositionStore()
        self.sizer = sizer if sizer is not None else PositionSizer()
        self.exit_evaluator = exit_evaluator if exit_evaluator is not None else ExitEvaluator()
        self.dry_run = dry_run
        self.fetch_workers = max(1, fetch_workers or len(self._instruments))

        self._scheduler_factory = scheduler_factory
        self._scheduler: TickScheduler | None = None
        self._state = LoopState.STOPPED
        self._generation = 0
        self._tick_seq = 0
        self._lifecycle_lock = threading.Lock()
        self._pass_lock = threading.Lock()

        self.stats = LoopStats()
        self.on_tick: Callable[[TickReport], None] | None = None
        self.on_error: Callable[[str, Exception], None] | None = None

        logger.info(
            "ControlLoop initialized: instruments=%s, interval=%dms",
            ",".join(self._instruments), self._config.tick_interval_millis,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is LoopState.RUNNING

    @property
    def instruments(self) -> tuple[str, ...]:
        return self._instruments

    def start(self) -> None:
        """Enter RUNNING and install the scheduling timer.

        Calling start() while already running is a no-op.

        Raises:
            InvalidConfig: If the active configuration fails validation
            SchedulerError: If the timer cannot be installed
        """
        with self._lifecycle_lock:
            if self._state is LoopState.RUNNING:
                return
            self._config = build_trading_config(self._config.model_dump())
            self._schedule_locked()
            self._state = LoopState.RUNNING
            self.stats.start_time = utc_now()
            self.stats.end_time = None
        logger.info("Control loop started (interval=%dms)", self._config.tick_interval_millis)

    def stop(self) -> None:
        """Cancel the pending timer and enter STOPPED.

        No tick is admitted after stop() returns. A pass already in flight
        runs to completion; use ``wait_idle()`` to wait for it. Calling stop()
        while stopped is a no-op.
        """
        with self._lifecycle_lock:
            if self._state is LoopState.STOPPED:
                return
            self._cancel_locked()
            self._state = LoopState.STOPPED
            self.stats.end_time = utc_now()
        logger.info(
            "Control loop stopped: ticks=%d, opened=%d, closed=%d, errors=%d",
            self.stats.ticks, self.stats.positions_opened,
            self.stats.positions_closed, len(self.stats.errors),
        )

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no pass is in flight.

        Returns:
            False if the timeout expired first
        """
        acquired = self._pass_lock.acquire(timeout=-1 if timeout is None else timeout)
        if acquired:
            self._pass_lock.release()
        return acquired

    def _schedule_locked(self) -> None:
        self._generation += 1
        generation = self._generation
        scheduler = self._scheduler_factory(
            self._config.tick_interval_millis / 1000.0,
            lambda: self._on_timer(generation),
            f"control-loop-{generation}",
        )
        scheduler.start()
        self._scheduler = scheduler

    def _cancel_locked(self) -> None:
        self._generation += 1
        if self._scheduler is not None:
            self._scheduler.cancel()
            self._scheduler = None

    # ------------------------------------------------------------------
    # Configuration surface
    # ------------------------------------------------------------------

    def get_config(self) -> TradingConfig:
        return self._config

    def reconfigure(self, partial: Mapping[str, Any] | None = None, **changes: Any) -> TradingConfig:
        """Merge ``partial`` into the active configuration.

        If the tick interval changes while running, the timer is cancelled
        and rescheduled atomically; exactly one timer is active afterwards.
        Open positions keep the thresholds they were opened with.

        Raises:
            InvalidConfig: If the merged configuration is invalid; the active
                configuration is left unchanged
            SchedulerError: If the replacement timer cannot be installed; the
                previous configuration and timer stay in place
        """
        with self._lifecycle_lock:
            new_config = self._config.merged(partial, **changes)
            with self.store.lock:
                interval_changed = new_config.tick_interval_millis != self._config.tick_interval_millis
                if interval_changed and self._state is LoopState.RUNNING:
                    self._reschedule_locked(new_config)
                else:
                    self._config = new_config
        logger.info("Configuration updated: %s", new_config.model_dump())
        return new_config

    def _reschedule_locked(self, new_config: TradingConfig) -> None:
        # The replacement timer must be running before the old one goes away.
        previous = self._scheduler
        previous_config = self._config
        previous_generation = self._generation
        self._config = new_config
        try:
            self._schedule_locked()
        except Exception:
            self._config = previous_config
            self._generation = previous_generation
            self._scheduler = previous
            logger.error(
                "Could not reschedule at %dms, keeping %dms",
                new_config.tick_interval_millis, previous_config.tick_interval_millis,
            )
            raise
        if previous is not None:
            previous.cancel()

    set_config = reconfigure

    def get_open_positions(self) -> list[Position]:
        """Return copies of all open positions."""
        return self.store.snapshot()

    # ------------------------------------------------------------------
    # Evaluation pass
    # ------------------------------------------------------------------

    def _on_timer(self, generation: int) -> None:
        with self._pass_lock:
            with self._lifecycle_lock:
                if generation != self._generation or self._state is not LoopState.RUNNING:
                    return
            self._run_pass()

    def run_once(self) -> TickReport:
        """Run one full pass over the universe, independent of the timer.

        Waits for an in-flight pass to finish first.
        """
        with self._pass_lock:
            return self._run_pass()

    def _run_pass(self) -> TickReport:
        self._tick_seq += 1
        report = TickReport(tick=self._tick_seq)
        started = time.perf_counter()

        for evaluation in self._fetch_all():
            report.outcomes[evaluation.instrument] = self._evaluate(evaluation, report)

        report.duration_ms = (time.perf_counter() - started) * 1000.0
        self.stats.ticks += 1

        logger.debug(
            "Tick %d done in %.1fms: opened=%d closed=%d skipped=%d errors=%d",
            report.tick, report.duration_ms, report.opened, report.closed,
            report.skipped, report.errors,
        )

        if self.on_tick:
            try:
                self.on_tick(report)
            except Exception:
                logger.exception("on_tick callback failed")

        return report

    def _fetch_one(self, instrument: str) -> _Evaluation:
        started = time.perf_counter()
        evaluation = _Evaluation(instrument=instrument)
        try:
            evaluation.signal = self.signal_generator.generate(instrument)
        except Exception as e:
            evaluation.error = e
        evaluation.processing_ms = (time.perf_counter() - started) * 1000.0
        return evaluation

    def _fetch_all(self) -> list[_Evaluation]:
        """Fetch signals for every instrument, preserving universe order."""
        workers = min(self.fetch_workers, len(self._instruments))
        if workers <= 1:
            return [self._fetch_one(instrument) for instrument in self._instruments]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="signal-fetch") as pool:
            return list(pool.map(self._fetch_one, self._instruments))

    def _evaluate(self, evaluation: _Evaluation, report: TickReport) -> str:
        instrument = evaluation.instrument
        if evaluation.error is not None:
            return self._handle_error(instrument, evaluation.error)

        signal = evaluation.signal
        assert signal is not None
        try:
            outcome = self.process_signal(signal, report)
        except Exception as e:
            return self._handle_error(instrument, e)

        self._record_decision(signal, outcome, evaluation.processing_ms)
        return outcome.value

    def _handle_error(self, instrument: str, error: Exception) -> str:
        if isinstance(error, DataUnavailable):
            logger.warning("Skipping %s this tick: %s", instrument, error)
            return "SKIPPED"

        if isinstance(error, (InvalidPrice, InvalidEquity, PositionConflict)):
            logger.warning("Aborted open for %s: %s", instrument, error)
        else:
            logger.error("Error evaluating %s: %s", instrument, error, exc_info=error)

        self.stats.errors.append(f"{instrument}: {error}")
        if self.on_error:
            try:
                self.on_error(instrument, error)
            except Exception:
                logger.exception("on_error callback failed")
        return "ERROR"

    # ------------------------------------------------------------------
    # Routing and transitions
    # ------------------------------------------------------------------

    def process_signal(self, signal: MarketSignal, report: TickReport | None = None) -> RouteOutcome:
        """Route one signal to open, exit evaluation, or no-op.

        Raises:
            InvalidPrice: If sizing rejects the signal price
            InvalidEquity: If the ledger reports unusable equity
        """
        if signal.confidence < MIN_CONFIDENCE:
            return RouteOutcome.FILTERED

        opened: Position | None = None
        closed: tuple[Position, CloseReason] | None = None

        # The ledger may be remote, so equity is read before the store lock.
        equity: float | None = None
        if signal.action is not SignalAction.HOLD and signal.instrument not in self.store:
            equity = self.ledger.get_account_equity()

        with self.store.lock:
            position = self.store.get(signal.instrument)
            if position is None:
                if signal.action is SignalAction.HOLD or equity is None:
                    # equity is None only if the position closed since the check above
                    return RouteOutcome.IGNORED
                side = PositionSide.LONG if signal.action is SignalAction.BUY else PositionSide.SHORT
                opened = self._open_locked(signal, side, equity)
            else:
                decision = self.exit_evaluator.evaluate(signal, position)
                if decision is ExitDecision.NONE:
                    return RouteOutcome.HELD
                reason = (
                    CloseReason.PROFIT_TARGET
                    if decision is ExitDecision.TAKE_PROFIT
                    else CloseReason.STOP_LOSS
                )
                removed = self.store.remove(signal.instrument)
                if removed is None:
                    return RouteOutcome.IGNORED
                closed = (removed, reason)

        if opened is not None:
            self._submit_open(opened, signal, report)
            return RouteOutcome.OPENED

        assert closed is not None
        position, reason = closed
        self._submit_close(position, reason, signal.price, signal.confidence, report)
        return RouteOutcome.CLOSED

    def _open_locked(self, signal: MarketSignal, side: PositionSide, equity: float) -> Position:
        config = self._config
        try:
            quantity = self.sizer.size(signal.price, config, equity)
        except (InvalidPrice, InvalidEquity) as e:
            self._record_risk(config, 0.0, approved=False, reason=str(e))
            raise

        self._record_risk(
            config,
            quantity,
            approved=True,
            reason=f"{config.max_position_size_percent:g}% of equity {equity:.2f} at {signal.price:.2f}",
        )

        position = Position(
            instrument=signal.instrument,
            side=side,
            entry_price=signal.price,
            quantity=quantity,
            profit_target_percent=config.profit_target_percent,
            stop_loss_percent=config.stop_loss_percent,
            opened_at=utc_now(),
        )
        self.store.insert(position)
        self.stats.positions_opened += 1
        logger.info(
            "Opened %s position for %s at %.2f (qty=%.8f)",
            side.value, signal.instrument, signal.price, quantity,
        )
        return position

    def close_position(
        self,
        instrument: str,
        reason: CloseReason = CloseReason.MANUAL,
        price: float | None = None,
    ) -> Position | None:
        """Close the position for ``instrument``, if one is open.

        Args:
            instrument: Instrument symbol
            reason: Reason code sent to the venue
            price: Exit price, when known, used for the profit figure

        Returns:
            The removed position, or None if nothing was open
        """
        position = self.store.remove(instrument)
        if position is None:
            return None
        self._submit_close(position, reason, price, None, None)
        return position

    def _submit_open(self, position: Position, signal: MarketSignal, report: TickReport | None) -> None:
        action = "BUY" if position.side is PositionSide.LONG else "SELL"
        reason = f"{signal.action.value} signal ({signal.confidence:.1f}%)"
        try:
            handle = self.execution.submit_order(position)
        except Exception as e:
            failure = ExecutionFailure(position.instrument, "submit_order", e)
            logger.error("%s; position kept pending reconciliation", failure)
            self._count_execution_failure(report)
            self._record_trade(
                position, action, position.entry_price, reason, signal.confidence,
                status="FAILED", metadata={"error": str(e)},
            )
            return

        self._record_trade(
            position, action, handle.price, reason, signal.confidence,
            status=handle.status, order_id=handle.order_id, fees=handle.fees,
            slippage=handle.price - position.entry_price,
        )

    def _submit_close(
        self,
        position: Position,
        reason: CloseReason,
        price: float | None,
        confidence: float | None,
        report: TickReport | None,
    ) -> None:
        self.stats.positions_closed += 1
        profit = position.unrealized_pnl(price) if price is not None else None
        if price is not None:
            logger.info(
                "Closed position for %s - Reason: %s (pnl=%.2f%%)",
                position.instrument, reason.value, profit_percent(position, price),
            )
        else:
            logger.info("Closed position for %s - Reason: %s", position.instrument, reason.value)

        try:
            ack = self.execution.submit_close_order(position, reason)
        except Exception as e:
            failure = ExecutionFailure(position.instrument, "submit_close_order", e)
            logger.error("%s; position already removed locally", failure)
            self._count_execution_failure(report)
            self._record_trade(
                position, "CLOSE", price if price is not None else position.entry_price,
                reason.value, confidence or 0.0, status="FAILED", profit=profit,
                metadata={"error": str(e)},
            )
            return

        self._record_trade(
            position, "CLOSE", price if price is not None else position.entry_price,
            reason.value, confidence or 0.0, status=ack.status, order_id=ack.order_id,
            fees=ack.fees, profit=profit,
        )

    def _count_execution_failure(self, report: TickReport | None) -> None:
        self.stats.execution_failures += 1
        if report is not None:
            report.execution_failures += 1

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    def _record_decision(self, signal: MarketSignal, outcome: RouteOutcome, processing_ms: float) -> None:
        numeric = {
            key: float(value)
            for key, value in signal.indicators.items()
            if isinstance(value, (int, float))
        }
        reasons = [f"{signal.action.value} at confidence {signal.confidence:.1f}"]
        if outcome is RouteOutcome.FILTERED:
            reasons.append(f"confidence below {MIN_CONFIDENCE:g}")
        try:
            self.telemetry.record_decision(
                symbol=signal.instrument,
                strategy=STRATEGY_TAG,
                market_condition=str(signal.indicators.get("trend", "unknown")),
                indicators=numeric,
                decision=outcome.value,
                confidence=signal.confidence,
                reasons=reasons,
                processing_time=processing_ms,
            )
        except Exception:
            logger.exception("Failed to record decision for %s", signal.instrument)

    def _record_trade(
        self,
        position: Position,
        action: str,
        price: float,
        reason: str,
        confidence: float,
        **details: Any,
    ) -> None:
        try:
            self.telemetry.record_trade(
                symbol=position.instrument,
                action=action,
                price=price,
                size=position.quantity,
                reason=reason,
                confidence=confidence,
                strategy=STRATEGY_TAG,
                is_dry_run=self.dry_run,
                **details,
            )
        except Exception:
            logger.exception("Failed to record trade for %s", position.instrument)

    def _record_risk(self, config: TradingConfig, quantity: float, *, approved: bool, reason: str) -> None:
        try:
            self.telemetry.record_risk(
                action="POSITION_SIZE",
                current_drawdown=0.0,
                daily_loss=0.0,
                position_size=quantity,
                risk_level=config.risk_level.upper(),
                approved=approved,
                reason=reason,
            )
        except Exception:
            logger.exception("Failed to record risk check")


__all__ = [
    "ControlLoop",
    "LoopState",
    "LoopStats",
    "RouteOutcome",
    "TickReport",
    "MIN_CONFIDENCE",
    "STRATEGY_TAG",
]
