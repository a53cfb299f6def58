"""Error taxonomy for the trading core.

Per-instrument errors (DataUnavailable, InvalidPrice, InvalidEquity) are
tick-scoped: the control loop skips the instrument and carries on with the
rest of the pass. InvalidConfig is raised synchronously at configuration or
start time. SchedulerError is the only fatal condition.
"""

from __future__ import annotations


class TradingError(Exception):
    """Base class for all errors raised by the trading core."""


class DataUnavailable(TradingError):
    """Market data for an instrument could not be fetched this tick."""

    def __init__(self, instrument: str, reason: str = "") -> None:
        self.instrument = instrument
        self.reason = reason
        message = f"Market data unavailable for {instrument}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvalidConfig(TradingError):
    """Configuration failed validation and was not applied."""


class InvalidPrice(TradingError):
    """Price is not usable for sizing (non-positive or non-finite)."""

    def __init__(self, price: float) -> None:
        self.price = price
        super().__init__(f"Price must be a positive finite number, got {price}")


class InvalidEquity(TradingError):
    """Account equity is not usable for sizing."""

    def __init__(self, equity: float) -> None:
        self.equity = equity
        super().__init__(f"Account equity must be positive, got {equity}")


class ExecutionFailure(TradingError):
    """The execution venue rejected or failed to acknowledge an order."""

    def __init__(self, instrument: str, operation: str, cause: BaseException | None = None) -> None:
        self.instrument = instrument
        self.operation = operation
        self.cause = cause
        message = f"{operation} failed for {instrument}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class PositionConflict(TradingError):
    """A position is already open for the instrument."""

    def __init__(self, instrument: str) -> None:
        self.instrument = instrument
        super().__init__(f"Position already open for {instrument}")


class SchedulerError(TradingError):
    """The scheduling timer could not be installed or cancelled."""


__all__ = [
    "TradingError",
    "DataUnavailable",
    "InvalidConfig",
    "InvalidPrice",
    "InvalidEquity",
    "ExecutionFailure",
    "PositionConflict",
    "SchedulerError",
]
