"""Telemetry sinks for the control loop."""

from signal_trader.telemetry.journal import (
    DecisionRecord,
    RiskRecord,
    TradeJournal,
    TradeRecord,
)

__all__ = ["DecisionRecord", "RiskRecord", "TradeJournal", "TradeRecord"]
