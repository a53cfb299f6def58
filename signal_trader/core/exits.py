"""Exit evaluation for open positions."""

from __future__ import annotations

from signal_trader.core.models import ExitDecision, MarketSignal, Position, PositionSide


def profit_percent(position: Position, price: float) -> float:
    """Unrealized profit of ``position`` at ``price`` as a percent of entry.

    LONG:  (price - entry) / entry * 100
    SHORT: (entry - price) / entry * 100
    """
    entry = position.entry_price
    if position.side is PositionSide.LONG:
        return (price - entry) * 100.0 / entry
    return (entry - price) * 100.0 / entry


class ExitEvaluator:
    """Decides whether an open position hit its profit target or stop loss.

    Thresholds come from the position itself, frozen at entry. Take profit is
    checked before stop loss.
    """

    def evaluate(self, signal: MarketSignal, position: Position) -> ExitDecision:
        pnl_pct = profit_percent(position, signal.price)
        if pnl_pct >= position.profit_target_percent:
            return ExitDecision.TAKE_PROFIT
        if pnl_pct <= -position.stop_loss_percent:
            return ExitDecision.STOP_LOSS
        return ExitDecision.NONE


__all__ = ["ExitEvaluator", "profit_percent"]
