"""Paper trading venue and ledger.

Simulates order acknowledgement in memory so the control loop can run end to
end without network access.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any

from signal_trader.core.errors import InvalidEquity
from signal_trader.core.models import CloseReason, Position, PositionSide
from signal_trader.exchange.base import CloseAck, OrderHandle

logger = logging.getLogger(__name__)


class PaperLedger:
    """Paper account equity.

    Attributes:
        equity: Current equity in quote currency
    """

    def __init__(self, equity: float = 1000.0) -> None:
        if equity <= 0:
            raise InvalidEquity(equity)
        self._equity = equity
        self._lock = threading.Lock()

    def get_account_equity(self) -> float:
        with self._lock:
            return self._equity


class PaperExecutionVenue:
    """In-memory execution venue.

    Orders are acknowledged immediately with status ``SIMULATED``. Every
    submission is kept in ``orders`` / ``close_orders`` for inspection.

    Attributes:
        fee_rate: Fee charged on notional (0.001 = 0.1%)
        orders: Opening orders submitted so far
        close_orders: Closing orders submitted so far
    """

    def __init__(self, fee_rate: float = 0.0) -> None:
        self.fee_rate = fee_rate
        self.orders: list[dict[str, Any]] = []
        self.close_orders: list[dict[str, Any]] = []
        self._order_counter = 0
        self._lock = threading.Lock()

    def _next_order_id(self) -> str:
        self._order_counter += 1
        return f"paper_{self._order_counter}"

    def submit_order(self, position: Position) -> OrderHandle:
        side = "buy" if position.side is PositionSide.LONG else "sell"
        fees = position.entry_price * position.quantity * self.fee_rate
        with self._lock:
            order_id = self._next_order_id()
            self.orders.append(
                {
                    "order_id": order_id,
                    "instrument": position.instrument,
                    "side": side,
                    "quantity": position.quantity,
                    "price": position.entry_price,
                }
            )
        logger.info(
            "Paper order %s: %s %.8f %s @ %.2f",
            order_id, side, position.quantity, position.instrument, position.entry_price,
        )
        return OrderHandle(
            order_id=order_id,
            instrument=position.instrument,
            side=side,
            quantity=position.quantity,
            price=position.entry_price,
            status="SIMULATED",
            timestamp=datetime.now(timezone.utc),
            fees=fees,
        )

    def submit_close_order(self, position: Position, reason: CloseReason) -> CloseAck:
        side = "sell" if position.side is PositionSide.LONG else "buy"
        with self._lock:
            order_id = self._next_order_id()
            self.close_orders.append(
                {
                    "order_id": order_id,
                    "instrument": position.instrument,
                    "side": side,
                    "quantity": position.quantity,
                    "reason": reason.value,
                }
            )
        logger.info(
            "Paper close order %s: %s %.8f %s (%s)",
            order_id, side, position.quantity, position.instrument, reason.value,
        )
        return CloseAck(
            order_id=order_id,
            instrument=position.instrument,
            reason=reason,
            status="SIMULATED",
            timestamp=datetime.now(timezone.utc),
        )


__all__ = ["PaperLedger", "PaperExecutionVenue"]
