"""Position sizing from account risk parameters.

quantity = (account_equity * max_position_size_percent / 100) / price
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from signal_trader.core.errors import InvalidEquity, InvalidPrice

if TYPE_CHECKING:
    from signal_trader.config.models import TradingConfig


def risk_amount(account_equity: float, max_position_size_percent: float) -> float:
    """Quote-currency amount committed to a single position."""
    return account_equity * (max_position_size_percent / 100.0)


class PositionSizer:
    """Converts equity and config into an order quantity."""

    def size(self, price: float, config: TradingConfig, account_equity: float) -> float:
        """Compute the quantity to open at ``price``.

        Args:
            price: Entry price
            config: Active trading configuration
            account_equity: Current equity from the ledger

        Returns:
            Quantity in base units

        Raises:
            InvalidPrice: If price is not positive and finite
            InvalidEquity: If equity is not positive and finite

        Example:
            >>> PositionSizer().size(50000.0, TradingConfig(max_position_size_percent=10), 1000.0)
            0.002
        """
        if not math.isfinite(price) or price <= 0:
            raise InvalidPrice(price)
        if not math.isfinite(account_equity) or account_equity <= 0:
            raise InvalidEquity(account_equity)
        return risk_amount(account_equity, config.max_position_size_percent) / price


__all__ = ["PositionSizer", "risk_amount"]
