"""Live execution venue and ledger backed by a ccxt exchange.

Opening orders are market orders in the position's direction; closing orders
are reduce-only market orders on the opposite side. Failures are raised as
ExecutionFailure and are not retried here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

try:
    import ccxt
except ImportError:
    raise ImportError(
        "ccxt library is required for live execution. "
        "Install it with: pip install ccxt"
    )

from signal_trader.core.errors import DataUnavailable, ExecutionFailure
from signal_trader.core.models import CloseReason, Position, PositionSide
from signal_trader.exchange.base import CloseAck, ExecutionStatus, OrderHandle

logger = logging.getLogger(__name__)

KNOWN_QUOTES = ("USDT", "USDC", "BUSD", "BTC", "ETH")

_STATUS_MAP: dict[str, ExecutionStatus] = {
    "closed": "FILLED",
    "open": "PENDING",
    "canceled": "CANCELLED",
    "cancelled": "CANCELLED",
    "rejected": "FAILED",
    "expired": "CANCELLED",
}


def to_ccxt_symbol(instrument: str) -> str:
    """Convert an exchange-native symbol like BTCUSDT to ccxt's BTC/USDT."""
    if "/" in instrument:
        return instrument
    for quote in KNOWN_QUOTES:
        if instrument.endswith(quote) and len(instrument) > len(quote):
            return f"{instrument[: -len(quote)]}/{quote}"
    return instrument


def _timestamp(order: dict[str, Any]) -> datetime:
    raw = order.get("timestamp")
    if raw:
        return datetime.fromtimestamp(raw / 1000, tz=timezone.utc)
    return datetime.now(timezone.utc)


def _fee(order: dict[str, Any]) -> float | None:
    fee = order.get("fee") or {}
    cost = fee.get("cost")
    return float(cost) if cost is not None else None


class CcxtExecutionVenue:
    """Execution venue submitting market orders through ccxt.

    Attributes:
        exchange: ccxt exchange instance (authenticated)
    """

    def __init__(self, exchange: Any) -> None:
        self.exchange = exchange

    @classmethod
    def binance(cls, api_key: str, api_secret: str, *, testnet: bool = True, timeout: int = 30) -> CcxtExecutionVenue:
        """Build a venue for Binance spot.

        Raises:
            ValueError: If credentials are missing
        """
        if not api_key or not api_secret:
            raise ValueError("API credentials are required for live execution")
        # SECURITY: options carry credentials, never log them
        exchange = ccxt.binance(
            {
                "apiKey": api_key,
                "secret": api_secret,
                "enableRateLimit": True,
                "timeout": timeout * 1000,
            }
        )
        if testnet:
            exchange.set_sandbox_mode(True)
        logger.debug("Initialized ccxt binance venue: testnet=%s", testnet)
        return cls(exchange)

    def submit_order(self, position: Position) -> OrderHandle:
        side = "buy" if position.side is PositionSide.LONG else "sell"
        symbol = to_ccxt_symbol(position.instrument)
        try:
            order = self.exchange.create_market_order(symbol, side, position.quantity)
        except ccxt.BaseError as exc:
            raise ExecutionFailure(position.instrument, "submit_order", exc) from exc

        price = order.get("average") or order.get("price") or position.entry_price
        return OrderHandle(
            order_id=str(order["id"]),
            instrument=position.instrument,
            side=side,
            quantity=float(order.get("amount") or position.quantity),
            price=float(price),
            status=_STATUS_MAP.get(str(order.get("status")), "PENDING"),
            timestamp=_timestamp(order),
            fees=_fee(order),
        )

    def submit_close_order(self, position: Position, reason: CloseReason) -> CloseAck:
        side = "sell" if position.side is PositionSide.LONG else "buy"
        symbol = to_ccxt_symbol(position.instrument)
        try:
            order = self.exchange.create_market_order(
                symbol, side, position.quantity, None, {"reduceOnly": True}
            )
        except ccxt.BaseError as exc:
            raise ExecutionFailure(position.instrument, "submit_close_order", exc) from exc

        return CloseAck(
            order_id=str(order["id"]),
            instrument=position.instrument,
            reason=reason,
            status=_STATUS_MAP.get(str(order.get("status")), "PENDING"),
            timestamp=_timestamp(order),
            fees=_fee(order),
        )


class CcxtLedger:
    """Ledger reading total equity in ``currency`` from ``fetch_balance``."""

    def __init__(self, exchange: Any, currency: str = "USDT") -> None:
        self.exchange = exchange
        self.currency = currency

    def get_account_equity(self) -> float:
        try:
            balance = self.exchange.fetch_balance()
        except ccxt.BaseError as exc:
            raise DataUnavailable(self.currency, f"balance unavailable: {exc}") from exc
        total = balance.get(self.currency, {}).get("total")
        return float(total or 0.0)


__all__ = ["CcxtExecutionVenue", "CcxtLedger", "to_ccxt_symbol"]
