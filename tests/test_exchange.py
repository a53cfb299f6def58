"""Tests for paper and ccxt-backed execution venues."""

import ccxt
import pytest

from signal_trader.core.errors import DataUnavailable, ExecutionFailure, InvalidEquity
from signal_trader.core.models import CloseReason, Position, PositionSide
from signal_trader.exchange.ccxt_venue import CcxtExecutionVenue, CcxtLedger, to_ccxt_symbol
from signal_trader.exchange.paper import PaperExecutionVenue, PaperLedger


def _position(side=PositionSide.LONG):
    return Position("BTCUSDT", side, 50000.0, 0.002, 2.0, 1.0)


class FakeExchange:
    def __init__(self, error=None, balance=None):
        self.error = error
        self.balance = balance or {"USDT": {"free": 900.0, "used": 100.0, "total": 1000.0}}
        self.calls = []

    def create_market_order(self, symbol, side, amount, price=None, params=None):
        self.calls.append((symbol, side, amount, price, params))
        if self.error is not None:
            raise self.error
        return {
            "id": 12345,
            "status": "closed",
            "amount": amount,
            "average": 50010.0,
            "timestamp": 1_700_000_000_000,
            "fee": {"cost": 0.1, "currency": "USDT"},
        }

    def fetch_balance(self):
        if self.error is not None:
            raise self.error
        return self.balance


class TestPaperVenue:
    def test_ledger_reports_equity(self):
        """Test paper ledger equity."""
        assert PaperLedger(2500.0).get_account_equity() == 2500.0
        with pytest.raises(InvalidEquity):
            PaperLedger(0.0)

    def test_orders_are_acknowledged_and_recorded(self):
        """Test that paper orders are filled and recorded."""
        venue = PaperExecutionVenue(fee_rate=0.001)

        handle = venue.submit_order(_position())
        ack = venue.submit_close_order(_position(), CloseReason.STOP_LOSS)

        assert handle.order_id == "paper_1"
        assert handle.side == "buy"
        assert handle.status == "SIMULATED"
        assert handle.fees == pytest.approx(0.1)
        assert ack.order_id == "paper_2"
        assert ack.reason is CloseReason.STOP_LOSS
        assert venue.close_orders[0]["side"] == "sell"
        assert len(venue.orders) == 1

    def test_short_positions_sell_to_open(self):
        """Test that SHORT positions open with a sell."""
        venue = PaperExecutionVenue()
        assert venue.submit_order(_position(PositionSide.SHORT)).side == "sell"
        assert venue.close_orders == []


class TestCcxtVenue:
    @pytest.mark.parametrize(
        "instrument, expected",
        [("BTCUSDT", "BTC/USDT"), ("ETHBTC", "ETH/BTC"), ("SOL/USDC", "SOL/USDC"), ("XYZ", "XYZ")],
    )
    def test_symbol_conversion(self, instrument, expected):
        """Test conversion to ccxt symbols."""
        assert to_ccxt_symbol(instrument) == expected

    def test_submit_order_maps_response(self):
        """Test mapping a ccxt order into an OrderHandle."""
        exchange = FakeExchange()
        handle = CcxtExecutionVenue(exchange).submit_order(_position())

        assert exchange.calls[0][:3] == ("BTC/USDT", "buy", 0.002)
        assert handle.order_id == "12345"
        assert handle.status == "FILLED"
        assert handle.price == 50010.0
        assert handle.fees == pytest.approx(0.1)

    def test_close_is_reduce_only_on_opposite_side(self):
        """Test that closes are reduce-only on the opposite side."""
        exchange = FakeExchange()
        ack = CcxtExecutionVenue(exchange).submit_close_order(
            _position(PositionSide.SHORT), CloseReason.PROFIT_TARGET
        )

        symbol, side, amount, price, params = exchange.calls[0]
        assert (symbol, side, amount) == ("BTC/USDT", "buy", 0.002)
        assert params == {"reduceOnly": True}
        assert ack.reason is CloseReason.PROFIT_TARGET

    def test_exchange_errors_become_execution_failures(self):
        """Test that ccxt errors become ExecutionFailure."""
        venue = CcxtExecutionVenue(FakeExchange(error=ccxt.NetworkError("timeout")))
        with pytest.raises(ExecutionFailure, match="submit_order failed for BTCUSDT"):
            venue.submit_order(_position())
        with pytest.raises(ExecutionFailure, match="submit_close_order"):
            venue.submit_close_order(_position(), CloseReason.MANUAL)

    def test_binance_requires_credentials(self):
        """Test that the Binance venue requires credentials."""
        with pytest.raises(ValueError, match="credentials"):
            CcxtExecutionVenue.binance("", "")

    def test_ledger_reads_total_balance(self):
        """Test reading equity from the exchange balance."""
        assert CcxtLedger(FakeExchange()).get_account_equity() == 1000.0
        assert CcxtLedger(FakeExchange(), currency="BUSD").get_account_equity() == 0.0

    def test_ledger_errors_are_data_unavailable(self):
        """Test that balance errors become DataUnavailable."""
        ledger = CcxtLedger(FakeExchange(error=ccxt.ExchangeNotAvailable("maintenance")))
        with pytest.raises(DataUnavailable):
            ledger.get_account_equity()
