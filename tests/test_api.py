"""Tests for the HTTP control surface."""

import json

import pytest
from fastapi.testclient import TestClient

from conftest import make_signal
from signal_trader.api import create_app
from signal_trader.telemetry.journal import TradeJournal


@pytest.fixture
def journal():
    return TradeJournal()


@pytest.fixture
def client(loop, journal):
    return TestClient(create_app(loop, journal))


class TestHealthEndpoint:
    def test_health_check_returns_ok(self, client):
        """Test that the health endpoint reports the loop state."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestConfigEndpoints:
    def test_get_config(self, client):
        """Test reading the active trading configuration."""
        data = client.get("/config").json()
        assert data["profit_target_percent"] == 2.0
        assert data["tick_interval_millis"] == 1000

    def test_patch_config_merges(self, client, loop):
        """Test that a partial update merges into the active configuration."""
        response = client.patch("/config", json={"stop_loss_percent": 1.5})
        assert response.status_code == 200
        assert response.json()["stop_loss_percent"] == 1.5
        assert response.json()["profit_target_percent"] == 2.0
        assert loop.get_config().stop_loss_percent == 1.5

    def test_patch_config_rejects_invalid_values(self, client, loop):
        """Test that out-of-range values are rejected with 400."""
        response = client.patch("/config", json={"max_position_size_percent": 500})
        assert response.status_code == 400
        assert "Invalid configuration" in response.json()["detail"]
        assert loop.get_config().max_position_size_percent == 10.0

    def test_patch_interval_while_running_keeps_one_timer(self, client, schedulers):
        """Test that changing the interval over HTTP leaves one live timer."""
        client.post("/start")
        client.patch("/config", json={"tick_interval_millis": 300})
        assert len(schedulers.active) == 1


class TestLifecycleEndpoints:
    def test_start_and_stop(self, client):
        """Test starting and stopping the loop through the API."""
        assert client.post("/start").json()["state"] == "RUNNING"
        assert client.post("/start").json()["state"] == "RUNNING"
        assert client.get("/status").json()["state"] == "RUNNING"
        assert client.post("/stop").json()["state"] == "STOPPED"
        assert client.post("/stop").json()["state"] == "STOPPED"

    def test_status_lists_universe(self, client):
        """Test the status endpoint payload."""
        data = client.get("/status").json()
        assert data["instruments"] == ["BTCUSDT", "ETHUSDT", "BNBUSDT"]
        assert data["open_positions"] == 0


class TestPositionEndpoints:
    def test_list_positions(self, client, loop):
        """Test listing open positions."""
        loop.process_signal(make_signal(price=100.0))

        positions = client.get("/positions").json()["positions"]

        assert len(positions) == 1
        assert positions[0]["instrument"] == "BTCUSDT"
        assert positions[0]["side"] == "LONG"

    def test_close_position(self, client, loop, execution):
        """Test manually closing a position."""
        loop.process_signal(make_signal(price=100.0))

        response = client.delete("/positions/btcusdt", params={"price": 101.0})

        assert response.status_code == 200
        assert response.json()["reason"] == "MANUAL"
        assert len(loop.store) == 0
        assert len(execution.close_orders) == 1
        assert client.delete("/positions/BTCUSDT").status_code == 404

    def test_close_rejects_bad_price(self, client):
        """Test that a non-positive exit price is rejected."""
        assert client.delete("/positions/BTCUSDT", params={"price": -1}).status_code == 400


class TestTelemetryEndpoints:
    def test_stats_and_logs(self, client, loop, journal):
        """Test journal statistics and log listing endpoints."""
        loop.telemetry = journal
        loop.process_signal(make_signal(price=100.0))

        stats = client.get("/stats").json()
        assert stats["trades"]["total"] == 1

        items = client.get("/logs/trades", params={"symbol": "BTCUSDT"}).json()["items"]
        assert items[0]["action"] == "BUY"
        assert client.get("/logs/risk").json()["items"][0]["approved"] is True

    def test_unknown_log_kind(self, client):
        """Test that an unknown log kind returns 404."""
        assert client.get("/logs/orders").status_code == 404

    def test_export(self, client, loop, journal):
        """Test exporting journal records."""
        loop.telemetry = journal
        loop.process_signal(make_signal(price=100.0))

        response = client.get("/logs/trades/export", params={"fmt": "json"})
        assert response.status_code == 200
        assert json.loads(response.text)[0]["symbol"] == "BTCUSDT"

        csv_response = client.get("/logs/all/export", params={"fmt": "csv"})
        assert csv_response.headers["content-type"].startswith("text/csv")
        assert "=== TRADES ===" in csv_response.text

        assert client.get("/logs/trades/export", params={"fmt": "xml"}).status_code == 400

    def test_missing_journal_returns_404(self, loop):
        """Test journal endpoints when no journal is attached."""
        client = TestClient(create_app(loop))
        assert client.get("/stats").status_code == 404
