"""Tests for the public wait-time endpoint."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from order_wait.config import settings
from order_wait.schemas import OrderStatus
from order_wait.serving import api
from order_wait.serving.tokens import create_order_tracking_token


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "sqlite_db_path", tmp_path / "api.db")
    monkeypatch.setattr(settings, "cache_backend", "memory")

    with TestClient(api.app) as test_client:
        yield test_client


@pytest.fixture
def seeded(client):
    """Seed one merchant with an active and a completed order."""
    store = api.order_store
    merchant_id = store.add_merchant("MERCHANT01", "Asia/Jakarta")
    now = datetime.now(timezone.utc)

    store.add_order("ORD-1", merchant_id, OrderStatus.PENDING, "TAKEAWAY", now)
    store.add_order(
        "ORD-2",
        merchant_id,
        OrderStatus.COMPLETED,
        "TAKEAWAY",
        now - timedelta(minutes=30),
        completed_at=now - timedelta(minutes=10),
    )
    return client


def tracking_token(order_number: str) -> str:
    return create_order_tracking_token(
        settings.order_tracking_token_secret, "MERCHANT01", order_number
    )


class TestWaitTimeEndpoint:
    """Tests for GET /public/orders/{order_number}/wait-time."""

    def test_pending_order_estimate(self, seeded):
        response = seeded.get(
            "/public/orders/ORD-1/wait-time", params={"token": tracking_token("ORD-1")}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"] == {
            "minMinutes": 15,
            "maxMinutes": 25,
            "cappedAt60": False,
            "queueAhead": 0,
            "queuePosition": 1,
            "basePrepMinutes": 20,
            "status": "PENDING",
            "isScheduled": False,
        }

    def test_terminal_order_omits_schedule_fields(self, seeded):
        response = seeded.get(
            "/public/orders/ORD-2/wait-time", params={"token": tracking_token("ORD-2")}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["basePrepMinutes"] is None
        assert data["minMinutes"] == data["maxMinutes"] == 0
        assert "isScheduled" not in data
        assert "queuePosition" not in data

    def test_invalid_token_looks_like_missing_order(self, seeded):
        bad_token = seeded.get(
            "/public/orders/ORD-1/wait-time", params={"token": tracking_token("ORD-2")}
        )
        no_token = seeded.get("/public/orders/ORD-1/wait-time")
        missing = seeded.get(
            "/public/orders/ORD-404/wait-time",
            params={"token": tracking_token("ORD-404")},
        )

        expected = {
            "success": False,
            "error": "ORDER_NOT_FOUND",
            "message": "Order not found",
        }
        for response in (bad_token, no_token, missing):
            assert response.status_code == 404
            assert response.json() == expected

    def test_scheduled_order_uses_slot_window(self, seeded):
        """A future slot in merchant-local time replaces the queue estimate."""
        slot = datetime.now(ZoneInfo("Asia/Jakarta")) + timedelta(minutes=30)
        api.order_store.add_order(
            "ORD-3",
            api.order_store.fetch_order_and_merchant("ORD-1")[1].id,
            OrderStatus.PENDING,
            "TAKEAWAY",
            datetime.now(timezone.utc),
            is_scheduled=True,
            scheduled_date=slot.strftime("%Y-%m-%d"),
            scheduled_time=slot.strftime("%H:%M"),
        )

        response = seeded.get(
            "/public/orders/ORD-3/wait-time", params={"token": tracking_token("ORD-3")}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["isScheduled"] is True
        assert data["queuePosition"] is None
        assert data["queueAhead"] == 0
        # Slot is truncated to the minute, so 29 or 30 minutes remain, slack 5
        assert 24 <= data["minMinutes"] <= 25
        assert 34 <= data["maxMinutes"] <= 35

    def test_lookup_failure_is_internal_error(self, client, tmp_path, monkeypatch):
        monkeypatch.setattr(
            api.order_store, "db_path", str(tmp_path / "missing" / "orders.db")
        )

        response = client.get("/public/orders/ORD-1/wait-time", params={"token": "x"})

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "INTERNAL_ERROR",
            "message": "Failed to load order",
        }

    def test_blank_order_number_is_rejected(self, client):
        response = client.get("/public/orders/%20/wait-time")

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["cache_backend"] == "PrepTimeCache"
