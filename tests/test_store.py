"""Tests for the SQLite order store."""

from datetime import datetime, timedelta, timezone

import pytest

from order_wait.data.store import (
    DataAccessError,
    OrderNotFoundError,
    OrderStore,
    from_db_timestamp,
    to_db_timestamp,
)
from order_wait.schemas import OrderStatus


class TestTimestamps:
    """Tests for timestamp storage format."""

    def test_aware_timestamps_stored_as_utc(self):
        jakarta = timezone(timedelta(hours=7))
        value = datetime(2024, 3, 15, 19, 0, tzinfo=jakarta)

        assert to_db_timestamp(value) == "2024-03-15 12:00:00.000000"

    def test_naive_values_read_back_as_utc(self):
        parsed = from_db_timestamp("2024-03-15 12:00:00")

        assert parsed == datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)

    def test_none_passes_through(self):
        assert from_db_timestamp(None) is None


class TestOrderStore:
    """Tests for the reads the estimator depends on."""

    def test_fetch_order_and_merchant(self, store, merchant_id, now):
        store.add_order(
            order_number="ORD-1",
            merchant_id=merchant_id,
            status=OrderStatus.ACCEPTED,
            order_type="DELIVERY",
            placed_at=now - timedelta(minutes=3),
            updated_at=now,
            is_scheduled=True,
            scheduled_date="2024-03-15",
            scheduled_time="20:15",
        )

        order, merchant = store.fetch_order_and_merchant("ORD-1")

        assert order.order_number == "ORD-1"
        assert order.status == "ACCEPTED"
        assert order.order_type == "DELIVERY"
        assert order.placed_at == now - timedelta(minutes=3)
        assert order.updated_at == now
        assert order.is_scheduled is True
        assert order.scheduled_date == "2024-03-15"
        assert order.scheduled_time == "20:15"
        assert merchant.id == merchant_id
        assert merchant.code == "MERCHANT01"
        assert merchant.timezone == "Asia/Jakarta"

    def test_missing_order_raises_not_found(self, store):
        with pytest.raises(OrderNotFoundError):
            store.fetch_order_and_merchant("NOPE")

    def test_merchant_without_timezone(self, store, now):
        merchant_id = store.add_merchant("NO_TZ")
        store.add_order("ORD-2", merchant_id, OrderStatus.PENDING, "TAKEAWAY", now)

        _, merchant = store.fetch_order_and_merchant("ORD-2")

        assert merchant.timezone is None

    def test_fetch_recent_completed_filters_and_orders(self, store, merchant_id, now):
        store.add_order(
            "H-OLD",
            merchant_id,
            OrderStatus.COMPLETED,
            "TAKEAWAY",
            now - timedelta(hours=2),
            completed_at=now - timedelta(hours=1),
        )
        store.add_order(
            "H-NEW",
            merchant_id,
            OrderStatus.COMPLETED,
            "TAKEAWAY",
            now - timedelta(hours=1),
            actual_ready_at=now - timedelta(minutes=45),
        )
        # Completed without any end timestamp, and an active order
        store.add_order(
            "H-NOEND", merchant_id, OrderStatus.COMPLETED, "TAKEAWAY", now
        )
        store.add_order(
            "H-ACTIVE",
            merchant_id,
            OrderStatus.IN_PROGRESS,
            "TAKEAWAY",
            now,
            completed_at=now,
        )

        samples = store.fetch_recent_completed(merchant_id, "TAKEAWAY")

        assert [s.placed_at for s in samples] == [
            now - timedelta(hours=1),
            now - timedelta(hours=2),
        ]
        assert samples[0].ready_at == now - timedelta(minutes=45)
        assert samples[1].ready_at == now - timedelta(hours=1)

    def test_fetch_recent_completed_respects_limit(self, store, merchant_id, add_completed):
        add_completed([10] * 8)

        assert len(store.fetch_recent_completed(merchant_id, "TAKEAWAY", limit=5)) == 5

    def test_uninitialized_database_raises_data_access_error(self, tmp_path, now):
        store = OrderStore(str(tmp_path / "empty.db"))

        with pytest.raises(DataAccessError):
            store.count_active_before(1, "TAKEAWAY", now)
