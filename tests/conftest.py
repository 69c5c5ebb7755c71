"""Shared fixtures for order store and estimator tests."""

from datetime import datetime, timedelta, timezone

import pytest

from order_wait.data.store import OrderStore
from order_wait.schemas import OrderStatus

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store(tmp_path) -> OrderStore:
    store = OrderStore(str(tmp_path / "orders.db"))
    store.initialize_schema()
    return store


@pytest.fixture
def merchant_id(store) -> int:
    return store.add_merchant("MERCHANT01", "Asia/Jakarta")


@pytest.fixture
def add_completed(store, merchant_id):
    """Insert completed orders with the given prep durations, newest first."""
    counter = {"n": 0}

    def _add(
        prep_minutes: list[float],
        order_type: str = "TAKEAWAY",
        merchant: int | None = None,
        use_completed_at: bool = False,
        start: datetime = NOW,
    ) -> None:
        for i, minutes in enumerate(prep_minutes):
            counter["n"] += 1
            placed_at = start - timedelta(hours=i + 1)
            ready_at = placed_at + timedelta(minutes=minutes)
            store.add_order(
                order_number=f"HIST-{counter['n']:04d}",
                merchant_id=merchant or merchant_id,
                status=OrderStatus.COMPLETED,
                order_type=order_type,
                placed_at=placed_at,
                updated_at=ready_at,
                actual_ready_at=None if use_completed_at else ready_at,
                completed_at=ready_at,
            )

    return _add
