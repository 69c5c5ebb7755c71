"""SQLite-backed order store.

Provides the three reads the estimator depends on:
1. Order + merchant lookup for the order being polled
2. Recent completed orders of a merchant/order type (prep-time history)
3. Count of active orders placed before a given instant (queue depth)

Timestamps are stored as UTC ``YYYY-MM-DD HH:MM:SS.ffffff`` strings so that
SQL string comparison orders them chronologically.
"""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from order_wait.config import settings
from order_wait.schemas import (
    ACTIVE_STATUSES,
    CompletedOrderSample,
    MerchantRef,
    OrderSnapshot,
    OrderStatus,
)

logger = logging.getLogger(__name__)

DB_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


class DataAccessError(Exception):
    """A read or write against the order store failed."""


class OrderNotFoundError(LookupError):
    """No order exists with the requested order number."""


def to_db_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(DB_TIMESTAMP_FORMAT)


def from_db_timestamp(value: str | None) -> datetime | None:
    """Parse a stored timestamp; naive values are taken to be UTC."""
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class OrderStore:
    """
    Order store backed by SQLite.

    Opens a short-lived connection per call so a single instance can be
    shared by request handlers running on different threads.
    """

    def __init__(self, db_path: str | None = None):
        self.db_path = db_path or str(settings.sqlite_db_path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise DataAccessError(f"Cannot open {self.db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            raise DataAccessError(str(e)) from e
        finally:
            conn.close()

    def initialize_schema(self) -> None:
        """Create the merchants and orders tables if they don't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS merchants (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    code TEXT NOT NULL UNIQUE,
                    timezone TEXT
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS orders (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    order_number TEXT NOT NULL UNIQUE,
                    merchant_id INTEGER NOT NULL REFERENCES merchants(id),
                    status TEXT NOT NULL,
                    order_type TEXT NOT NULL,
                    placed_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    actual_ready_at TEXT,
                    completed_at TEXT,
                    is_scheduled INTEGER NOT NULL DEFAULT 0,
                    scheduled_date TEXT,
                    scheduled_time TEXT
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_orders_merchant_type_status
                ON orders(merchant_id, order_type, status, placed_at)
            """)

    # -------------------------------------------------------------------------
    # Reads used by the estimator
    # -------------------------------------------------------------------------

    def fetch_order_and_merchant(
        self, order_number: str
    ) -> tuple[OrderSnapshot, MerchantRef]:
        """
        Load an order together with its merchant.

        Raises OrderNotFoundError if there is no such order.
        """
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT
                    o.order_number, o.status, o.order_type,
                    o.placed_at, o.updated_at,
                    o.is_scheduled, o.scheduled_date, o.scheduled_time,
                    m.id AS merchant_id, m.code AS merchant_code,
                    m.timezone AS merchant_timezone
                FROM orders o
                JOIN merchants m ON m.id = o.merchant_id
                WHERE o.order_number = ?
                LIMIT 1
                """,
                (order_number,),
            ).fetchone()

        if row is None:
            raise OrderNotFoundError(order_number)

        try:
            placed_at = from_db_timestamp(row["placed_at"])
            updated_at = from_db_timestamp(row["updated_at"])
        except ValueError as e:
            raise DataAccessError(
                f"Order {order_number} has unreadable timestamps: {e}"
            ) from e

        order = OrderSnapshot(
            order_number=row["order_number"],
            status=row["status"],
            order_type=row["order_type"],
            placed_at=placed_at,
            updated_at=updated_at,
            is_scheduled=bool(row["is_scheduled"]),
            scheduled_date=row["scheduled_date"],
            scheduled_time=row["scheduled_time"],
            merchant_id=row["merchant_id"],
        )
        merchant = MerchantRef(
            id=row["merchant_id"],
            code=row["merchant_code"],
            timezone=row["merchant_timezone"],
        )
        return order, merchant

    def fetch_recent_completed(
        self, merchant_id: int, order_type: str, limit: int = 60
    ) -> list[CompletedOrderSample]:
        """Most recently placed completed orders with a ready or completed time."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT placed_at, actual_ready_at, completed_at
                FROM orders
                WHERE merchant_id = ?
                  AND order_type = ?
                  AND status = ?
                  AND (actual_ready_at IS NOT NULL OR completed_at IS NOT NULL)
                ORDER BY placed_at DESC
                LIMIT ?
                """,
                (merchant_id, order_type, OrderStatus.COMPLETED.value, limit),
            ).fetchall()

        samples = []
        for row in rows:
            try:
                samples.append(
                    CompletedOrderSample(
                        placed_at=from_db_timestamp(row["placed_at"]),
                        actual_ready_at=from_db_timestamp(row["actual_ready_at"]),
                        completed_at=from_db_timestamp(row["completed_at"]),
                    )
                )
            except ValueError:
                logger.debug("Skipping completed order with unreadable timestamps")
                continue

        return samples

    def count_active_before(
        self, merchant_id: int, order_type: str, before: datetime
    ) -> int:
        """Count pending, accepted and in-progress orders placed before ``before``."""
        statuses = sorted(ACTIVE_STATUSES)
        placeholders = ", ".join("?" for _ in statuses)

        with self._connect() as conn:
            row = conn.execute(
                f"""
                SELECT COUNT(*)
                FROM orders
                WHERE merchant_id = ?
                  AND order_type = ?
                  AND status IN ({placeholders})
                  AND placed_at < ?
                """,
                (merchant_id, order_type, *statuses, to_db_timestamp(before)),
            ).fetchone()

        return row[0] if row else 0

    # -------------------------------------------------------------------------
    # Seeding helpers (CLI and tests)
    # -------------------------------------------------------------------------

    def add_merchant(self, code: str, timezone_name: str | None = None) -> int:
        """Insert a merchant and return its id."""
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO merchants (code, timezone) VALUES (?, ?)",
                (code, timezone_name),
            )
            return cursor.lastrowid

    def add_order(
        self,
        order_number: str,
        merchant_id: int,
        status: str,
        order_type: str,
        placed_at: datetime,
        updated_at: datetime | None = None,
        actual_ready_at: datetime | None = None,
        completed_at: datetime | None = None,
        is_scheduled: bool = False,
        scheduled_date: str | None = None,
        scheduled_time: str | None = None,
    ) -> None:
        """Insert an order row."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO orders (
                    order_number, merchant_id, status, order_type,
                    placed_at, updated_at, actual_ready_at, completed_at,
                    is_scheduled, scheduled_date, scheduled_time
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    order_number,
                    merchant_id,
                    status.value if isinstance(status, OrderStatus) else status,
                    order_type,
                    to_db_timestamp(placed_at),
                    to_db_timestamp(updated_at or placed_at),
                    to_db_timestamp(actual_ready_at) if actual_ready_at else None,
                    to_db_timestamp(completed_at) if completed_at else None,
                    int(is_scheduled),
                    scheduled_date,
                    scheduled_time,
                ),
            )
