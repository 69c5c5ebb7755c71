"""Queue position counting."""

import logging
from datetime import datetime

from order_wait.data.store import DataAccessError, OrderStore

logger = logging.getLogger(__name__)


class QueuePositionCounter:
    """Counts active orders ahead of a given order in its merchant's queue."""

    def __init__(self, store: OrderStore):
        self.store = store

    def count_ahead(self, merchant_id: int, order_type: str, placed_at: datetime) -> int:
        """
        Orders of the same merchant and type still active and placed earlier.

        Fails open: a store error counts as an empty queue.
        """
        try:
            return self.store.count_active_before(merchant_id, order_type, placed_at)
        except DataAccessError as e:
            logger.warning(
                "Queue count unavailable for merchant %s (%s): %s",
                merchant_id,
                order_type,
                e,
            )
            return 0
