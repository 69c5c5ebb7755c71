"""Historical prep-time sampling.

Derives a single "typical preparation minutes" figure for a merchant and
order type from its recently completed orders. The median is used so that
an occasional very slow or very fast order does not move the estimate.
"""

import logging

import polars as pl

from order_wait.data.store import DataAccessError, OrderStore
from order_wait.estimation.timing import clamp, minutes_between, round_half_away

logger = logging.getLogger(__name__)


class PrepTimeSampler:
    """Computes base prep minutes from completed-order history."""

    def __init__(
        self,
        store: OrderStore,
        default_minutes: int = 20,
        min_samples: int = 5,
        sample_limit: int = 60,
        min_sample_minutes: int = 2,
        max_sample_minutes: int = 120,
        min_base_minutes: int = 5,
        max_base_minutes: int = 60,
    ):
        self.store = store
        self.default_minutes = default_minutes
        self.min_samples = min_samples
        self.sample_limit = sample_limit
        self.min_sample_minutes = min_sample_minutes
        self.max_sample_minutes = max_sample_minutes
        self.min_base_minutes = min_base_minutes
        self.max_base_minutes = max_base_minutes

    def sample_durations(self, merchant_id: int, order_type: str) -> pl.Series:
        """
        Whole-minute prep durations of recent completed orders.

        Only durations within [min_sample_minutes, max_sample_minutes] are
        kept; anything outside is treated as bad data.
        """
        samples = self.store.fetch_recent_completed(
            merchant_id, order_type, limit=self.sample_limit
        )

        minutes = [
            round_half_away(minutes_between(sample.placed_at, sample.ready_at))
            for sample in samples
            if sample.ready_at is not None
        ]
        durations = pl.Series("prep_minutes", minutes, dtype=pl.Int64)

        return durations.filter(
            (durations >= self.min_sample_minutes)
            & (durations <= self.max_sample_minutes)
        )

    def sample(self, merchant_id: int, order_type: str) -> int:
        """Return base prep minutes, or the default when history is thin or unreadable."""
        try:
            durations = self.sample_durations(merchant_id, order_type)
        except DataAccessError as e:
            logger.warning(
                "Prep-time history unavailable for merchant %s (%s): %s",
                merchant_id,
                order_type,
                e,
            )
            return self.default_minutes

        if len(durations) < self.min_samples:
            return self.default_minutes

        median = round_half_away(durations.median())
        return clamp(median, self.min_base_minutes, self.max_base_minutes)
