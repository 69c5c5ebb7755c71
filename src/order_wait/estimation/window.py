"""Wait window computation.

Turns an order's current status, its queue position and the merchant's
typical prep time into a customer-facing {min, max} minutes window.

The computation is re-run from scratch on every poll; the order's own
status is the only state that drives it:

- READY / COMPLETED / CANCELLED: nothing left to wait for, all-zero window
- PENDING / ACCEPTED with a future schedule: window around the scheduled slot
- PENDING: base prep time multiplied by queue position
- ACCEPTED: same, dampened by ACCEPTED_QUEUE_FACTOR
- IN_PROGRESS: a single prep time, counted from when work started
"""

import math
from datetime import datetime, timezone

from order_wait.config import Settings, settings
from order_wait.data.store import OrderStore
from order_wait.estimation.cache import (
    PrepTimeCache,
    RedisPrepTimeCache,
    build_prep_time_cache,
)
from order_wait.estimation.queue import QueuePositionCounter
from order_wait.estimation.sampler import PrepTimeSampler
from order_wait.estimation.timing import (
    clamp,
    minutes_between,
    parse_scheduled_at,
    round_half_away,
)
from order_wait.schemas import (
    QUEUED_STATUSES,
    MerchantRef,
    OrderSnapshot,
    OrderStatus,
    WaitTimeEstimate,
    is_terminal_status,
)

MAX_WAIT_MINUTES = 60
MIN_TOTAL_MINUTES = 5

ACCEPTED_QUEUE_FACTOR = 0.7
WINDOW_LOW_FACTOR = 0.75
WINDOW_HIGH_FACTOR = 1.25

SCHEDULE_SLACK_FACTOR = 0.25
MIN_SCHEDULE_SLACK = 2
MAX_SCHEDULE_SLACK = 15


def queue_multiplier(status: str, queue_ahead: int) -> int:
    """How many prep cycles the order has to wait through."""
    if status == OrderStatus.PENDING:
        return queue_ahead + 1
    if status == OrderStatus.ACCEPTED:
        return max(1, math.ceil((queue_ahead + 1) * ACCEPTED_QUEUE_FACTOR))
    return 1


def terminal_estimate(status: str) -> WaitTimeEstimate:
    return WaitTimeEstimate(
        min_minutes=0,
        max_minutes=0,
        capped_at_60=False,
        queue_ahead=0,
        base_prep_minutes=None,
        status=status,
    )


class WaitWindowComputer:
    """Combines prep-time history, queue depth and schedule into a wait window."""

    def __init__(
        self,
        sampler: PrepTimeSampler,
        cache: PrepTimeCache | RedisPrepTimeCache,
        queue_counter: QueuePositionCounter,
        default_timezone: str = "UTC",
    ):
        self.sampler = sampler
        self.cache = cache
        self.queue_counter = queue_counter
        self.default_timezone = default_timezone

    def base_prep_minutes(self, merchant_id: int, order_type: str) -> int:
        return self.cache.get_or_compute(
            merchant_id,
            order_type,
            lambda: self.sampler.sample(merchant_id, order_type),
        )

    def estimate(
        self,
        order: OrderSnapshot,
        merchant: MerchantRef,
        now: datetime | None = None,
    ) -> WaitTimeEstimate:
        """Estimate the wait window for ``order`` as of ``now`` (default: current time)."""
        if is_terminal_status(order.status):
            return terminal_estimate(order.status)

        now = now or datetime.now(timezone.utc)
        base_prep = self.base_prep_minutes(merchant.id, order.order_type)

        if order.status in QUEUED_STATUSES and order.is_scheduled:
            scheduled_at = parse_scheduled_at(
                order.scheduled_date,
                order.scheduled_time,
                merchant.timezone,
                self.default_timezone,
            )
            if scheduled_at is not None and scheduled_at > now:
                return self._scheduled_window(order, base_prep, scheduled_at, now)

        return self._queue_window(order, merchant, base_prep, now)

    def _scheduled_window(
        self,
        order: OrderSnapshot,
        base_prep: int,
        scheduled_at: datetime,
        now: datetime,
    ) -> WaitTimeEstimate:
        """Window centred on the requested slot; the queue is irrelevant until then."""
        minutes_until = clamp(
            round_half_away(minutes_between(now, scheduled_at)), 0, MAX_WAIT_MINUTES
        )
        slack = clamp(
            round_half_away(base_prep * SCHEDULE_SLACK_FACTOR),
            MIN_SCHEDULE_SLACK,
            MAX_SCHEDULE_SLACK,
        )
        min_minutes = clamp(minutes_until - slack, 0, MAX_WAIT_MINUTES)
        max_minutes = clamp(minutes_until + slack, min_minutes, MAX_WAIT_MINUTES)

        return WaitTimeEstimate(
            min_minutes=min_minutes,
            max_minutes=max_minutes,
            capped_at_60=max_minutes >= MAX_WAIT_MINUTES,
            queue_ahead=0,
            queue_position=None,
            base_prep_minutes=base_prep,
            status=order.status,
            is_scheduled=True,
        )

    def _queue_window(
        self,
        order: OrderSnapshot,
        merchant: MerchantRef,
        base_prep: int,
        now: datetime,
    ) -> WaitTimeEstimate:
        queue_ahead = 0
        queue_position = None
        if order.status in QUEUED_STATUSES:
            queue_ahead = self.queue_counter.count_ahead(
                merchant.id, order.order_type, order.placed_at
            )
            queue_position = queue_ahead + 1

        multiplier = queue_multiplier(order.status, queue_ahead)
        total_estimate = clamp(
            round_half_away(base_prep * multiplier), MIN_TOTAL_MINUTES, MAX_WAIT_MINUTES
        )

        # Moving into progress restarts the clock.
        elapsed_from = (
            order.updated_at if order.status == OrderStatus.IN_PROGRESS else order.placed_at
        )
        elapsed = max(0.0, minutes_between(elapsed_from, now))
        remaining = clamp(
            round_half_away(total_estimate - elapsed), 0, MAX_WAIT_MINUTES
        )

        if remaining <= 0:
            return WaitTimeEstimate(
                min_minutes=0,
                max_minutes=0,
                capped_at_60=total_estimate >= MAX_WAIT_MINUTES,
                queue_ahead=queue_ahead,
                queue_position=queue_position,
                base_prep_minutes=base_prep,
                status=order.status,
            )

        min_minutes = clamp(
            round_half_away(remaining * WINDOW_LOW_FACTOR), 1, MAX_WAIT_MINUTES
        )
        max_minutes = clamp(
            round_half_away(remaining * WINDOW_HIGH_FACTOR),
            min_minutes,
            MAX_WAIT_MINUTES,
        )

        return WaitTimeEstimate(
            min_minutes=min_minutes,
            max_minutes=max_minutes,
            capped_at_60=max_minutes >= MAX_WAIT_MINUTES,
            queue_ahead=queue_ahead,
            queue_position=queue_position,
            base_prep_minutes=base_prep,
            status=order.status,
        )


def build_wait_window_computer(
    store: OrderStore, config: Settings | None = None
) -> WaitWindowComputer:
    """Wire a computer from settings: sampler, cache backend and queue counter."""
    config = config or settings
    sampler = PrepTimeSampler(
        store,
        default_minutes=config.default_base_prep_minutes,
        min_samples=config.min_prep_samples,
        sample_limit=config.prep_sample_limit,
    )
    return WaitWindowComputer(
        sampler=sampler,
        cache=build_prep_time_cache(config),
        queue_counter=QueuePositionCounter(store),
        default_timezone=config.default_timezone,
    )
