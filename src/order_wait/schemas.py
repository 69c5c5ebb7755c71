"""Data schemas for order snapshots, history samples and wait-time estimates."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OrderStatus(str, Enum):
    """Lifecycle states an order can be in."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    IN_PROGRESS = "IN_PROGRESS"
    READY = "READY"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset(
    s.value for s in (OrderStatus.READY, OrderStatus.COMPLETED, OrderStatus.CANCELLED)
)
QUEUED_STATUSES = frozenset(s.value for s in (OrderStatus.PENDING, OrderStatus.ACCEPTED))
ACTIVE_STATUSES = frozenset(
    s.value
    for s in (OrderStatus.PENDING, OrderStatus.ACCEPTED, OrderStatus.IN_PROGRESS)
)


def is_terminal_status(status: str) -> bool:
    return status in TERMINAL_STATUSES


# -----------------------------------------------------------------------------
# Read-side records
# -----------------------------------------------------------------------------


class MerchantRef(BaseModel):
    """The few merchant fields the estimator needs."""

    id: int
    code: str
    timezone: str | None = None


class OrderSnapshot(BaseModel):
    """Order state as read fresh from the store for a single request."""

    order_number: str
    status: str
    order_type: str
    placed_at: datetime
    updated_at: datetime
    is_scheduled: bool = False
    scheduled_date: str | None = None  # YYYY-MM-DD, merchant wall clock
    scheduled_time: str | None = None  # HH:MM, merchant wall clock
    merchant_id: int

    @field_validator("status", mode="before")
    @classmethod
    def _plain_status(cls, value: Any) -> Any:
        return value.value if isinstance(value, OrderStatus) else value


@dataclass(frozen=True)
class CompletedOrderSample:
    """Timestamps of one historically completed order."""

    placed_at: datetime
    actual_ready_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def ready_at(self) -> datetime | None:
        return self.actual_ready_at or self.completed_at


# -----------------------------------------------------------------------------
# Estimation output
# -----------------------------------------------------------------------------


class WaitTimeEstimate(BaseModel):
    """Customer-facing wait window for one order."""

    model_config = ConfigDict(populate_by_name=True)

    min_minutes: int = Field(alias="minMinutes", ge=0, le=60)
    max_minutes: int = Field(alias="maxMinutes", ge=0, le=60)
    capped_at_60: bool = Field(alias="cappedAt60")
    queue_ahead: int = Field(default=0, alias="queueAhead", ge=0)
    queue_position: int | None = Field(default=None, alias="queuePosition")
    base_prep_minutes: int | None = Field(default=None, alias="basePrepMinutes")
    status: str
    is_scheduled: bool = Field(default=False, alias="isScheduled")

    @property
    def is_terminal(self) -> bool:
        return is_terminal_status(self.status)

    def to_response_data(self) -> dict[str, Any]:
        """Wire representation; terminal estimates carry no queue/schedule fields."""
        exclude = {"queue_position", "is_scheduled"} if self.is_terminal else None
        return self.model_dump(by_alias=True, exclude=exclude)
