"""Time arithmetic shared by the estimation components."""

import logging
import math
import re
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

SCHEDULE_FORMAT = "%Y-%m-%d %H:%M"
# strptime accepts unpadded fields; month, day and minute must be two digits.
SCHEDULE_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")
SCHEDULE_TIME_PATTERN = re.compile(r"\d{1,2}:\d{2}")


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def clamp(value: int, lower: int, upper: int) -> int:
    if value < lower:
        return lower
    if value > upper:
        return upper
    return value


def minutes_between(start: datetime, end: datetime) -> float:
    """Signed minutes from ``start`` to ``end``."""
    return (end - start).total_seconds() / 60


def resolve_timezone(name: str | None, default: str = "UTC") -> tzinfo:
    """Resolve an IANA name, falling back to ``default`` when it is unknown."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, using %s", name, default)
    return ZoneInfo(default)


def parse_scheduled_at(
    date_str: str | None,
    time_str: str | None,
    timezone_name: str | None,
    default_timezone: str = "UTC",
) -> datetime | None:
    """
    Combine a merchant-local schedule date and time into an aware datetime.

    Returns None when either part is missing or does not match
    ``YYYY-MM-DD HH:MM``.
    """
    if not date_str or not time_str:
        return None

    if not (
        SCHEDULE_DATE_PATTERN.fullmatch(date_str)
        and SCHEDULE_TIME_PATTERN.fullmatch(time_str)
    ):
        logger.warning(
            "Unparsable schedule %r %r, ignoring it", date_str, time_str
        )
        return None

    try:
        naive = datetime.strptime(f"{date_str} {time_str}", SCHEDULE_FORMAT)
    except ValueError:
        logger.warning(
            "Unparsable schedule %r %r, ignoring it", date_str, time_str
        )
        return None

    return naive.replace(tzinfo=resolve_timezone(timezone_name, default_timezone))
