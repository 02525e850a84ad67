from datetime import datetime, timedelta, tzinfo
from enum import Enum
from typing import Iterable, List, Optional

from .models import LatencyPoint

MINUTE_MS = 60_000


class LatencyPeriod(str, Enum):
    """Time windows consumers can request over the retained history."""

    ONE_MINUTE = "1m"
    FIVE_MINUTES = "5m"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


def window_start(
    period: LatencyPeriod | str, now_ms: int, tz: Optional[tzinfo] = None
) -> int:
    """Epoch ms at which the window for ``period`` begins.

    Calendar periods are evaluated in ``tz`` (local time when omitted); weeks
    start on Monday. Pass a ``zoneinfo.ZoneInfo`` so midnights on the other
    side of a DST change get their own offset.
    """
    period = LatencyPeriod(period)
    if period is LatencyPeriod.ONE_MINUTE:
        return now_ms - MINUTE_MS
    if period is LatencyPeriod.FIVE_MINUTES:
        return now_ms - 5 * MINUTE_MS

    # Naive local time when no zone is given: .timestamp() then resolves the
    # DST offset of the window start itself, not the one in effect now
    now = datetime.fromtimestamp(now_ms / 1000, tz=tz)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period is LatencyPeriod.TODAY:
        start = midnight
    elif period is LatencyPeriod.WEEK:
        start = midnight - timedelta(days=midnight.weekday())
    else:
        start = midnight.replace(day=1)
    return int(start.timestamp() * 1000)


def filter_points(points: Iterable[LatencyPoint], start_ms: int) -> List[LatencyPoint]:
    return [p for p in points if p.timestamp >= start_ms]
