from .models import (
    CallTotal,
    LatencyPoint,
    LatencySeries,
    MetricsPayload,
    Sample,
    Snapshot,
    ToolStat,
    dimension_of,
    series_key,
)
from .periods import LatencyPeriod, filter_points, window_start

__all__ = [
    "CallTotal",
    "LatencyPeriod",
    "LatencyPoint",
    "LatencySeries",
    "MetricsPayload",
    "Sample",
    "Snapshot",
    "ToolStat",
    "dimension_of",
    "filter_points",
    "series_key",
    "window_start",
]
