"""Interval deltas between consecutive snapshots.

Counters and latency sum/count pairs react differently to a value going
down: a call counter that shrank was reset by the server, so its current
raw value is the increment; a latency sum/count that shrank cannot be
trusted and contributes nothing for that interval.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Set

from metrics_bus.domain.models import Sample, Snapshot, dimension_of, series_key

from .families import MetricFamilies
from .snapshot import key_of


@dataclass
class SeriesTotals:
    """Cumulative latency sum/count of one plugin::tool series."""

    plugin: str
    tool: str
    sum: float = 0.0
    count: float = 0.0

    def average(self) -> Optional[float]:
        if self.count <= 0:
            return None
        avg = self.sum / self.count
        return avg if math.isfinite(avg) else None


@dataclass
class IntervalDeltas:
    sum_delta: float = 0.0
    count_delta: float = 0.0
    per_series_sum: Dict[str, float] = field(default_factory=dict)
    per_series_count: Dict[str, float] = field(default_factory=dict)
    reset_series: Set[str] = field(default_factory=set)

    def series_keys(self) -> set[str]:
        return set(self.per_series_sum) | set(self.per_series_count)

    def average(self) -> Optional[float]:
        return _ratio(self.sum_delta, self.count_delta)

    def series_average(self, key: str) -> Optional[float]:
        return _ratio(
            self.per_series_sum.get(key, 0.0), self.per_series_count.get(key, 0.0)
        )


def _ratio(total: float, count: float) -> Optional[float]:
    if count <= 0:
        return None
    avg = total / count
    return avg if math.isfinite(avg) else None


def counter_delta(current: float, previous: float) -> float:
    dv = current - previous
    if not math.isfinite(dv):
        return 0.0
    if dv < 0:
        # counter reset: everything counted since the restart is new
        return current if math.isfinite(current) and current > 0 else 0.0
    return dv


def sum_count_delta(current: float, previous: float) -> Optional[float]:
    dv = current - previous
    if not math.isfinite(dv) or dv < 0:
        return None
    return dv


def cumulative_latency(samples: Iterable[Sample]) -> Dict[str, SeriesTotals]:
    totals: Dict[str, SeriesTotals] = {}
    for s in samples:
        if not MetricFamilies.is_tool_latency(s.name):
            continue
        plugin, tool = dimension_of(s.labels)
        entry = totals.setdefault(
            series_key(plugin, tool), SeriesTotals(plugin=plugin, tool=tool)
        )
        if s.name == MetricFamilies.TOOL_LATENCY_SUM:
            entry.sum += s.value
        else:
            entry.count += s.value
    return totals


def latency_deltas(samples: Iterable[Sample], previous: Snapshot) -> IntervalDeltas:
    """Sum/count deltas per series and overall.

    A series whose sum or count went backwards is left out entirely for this
    interval and listed in ``reset_series``.
    """
    deltas = IntervalDeltas()
    for s in samples:
        if not MetricFamilies.is_tool_latency(s.name):
            continue
        v0 = previous.entries.get(key_of(s))
        if v0 is None:
            continue
        key = series_key(*dimension_of(s.labels))
        dv = sum_count_delta(s.value, v0)
        if dv is None:
            deltas.reset_series.add(key)
            continue
        target = (
            deltas.per_series_sum
            if s.name == MetricFamilies.TOOL_LATENCY_SUM
            else deltas.per_series_count
        )
        target[key] = target.get(key, 0.0) + dv

    for key in deltas.reset_series:
        deltas.per_series_sum.pop(key, None)
        deltas.per_series_count.pop(key, None)
    deltas.sum_delta = sum(deltas.per_series_sum.values())
    deltas.count_delta = sum(deltas.per_series_count.values())
    return deltas


def call_deltas(samples: Iterable[Sample], previous: Snapshot) -> Dict[str, float]:
    """Positive call increments per series key since ``previous``."""
    out: Dict[str, float] = {}
    for s in samples:
        if not MetricFamilies.is_tool_call(s.name):
            continue
        v0 = previous.entries.get(key_of(s))
        if v0 is None:
            continue
        dv = counter_delta(s.value, v0)
        if dv > 0:
            key = series_key(*dimension_of(s.labels))
            out[key] = out.get(key, 0.0) + dv
    return out
