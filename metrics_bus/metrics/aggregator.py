"""Turns consecutive snapshots into latency histories and call totals."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from metrics_bus.core.logger import get_logger
from metrics_bus.domain.models import (
    CallTotal,
    LatencyPoint,
    LatencySeries,
    MetricsPayload,
    Sample,
    Snapshot,
    dimension_of,
    series_key,
)

from .deltas import SeriesTotals, call_deltas, cumulative_latency, latency_deltas
from .families import MetricFamilies
from .retention import RetentionPolicy

logger = get_logger("metrics_bus.aggregator")


@dataclass
class AggregationState:
    """Process-wide aggregation state; written only by the polling cycle."""

    current: Optional[Snapshot] = None
    previous: Optional[Snapshot] = None
    overall: List[LatencyPoint] = field(default_factory=list)
    per_dimension: Dict[str, LatencySeries] = field(default_factory=dict)
    call_totals: Dict[str, CallTotal] = field(default_factory=dict)

    def to_payload(self, samples: List[Sample]) -> MetricsPayload:
        """Payload sharing points but not containers with the live state."""
        return MetricsPayload.model_construct(
            samples=list(samples),
            current_snapshot=self.current,
            previous_snapshot=self.previous,
            overall_latency_history=list(self.overall),
            per_dimension_latency_history={
                key: LatencySeries.model_construct(
                    plugin=s.plugin, tool=s.tool, points=list(s.points)
                )
                for key, s in self.per_dimension.items()
            },
            call_totals={
                key: t.model_copy() for key, t in self.call_totals.items()
            },
        )


def put_point(points: List[LatencyPoint], timestamp: int, average_ms: float) -> bool:
    """Append a point, or replace the last one when it shares ``timestamp``.

    Non-finite values and timestamps older than the last point are ignored.
    """
    if not math.isfinite(average_ms):
        return False
    point = LatencyPoint(timestamp=timestamp, average_ms=float(average_ms))
    if points:
        last = points[-1].timestamp
        if last == timestamp:
            points[-1] = point
            return True
        if last > timestamp:
            logger.debug(
                "latency_point_out_of_order",
                extra={"timestamp": timestamp, "last_timestamp": last},
            )
            return False
    points.append(point)
    return True


def observed_dimensions(samples: List[Sample]) -> Dict[str, Tuple[str, str]]:
    out: Dict[str, Tuple[str, str]] = {}
    for s in samples:
        if MetricFamilies.is_tool_latency(s.name) or MetricFamilies.is_tool_call(
            s.name
        ):
            plugin, tool = dimension_of(s.labels)
            out.setdefault(series_key(plugin, tool), (plugin, tool))
    return out


class SeriesAggregator:
    def __init__(self, policy: RetentionPolicy | None = None):
        self.policy = policy or RetentionPolicy()

    def apply(
        self, state: AggregationState, samples: List[Sample], snapshot: Snapshot
    ) -> None:
        """Fold one poll into ``state``; ``state.current`` becomes previous."""
        previous = state.current
        now = snapshot.timestamp
        dimensions = observed_dimensions(samples)
        cumulative = cumulative_latency(samples)
        touched: set[str] = set()

        seeded = self._seed_new_dimensions(state, dimensions, cumulative, now)
        touched |= seeded

        if previous is None:
            cum_sum = sum(t.sum for t in cumulative.values())
            cum_count = sum(t.count for t in cumulative.values())
            seed = cum_sum / cum_count if cum_count > 0 else 0.0
            put_point(state.overall, now, seed)
        else:
            deltas = latency_deltas(samples, previous)
            avg = deltas.average()
            # a quiet interval decays to zero instead of repeating the last value
            put_point(state.overall, now, avg if avg is not None else 0.0)

            for key in (deltas.series_keys() | set(cumulative)) - seeded:
                if key in deltas.reset_series:
                    continue
                series = self._series(state, key, dimensions)
                series_avg = deltas.series_average(key)
                if series_avg is not None:
                    put_point(series.points, now, series_avg)
                elif not series.points:
                    totals = cumulative.get(key)
                    seed = totals.average() if totals is not None else None
                    put_point(series.points, now, seed if seed is not None else 0.0)
                else:
                    put_point(series.points, now, 0.0)
                touched.add(key)

            for key, increment in call_deltas(samples, previous).items():
                plugin, tool = dimensions.get(key, ("unknown", "unknown"))
                entry = state.call_totals.setdefault(
                    key, CallTotal(plugin=plugin, tool=tool)
                )
                entry.total += increment

        state.overall = self.policy.trim(state.overall)
        for key in touched:
            series = state.per_dimension[key]
            series.points = self.policy.trim(series.points)

        state.previous = previous
        state.current = snapshot

    def _series(
        self,
        state: AggregationState,
        key: str,
        dimensions: Dict[str, Tuple[str, str]],
    ) -> LatencySeries:
        series = state.per_dimension.get(key)
        if series is None:
            plugin, tool = dimensions.get(key, ("unknown", "unknown"))
            series = LatencySeries(plugin=plugin, tool=tool)
            state.per_dimension[key] = series
        return series

    def _seed_new_dimensions(
        self,
        state: AggregationState,
        dimensions: Dict[str, Tuple[str, str]],
        cumulative: Dict[str, SeriesTotals],
        now: int,
    ) -> set[str]:
        """Give every first-seen dimension a point from its cumulative average."""
        seeded: set[str] = set()
        for key in dimensions:
            series = self._series(state, key, dimensions)
            if series.points:
                continue
            totals = cumulative.get(key)
            avg = totals.average() if totals is not None else None
            if put_point(series.points, now, avg if avg is not None else 0.0):
                seeded.add(key)
        return seeded
