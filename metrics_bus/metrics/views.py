"""Read-time views over a published payload. None of these mutate it."""

from __future__ import annotations

import math
from typing import Callable, Dict, Iterable, List, Mapping

from metrics_bus.domain.models import (
    CallTotal,
    Sample,
    Snapshot,
    ToolStat,
    dimension_of,
    series_key,
)

from .deltas import cumulative_latency
from .families import MetricFamilies


def delta_rate(
    current: Snapshot, previous: Snapshot, predicate: Callable[[str], bool]
) -> float:
    """Per-second increase of the matching composite keys between snapshots.

    Keys absent from ``previous`` and keys that went down contribute nothing.
    """
    dt = max(1.0, (current.timestamp - previous.timestamp) / 1000)
    total = 0.0
    for key, value in current.entries.items():
        if not predicate(key):
            continue
        dv = value - previous.entries.get(key, value)
        if math.isfinite(dv) and dv >= 0:
            total += dv
    return total / dt


def mcp_throughput(current: Snapshot | None, previous: Snapshot | None) -> float:
    if current is None or previous is None:
        return 0.0
    prefix = MetricFamilies.MCP_CALLS_TOTAL + "{"
    rate = delta_rate(current, previous, lambda k: k.startswith(prefix))
    return rate if math.isfinite(rate) else 0.0


def average_mcp_latency(samples: Iterable[Sample]) -> int:
    """Cumulative average MCP request latency in whole milliseconds."""
    total = 0.0
    count = 0.0
    for s in samples:
        if s.name == MetricFamilies.MCP_LATENCY_SUM:
            total += s.value
        elif s.name == MetricFamilies.MCP_LATENCY_COUNT:
            count += s.value
    avg = total / count if count > 0 else 0.0
    return round(avg) if math.isfinite(avg) else 0


def total_tool_calls(samples: Iterable[Sample]) -> int:
    return round(sum(s.value for s in samples if MetricFamilies.is_tool_call(s.name)))


def _top(rows: List[ToolStat], top_n: int) -> List[ToolStat]:
    # largest first for selection, then alphabetical for display
    top = sorted(rows, key=lambda r: r.value, reverse=True)[:top_n]
    return sorted(top, key=lambda r: r.name)


def tool_latency_ranking(samples: Iterable[Sample], top_n: int = 10) -> List[ToolStat]:
    rows = []
    for totals in cumulative_latency(samples).values():
        avg = totals.average()
        if avg is None:
            continue
        rows.append(ToolStat.for_tool(totals.plugin, totals.tool, round(avg)))
    return _top(rows, top_n)


def tool_call_ranking(
    totals: Mapping[str, CallTotal], samples: Iterable[Sample], top_n: int = 10
) -> List[ToolStat]:
    """Top tools by call count.

    Persisted totals are preferred; without any, the raw counters of the
    latest exposition are used.
    """
    if totals:
        rows = [
            ToolStat.for_tool(t.plugin, t.tool, round(t.total or 0))
            for t in totals.values()
        ]
        return _top(rows, top_n)

    raw: Dict[str, float] = {}
    names: Dict[str, tuple[str, str]] = {}
    for s in samples:
        if not MetricFamilies.is_tool_call(s.name):
            continue
        plugin, tool = dimension_of(s.labels)
        key = series_key(plugin, tool)
        raw[key] = raw.get(key, 0.0) + s.value
        names[key] = (plugin, tool)
    rows = [ToolStat.for_tool(*names[key], round(value)) for key, value in raw.items()]
    return _top(rows, top_n)
