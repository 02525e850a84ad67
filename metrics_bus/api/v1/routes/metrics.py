from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from metrics_bus.api.dependencies import get_bus
from metrics_bus.core.config import settings
from metrics_bus.domain.models import LatencyPoint, LatencySeries, ToolStat
from metrics_bus.domain.periods import LatencyPeriod
from metrics_bus.metrics import views
from metrics_bus.services.bus import MetricsBus

router = APIRouter()


def _period(period: str) -> LatencyPeriod:
    try:
        return LatencyPeriod(period)
    except ValueError:
        allowed = ", ".join(p.value for p in LatencyPeriod)
        raise HTTPException(
            status_code=400, detail=f"Unsupported period; use one of: {allowed}"
        )


@router.get("/overview")
async def get_overview(bus: MetricsBus = Depends(get_bus)):
    payload = bus.payload
    current, previous = payload.current_snapshot, payload.previous_snapshot
    return {
        "avg_mcp_latency_ms": views.average_mcp_latency(payload.samples),
        "tool_calls_since_start": views.total_tool_calls(payload.samples),
        "mcp_requests_per_second": views.mcp_throughput(current, previous),
        "current_poll_ms": current.timestamp if current else None,
        "previous_poll_ms": previous.timestamp if previous else None,
    }


@router.get("/latency", response_model=List[LatencyPoint])
async def get_latency_history(
    period: str = Query("1m"), bus: MetricsBus = Depends(get_bus)
):
    return bus.query(_period(period))


@router.get("/tools/latency", response_model=List[LatencySeries])
async def get_tool_latency_history(
    period: str = Query("1m"),
    tool: Optional[str] = Query(None, description="plugin::tool series key"),
    bus: MetricsBus = Depends(get_bus),
):
    p = _period(period)
    if tool is None:
        return bus.query_per_dimension(p)
    series = bus.payload.per_dimension_latency_history.get(tool)
    if series is None:
        raise HTTPException(status_code=404, detail="Unknown series")
    points = bus.query(p, tool)
    return [LatencySeries(plugin=series.plugin, tool=series.tool, points=points)]


@router.get("/tools/latency/ranking", response_model=List[ToolStat])
async def get_tool_latency_ranking(
    top_n: int = Query(settings.api_top_n, ge=1, le=100),
    bus: MetricsBus = Depends(get_bus),
):
    return views.tool_latency_ranking(bus.payload.samples, top_n)


@router.get("/tools/calls", response_model=List[ToolStat])
async def get_tool_calls(
    top_n: int = Query(settings.api_top_n, ge=1, le=100),
    bus: MetricsBus = Depends(get_bus),
):
    payload = bus.payload
    return views.tool_call_ranking(payload.call_totals, payload.samples, top_n)
