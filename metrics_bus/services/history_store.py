"""Loads and persists the three durable metrics records.

Persisted data is validated fragment by fragment: a malformed point, series
or total is discarded while the valid rest of the record is kept. Storage
failures are logged and treated as "no data"; they never reach the polling
cycle.
"""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import ValidationError

from metrics_bus.core.clock import Clock, system_clock
from metrics_bus.core.errors import StorageError
from metrics_bus.core.logger import get_logger
from metrics_bus.domain.models import UNKNOWN, CallTotal, LatencyPoint, LatencySeries
from metrics_bus.infrastructure.instrumentation import STORAGE_ERRORS_TOTAL
from metrics_bus.infrastructure.storage import StoragePort
from metrics_bus.metrics.aggregator import AggregationState
from metrics_bus.metrics.retention import RetentionPolicy

from shared.constants import StorageKeys

logger = get_logger("metrics_bus.history_store")


def _label(value: Any) -> str:
    return value if isinstance(value, str) and value else UNKNOWN


class HistoryStore:
    def __init__(
        self,
        storage: StoragePort,
        policy: RetentionPolicy | None = None,
        clock: Clock = system_clock,
    ):
        self.storage = storage
        self.policy = policy or RetentionPolicy()
        self.clock = clock

    async def load(self) -> AggregationState:
        now = self.clock()
        state = AggregationState()
        state.overall = self._points(
            await self._load_record(StorageKeys.LATENCY_HISTORY), now
        )
        state.per_dimension = self._per_dimension(
            await self._load_record(StorageKeys.PER_TOOL_LATENCY_HISTORY), now
        )
        state.call_totals = self._call_totals(
            await self._load_record(StorageKeys.TOOL_CALL_TOTALS)
        )
        logger.info(
            "history_loaded",
            extra={
                "overall_points": len(state.overall),
                "series": len(state.per_dimension),
                "call_totals": len(state.call_totals),
            },
        )
        return state

    async def save(self, state: AggregationState) -> None:
        records = {
            StorageKeys.LATENCY_HISTORY: [p.model_dump() for p in state.overall],
            StorageKeys.PER_TOOL_LATENCY_HISTORY: {
                s.key: s.model_dump() for s in state.per_dimension.values()
            },
            StorageKeys.TOOL_CALL_TOTALS: {
                key: t.model_dump() for key, t in state.call_totals.items()
            },
        }
        for key in StorageKeys.all_keys():
            await self._save_record(key, records[key])

    async def close(self) -> None:
        await self.storage.close()

    # Internals
    async def _load_record(self, key: str) -> Any:
        try:
            return await self.storage.load(key)
        except StorageError as e:
            STORAGE_ERRORS_TOTAL.labels(operation="load").inc()
            logger.warning("history_load_failed", extra={"key": key, "error": e.reason})
            return None

    async def _save_record(self, key: str, value: Any) -> None:
        try:
            await self.storage.save(key, value)
        except StorageError as e:
            STORAGE_ERRORS_TOTAL.labels(operation="save").inc()
            logger.warning("history_save_failed", extra={"key": key, "error": e.reason})

    def _points(self, raw: Any, now: int) -> List[LatencyPoint]:
        if not isinstance(raw, list):
            return []
        points: List[LatencyPoint] = []
        for item in raw:
            try:
                points.append(LatencyPoint.model_validate(item))
            except ValidationError:
                continue
        if len(points) < len(raw):
            logger.debug(
                "history_points_discarded", extra={"discarded": len(raw) - len(points)}
            )
        points.sort(key=lambda p: p.timestamp)
        return self.policy.trim(points, now_ms=now)

    def _per_dimension(self, raw: Any, now: int) -> Dict[str, LatencySeries]:
        if not isinstance(raw, dict):
            return {}
        out: Dict[str, LatencySeries] = {}
        for value in raw.values():
            if not isinstance(value, dict):
                continue
            points = self._points(value.get("points"), now)
            if not points:
                continue
            series = LatencySeries(
                plugin=_label(value.get("plugin")),
                tool=_label(value.get("tool")),
                points=points,
            )
            # re-keyed from its labels so stored and live keys always agree
            out[series.key] = series
        return out

    def _call_totals(self, raw: Any) -> Dict[str, CallTotal]:
        if not isinstance(raw, dict):
            return {}
        out: Dict[str, CallTotal] = {}
        for key, value in raw.items():
            if not isinstance(value, dict):
                continue
            try:
                out[key] = CallTotal(
                    plugin=_label(value.get("plugin")),
                    tool=_label(value.get("tool")),
                    total=value.get("total", 0),
                )
            except ValidationError:
                logger.debug("call_total_discarded", extra={"key": key})
        return out
