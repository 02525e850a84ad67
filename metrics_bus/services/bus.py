"""Shared polling scheduler and subscription bus.

One MetricsBus serves every consumer in the process: however many
listeners subscribe, at most one fetch/parse/aggregate cycle runs per
interval. The first subscriber starts polling, the last one to leave stops
it.
"""

from __future__ import annotations

import asyncio
import itertools
from datetime import tzinfo
from typing import Callable, Dict, List, Optional

from metrics_bus.core.clock import Clock, system_clock
from metrics_bus.core.config import Settings, settings
from metrics_bus.core.errors import FetchError
from metrics_bus.core.logger import get_logger
from metrics_bus.domain.models import LatencyPoint, LatencySeries, MetricsPayload
from metrics_bus.domain.periods import LatencyPeriod, filter_points, window_start
from metrics_bus.infrastructure.http import ExpositionFetcher, HttpExpositionFetcher
from metrics_bus.infrastructure.instrumentation import (
    ACTIVE_SUBSCRIBERS,
    POLL_FAILURES_TOTAL,
    POLL_LATENCY_SECONDS,
    POLLS_SKIPPED_TOTAL,
    POLLS_TOTAL,
)
from metrics_bus.infrastructure.storage import build_storage
from metrics_bus.metrics.aggregator import AggregationState, SeriesAggregator
from metrics_bus.metrics.parser import parse_exposition
from metrics_bus.metrics.retention import RetentionPolicy
from metrics_bus.metrics.snapshot import build_snapshot

from .history_store import HistoryStore

logger = get_logger("metrics_bus.bus")

Listener = Callable[[MetricsPayload], None]


class MetricsBus:
    def __init__(
        self,
        fetcher: ExpositionFetcher,
        store: HistoryStore,
        interval_seconds: float = 20.0,
        clock: Clock = system_clock,
        aggregator: SeriesAggregator | None = None,
        tz: Optional[tzinfo] = None,
    ):
        self.fetcher = fetcher
        self.store = store
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.aggregator = aggregator or SeriesAggregator(store.policy)
        self.tz = tz
        self.completed_polls = 0

        self._listeners: Dict[int, Listener] = {}
        self._tokens = itertools.count()
        self._state = AggregationState()
        self._payload = MetricsPayload()
        self._loaded = False
        self._load_lock = asyncio.Lock()
        self._busy = False
        self._timer: Optional[asyncio.Task] = None

    @property
    def payload(self) -> MetricsPayload:
        return self._payload

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    @property
    def is_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    # Subscription
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return its unsubscribe function.

        The listener immediately receives the last known payload. The first
        subscription starts polling; must be called from the event loop.
        """
        token = next(self._tokens)
        self._listeners[token] = listener
        ACTIVE_SUBSCRIBERS.set(len(self._listeners))
        self._deliver(listener, self._payload)
        if not self.is_running:
            self.start()

        def unsubscribe() -> None:
            if self._listeners.pop(token, None) is None:
                return
            ACTIVE_SUBSCRIBERS.set(len(self._listeners))
            if not self._listeners:
                self.stop()

        return unsubscribe

    # Lifecycle
    async def load(self) -> None:
        """Restore persisted history; later calls are no-ops."""
        async with self._load_lock:
            if self._loaded:
                return
            self._state = await self.store.load()
            self._payload = self._state.to_payload([])
            self._loaded = True

    def start(self) -> None:
        if self.is_running:
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.create_task(self._run(), name="metrics-bus-poller")
        logger.info(
            "metrics_bus_started", extra={"interval_seconds": self.interval_seconds}
        )

    def stop(self) -> None:
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None
        logger.info("metrics_bus_stopped")

    async def aclose(self) -> None:
        timer = self._timer
        self.stop()
        if timer is not None:
            try:
                await timer
            except asyncio.CancelledError:  # expected during shutdown
                logger.debug("metrics_bus_timer_cancelled")
        self._listeners.clear()
        ACTIVE_SUBSCRIBERS.set(0)
        await self.fetcher.close()
        await self.store.close()

    # Polling
    async def poll_once(self) -> bool:
        """Run one fetch/aggregate/publish cycle.

        Returns False when the cycle was skipped because another one is in
        flight, or when the exposition could not be fetched; the previous
        payload is kept in both cases.
        """
        if self._busy:
            POLLS_SKIPPED_TOTAL.inc()
            logger.debug("metrics_poll_skipped_busy")
            return False
        self._busy = True
        try:
            await self.load()
            with POLL_LATENCY_SECONDS.time():
                try:
                    text = await self.fetcher.fetch()
                except FetchError as e:
                    POLL_FAILURES_TOTAL.labels(reason="transport").inc()
                    logger.warning(
                        "metrics_fetch_failed",
                        extra={"url": e.url, "error": e.reason, "status": e.status},
                    )
                    return False
                samples = parse_exposition(text)
                snapshot = build_snapshot(samples, self.clock())
                self.aggregator.apply(self._state, samples, snapshot)
                self._payload = self._state.to_payload(samples)
                await self.store.save(self._state)
        finally:
            self._busy = False

        self.completed_polls += 1
        POLLS_TOTAL.inc()
        logger.debug(
            "metrics_poll_completed",
            extra={"samples": len(samples), "listeners": len(self._listeners)},
        )
        self._publish(self._payload)
        return True

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            try:
                await self.poll_once()
            except Exception:
                POLL_FAILURES_TOTAL.labels(reason="internal").inc()
                logger.exception("metrics_poll_failed")
            next_tick += self.interval_seconds
            now = loop.time()
            if now > next_tick:
                # fixed-rate ticks that fell inside a slow cycle are skipped
                missed = int((now - next_tick) // self.interval_seconds) + 1
                next_tick += missed * self.interval_seconds
                POLLS_SKIPPED_TOTAL.inc(missed)
                logger.debug("metrics_poll_ticks_skipped", extra={"missed": missed})
            await asyncio.sleep(next_tick - now)

    def _publish(self, payload: MetricsPayload) -> None:
        for listener in list(self._listeners.values()):
            self._deliver(listener, payload)

    @staticmethod
    def _deliver(listener: Listener, payload: MetricsPayload) -> None:
        try:
            listener(payload)
        except Exception:
            logger.exception("metrics_listener_failed")

    # Windowed views
    def query(
        self,
        period: LatencyPeriod | str,
        dimension: Optional[str] = None,
        now_ms: Optional[int] = None,
    ) -> List[LatencyPoint]:
        """Points of the overall history (or one plugin::tool series) in the window."""
        now = self.clock() if now_ms is None else now_ms
        start = window_start(period, now, self.tz)
        payload = self._payload
        if dimension is None:
            return filter_points(payload.overall_latency_history, start)
        series = payload.per_dimension_latency_history.get(dimension)
        return filter_points(series.points, start) if series is not None else []

    def query_per_dimension(
        self, period: LatencyPeriod | str, now_ms: Optional[int] = None
    ) -> List[LatencySeries]:
        now = self.clock() if now_ms is None else now_ms
        start = window_start(period, now, self.tz)
        out: List[LatencySeries] = []
        for series in self._payload.per_dimension_latency_history.values():
            points = filter_points(series.points, start)
            if points:
                out.append(
                    LatencySeries(plugin=series.plugin, tool=series.tool, points=points)
                )
        return out


async def create_metrics_bus(
    config: Settings = settings, clock: Clock = system_clock
) -> MetricsBus:
    """Build a bus wired to the configured endpoint and storage backend."""
    policy = RetentionPolicy(
        max_age_ms=config.history_max_age_ms, max_points=config.history_max_points
    )
    storage = await build_storage(config)
    fetcher = HttpExpositionFetcher(
        config.metrics_url, timeout_seconds=config.metrics_fetch_timeout_seconds
    )
    return MetricsBus(
        fetcher,
        HistoryStore(storage, policy, clock),
        interval_seconds=config.metrics_poll_interval_seconds,
        clock=clock,
    )


_default_bus: Optional[MetricsBus] = None
# Created on first use so it binds to the loop that runs the bus
_default_bus_lock: Optional[asyncio.Lock] = None


async def get_metrics_bus() -> MetricsBus:
    """Process-wide bus, created on first use."""
    global _default_bus, _default_bus_lock
    if _default_bus_lock is None:
        _default_bus_lock = asyncio.Lock()
    async with _default_bus_lock:
        if _default_bus is None:
            bus = await create_metrics_bus()
            await bus.load()
            _default_bus = bus
    return _default_bus


async def reset_metrics_bus() -> None:
    """Close the process-wide bus; the next get_metrics_bus() builds a new one."""
    global _default_bus, _default_bus_lock
    bus, _default_bus = _default_bus, None
    _default_bus_lock = None
    if bus is not None:
        await bus.aclose()
