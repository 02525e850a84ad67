import asyncio
import json

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from prometheus_client import REGISTRY

from metrics_bus.core.config import Settings
from metrics_bus.infrastructure.http import HttpExpositionFetcher
from metrics_bus.infrastructure.storage import MemoryStorage
from metrics_bus.services import bus as bus_module
from metrics_bus.services.bus import MetricsBus, create_metrics_bus
from metrics_bus.services.history_store import HistoryStore

from shared.constants import StorageKeys
from tests.helpers.exposition import T0, FakeFetcher, fetch_error, tool_series

BODY = tool_series("p", "t", 1000, 10, 10)


async def _drain(turns: int = 20):
    for _ in range(turns):
        await asyncio.sleep(0)


def _sample(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def make_bus(fetcher, clock, storage=None, interval=60.0):
    store = HistoryStore(storage or MemoryStorage(), clock=clock)
    return MetricsBus(fetcher, store, interval_seconds=interval, clock=clock)


class BlockingFetcher(FakeFetcher):
    def __init__(self, *bodies):
        super().__init__(*bodies)
        self.release = asyncio.Event()
        self.entered = asyncio.Event()

    async def fetch(self) -> str:
        self.entered.set()
        await self.release.wait()
        return await super().fetch()


class TestSubscription:
    @pytest.mark.asyncio
    async def test_subscribers_share_one_poll(self, clock):
        fetcher = FakeFetcher(BODY)
        bus = make_bus(fetcher, clock)
        first, second = [], []

        unsubscribe_first = bus.subscribe(first.append)
        assert bus.is_running
        await _drain()
        assert fetcher.calls == 1
        # last known payload on subscribe, then the polled one
        assert len(first) == 2
        assert first[0].current_snapshot is None
        assert first[1].current_snapshot.timestamp == T0

        unsubscribe_second = bus.subscribe(second.append)
        await _drain()
        assert fetcher.calls == 1
        assert second == [bus.payload]
        assert bus.subscriber_count == 2

        unsubscribe_first()
        assert bus.is_running
        unsubscribe_second()
        assert not bus.is_running
        unsubscribe_second()
        assert bus.subscriber_count == 0

        await _drain()
        await bus.aclose()

    @pytest.mark.asyncio
    async def test_resubscribe_restarts_polling(self, clock):
        fetcher = FakeFetcher(BODY)
        bus = make_bus(fetcher, clock)
        bus.subscribe(lambda payload: None)()
        assert not bus.is_running

        unsubscribe = bus.subscribe(lambda payload: None)
        assert bus.is_running
        unsubscribe()
        await _drain()
        await bus.aclose()

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self, clock):
        bus = make_bus(FakeFetcher(BODY), clock)
        received = []

        def explode(payload):
            raise RuntimeError("listener bug")

        bus.subscribe(explode)
        bus.subscribe(received.append)
        await _drain()
        assert len(received) == 2
        await bus.aclose()


class TestPolling:
    @pytest.mark.asyncio
    async def test_poll_persists_history(self, clock):
        storage = MemoryStorage()
        bus = make_bus(FakeFetcher(BODY), clock, storage)

        assert await bus.poll_once() is True
        assert bus.completed_polls == 1
        overall = json.loads(storage.records[StorageKeys.LATENCY_HISTORY])
        assert overall == [{"timestamp": T0, "average_ms": 100.0}]
        assert bus.payload.samples[0].name == "ark_tool_latency_ms_sum"

    @pytest.mark.asyncio
    async def test_undecodable_line_does_not_fail_the_poll(self, clock):
        body = (
            b'ark_tool_calls_total{plugin="p",tool="ok"} 3\n'
            b'ark_tool_calls_total{plugin="p",tool="bad\xff"} 4\n'
        )

        async def handler(request):
            return web.Response(body=body, content_type="text/plain", charset="utf-8")

        app = web.Application()
        app.router.add_get("/metrics", handler)
        async with TestServer(app) as server:
            fetcher = HttpExpositionFetcher(str(server.make_url("/metrics")))
            bus = make_bus(fetcher, clock)
            try:
                assert await bus.poll_once() is True
            finally:
                await bus.aclose()

        samples = bus.payload.samples
        assert samples[0].labels == {"plugin": "p", "tool": "ok"}
        assert samples[0].value == 3.0
        assert len(samples) == 2
        assert samples[1].labels["tool"] == "bad\ufffd"

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_last_payload(self, clock):
        bus = make_bus(FakeFetcher(BODY, fetch_error()), clock)
        before = _sample("metrics_bus_poll_failures_total", {"reason": "transport"})

        assert await bus.poll_once() is True
        payload = bus.payload
        clock.advance(20_000)
        assert await bus.poll_once() is False

        assert bus.payload is payload
        assert bus.completed_polls == 1
        after = _sample("metrics_bus_poll_failures_total", {"reason": "transport"})
        assert after == before + 1

    @pytest.mark.asyncio
    async def test_overlapping_poll_is_skipped(self, clock):
        fetcher = BlockingFetcher(BODY)
        bus = make_bus(fetcher, clock)
        skipped = _sample("metrics_bus_polls_skipped_total")

        in_flight = asyncio.create_task(bus.poll_once())
        await fetcher.entered.wait()
        assert await bus.poll_once() is False
        fetcher.release.set()

        assert await in_flight is True
        assert fetcher.calls == 1
        assert _sample("metrics_bus_polls_skipped_total") == skipped + 1

    @pytest.mark.asyncio
    async def test_loop_survives_unexpected_errors(self, clock):
        fetcher = FakeFetcher(RuntimeError("boom"))
        bus = make_bus(fetcher, clock, interval=0.01)
        bus.start()
        await asyncio.sleep(0.1)
        assert fetcher.calls >= 2
        assert bus.is_running
        await bus.aclose()
        assert not bus.is_running

    @pytest.mark.asyncio
    async def test_aclose_releases_resources(self, clock):
        fetcher = FakeFetcher(BODY)
        bus = make_bus(fetcher, clock)
        bus.subscribe(lambda payload: None)
        await _drain()
        await bus.aclose()
        assert fetcher.closed
        assert bus.subscriber_count == 0
        assert not bus.is_running


class TestQuery:
    @pytest.fixture
    def storage(self):
        def points(*items):
            return [{"timestamp": ts, "average_ms": avg} for ts, avg in items]

        return MemoryStorage(
            {
                StorageKeys.LATENCY_HISTORY: json.dumps(
                    points((T0 - 3_600_000, 1.0), (T0 - 30_000, 2.0))
                ),
                StorageKeys.PER_TOOL_LATENCY_HISTORY: json.dumps(
                    {
                        "p::recent": {
                            "plugin": "p",
                            "tool": "recent",
                            "points": points((T0 - 10_000, 3.0)),
                        },
                        "p::old": {
                            "plugin": "p",
                            "tool": "old",
                            "points": points((T0 - 3_600_000, 4.0)),
                        },
                    }
                ),
            }
        )

    @pytest.mark.asyncio
    async def test_query_overall_window(self, storage, clock):
        bus = make_bus(FakeFetcher(), clock, storage)
        await bus.load()
        assert [p.average_ms for p in bus.query("1m")] == [2.0]
        assert [p.average_ms for p in bus.query("month")] == [1.0, 2.0]
        assert bus.query("1m", now_ms=T0 + 120_000) == []

    @pytest.mark.asyncio
    async def test_query_one_dimension(self, storage, clock):
        bus = make_bus(FakeFetcher(), clock, storage)
        await bus.load()
        assert [p.average_ms for p in bus.query("5m", "p::recent")] == [3.0]
        assert bus.query("5m", "p::missing") == []

    @pytest.mark.asyncio
    async def test_query_per_dimension_drops_empty_series(self, storage, clock):
        bus = make_bus(FakeFetcher(), clock, storage)
        await bus.load()
        series = bus.query_per_dimension("1m")
        assert [(s.tool, len(s.points)) for s in series] == [("recent", 1)]

    @pytest.mark.asyncio
    async def test_poll_after_restart_extends_loaded_history(self, storage, clock):
        bus = make_bus(FakeFetcher(BODY), clock, storage)
        await bus.load()
        await bus.load()
        await bus.poll_once()
        assert [p.average_ms for p in bus.payload.overall_latency_history] == [
            1.0,
            2.0,
            100.0,
        ]


@pytest.mark.asyncio
async def test_create_metrics_bus_from_settings():
    config = Settings(
        storage_backend="memory",
        metrics_base_url="example:9000/",
        metrics_poll_interval_seconds=5,
        history_max_points=50,
    )
    bus = await create_metrics_bus(config)
    assert bus.fetcher.url == "http://example:9000/metrics"
    assert bus.interval_seconds == 5
    assert bus.store.policy.max_points == 50
    assert bus.aggregator.policy is bus.store.policy
    await bus.aclose()


@pytest.mark.asyncio
async def test_default_bus_is_shared(monkeypatch, clock):
    created = []

    async def fake_create(*args, **kwargs):
        bus = make_bus(FakeFetcher(BODY), clock)
        created.append(bus)
        return bus

    monkeypatch.setattr(bus_module, "create_metrics_bus", fake_create)
    await bus_module.reset_metrics_bus()

    first = await bus_module.get_metrics_bus()
    second = await bus_module.get_metrics_bus()
    assert first is second
    assert len(created) == 1

    await bus_module.reset_metrics_bus()
    assert (await bus_module.get_metrics_bus()) is not first
    await bus_module.reset_metrics_bus()


def test_default_bus_works_across_event_loops(monkeypatch, clock):
    async def slow_create(*args, **kwargs):
        await asyncio.sleep(0)
        return make_bus(FakeFetcher(BODY), clock)

    monkeypatch.setattr(bus_module, "create_metrics_bus", slow_create)

    async def concurrent_lookups():
        first, second = await asyncio.gather(
            bus_module.get_metrics_bus(), bus_module.get_metrics_bus()
        )
        assert first is second
        await bus_module.reset_metrics_bus()

    # each run contends for the lock on its own loop
    asyncio.run(concurrent_lookups())
    asyncio.run(concurrent_lookups())
