"""Builders and fakes shared by the unit tests."""

from metrics_bus.core.errors import FetchError

T0 = 1_715_774_400_000  # 2024-05-15T12:00:00Z, a Wednesday
METRICS_URL = "http://localhost:8000/metrics"


def tool_series(
    plugin: str, tool: str, latency_sum: float, count: float, calls: float
) -> str:
    """Exposition lines for one plugin/tool latency pair plus its call counter."""
    labels = f'plugin="{plugin}",tool="{tool}"'
    return (
        f"ark_tool_latency_ms_sum{{{labels}}} {latency_sum}\n"
        f"ark_tool_latency_ms_count{{{labels}}} {count}\n"
        f"ark_tool_calls_total{{{labels}}} {calls}\n"
    )


def mcp_series(latency_sum: float, count: float, calls: float) -> str:
    return (
        f"ark_mcp_latency_ms_sum {latency_sum}\n"
        f"ark_mcp_latency_ms_count {count}\n"
        f'ark_mcp_calls_total{{method="tools/call"}} {calls}\n'
    )


def fetch_error(reason: str = "connection refused") -> FetchError:
    return FetchError(METRICS_URL, reason)


class FakeClock:
    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class FakeFetcher:
    """Serves queued exposition bodies; an exception in the queue is raised.

    The last body is repeated once the queue is exhausted.
    """

    def __init__(self, *bodies):
        self.bodies = list(bodies) or [""]
        self.calls = 0
        self.closed = False

    async def fetch(self) -> str:
        body = self.bodies[min(self.calls, len(self.bodies) - 1)]
        self.calls += 1
        if isinstance(body, Exception):
            raise body
        return body

    async def close(self) -> None:
        self.closed = True
