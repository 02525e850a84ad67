from fastapi import Request

from metrics_bus.services.bus import MetricsBus


def get_bus(request: Request) -> MetricsBus:
    return request.app.state.bus  # type: ignore[return-value]
