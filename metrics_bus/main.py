import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from metrics_bus import __version__
from metrics_bus.api.router import api_router
from metrics_bus.core.config import settings
from metrics_bus.core.logger import configure_logging, get_logger
from metrics_bus.domain.models import MetricsPayload
from metrics_bus.services.bus import create_metrics_bus

# Configure logging once and get service logger
configure_logging()
logger = get_logger("metrics_bus.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "metrics_bus_service_starting",
        extra={
            "metrics_url": settings.metrics_url,
            "storage_backend": settings.storage_backend,
        },
    )
    app.state.bus = await create_metrics_bus(settings)
    await app.state.bus.load()
    app.state.ready_event = asyncio.Event()

    def _on_payload(payload: MetricsPayload):
        if payload.current_snapshot is not None:
            app.state.ready_event.set()

    # The service is itself a subscriber, keeping the shared poller alive
    unsubscribe = app.state.bus.subscribe(_on_payload)
    try:
        yield
    finally:
        logger.info("metrics_bus_service_stopping")
        unsubscribe()
        await app.state.bus.aclose()


app = FastAPI(title="ARK Metrics Bus", version=__version__, lifespan=lifespan)

instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    excluded_handlers=["/docs", "/openapi.json", "/metrics"],
    inprogress_name="metrics_bus_api_inprogress",
    inprogress_labels=True,
)

instrumentator.instrument(app).expose(app)

app.include_router(api_router)
