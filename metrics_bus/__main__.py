import uvicorn

from metrics_bus.core.config import settings


def main() -> None:
    uvicorn.run(
        "metrics_bus.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # keep the JSON root handler
    )


if __name__ == "__main__":
    main()
