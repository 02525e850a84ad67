from fastapi import APIRouter

from .v1.routes import health, metrics

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(metrics.router, prefix="/v1/metrics", tags=["metrics"])
