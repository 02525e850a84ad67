import time

from fastapi import APIRouter, Request, Response

router = APIRouter()
_start_time = time.time()


@router.get("/health")
def health():
    return {"status": "ok", "uptime_s": time.time() - _start_time}


@router.get("/ready")
async def ready(request: Request):
    """Ready once the first poll of the remote exposition has completed."""
    if request.app.state.ready_event.is_set():
        return {"status": "ready", "polls": request.app.state.bus.completed_polls}
    return Response(status_code=503, content="not ready")
