"""Health check routes."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from callback_dispatch.api.dependencies import get_callback_runtime
from callback_dispatch.bootstrap import CallbackRuntime

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    """Liveness probe."""

    return {"status": "ok"}


@router.get("/readyz")
async def readyz(runtime: CallbackRuntime = Depends(get_callback_runtime)) -> JSONResponse:
    """Readiness probe: workers must be running."""

    running = runtime.worker.is_running
    return JSONResponse(
        status_code=200 if running else 503,
        content={
            "status": "ready" if running else "not_ready",
            "workers": runtime.worker.concurrency,
            "redelivery": str(runtime.worker.redelivery),
            "queueDepth": runtime.queue.size,
            "queueCapacity": runtime.queue.capacity,
        },
    )


__all__ = ["router"]
