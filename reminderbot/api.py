"""Bot service for ``RUN_MODE=api``: FastAPI app hosting the worker and loops."""

from __future__ import annotations

import structlog
import uvicorn
from fastapi import FastAPI

from reminderbot.runtime import Runtime
from reminderbot.shared.config import Settings, get_settings
from reminderbot.shared.schemas.common import HealthResponse

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
)

logger = structlog.get_logger()
app = FastAPI(title="reminderbot", version="0.1.0")

runtime: Runtime | None = None
# Settings handed over by serve(); startup falls back to get_settings()
_settings: Settings | None = None


@app.on_event("startup")
async def startup():
    global runtime
    runtime = Runtime(_settings or get_settings())
    await runtime.start()
    logger.info("reminderbot_ready")


@app.on_event("shutdown")
async def shutdown():
    global runtime
    if runtime is not None:
        await runtime.stop()
        runtime = None
    logger.info("reminderbot_shutdown")


@app.get("/health", response_model=HealthResponse)
async def health():
    if runtime is None:
        return HealthResponse(status="starting")
    return runtime.health()


def serve(settings: Settings | None = None) -> None:
    """Run the service in the foreground until interrupted."""
    global _settings
    settings = _settings = settings or get_settings()
    logger.info("starting_api", host=settings.api_host, port=settings.api_port)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level="info")
