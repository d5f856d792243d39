"""Common schemas used across services."""

from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response for the api run mode."""

    status: str = "ok"
    worker_running: bool = False
    queue_depth: int = 0
    pending_actions: int = 0
