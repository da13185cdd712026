# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Liveness and readiness endpoints.

/health always answers 200 and reports "degraded" when the datastore is
unreachable. /ready answers whether approvals can be processed right now.
"""

import logging
import time
from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from src import __version__
from src.core.config import get_settings
from src.infrastructure.database.connection import check_database_connection
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

_started_at = time.monotonic()


class ComponentHealth(BaseModel):
    status: str = Field(description="healthy or unhealthy")
    latency_ms: float | None = Field(None, description="Check latency in ms")
    message: str | None = None


class HealthResponse(BaseModel):
    """Liveness report."""

    status: str = Field(description="healthy or degraded")
    timestamp: datetime
    version: str
    environment: str
    uptime_seconds: int
    components: dict[str, ComponentHealth] = Field(default_factory=dict)


class ReadinessResponse(BaseModel):
    ready: bool
    checks: dict[str, ComponentHealth]


async def _database_health() -> ComponentHealth:
    started = time.perf_counter()
    reachable = await check_database_connection()
    latency_ms = round((time.perf_counter() - started) * 1000, 2)

    if not reachable:
        logger.error("Datastore health check failed")
        return ComponentHealth(status="unhealthy", latency_ms=latency_ms, message="Database not reachable")
    return ComponentHealth(status="healthy", latency_ms=latency_ms)


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    database = await _database_health()
    return HealthResponse(
        status="healthy" if database.status == "healthy" else "degraded",
        timestamp=utc_now(),
        version=__version__,
        environment=get_settings().environment,
        uptime_seconds=int(time.monotonic() - _started_at),
        components={"database": database},
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check() -> ReadinessResponse:
    database = await _database_health()
    return ReadinessResponse(ready=database.status == "healthy", checks={"database": database})
