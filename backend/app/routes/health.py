"""Liveness check: database reachability plus the publish capabilities in force."""

import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel

from app.config import settings
from app.dal.database import get_database

logger = logging.getLogger("headcount.routes.health")
router = APIRouter(tags=["Health"])


class HealthChecks(BaseModel):
    database: Literal["ok", "down", "unknown"] = "unknown"


class CapabilitiesOut(BaseModel):
    publish_scheduling: bool
    publish_clear: bool


class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded"]
    version: str
    checks: HealthChecks
    capabilities: CapabilitiesOut


async def _ping_database() -> bool:
    try:
        await get_database().command("ping")
    except Exception as e:
        logger.warning("Database health check failed: %s", str(e))
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Answers 200 even while MongoDB is unreachable; ``status`` says degraded."""
    database_up = await _ping_database()
    return HealthResponse(
        status="healthy" if database_up else "degraded",
        version=settings.APP_VERSION,
        checks=HealthChecks(database="ok" if database_up else "down"),
        capabilities=CapabilitiesOut(
            publish_scheduling=settings.PUBLISH_SCHEDULING_ENABLED,
            publish_clear=settings.PUBLISH_CLEAR_ENABLED,
        ),
    )
