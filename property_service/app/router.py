"""Router registry and setup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from property_service.features.cron.router import router as cron_router
from property_service.features.jobs.router import router as jobs_router
from property_service.features.metrics.router import router as metrics_router
from property_service.features.realtime.router import router as realtime_router

if TYPE_CHECKING:
    from fastapi import FastAPI

    from property_service.core.settings import Settings

logger = logging.getLogger(__name__)


def setup_routers(app: FastAPI, settings: Settings) -> None:
    """Register all feature routers with the application.

    Args:
        app: FastAPI application instance.
        settings: Settings controlling the API prefix and optional routers.
    """
    api_prefix = settings.app.api_prefix

    if settings.app.metrics_enabled:
        app.include_router(metrics_router)

    app.include_router(jobs_router, prefix=api_prefix)
    app.include_router(cron_router, prefix=api_prefix)

    if settings.sse.enabled:
        app.include_router(realtime_router, prefix=api_prefix)

    logger.info(
        "Routers configured",
        extra={
            "api_prefix": api_prefix,
            "metrics_enabled": settings.app.metrics_enabled,
            "sse_enabled": settings.sse.enabled,
        },
    )
