"""Prometheus metrics endpoint for observability.

Endpoints:
    GET /metrics - Prometheus scrape endpoint

Scrape config:
    scrape_configs:
      - job_name: 'property-service'
        metrics_path: '/metrics'
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST

from property_service.infra.metrics import REGISTRY, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics.

    Returns metrics for scraping by Prometheus, including:
    - Tracked jobs and lazy queue/worker initializations
    - Task runs and durations per task name
    - Cron job runs and durations
    - Push sessions, deliveries and delivery failures
    """
    data = generate_latest(REGISTRY)
    return Response(
        content=data,
        media_type=CONTENT_TYPE_LATEST,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )
