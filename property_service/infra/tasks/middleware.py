"""Taskiq middleware for task metrics and job outcome events.

This module provides middleware that hooks into Taskiq's lifecycle:

1. MetricsMiddleware - Records Prometheus metrics for task executions
2. JobEventsMiddleware - Publishes ``job.completed`` / ``job.failed`` events

Middleware order matters: put ``MetricsMiddleware`` first so its timer starts
before anything else runs.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from redis.exceptions import RedisError
from taskiq import TaskiqMiddleware

if TYPE_CHECKING:
    from taskiq import TaskiqMessage, TaskiqResult

from property_service.infra.metrics.prometheus import (
    task_duration_seconds,
    task_runs_total,
)
from property_service.infra.realtime.events import RealtimeEvent

if TYPE_CHECKING:
    from property_service.infra.realtime.events import EventBus

logger = logging.getLogger(__name__)

JOB_COMPLETED = "job.completed"
JOB_FAILED = "job.failed"


class MetricsMiddleware(TaskiqMiddleware):
    """Middleware that records Prometheus metrics for task executions.

    Metrics recorded:
    - task_runs_total: Counter with labels [task_name, status]
    - task_duration_seconds: Histogram with labels [task_name]
    """

    def __init__(self) -> None:
        super().__init__()
        self._start_times: dict[str, float] = {}

    async def pre_execute(
        self,
        message: TaskiqMessage,
    ) -> TaskiqMessage:
        self._start_times[message.task_id] = time.perf_counter()
        return message

    async def post_execute(
        self,
        message: TaskiqMessage,
        result: TaskiqResult[Any],
    ) -> None:
        task_name = message.task_name

        duration_seconds = None
        start_time = self._start_times.pop(message.task_id, None)
        if start_time is not None:
            duration_seconds = time.perf_counter() - start_time
            task_duration_seconds.labels(task_name=task_name).observe(duration_seconds)

        status = "failure" if result.is_err else "success"
        task_runs_total.labels(task_name=task_name, status=status).inc()

        logger.debug(
            "Task metrics recorded",
            extra={
                "task_id": message.task_id,
                "task_name": task_name,
                "status": status,
                "duration_seconds": duration_seconds,
            },
        )


class JobEventsMiddleware(TaskiqMiddleware):
    """Publishes ``job.completed`` / ``job.failed`` for tracked jobs.

    Only runs labelled with ``user_id``, ``tenant_id`` and ``job_type`` (as set
    by the job submission service) produce events; other tasks are ignored.
    """

    REQUIRED_LABELS = ("user_id", "tenant_id", "job_type")

    def __init__(self, bus: EventBus) -> None:
        super().__init__()
        self._bus = bus

    async def post_execute(
        self,
        message: TaskiqMessage,
        result: TaskiqResult[Any],
    ) -> None:
        labels = message.labels
        if not all(labels.get(key) for key in self.REQUIRED_LABELS):
            return

        payload: dict[str, Any] = {
            "job_id": message.task_id,
            "job_type": str(labels["job_type"]),
        }
        if result.is_err:
            error = result.error
            payload["error"] = (str(error) or type(error).__name__) if error is not None else "unknown error"

        event = RealtimeEvent(
            event_type=JOB_FAILED if result.is_err else JOB_COMPLETED,
            tenant_id=str(labels["tenant_id"]),
            user_id=str(labels["user_id"]),
            payload=payload,
        )

        try:
            await self._bus.publish(event)
        except (RedisError, RuntimeError, OSError) as e:
            logger.warning(
                "Failed to publish job event",
                extra={"job_id": message.task_id, "event_type": event.event_type, "error": str(e)},
            )
