"""Task execution infrastructure on APScheduler and Taskiq.

This package provides the infrastructure layer for background task execution:
- broker.py: the in-process Taskiq broker (how work runs)
- scheduler.py: the shared AsyncIOScheduler (when repeating work runs)
- queues.py: named task queues (one-off and repeating jobs)
- factory.py: lazy registry that builds queue and worker handles on first use
- middleware.py: Taskiq middleware (metrics, job outcome events)
- tracking/: per-user job registry in Redis

For task definitions (the actual work), see the `workers/` package.
"""

from __future__ import annotations

from property_service.infra.tasks.broker import create_broker, start_taskiq, stop_taskiq
from property_service.infra.tasks.factory import QueueFactory, Worker
from property_service.infra.tasks.middleware import (
    JobEventsMiddleware,
    MetricsMiddleware,
)
from property_service.infra.tasks.queues import (
    EnqueueOptions,
    QueueBackend,
    RepeatableJob,
    RepeatOptions,
    TaskQueue,
)
from property_service.infra.tasks.scheduler import (
    create_scheduler,
    start_scheduler,
    stop_scheduler,
)

__all__ = [
    "EnqueueOptions",
    "JobEventsMiddleware",
    "MetricsMiddleware",
    "QueueBackend",
    "QueueFactory",
    "RepeatOptions",
    "RepeatableJob",
    "TaskQueue",
    "Worker",
    "create_broker",
    "create_scheduler",
    "start_scheduler",
    "start_taskiq",
    "stop_scheduler",
    "stop_taskiq",
]
