"""Application composition root.

Every stateful component is built here once and handed to its consumers
explicitly; nothing is looked up from module-level singletons.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from property_service.features.cron.service import CronOrchestrator
from property_service.features.jobs.service import JobSubmissionService
from property_service.features.leases.cron import LeaseCronProvider
from property_service.infra.cache import RedisCache
from property_service.infra.realtime import (
    EventBridge,
    LocalEventBus,
    RedisEventBus,
    SessionRegistry,
    SSETransport,
)
from property_service.infra.tasks import (
    JobEventsMiddleware,
    MetricsMiddleware,
    QueueFactory,
    TaskQueue,
    create_broker,
    create_scheduler,
)
from property_service.infra.tasks.tracking import JobRegistry
from property_service.workers.cron import CronWorker

if TYPE_CHECKING:
    from collections.abc import Callable

    from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-untyped]
    from redis.asyncio import Redis
    from taskiq import InMemoryBroker

    from property_service.core.settings import Settings
    from property_service.features.cron.models import CronProvider
    from property_service.features.leases.cron import LeaseMaintenanceGateway
    from property_service.infra.realtime import EventBus
    from property_service.infra.tasks import Worker

logger = logging.getLogger(__name__)

CRON_QUEUE = "cron"
CRON_WORKER = "cron"


@dataclass
class AppContainer:
    settings: Settings
    cache: RedisCache
    scheduler: AsyncIOScheduler
    broker: InMemoryBroker
    bus: EventBus
    sessions: SessionRegistry
    bridge: EventBridge
    queues: QueueFactory
    job_registry: JobRegistry
    submissions: JobSubmissionService
    cron: CronOrchestrator | None


def build_container(
    settings: Settings,
    *,
    redis_client: Redis | None = None,
    lease_gateway: LeaseMaintenanceGateway | None = None,
    cron_providers: list[CronProvider] | None = None,
) -> AppContainer:
    """Wire every component from settings.

    Args:
        settings: Unified settings.
        redis_client: Pre-built Redis client (tests pass an in-memory fake).
        lease_gateway: Lease domain operations; enables the lease cron jobs.
        cron_providers: Extra cron providers registered after the lease provider.
    """
    cache = RedisCache(settings.redis, client=redis_client)
    scheduler = create_scheduler(
        timezone=settings.cron.default_timezone,
        coalesce=settings.cron.coalesce,
        misfire_grace_seconds=settings.cron.misfire_grace_seconds,
    )
    bus: EventBus
    if settings.sse.event_bus_backend == "redis":
        bus = RedisEventBus(cache, channel=settings.sse.event_channel)
    else:
        bus = LocalEventBus()

    sessions = SessionRegistry(
        SSETransport(
            queue_maxsize=settings.sse.queue_maxsize,
            keepalive_interval=settings.sse.keepalive_interval,
        ),
        max_sessions_per_user=settings.sse.max_sessions_per_user,
    )
    bridge = EventBridge(bus, sessions)

    broker = create_broker(
        [MetricsMiddleware(), JobEventsMiddleware(bus)],
        max_async_tasks=settings.tasks.max_async_tasks,
    )

    def queue_provider(name: str) -> Callable[[], TaskQueue]:
        def build() -> TaskQueue:
            return TaskQueue(
                name,
                broker,
                scheduler,
                default_timeout=settings.tasks.default_timeout_seconds,
            )

        return build

    queue_names = dict.fromkeys([*settings.tasks.known_queues, *settings.tasks.job_type_queues.values()])
    queue_providers = {name: queue_provider(name) for name in queue_names}

    cron: CronOrchestrator | None = None

    def cron_worker() -> Worker:
        if cron is None:
            msg = "Cron orchestration is disabled"
            raise RuntimeError(msg)
        return CronWorker(cron)

    worker_providers: dict[str, Callable[[], Worker]] = {}
    if settings.cron.enabled:
        worker_providers[CRON_WORKER] = cron_worker

    queues = QueueFactory(
        queue_providers,
        worker_providers,
        broker=broker,
        known_queues=settings.tasks.known_queues,
        known_workers=settings.tasks.known_workers,
    )

    if settings.cron.enabled:
        providers: list[CronProvider] = []
        if lease_gateway is not None:
            providers.append(LeaseCronProvider(lease_gateway))
        providers.extend(cron_providers or [])

        cron = CronOrchestrator(
            queues.get_queue(CRON_QUEUE),
            providers,
            default_timezone=settings.cron.default_timezone,
            default_timeout=settings.cron.default_timeout_seconds,
        )
    else:
        logger.info("Cron orchestration disabled in this process")

    job_registry = JobRegistry(cache, ttl_seconds=settings.tasks.job_ttl_seconds)
    submissions = JobSubmissionService(queues, job_registry, settings.tasks.job_type_queues)

    return AppContainer(
        settings=settings,
        cache=cache,
        scheduler=scheduler,
        broker=broker,
        bus=bus,
        sessions=sessions,
        bridge=bridge,
        queues=queues,
        job_registry=job_registry,
        submissions=submissions,
        cron=cron,
    )
