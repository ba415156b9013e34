"""Lazy registry of named queue and worker handles.

Building a worker registers its task functions on the Taskiq broker, so handles
are built on first use and then memoized. Building either kind again after
``reset()`` is safe: queues keep no state of their own and re-registering a
task name replaces the previous function.

Providers are explicit ``name -> factory`` mappings assembled by the
application container.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
import inspect
import logging
from typing import TYPE_CHECKING, Any, Protocol

from property_service.infra.metrics.prometheus import queue_initializations_total

if TYPE_CHECKING:
    from taskiq import AsyncBroker

    from property_service.infra.tasks.queues import TaskQueue

logger = logging.getLogger(__name__)


class Worker(Protocol):
    """A named bundle of Taskiq task functions."""

    name: str

    def register(self, broker: AsyncBroker) -> None: ...


QueueProvider = Callable[[], "TaskQueue"]
WorkerProvider = Callable[[], "Worker"]


class QueueFactory:
    """Resolves queue and worker handles by name on first use.

    Example:
        factory = QueueFactory(
            {"upload": lambda: TaskQueue("upload", broker, scheduler)},
            {"cron": lambda: CronWorker(orchestrator)},
            broker=broker,
            known_queues=["upload"],
            known_workers=["cron"],
        )
        queue = factory.get_queue("upload")
    """

    def __init__(
        self,
        queue_providers: Mapping[str, QueueProvider],
        worker_providers: Mapping[str, WorkerProvider],
        *,
        broker: AsyncBroker,
        known_queues: Iterable[str] = (),
        known_workers: Iterable[str] = (),
    ) -> None:
        self._queue_providers = dict(queue_providers)
        self._worker_providers = dict(worker_providers)
        self._broker = broker
        self._known_queues = list(known_queues)
        self._known_workers = list(known_workers)
        self._queues: dict[str, TaskQueue] = {}
        self._workers: dict[str, Worker] = {}
        logger.info("QueueFactory initialized")

    def get_queue(self, name: str) -> TaskQueue:
        """Get a queue handle, building it on first use.

        Raises:
            KeyError: If no provider is registered for ``name``.
        """
        queue = self._queues.get(name)
        if queue is not None:
            return queue

        logger.info("Lazy initializing queue: %s", name, extra={"queue": name})
        try:
            queue = self._build(self._queue_providers, name, kind="queue")
        except Exception as e:
            logger.error("Failed to initialize queue %s", name, extra={"queue": name, "error": str(e)})
            raise

        self._queues[name] = queue
        queue_initializations_total.labels(kind="queue").inc()
        logger.info("Successfully initialized queue: %s", name, extra={"queue": name})
        return queue

    def get_worker(self, name: str) -> Worker:
        """Get a worker handle, building it and registering its tasks on first use.

        Raises:
            KeyError: If no provider is registered for ``name``.
        """
        worker = self._workers.get(name)
        if worker is not None:
            return worker

        logger.info("Lazy initializing worker: %s", name, extra={"worker": name})
        try:
            worker = self._build(self._worker_providers, name, kind="worker")
            worker.register(self._broker)
        except Exception as e:
            logger.error("Failed to initialize worker %s", name, extra={"worker": name, "error": str(e)})
            raise

        self._workers[name] = worker
        queue_initializations_total.labels(kind="worker").inc()
        logger.info("Successfully initialized worker: %s", name, extra={"worker": name})
        return worker

    def initialize_all(self) -> None:
        """Warm up every known queue and worker; failures are logged and skipped."""
        logger.info(
            "Force initializing all queues and workers",
            extra={"queues": self._known_queues, "workers": self._known_workers},
        )

        for name in self._known_queues:
            try:
                self.get_queue(name)
            except Exception as e:
                logger.error("Failed to initialize queue %s", name, extra={"queue": name, "error": str(e)})

        for name in self._known_workers:
            try:
                self.get_worker(name)
            except Exception as e:
                logger.error("Failed to initialize worker %s", name, extra={"worker": name, "error": str(e)})

    @property
    def initialized_queues(self) -> list[str]:
        return list(self._queues)

    @property
    def initialized_workers(self) -> list[str]:
        return list(self._workers)

    async def shutdown(self) -> None:
        """Close every initialized handle that exposes ``close()``."""
        for name, handle in [*self._queues.items(), *self._workers.items()]:
            close = getattr(handle, "close", None)
            if close is None:
                continue
            try:
                result = close()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.exception("Failed to close handle %s", name, extra={"handle": name, "error": str(e)})
        self.reset()
        logger.info("QueueFactory shut down")

    def reset(self) -> None:
        """Forget every memoized handle."""
        self._queues.clear()
        self._workers.clear()

    @staticmethod
    def _build(providers: Mapping[str, Callable[[], Any]], name: str, *, kind: str) -> Any:
        try:
            provider = providers[name]
        except KeyError:
            msg = f"No {kind} provider registered for: {name}"
            raise KeyError(msg) from None
        return provider()
