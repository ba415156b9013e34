"""Job submission: enqueue work on its queue and track it for the user."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import TYPE_CHECKING, Any

from taskiq.exceptions import TaskiqError

from property_service.core.results import OperationResult
from property_service.infra.tasks.queues import EnqueueOptions
from property_service.infra.tasks.tracking import JobType

if TYPE_CHECKING:
    from property_service.infra.tasks.factory import QueueFactory
    from property_service.infra.tasks.tracking import JobRegistry

logger = logging.getLogger(__name__)


class JobSubmissionService:
    """Submits tracked jobs.

    The queue comes from ``queue_for_type`` (job type -> queue name); the run
    is labelled with the user, tenant and job type so that its outcome can be
    pushed back to the user when it finishes.
    """

    def __init__(
        self,
        queues: QueueFactory,
        registry: JobRegistry,
        queue_for_type: Mapping[str, str],
    ) -> None:
        self._queues = queues
        self._registry = registry
        self._queue_for_type = dict(queue_for_type)

    async def submit(
        self,
        user_id: str,
        tenant_id: str,
        job_type: JobType | str,
        job_name: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> OperationResult[dict[str, str]]:
        try:
            kind = JobType(job_type)
            queue_name = self._queue_for_type[kind.value]
        except (ValueError, KeyError) as e:
            logger.error(
                "Cannot route job type",
                extra={"job_type": str(job_type), "user_id": user_id, "error": str(e)},
            )
            return OperationResult.fail(f"No queue for job type: {job_type}")

        labels = {"user_id": user_id, "tenant_id": tenant_id, "job_type": kind.value}
        try:
            queue = self._queues.get_queue(queue_name)
            job_id = await queue.enqueue(job_name, payload, EnqueueOptions(labels=labels))
        except (KeyError, ValueError, TaskiqError) as e:
            logger.error(
                "Job submission failed",
                extra={"queue": queue_name, "job_name": job_name, "user_id": user_id, "error": str(e)},
            )
            return OperationResult.fail(f"submit failed: {e}")

        logger.info(
            "Job submitted",
            extra={"job_id": job_id, "queue": queue_name, "job_type": kind.value, "user_id": user_id},
        )
        return await self._registry.track(user_id, job_id, kind, metadata)
