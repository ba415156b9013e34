"""Redis-backed registry of the background jobs each user has in flight.

Redis Key Structure:
- job:{job_id}:data  - Hash with the job record, each field JSON-encoded
- user:{user_id}:jobs - Set of job ids owned by the user

Both keys carry the same TTL (two hours by default); tracking a new job
refreshes the TTL of the user's set. A job id can outlive its record in the
set, so reads drop and prune such stale ids.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from redis.exceptions import RedisError

from property_service.core.results import OperationResult
from property_service.infra.metrics.prometheus import tracked_jobs_total
from property_service.infra.tasks.tracking.models import JobType, TrackedJob

if TYPE_CHECKING:
    from collections.abc import Iterable

    from redis.asyncio import Redis

    from property_service.infra.cache.redis import RedisCache

logger = logging.getLogger(__name__)

DEFAULT_JOB_TTL_SECONDS = 7200
JOB_NOT_FOUND = "Job not found"
JOB_OWNED_BY_OTHER_USER = "Job already tracked for another user"

# Errors wrapped into failure results; RuntimeError covers a cache that never connected
_CACHE_ERRORS = (RedisError, RuntimeError, OSError)


def job_data_key(job_id: str) -> str:
    return f"job:{job_id}:data"


def user_jobs_key(user_id: str) -> str:
    return f"user:{user_id}:jobs"


def _encode_job(job: TrackedJob) -> dict[str, str]:
    return {field: json.dumps(value) for field, value in job.model_dump(mode="json").items()}


def _decode_job(raw: dict[str, str]) -> TrackedJob:
    return TrackedJob.model_validate({field: json.loads(value) for field, value in raw.items()})


class JobRegistry:
    """Cache-backed bookkeeping of user-owned jobs.

    Every public method returns an ``OperationResult``; Redis errors are
    logged and turned into failure results, never raised.

    Example:
        registry = JobRegistry(cache, ttl_seconds=7200)
        await registry.track("user-1", "job-1", JobType.CSV_IMPORT, {"file": "units.csv"})
        result = await registry.list_for_user("user-1")
        if result.success:
            for job in result.data:
                ...
    """

    def __init__(self, cache: RedisCache, *, ttl_seconds: int = DEFAULT_JOB_TTL_SECONDS) -> None:
        self._cache = cache
        self.ttl_seconds = ttl_seconds

    @property
    def _client(self) -> Redis:
        return self._cache.client

    def _failure(self, operation: str, error: Exception, **context: Any) -> OperationResult[Any]:
        logger.error(
            "Job registry operation failed",
            extra={"operation": operation, "error": str(error), **context},
        )
        return OperationResult.fail(f"{operation} failed: {error}")

    async def track(
        self,
        user_id: str,
        job_id: str,
        job_type: JobType | str,
        metadata: dict[str, Any] | None = None,
    ) -> OperationResult[dict[str, str]]:
        """Record a job and add it to the user's job set.

        The record and the membership are written in one MULTI/EXEC
        transaction, both with the registry TTL. A job id already tracked for
        a different user is rejected and left untouched; tracking it again for
        the same user refreshes the record.
        """
        try:
            job = TrackedJob(
                job_id=job_id,
                job_type=JobType(job_type),
                user_id=user_id,
                metadata=metadata,
            )
        except (ValidationError, ValueError) as e:
            return self._failure("track", e, job_id=job_id, user_id=user_id)

        data_key = job_data_key(job_id)
        set_key = user_jobs_key(user_id)

        try:
            async with self._client.pipeline(transaction=True) as pipe:
                # Another writer touching the record aborts EXEC with WatchError
                await pipe.watch(data_key)
                owner = await pipe.hget(data_key, "user_id")
                if owner is not None and json.loads(owner) != user_id:
                    logger.warning(
                        "Job already tracked for another user",
                        extra={"job_id": job_id, "user_id": user_id},
                    )
                    return OperationResult.fail(JOB_OWNED_BY_OTHER_USER)

                pipe.multi()
                pipe.hset(data_key, mapping=_encode_job(job))
                pipe.expire(data_key, self.ttl_seconds)
                pipe.sadd(set_key, job_id)
                pipe.expire(set_key, self.ttl_seconds)
                await pipe.execute()
        except (*_CACHE_ERRORS, ValueError) as e:
            return self._failure("track", e, job_id=job_id, user_id=user_id)

        tracked_jobs_total.labels(job_type=job.job_type.value).inc()
        logger.debug(
            "Job tracked",
            extra={"job_id": job_id, "user_id": user_id, "job_type": job.job_type.value},
        )
        return OperationResult.ok({"job_id": job_id, "job_type": job.job_type.value})

    async def list_for_user(self, user_id: str) -> OperationResult[list[TrackedJob]]:
        """Resolve every live job in the user's set.

        Ids whose record has expired are left out of the result and removed
        from the set. Failing to prune is logged and does not fail the read.
        """
        set_key = user_jobs_key(user_id)

        try:
            job_ids = sorted(await self._client.smembers(set_key))
            if not job_ids:
                return OperationResult.ok([])

            pipe = self._client.pipeline(transaction=False)
            for job_id in job_ids:
                pipe.hgetall(job_data_key(job_id))
            records = await pipe.execute()
        except _CACHE_ERRORS as e:
            return self._failure("list_for_user", e, user_id=user_id)

        jobs: list[TrackedJob] = []
        stale: list[str] = []
        for job_id, raw in zip(job_ids, records, strict=True):
            if not raw:
                stale.append(job_id)
                continue
            try:
                jobs.append(_decode_job(raw))
            except (ValidationError, ValueError) as e:
                logger.warning(
                    "Dropping unreadable job record",
                    extra={"job_id": job_id, "user_id": user_id, "error": str(e)},
                )
                stale.append(job_id)

        if stale:
            await self._prune(user_id, stale)

        jobs.sort(key=lambda job: job.created_at)
        return OperationResult.ok(jobs)

    async def _prune(self, user_id: str, job_ids: list[str]) -> None:
        try:
            await self._client.srem(user_jobs_key(user_id), *job_ids)
            logger.debug(
                "Pruned stale job ids",
                extra={"user_id": user_id, "job_ids": job_ids},
            )
        except _CACHE_ERRORS as e:
            logger.warning(
                "Failed to prune stale job ids",
                extra={"user_id": user_id, "job_ids": job_ids, "error": str(e)},
            )

    async def remove_completed(
        self, user_id: str, job_ids: Iterable[str]
    ) -> OperationResult[dict[str, int]]:
        """Drop the given jobs from the user's set and delete their records.

        Only ids that are members of the user's set are touched, so a user can
        never delete another user's job record. ``removed_count`` counts those.
        """
        ids = list(dict.fromkeys(job_ids))
        if not ids:
            return OperationResult.ok({"removed_count": 0})

        set_key = user_jobs_key(user_id)
        removed = 0
        try:
            for job_id in ids:
                if not await self._client.srem(set_key, job_id):
                    # Not this user's job (or already gone); leave the record alone
                    continue
                removed += 1
                await self._client.delete(job_data_key(job_id))
        except _CACHE_ERRORS as e:
            return self._failure("remove_completed", e, user_id=user_id, removed_count=removed)

        logger.debug(
            "Removed completed jobs",
            extra={"user_id": user_id, "removed_count": removed},
        )
        return OperationResult.ok({"removed_count": removed})

    async def count(self, user_id: str) -> OperationResult[int]:
        """Number of ids in the user's job set (stale ids included)."""
        try:
            return OperationResult.ok(await self._client.scard(user_jobs_key(user_id)))
        except _CACHE_ERRORS as e:
            return self._failure("count", e, user_id=user_id)

    async def get(self, job_id: str) -> OperationResult[TrackedJob | None]:
        """Look up a single job record; a missing record is ``data=None``."""
        try:
            raw = await self._client.hgetall(job_data_key(job_id))
        except _CACHE_ERRORS as e:
            return self._failure("get", e, job_id=job_id)

        if not raw:
            return OperationResult.ok(None)
        try:
            return OperationResult.ok(_decode_job(raw))
        except (ValidationError, ValueError) as e:
            return self._failure("get", e, job_id=job_id)

    async def update_metadata(
        self, job_id: str, metadata: dict[str, Any]
    ) -> OperationResult[dict[str, Any]]:
        """Merge ``metadata`` into the job's metadata, keeping its remaining TTL."""
        data_key = job_data_key(job_id)

        try:
            raw = await self._client.hgetall(data_key)
            if not raw:
                return OperationResult.fail(JOB_NOT_FOUND)

            current = json.loads(raw.get("metadata", "null")) or {}
            merged = {**current, **metadata}

            remaining = await self._client.ttl(data_key)
            pipe = self._client.pipeline()
            pipe.hset(data_key, "metadata", json.dumps(merged))
            pipe.expire(data_key, remaining if remaining > 0 else self.ttl_seconds)
            await pipe.execute()
        except (*_CACHE_ERRORS, ValueError) as e:
            return self._failure("update_metadata", e, job_id=job_id)

        return OperationResult.ok({"job_id": job_id, "metadata": merged})
