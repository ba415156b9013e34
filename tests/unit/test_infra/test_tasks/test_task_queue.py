"""Unit tests for TaskQueue on a real Taskiq broker and AsyncIOScheduler."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from datetime import datetime
from typing import Any

import pytest
from taskiq import TaskiqMiddleware

from property_service.infra.tasks import (
    EnqueueOptions,
    RepeatOptions,
    TaskQueue,
    create_broker,
    create_scheduler,
    start_scheduler,
    stop_scheduler,
)


class RecordingMiddleware(TaskiqMiddleware):
    """Captures hook calls for every run."""

    def __init__(self, calls: list[str], tag: str) -> None:
        super().__init__()
        self.calls = calls
        self.tag = tag
        self.messages: list[Any] = []

    async def pre_execute(self, message):
        self.calls.append(f"{self.tag}:pre")
        self.messages.append(message)
        return message

    async def post_execute(self, message, result) -> None:
        self.calls.append(f"{self.tag}:post")


@pytest.fixture
async def scheduler() -> AsyncGenerator:
    scheduler = create_scheduler()
    yield scheduler
    await stop_scheduler(scheduler)
    # Scheduler shutdown runs on the next loop iteration
    await asyncio.sleep(0)


class TestOneOffJobs:
    @pytest.mark.asyncio
    async def test_enqueued_job_runs_with_payload(self, broker, scheduler, wait_for_result):
        async def import_csv(file_id: str, rows: int) -> dict:
            return {"file_id": file_id, "rows": rows}

        broker.register_task(import_csv, task_name="csv.import")
        queue = TaskQueue("upload", broker, scheduler)

        job_id = await queue.enqueue("csv.import", {"file_id": "f-1", "rows": 12})
        result = await wait_for_result(broker, job_id)

        assert not result.is_err
        assert result.return_value == {"file_id": "f-1", "rows": 12}

    @pytest.mark.asyncio
    async def test_one_off_jobs_skip_the_scheduler(self, broker, scheduler, wait_for_result):
        async def send() -> None:
            return None

        broker.register_task(send, task_name="email.send")
        queue = TaskQueue("email", broker, scheduler)

        job_id = await queue.enqueue("email.send", {}, EnqueueOptions(job_id="welcome-1"))
        await wait_for_result(broker, job_id)

        assert job_id == "welcome-1"
        assert scheduler.get_jobs() == []

    @pytest.mark.asyncio
    async def test_middlewares_see_labels_and_queue(self, scheduler, wait_for_result):
        calls: list[str] = []
        outer = RecordingMiddleware(calls, "outer")
        inner = RecordingMiddleware(calls, "inner")
        broker = create_broker([outer, inner])
        await broker.startup()

        async def handler() -> None:
            calls.append("handler")

        broker.register_task(handler, task_name="noop")
        queue = TaskQueue("email", broker, scheduler)

        try:
            job_id = await queue.enqueue("noop", {}, EnqueueOptions(labels={"user_id": "u1"}))
            await wait_for_result(broker, job_id)
        finally:
            await broker.shutdown()

        assert calls[:3] == ["outer:pre", "inner:pre", "handler"]
        assert sorted(calls[3:]) == ["inner:post", "outer:post"]
        message = outer.messages[0]
        assert message.task_id == job_id
        assert message.labels["queue"] == "email"
        assert message.labels["user_id"] == "u1"

    @pytest.mark.asyncio
    async def test_handler_error_is_stored_on_the_result(self, broker, scheduler, wait_for_result):
        async def failing() -> None:
            raise ValueError("bad row 7")

        broker.register_task(failing, task_name="csv.validate")
        queue = TaskQueue("upload", broker, scheduler)

        job_id = await queue.enqueue("csv.validate", {})
        result = await wait_for_result(broker, job_id)

        assert result.is_err
        assert "bad row 7" in str(result.error)

    @pytest.mark.asyncio
    async def test_timeout_cancels_handler(self, broker, scheduler, wait_for_result):
        finished = False

        async def slow() -> None:
            nonlocal finished
            await asyncio.sleep(5)
            finished = True

        broker.register_task(slow, task_name="pdf.render")
        queue = TaskQueue("pdf_generator", broker, scheduler)

        job_id = await queue.enqueue("pdf.render", {}, EnqueueOptions(timeout=0.05))
        result = await wait_for_result(broker, job_id)

        assert result.is_err
        assert finished is False

    @pytest.mark.asyncio
    async def test_unknown_task_is_rejected(self, broker, scheduler):
        queue = TaskQueue("email", broker, scheduler)

        with pytest.raises(KeyError, match="No task registered: email.send"):
            await queue.enqueue("email.send", {})


class TestRepeatableJobs:
    @pytest.mark.asyncio
    async def test_repeat_registers_cron_job(self, broker, scheduler):
        queue = TaskQueue("cron", broker, scheduler)
        await start_scheduler(scheduler, paused=True)

        job_id = await queue.enqueue(
            "cron.execute",
            {"job_name": "lease-expiry-check"},
            EnqueueOptions(job_id="cron:lease-expiry-check", repeat=RepeatOptions(cron="0 0 * * *")),
        )

        [entry] = await queue.list_repeatable()
        assert job_id == "cron:lease-expiry-check"
        assert entry.id == job_id
        assert entry.name == "cron.execute"
        assert entry.cron == "0 0 * * *"
        assert entry.tz == "UTC"
        assert isinstance(entry.next_run, datetime)
        assert (entry.next_run.hour, entry.next_run.minute) == (0, 0)

    @pytest.mark.asyncio
    async def test_repeat_keeps_its_timezone(self, broker, scheduler):
        queue = TaskQueue("cron", broker, scheduler)
        await start_scheduler(scheduler, paused=True)

        await queue.enqueue(
            "cron.execute",
            {},
            EnqueueOptions(job_id="cron:report", repeat=RepeatOptions(cron="30 6 * * *", tz="America/Chicago")),
        )

        [entry] = await queue.list_repeatable()
        assert (entry.cron, entry.tz) == ("30 6 * * *", "America/Chicago")
        assert str(entry.next_run.tzinfo) == "America/Chicago"
        assert (entry.next_run.hour, entry.next_run.minute) == (6, 30)

    @pytest.mark.asyncio
    async def test_same_id_replaces_previous_registration(self, broker, scheduler):
        queue = TaskQueue("cron", broker, scheduler)
        await start_scheduler(scheduler, paused=True)

        options = EnqueueOptions(job_id="cron:report", repeat=RepeatOptions(cron="0 0 * * *"))
        await queue.enqueue("cron.execute", {}, options)
        await queue.enqueue(
            "cron.execute",
            {},
            EnqueueOptions(job_id="cron:report", repeat=RepeatOptions(cron="30 6 * * *")),
        )

        entries = await queue.list_repeatable()
        assert [(entry.id, entry.cron) for entry in entries] == [("cron:report", "30 6 * * *")]
        assert len(scheduler.get_jobs()) == 1

    @pytest.mark.asyncio
    async def test_same_id_replaces_before_scheduler_starts(self, broker, scheduler):
        queue = TaskQueue("cron", broker, scheduler)

        for cron in ("0 0 * * *", "0 9 * * *"):
            await queue.enqueue(
                "cron.execute",
                {},
                EnqueueOptions(job_id="cron:report", repeat=RepeatOptions(cron=cron)),
            )

        entries = await queue.list_repeatable()
        assert [(entry.id, entry.cron) for entry in entries] == [("cron:report", "0 9 * * *")]
        assert entries[0].next_run is not None

    @pytest.mark.asyncio
    async def test_invalid_crontab_raises(self, broker, scheduler):
        queue = TaskQueue("cron", broker, scheduler)

        with pytest.raises(ValueError):
            await queue.enqueue(
                "cron.execute",
                {},
                EnqueueOptions(job_id="cron:bad", repeat=RepeatOptions(cron="not a crontab")),
            )

    @pytest.mark.asyncio
    async def test_remove_repeatable_requires_matching_cron(self, broker, scheduler):
        queue = TaskQueue("cron", broker, scheduler)
        await start_scheduler(scheduler, paused=True)
        await queue.enqueue(
            "cron.execute",
            {},
            EnqueueOptions(job_id="cron:report", repeat=RepeatOptions(cron="0 0 * * *")),
        )

        assert await queue.remove_repeatable("cron:report", "0 9 * * *") is False
        assert await queue.remove_repeatable("cron:unknown", "0 0 * * *") is False
        assert await queue.remove_repeatable("cron:report", "0 0 * * *") is True

        assert await queue.list_repeatable() == []
        assert scheduler.get_jobs() == []

    @pytest.mark.asyncio
    async def test_queues_only_see_their_own_repeats(self, broker, scheduler):
        cron_queue = TaskQueue("cron", broker, scheduler)
        report_queue = TaskQueue("reports", broker, scheduler)
        await start_scheduler(scheduler, paused=True)

        await cron_queue.enqueue(
            "cron.execute", {}, EnqueueOptions(job_id="cron:a", repeat=RepeatOptions(cron="0 0 * * *"))
        )

        assert [entry.id for entry in await cron_queue.list_repeatable()] == ["cron:a"]
        assert await report_queue.list_repeatable() == []
        assert await report_queue.remove_repeatable("cron:a", "0 0 * * *") is False

    @pytest.mark.asyncio
    async def test_firing_kicks_the_task_with_a_fresh_id(self, broker, scheduler, wait_for_result):
        runs: list[str] = []

        async def execute(job_name: str) -> str:
            runs.append(job_name)
            return job_name

        broker.register_task(execute, task_name="cron.execute")
        queue = TaskQueue("cron", broker, scheduler)
        await queue.enqueue(
            "cron.execute",
            {"job_name": "rent-reminder"},
            EnqueueOptions(job_id="cron:rent-reminder", repeat=RepeatOptions(cron="0 0 * * *")),
        )
        [job] = scheduler.get_jobs()

        task_id = await job.func(**job.kwargs)
        result = await wait_for_result(broker, task_id)

        assert task_id != "cron:rent-reminder"
        assert result.return_value == "rent-reminder"
        assert runs == ["rent-reminder"]


class TestHandles:
    @pytest.mark.asyncio
    async def test_close_drops_only_this_queues_repeats(self, broker, scheduler):
        cron_queue = TaskQueue("cron", broker, scheduler)
        report_queue = TaskQueue("reports", broker, scheduler)
        await start_scheduler(scheduler, paused=True)
        await cron_queue.enqueue(
            "cron.execute", {}, EnqueueOptions(job_id="cron:a", repeat=RepeatOptions(cron="0 0 * * *"))
        )
        await report_queue.enqueue(
            "report.build", {}, EnqueueOptions(job_id="report:daily", repeat=RepeatOptions(cron="0 1 * * *"))
        )

        await cron_queue.close()

        assert [job.id for job in scheduler.get_jobs()] == ["report:daily"]

    @pytest.mark.asyncio
    async def test_building_a_queue_twice_is_harmless(self, broker, scheduler):
        first = TaskQueue("cron", broker, scheduler)
        await first.enqueue(
            "cron.execute", {}, EnqueueOptions(job_id="cron:a", repeat=RepeatOptions(cron="0 0 * * *"))
        )

        second = TaskQueue("cron", broker, scheduler)

        assert [entry.id for entry in await second.list_repeatable()] == ["cron:a"]
        assert await second.remove_repeatable("cron:a", "0 0 * * *") is True
