"""Cron orchestration feature.

Any component can own recurring jobs by implementing ``CronProvider``; the
``CronOrchestrator`` collects them at startup and schedules them on the cron
queue. The router exposes listing, upcoming runs and enable/disable.
"""

from property_service.features.cron.models import CronJob, CronProvider, ScheduledRun, cron_job_id
from property_service.features.cron.service import CRON_EXECUTE_TASK, CronOrchestrator

__all__ = [
    "CRON_EXECUTE_TASK",
    "CronJob",
    "CronOrchestrator",
    "CronProvider",
    "ScheduledRun",
    "cron_job_id",
]
