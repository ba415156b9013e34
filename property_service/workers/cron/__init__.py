"""Cron job execution.

This module provides:
- The ``cron.execute`` task run by the cron queue on every schedule
"""

from __future__ import annotations

from .tasks import CronWorker

__all__ = ["CronWorker"]
