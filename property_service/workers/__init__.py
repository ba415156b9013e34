"""Background worker task definitions.

This package contains the actual task implementations (the work being done):
- cron/: execution of scheduled cron jobs

For task infrastructure (scheduler, queues, tracking), see `infra/tasks/`.

Workers register their handlers with the task registry when the queue
factory first resolves them.
"""

from __future__ import annotations

__all__: list[str] = []
