"""Recurring lease maintenance jobs.

The lease domain itself (renewal drafts, e-signature dispatch, expiry
bookkeeping) lives behind ``LeaseMaintenanceGateway``; this module only
declares when each operation runs.
"""

from __future__ import annotations

from typing import Protocol

from property_service.features.cron.models import CronJob

LEASE_JOB_TIMEOUT_SECONDS = 600


class LeaseMaintenanceGateway(Protocol):
    """Lease operations run on a schedule."""

    async def process_auto_renewals(self) -> None:
        """Create draft renewals 30 days before expiry (or auto-approve if configured)."""
        ...

    async def auto_send_renewals_for_signature(self) -> None:
        """Send approved renewals for e-signature based on the configured timing."""
        ...

    async def check_lease_expiry(self) -> None:
        """Mark expired leases and notify about leases about to expire."""
        ...


class LeaseCronProvider:
    """Provides the lease renewal and expiry cron jobs."""

    service_name = "LeaseRenewalService"

    def __init__(self, gateway: LeaseMaintenanceGateway) -> None:
        self._gateway = gateway

    def provides_cron_jobs(self) -> list[CronJob]:
        return [
            CronJob(
                name="process-auto-renewals",
                schedule="0 0 * * *",  # Daily at midnight UTC
                handler=self._gateway.process_auto_renewals,
                service=self.service_name,
                description="Create draft renewal leases 30 days before expiry (or auto-approve if configured)",
                timeout=LEASE_JOB_TIMEOUT_SECONDS,
            ),
            CronJob(
                name="auto-send-renewals-for-signature",
                schedule="0 9 * * *",  # Daily at 9 AM UTC
                handler=self._gateway.auto_send_renewals_for_signature,
                service=self.service_name,
                description="Auto-send approved renewals for e-signature based on configured timing",
                timeout=LEASE_JOB_TIMEOUT_SECONDS,
            ),
            CronJob(
                name="lease-expiry-check",
                schedule="0 0 * * *",
                handler=self._gateway.check_lease_expiry,
                service=self.service_name,
                description="Flag expired leases and leases nearing expiry",
                timeout=LEASE_JOB_TIMEOUT_SECONDS,
            ),
        ]
