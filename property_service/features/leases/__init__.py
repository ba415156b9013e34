"""Lease maintenance scheduling."""

from property_service.features.leases.cron import LeaseCronProvider, LeaseMaintenanceGateway

__all__ = ["LeaseCronProvider", "LeaseMaintenanceGateway"]
