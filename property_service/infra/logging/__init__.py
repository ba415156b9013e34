"""Logging setup shared by the API and worker entrypoints."""

from property_service.infra.logging.config import configure_logging, setup_logging, shutdown
from property_service.infra.logging.formatters import JSONFormatter

__all__ = ["JSONFormatter", "configure_logging", "setup_logging", "shutdown"]
