"""Observability for the relay.

This module provides:
- LogLevel / configure_logging: structlog setup with the relay's level model
- RelayObserver: lifecycle log hooks called by the relay components
"""

from webhook_relay.observability.hooks import RelayObserver
from webhook_relay.observability.logging import (
    LogLevel,
    configure_logging,
    parse_log_level,
)

__all__ = [
    "LogLevel",
    "RelayObserver",
    "configure_logging",
    "parse_log_level",
]
