"""Observability: structured logging and correlation context."""

from mobicert.observability.logging import (
    LoggingConfig,
    LoggingHandle,
    configure_logging,
    correlation_scope,
    get_active_logging_handle,
    get_correlation_context,
    redact_event_dict,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "LoggingConfig",
    "LoggingHandle",
    "configure_logging",
    "correlation_scope",
    "get_active_logging_handle",
    "get_correlation_context",
    "redact_event_dict",
    "setup_logging",
    "shutdown_logging",
]
