"""Public observability primitives: structured logging and the monitor event bus."""

from defect_radar.observability.events import (
    DispatchError,
    EventBus,
    Subscriber,
)
from defect_radar.observability.logging import (
    LoggingHandle,
    configure_logging,
    correlation_scope,
    get_active_logging_handle,
    redact_event_dict,
    shutdown_logging,
)

__all__ = [
    "DispatchError",
    "EventBus",
    "LoggingHandle",
    "Subscriber",
    "configure_logging",
    "correlation_scope",
    "get_active_logging_handle",
    "redact_event_dict",
    "shutdown_logging",
]
