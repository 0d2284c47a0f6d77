"""
flowpilot core primitives - errors, logging, settings and the clock.

Everything here is dependency-light and safe to import from any layer.
"""

from flowpilot.core.clock import Clock, FixedClock, SystemClock, ensure_utc, from_iso8601, to_iso8601
from flowpilot.core.errors import (
    ConfigError,
    EmptyRequiredValue,
    ErrorCategory,
    ErrorContext,
    FlowpilotError,
    InconsistentPagination,
    InvalidFilterCombination,
    NotFoundError,
    RemoteApiError,
    TransportFailure,
    ValidationError,
)
from flowpilot.core.logging import LogContext, configure_from_settings, configure_logging, get_logger

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "ensure_utc",
    "from_iso8601",
    "to_iso8601",
    "ConfigError",
    "EmptyRequiredValue",
    "ErrorCategory",
    "ErrorContext",
    "FlowpilotError",
    "InconsistentPagination",
    "InvalidFilterCombination",
    "NotFoundError",
    "RemoteApiError",
    "TransportFailure",
    "ValidationError",
    "LogContext",
    "configure_from_settings",
    "configure_logging",
    "get_logger",
]
