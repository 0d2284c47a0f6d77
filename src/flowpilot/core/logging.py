"""
Structured logging for flowpilot.

Tasks and triggers log snake_case events with key/value fields through
structlog. Durations, instants and enum members are rendered to plain
strings before output, so ``late_by=timedelta(hours=1)`` shows up as
``"late_by": "PT1H"`` in JSON logs.

Architecture:
    ::

        configure_logging(level, json_format)  or  configure_from_settings(settings)
              │
              ▼
        processor chain:
          1. merge_contextvars      ← LogContext(trigger_id=..., tenant_id=...)
          2. add_log_level / add_logger_name
          3. TimeStamper (iso, utc)  [optional]
          4. _render_values          timedelta / datetime / Enum → str
          5. JSONRenderer | ConsoleRenderer

Examples:
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> log = get_logger(__name__)
    >>> with LogContext(trigger_id="schedule_monitor"):
    ...     log.info("tick_emitted", verdicts=2)
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from flowpilot.core.clock import duration_iso8601

if TYPE_CHECKING:
    from flowpilot.core.settings import FlowpilotSettings


def _render_values(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for key, value in event_dict.items():
        if isinstance(value, timedelta):
            event_dict[key] = duration_iso8601(value)
        elif isinstance(value, datetime):
            event_dict[key] = value.isoformat()
        elif isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def _processors(json_format: bool, add_timestamp: bool) -> list[Processor]:
    chain: list[Processor] = []
    if add_timestamp:
        chain.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    chain += [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _render_values,
    ]
    if json_format:
        chain += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return chain


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    *,
    add_timestamp: bool = True,
) -> None:
    """Install the flowpilot processor chain.

    Args:
        level: Minimum level name (``DEBUG`` .. ``CRITICAL``).
        json_format: JSON lines when True, console output when False.
            ``None`` picks JSON unless stdout is a terminal.
        add_timestamp: Prefix each event with a UTC ISO timestamp.
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    if json_format is None:
        json_format = not sys.stdout.isatty()

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric)
    structlog.configure(
        processors=_processors(json_format, add_timestamp),
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_settings(settings: FlowpilotSettings) -> None:
    """Apply ``log_level`` and ``json_logs`` from loaded settings."""
    configure_logging(level=settings.log_level, json_format=settings.json_logs)


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind fields for the duration of a ``with`` block.

    ``None`` values are dropped. On exit the previous values of the bound
    keys are restored, so nested scopes (a tick inside a poller) compose.
    """

    def __init__(self, **fields: Any) -> None:
        self.fields = {k: v for k, v in fields.items() if v is not None}
        self._scope: Any = None

    def __enter__(self) -> LogContext:
        self._scope = structlog.contextvars.bound_contextvars(**self.fields)
        self._scope.__enter__()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._scope.__exit__(*exc_info)
        self._scope = None


__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
