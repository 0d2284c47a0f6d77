"""
Structured error types for flowpilot.

Every error raised by flowpilot derives from :class:`FlowpilotError` and
carries a category, an explicit retry flag, structured context and the
underlying cause. Callers (a task runner or a trigger scheduler) can decide
what to do with a failure without parsing messages.

Manifesto:
    - **Typed hierarchy:** validation, transport, remote API and config
      failures are distinct types
    - **Explicit retry semantics:** transport failures are retryable,
      validation failures never are
    - **Fail before the network:** validation errors are raised before any
      remote call is made
    - **Never swallow:** an empty result means "zero matches", never
      "the call failed"

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       FlowpilotError                            │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ValidationError          TransientError      RemoteApiError    │
        │  (VALIDATION)             (retryable=True)    (REMOTE)          │
        │       │                        │                   │            │
        │  InvalidFilterCombination TransportFailure    NotFoundError     │
        │  EmptyRequiredValue                                              │
        │  UnsupportedFilterError                                          │
        │                                                                  │
        │  ConfigError              PaginationError     StorageError      │
        │  (CONFIG)                 (PAGINATION)        (STORAGE)         │
        │                                │                                 │
        │                     InconsistentPagination                       │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = TransportFailure("connection reset")
    >>> error.retryable
    True
    >>> error.with_context(url="http://localhost:8080/api/v1/main/triggers/search")
    TransportFailure('connection reset', category=TRANSPORT)

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context

Usage:
    from flowpilot.core.errors import TransportFailure

    try:
        response = http.get(url)
    except httpx.TransportError as e:
        raise TransportFailure("API unreachable", cause=e)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """What kind of failure an error represents."""

    TRANSPORT = "TRANSPORT"       # no response: refused, reset, timed out
    REMOTE = "REMOTE"             # error status from the API
    PARSE = "PARSE"               # response body of the wrong shape
    VALIDATION = "VALIDATION"     # rejected before any remote call
    PAGINATION = "PAGINATION"     # totals moved during a walk
    CONFIG = "CONFIG"
    STORAGE = "STORAGE"           # STORE sink could not be written
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


_CONTEXT_FIELDS = ("tenant_id", "namespace", "flow_id", "trigger_id", "url", "http_status", "page")


@dataclass
class ErrorContext:
    """
    Where an error happened.

    Known fields cover the coordinates a flowpilot call works on; anything
    else goes into ``metadata`` and is flattened into :meth:`to_dict`.
    """

    tenant_id: str | None = None
    namespace: str | None = None
    flow_id: str | None = None
    trigger_id: str | None = None
    url: str | None = None
    http_status: int | None = None
    page: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        known = {name: getattr(self, name) for name in _CONTEXT_FIELDS}
        return {k: v for k, v in known.items() if v is not None} | self.metadata


class FlowpilotError(Exception):
    """
    Root of every error flowpilot raises.

    Subclasses pick their category and retry flag through the class
    attributes ``default_category`` and ``default_retryable``.

    Examples:
        >>> FlowpilotError("boom").category.value
        'INTERNAL'
        >>> FlowpilotError("boom").to_dict()["retryable"]
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = self.default_category if category is None else category
        self.retryable = self.default_retryable if retryable is None else retryable
        self.context = ErrorContext() if context is None else context
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **fields: Any) -> FlowpilotError:
        """
        Attach context and return ``self`` so it can be chained onto ``raise``.

        Usage:
            raise NotFoundError("no such execution").with_context(
                tenant_id="main", url=".../executions/abc"
            )
        """
        for name, value in fields.items():
            if name in _CONTEXT_FIELDS:
                setattr(self.context, name, value)
            else:
                self.context.metadata[name] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Flat dict for structured log events."""
        out: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if context := self.context.to_dict():
            out["context"] = context
        if self.cause is not None:
            out["cause"] = str(self.cause)
        return out

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, category={self.category.value})"


# ── Transport ────────────────────────────────────────────────────────────


class TransientError(FlowpilotError):
    """A failure that may go away if the same call is made again."""

    default_category = ErrorCategory.TRANSPORT
    default_retryable = True


class TransportFailure(TransientError):
    """The remote call failed before a response was received.

    Not retried by flowpilot itself. A task fails, a trigger skips the
    tick and the scheduler tries again on the next interval.
    """


# ── Remote API ───────────────────────────────────────────────────────────


class RemoteApiError(FlowpilotError):
    """The remote API answered with an error status."""

    default_category = ErrorCategory.REMOTE

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        if status_code is not None:
            self.context.http_status = status_code


class NotFoundError(RemoteApiError):
    """The requested resource does not exist."""


class ResponseParseError(RemoteApiError):
    """The remote API answered with an unexpected payload."""

    default_category = ErrorCategory.PARSE


# ── Validation ───────────────────────────────────────────────────────────


class ValidationError(FlowpilotError):
    """
    Invalid caller input, raised before any remote call.

    ``field`` names the offending input and ``value`` is what was given.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(self, message: str, *, field: str | None = None, value: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        if self.field:
            out["field"] = self.field
        if self.value is not None:
            out["value"] = repr(self.value)
        return out


class InvalidFilterCombination(ValidationError):
    """Mutually exclusive filter criteria were given together."""


class EmptyRequiredValue(ValidationError):
    """A mandatory value is absent or blank."""

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"The {field} is required.", field=field)


class UnsupportedFilterError(ValidationError):
    """A filter is not supported by the targeted endpoint."""


# ── Pagination, config, storage ──────────────────────────────────────────


class PaginationError(FlowpilotError):
    default_category = ErrorCategory.PAGINATION


class InconsistentPagination(PaginationError):
    """The server-reported total changed during a walk.

    :class:`flowpilot.query.paging.PageWalker` only logs this condition and
    stops; it sets ``WalkStats.inconsistent`` instead of raising. Callers
    that need a hard failure raise it after inspecting the stats.
    """


class ConfigError(FlowpilotError):
    """Missing or invalid configuration."""

    default_category = ErrorCategory.CONFIG


class StorageError(FlowpilotError):
    """Writing records to a sink failed."""

    default_category = ErrorCategory.STORAGE


# ── Helpers ──────────────────────────────────────────────────────────────

_TRANSPORT_BUILTINS = (ConnectionError, TimeoutError, OSError)


def is_retryable(error: Exception) -> bool:
    if isinstance(error, FlowpilotError):
        return error.retryable
    return isinstance(error, _TRANSPORT_BUILTINS)


def categorize_error(error: Exception) -> ErrorCategory:
    """Category of any exception, flowpilot's or not."""
    if isinstance(error, FlowpilotError):
        return error.category
    if isinstance(error, _TRANSPORT_BUILTINS):
        return ErrorCategory.TRANSPORT
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "FlowpilotError",
    "TransientError",
    "TransportFailure",
    "RemoteApiError",
    "NotFoundError",
    "ResponseParseError",
    "ValidationError",
    "InvalidFilterCombination",
    "EmptyRequiredValue",
    "UnsupportedFilterError",
    "PaginationError",
    "InconsistentPagination",
    "ConfigError",
    "StorageError",
    "is_retryable",
    "categorize_error",
]
