"""
Typed views of the remote API resources flowpilot works with.

Only the fields needed for filtering, classification and task outputs are
modelled. Every model parses the API's camelCase JSON with ``from_api`` and
serializes back with ``to_dict``; executions also keep the raw payload so
task outputs never lose fields the model does not know about.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from flowpilot.core.clock import from_iso8601, to_iso8601
from flowpilot.core.errors import ResponseParseError

SCHEDULE_TRIGGER_TYPE = "io.kestra.plugin.core.trigger.Schedule"


class ExecutionState(str, Enum):
    """Execution states reported by the remote API."""

    CREATED = "CREATED"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    RESTARTED = "RESTARTED"
    KILLING = "KILLING"
    QUEUED = "QUEUED"
    RETRYING = "RETRYING"
    BREAKPOINT = "BREAKPOINT"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    FAILED = "FAILED"
    KILLED = "KILLED"
    CANCELLED = "CANCELLED"
    RETRIED = "RETRIED"
    SKIPPED = "SKIPPED"

    @property
    def is_terminated(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset({
    ExecutionState.SUCCESS,
    ExecutionState.WARNING,
    ExecutionState.FAILED,
    ExecutionState.KILLED,
    ExecutionState.CANCELLED,
    ExecutionState.RETRIED,
    ExecutionState.SKIPPED,
})


class TaskState(str, Enum):
    """Final task state a task may ask its runner to apply."""

    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    FAILED = "FAILED"


def _require_mapping(payload: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise ResponseParseError(f"Expected a JSON object for {what}, got {type(payload).__name__}")
    return payload


def _execution_state(value: str | None) -> ExecutionState | None:
    """Map a reported state, leaving states this client does not know as ``None``."""
    try:
        return ExecutionState(value) if value else None
    except ValueError:
        return None


# =============================================================================
# TRIGGERS
# =============================================================================


@dataclass(frozen=True, slots=True)
class TriggerRecord:
    """One trigger and its runtime context.

    ``running_since`` is not part of the search payload. The schedule monitor
    returns a copy with it set from the running execution when
    execution-duration checks are enabled.
    """

    namespace: str
    flow_id: str
    trigger_id: str
    disabled: bool = False
    last_execution_time: datetime | None = None
    next_execution_time: datetime | None = None
    running_execution_id: str | None = None
    type: str | None = None
    tenant_id: str | None = None
    backfill: bool = False
    running_since: datetime | None = None

    @property
    def is_schedule(self) -> bool:
        return self.type == SCHEDULE_TRIGGER_TYPE

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> TriggerRecord | None:
        """Parse one trigger search result.

        Returns ``None`` when the result lacks its trigger definition or its
        runtime context; such entries cannot be classified.
        """
        payload = _require_mapping(payload, "trigger")
        definition = payload.get("abstractTrigger")
        context = payload.get("triggerContext")
        if not definition or not context:
            return None

        return cls(
            namespace=context.get("namespace", ""),
            flow_id=context.get("flowId", ""),
            trigger_id=context.get("triggerId") or definition.get("id", ""),
            disabled=bool(definition.get("disabled")) or bool(context.get("disabled")),
            last_execution_time=from_iso8601(context.get("date")),
            next_execution_time=from_iso8601(context.get("nextExecutionDate")),
            running_execution_id=context.get("executionId"),
            type=definition.get("type"),
            tenant_id=context.get("tenantId"),
            backfill=context.get("backfill") is not None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenantId": self.tenant_id,
            "namespace": self.namespace,
            "flowId": self.flow_id,
            "triggerId": self.trigger_id,
            "disabled": self.disabled,
            "lastExecution": to_iso8601(self.last_execution_time),
            "expectedNext": to_iso8601(self.next_execution_time),
        }


# =============================================================================
# EXECUTIONS
# =============================================================================


@dataclass(frozen=True, slots=True)
class ExecutionRecord:
    """An execution, plus the raw API payload it was parsed from.

    ``state_name`` is the state string as reported. ``state`` is ``None`` when
    that string is missing or not an :class:`ExecutionState` member (states
    added by newer servers, such as ``SUBMITTED``).
    """

    id: str
    namespace: str
    flow_id: str
    state: ExecutionState | None = None
    state_name: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    labels: dict[str, str] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_running(self) -> bool:
        return self.state is ExecutionState.RUNNING

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> ExecutionRecord:
        payload = _require_mapping(payload, "execution")
        if "id" not in payload:
            raise ResponseParseError("Execution payload has no id")

        state = payload.get("state") or {}
        current = state.get("current")
        labels = payload.get("labels") or []
        if isinstance(labels, Mapping):
            label_map = {str(k): str(v) for k, v in labels.items()}
        else:
            label_map = {str(lbl.get("key")): str(lbl.get("value")) for lbl in labels}

        return cls(
            id=payload["id"],
            namespace=payload.get("namespace", ""),
            flow_id=payload.get("flowId", ""),
            state=_execution_state(current),
            state_name=current,
            start_date=from_iso8601(state.get("startDate")),
            end_date=from_iso8601(state.get("endDate")),
            labels=label_map,
            raw=dict(payload),
        )

    def to_dict(self) -> dict[str, Any]:
        if self.raw:
            return dict(self.raw)
        return {
            "id": self.id,
            "namespace": self.namespace,
            "flowId": self.flow_id,
            "state": {
                "current": self.state_name or (self.state.value if self.state else None),
                "startDate": to_iso8601(self.start_date),
                "endDate": to_iso8601(self.end_date),
            },
            "labels": [{"key": k, "value": v} for k, v in self.labels.items()],
        }


# =============================================================================
# ASSETS
# =============================================================================


@dataclass(frozen=True, slots=True)
class AssetRecord:
    id: str
    namespace: str | None = None
    type: str | None = None
    display_name: str | None = None
    description: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created: datetime | None = None
    updated: datetime | None = None
    tenant_id: str | None = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> AssetRecord:
        payload = _require_mapping(payload, "asset")
        if "id" not in payload:
            raise ResponseParseError("Asset payload has no id")
        return cls(
            id=payload["id"],
            namespace=payload.get("namespace"),
            type=payload.get("type"),
            display_name=payload.get("displayName"),
            description=payload.get("description"),
            metadata=dict(payload.get("metadata") or {}),
            created=from_iso8601(payload.get("created")),
            updated=from_iso8601(payload.get("updated")),
            tenant_id=payload.get("tenantId"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenantId": self.tenant_id,
            "namespace": self.namespace,
            "id": self.id,
            "type": self.type,
            "displayName": self.display_name,
            "description": self.description,
            "metadata": dict(self.metadata),
            "created": to_iso8601(self.created),
            "updated": to_iso8601(self.updated),
        }


# =============================================================================
# LOGS / NAMESPACES / TEST SUITES
# =============================================================================


@dataclass(frozen=True, slots=True)
class LogRecord:
    namespace: str | None
    flow_id: str | None
    level: str | None
    message: str | None
    timestamp: datetime | None = None
    execution_id: str | None = None
    task_id: str | None = None
    trigger_id: str | None = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> LogRecord:
        payload = _require_mapping(payload, "log entry")
        return cls(
            namespace=payload.get("namespace"),
            flow_id=payload.get("flowId"),
            level=payload.get("level"),
            message=payload.get("message"),
            timestamp=from_iso8601(payload.get("timestamp")),
            execution_id=payload.get("executionId"),
            task_id=payload.get("taskId"),
            trigger_id=payload.get("triggerId"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "flowId": self.flow_id,
            "level": self.level,
            "message": self.message,
            "timestamp": to_iso8601(self.timestamp),
            "executionId": self.execution_id,
            "taskId": self.task_id,
            "triggerId": self.trigger_id,
        }


class SuiteState(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    ERROR = "ERROR"
    SKIPPED = "SKIPPED"


def _suite_state(value: Any) -> SuiteState:
    try:
        return SuiteState(value)
    except ValueError as e:
        raise ResponseParseError(f"Unknown test suite state: {value!r}", cause=e) from e


@dataclass(frozen=True, slots=True)
class CaseResult:
    test_id: str
    state: SuiteState
    execution_id: str | None = None
    url: str | None = None
    errors: list[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> CaseResult:
        payload = _require_mapping(payload, "test case result")
        errors = []
        for err in payload.get("errors") or []:
            msg = str(err.get("message"))
            if err.get("details"):
                msg += f", details: {err['details']}"
            errors.append(msg)
        return cls(
            test_id=payload.get("testId", ""),
            state=_suite_state(payload.get("state", SuiteState.ERROR.value)),
            execution_id=payload.get("executionId"),
            url=payload.get("url"),
            errors=errors,
        )


@dataclass(frozen=True, slots=True)
class SuiteRunResult:
    """Outcome of one test-suite run."""

    namespace: str
    test_suite_id: str
    state: SuiteState
    results: list[CaseResult] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> SuiteRunResult:
        payload = _require_mapping(payload, "test suite result")
        if payload.get("results") is None:
            raise ResponseParseError("Test suite result has no results")
        return cls(
            namespace=payload.get("namespace", ""),
            test_suite_id=payload.get("testSuiteId", ""),
            state=_suite_state(payload.get("state")),
            results=[CaseResult.from_api(r) for r in payload["results"]],
            raw=dict(payload),
        )

    def to_dict(self) -> dict[str, Any]:
        return dict(self.raw)


__all__ = [
    "SCHEDULE_TRIGGER_TYPE",
    "AssetRecord",
    "ExecutionRecord",
    "ExecutionState",
    "LogRecord",
    "TaskState",
    "CaseResult",
    "SuiteState",
    "SuiteRunResult",
    "TriggerRecord",
]
