"""
Typed request objects for tasks.

Each dataclass is the *input* contract of one task function. Requests carry
already-rendered values only; validation that needs no network happens in
the task before the first remote call.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from flowpilot.models import ExecutionState
from flowpilot.query.filters import FieldQuery
from flowpilot.query.projection import FetchType

# ------------------------------------------------------------------ #
# Executions
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class SearchExecutionsRequest:
    """Request for :func:`flowpilot.tasks.executions.search_executions`.

    Attributes:
        page: Fetch only this page; ``None`` walks every page.
        size: Page size.
        fetch_type: How to materialize the executions.
        flow_scopes: ``USER`` and/or ``SYSTEM``.
        namespace: Exact namespace.
        flow_id: Flow id.
        start_date: Executions started at or after this instant.
        end_date: Executions ended at or before this instant.
        time_range: Look back this far from now; excludes start/end dates.
        states: Execution states.
        labels: Label key/value pairs.
        trigger_execution_id: Only executions triggered by this execution.
        child_filter: ``CHILD`` or ``MAIN``.
        tenant_id: Overrides the context tenant.
    """

    page: int | None = None
    size: int = 10
    fetch_type: FetchType = FetchType.STORE
    flow_scopes: list[str] | None = None
    namespace: str | None = None
    flow_id: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    time_range: timedelta | None = None
    states: list[ExecutionState] | None = None
    labels: dict[str, str] | None = None
    trigger_execution_id: str | None = None
    child_filter: str | None = None
    tenant_id: str | None = None


@dataclass(frozen=True, slots=True)
class CountExecutionsRequest:
    """Request for :func:`flowpilot.tasks.executions.count_executions`.

    ``expression`` receives the count; when it returns ``False`` the task
    reports a count of 0.
    """

    namespaces: list[str] | None = None
    flow_id: str | None = None
    states: list[ExecutionState] | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    expression: Callable[[int], bool] | None = None
    tenant_id: str | None = None


@dataclass(frozen=True, slots=True)
class DeleteExecutionRequest:
    execution_id: str = ""
    delete_logs: bool = True
    delete_metrics: bool = True
    delete_storage: bool = True
    tenant_id: str | None = None


@dataclass(frozen=True, slots=True)
class KillExecutionRequest:
    execution_id: str = ""
    propagate_kill: bool = True
    tenant_id: str | None = None


@dataclass(frozen=True, slots=True)
class ResumeExecutionRequest:
    """Request for :func:`flowpilot.tasks.executions.resume_execution`.

    ``execution_id`` defaults to the execution running the task.
    """

    execution_id: str | None = None
    inputs: dict[str, Any] = field(default_factory=dict)
    tenant_id: str | None = None


# ------------------------------------------------------------------ #
# Logs / namespaces
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class FetchLogsRequest:
    page: int | None = None
    size: int = 100
    fetch_type: FetchType = FetchType.STORE
    namespace: str | None = None
    flow_id: str | None = None
    trigger_id: str | None = None
    min_level: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    query: str | None = None
    tenant_id: str | None = None


@dataclass(frozen=True, slots=True)
class ListNamespacesRequest:
    prefix: str = ""
    page: int | None = None
    size: int = 10
    existing_only: bool = False
    tenant_id: str | None = None


# ------------------------------------------------------------------ #
# Assets
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class ListAssetsRequest:
    page: int | None = None
    size: int = 100
    namespace: str | None = None
    types: list[str] | None = None
    metadata_query: list[FieldQuery] | None = None
    fetch_type: FetchType = FetchType.STORE
    tenant_id: str | None = None


@dataclass(frozen=True, slots=True)
class SetAssetRequest:
    """Request for :func:`flowpilot.tasks.assets.set_asset`."""

    asset_id: str = ""
    asset_type: str = ""
    namespace: str | None = None
    display_name: str | None = None
    description: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    tenant_id: str | None = None


@dataclass(frozen=True, slots=True)
class DeleteAssetRequest:
    asset_id: str = ""
    tenant_id: str | None = None


@dataclass(frozen=True, slots=True)
class PurgeAssetsRequest:
    """Request for :func:`flowpilot.tasks.assets.purge_assets`.

    Attributes:
        end_date: Purge what was last updated (assets) or created (usages,
            lineage events) at or before this instant.
        namespace: Namespace prefix.
        asset_id: Single asset id.
        asset_types: Asset types; assets only.
        metadata_query: Metadata criteria; assets only.
        purge_assets: Purge the assets themselves.
        purge_asset_usages: Purge usage events.
        purge_asset_lineages: Purge lineage events.
    """

    end_date: datetime
    namespace: str | None = None
    asset_id: str | None = None
    asset_types: list[str] | None = None
    metadata_query: list[FieldQuery] | None = None
    purge_assets: bool = True
    purge_asset_usages: bool = True
    purge_asset_lineages: bool = True
    tenant_id: str | None = None


# ------------------------------------------------------------------ #
# Triggers / test suites
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class ToggleTriggersRequest:
    """Request for :func:`flowpilot.tasks.triggers.toggle_triggers`.

    ``namespace`` defaults to the context namespace. With ``targeted`` set
    a trigger id is mandatory, so a typo never toggles a whole flow.
    """

    enabled: bool = False
    namespace: str | None = None
    flow_id: str | None = None
    trigger_id: str | None = None
    targeted: bool = False
    tenant_id: str | None = None


@dataclass(frozen=True, slots=True)
class DetectStuckSchedulesRequest:
    namespace: str | None = None
    threshold: timedelta = timedelta(minutes=5)
    tenant_id: str | None = None


@dataclass(frozen=True, slots=True)
class RunTestSuiteRequest:
    namespace: str = ""
    test_id: str = ""
    test_cases: list[str] | None = None
    fail_on_test_failure: bool = False
    tenant_id: str | None = None
