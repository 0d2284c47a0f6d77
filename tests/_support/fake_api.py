"""
In-memory stand-in for :class:`flowpilot.client.http.OrchestratorClient`.

Serves paginated search results from plain lists and records every call so
tests can assert on the exact pages, filters and side effects requested.

Usage in test code::

    from tests._support.fake_api import FakeOrchestratorClient, trigger_payload

    client = FakeOrchestratorClient(triggers=[trigger_payload("company.team", "etl", "daily")])
    monitor = ScheduleMonitor(client, interval=timedelta(minutes=1), clock=clock)
    assert client.calls_to("search_triggers")[0]["page"] == 1
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from flowpilot.core.errors import NotFoundError
from flowpilot.models import SCHEDULE_TRIGGER_TYPE
from flowpilot.query.filters import FilterExpression
from flowpilot.query.paging import PageResult


@dataclass
class RecordedCall:
    """One call made against the fake client."""

    method: str
    kwargs: dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.kwargs[key]


class FakeOrchestratorClient:
    """Serve canned resources page by page and record every call."""

    def __init__(
        self,
        *,
        executions: Sequence[dict[str, Any]] = (),
        triggers: Sequence[dict[str, Any]] = (),
        assets: Sequence[dict[str, Any]] = (),
        logs: Sequence[dict[str, Any]] = (),
        namespaces: Sequence[dict[str, Any]] = (),
        execution_details: Mapping[str, dict[str, Any]] | None = None,
        counts: Mapping[str, int] | None = None,
        suite_result: dict[str, Any] | None = None,
        totals: Sequence[int] | None = None,
    ) -> None:
        self.executions = list(executions)
        self.triggers = list(triggers)
        self.assets = list(assets)
        self.logs = list(logs)
        self.namespaces = list(namespaces)
        self.execution_details = dict(execution_details or {})
        self.counts = dict(counts or {})
        self.suite_result = suite_result
        # Overrides the reported total page by page (for inconsistent paging)
        self.totals = list(totals) if totals is not None else None
        self.calls: list[RecordedCall] = []
        self.created_executions: list[dict[str, Any]] = []

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def calls_to(self, method: str) -> list[RecordedCall]:
        return [c for c in self.calls if c.method == method]

    def _record(self, method: str, **kwargs: Any) -> None:
        self.calls.append(RecordedCall(method, kwargs))

    def _page(self, records: list[dict[str, Any]], page: int, size: int) -> PageResult[dict[str, Any]]:
        start = (page - 1) * size
        total = len(records)
        if self.totals is not None:
            total = self.totals[min(page, len(self.totals)) - 1]
        return PageResult(records=records[start:start + size], total=total)

    # ------------------------------------------------------------------ #
    # Executions
    # ------------------------------------------------------------------ #

    def search_executions(
        self,
        page: int,
        size: int,
        filters: Sequence[FilterExpression] = (),
        *,
        tenant_id: str | None = None,
        sort: Sequence[str] | None = None,
    ) -> PageResult[dict[str, Any]]:
        self._record("search_executions", page=page, size=size, filters=list(filters), tenant_id=tenant_id)
        return self._page(self.executions, page, size)

    def get_execution(self, execution_id: str, *, tenant_id: str | None = None) -> dict[str, Any]:
        self._record("get_execution", execution_id=execution_id, tenant_id=tenant_id)
        if execution_id not in self.execution_details:
            raise NotFoundError(f"Execution {execution_id} not found", status_code=404)
        return self.execution_details[execution_id]

    def delete_execution(self, execution_id: str, *, tenant_id: str | None = None, **flags: bool) -> None:
        self._record("delete_execution", execution_id=execution_id, tenant_id=tenant_id, **flags)

    def kill_execution(
        self, execution_id: str, *, propagate_kill: bool = True, tenant_id: str | None = None
    ) -> None:
        self._record("kill_execution", execution_id=execution_id, propagate_kill=propagate_kill, tenant_id=tenant_id)

    def resume_execution(
        self, execution_id: str, *, inputs: Mapping[str, Any] | None = None, tenant_id: str | None = None
    ) -> None:
        self._record("resume_execution", execution_id=execution_id, inputs=dict(inputs or {}), tenant_id=tenant_id)

    def create_execution(
        self,
        namespace: str,
        flow_id: str,
        *,
        inputs: Mapping[str, Any] | None = None,
        labels: Mapping[str, str] | None = None,
        tenant_id: str | None = None,
    ) -> dict[str, Any]:
        self._record(
            "create_execution",
            namespace=namespace,
            flow_id=flow_id,
            inputs=dict(inputs or {}),
            labels=dict(labels or {}),
            tenant_id=tenant_id,
        )
        execution = {"id": f"exec-{len(self.created_executions) + 1}", "namespace": namespace, "flowId": flow_id}
        self.created_executions.append(execution)
        return execution

    # ------------------------------------------------------------------ #
    # Logs / namespaces
    # ------------------------------------------------------------------ #

    def search_logs(
        self, page: int, size: int, filters: Sequence[FilterExpression] = (), *, tenant_id: str | None = None
    ) -> PageResult[dict[str, Any]]:
        self._record("search_logs", page=page, size=size, filters=list(filters), tenant_id=tenant_id)
        return self._page(self.logs, page, size)

    def search_namespaces(
        self,
        page: int,
        size: int,
        *,
        prefix: str = "",
        existing_only: bool = False,
        tenant_id: str | None = None,
    ) -> PageResult[dict[str, Any]]:
        self._record(
            "search_namespaces", page=page, size=size, prefix=prefix, existing_only=existing_only, tenant_id=tenant_id
        )
        # Like the real endpoint, ``q`` matches anywhere in the id
        matching = [n for n in self.namespaces if prefix in n["id"]]
        return self._page(matching, page, size)

    # ------------------------------------------------------------------ #
    # Assets
    # ------------------------------------------------------------------ #

    def search_assets(
        self, page: int, size: int, filters: Sequence[FilterExpression] = (), *, tenant_id: str | None = None
    ) -> PageResult[dict[str, Any]]:
        self._record("search_assets", page=page, size=size, filters=list(filters), tenant_id=tenant_id)
        return self._page(self.assets, page, size)

    def create_asset(self, asset: Mapping[str, Any], *, tenant_id: str | None = None) -> None:
        self._record("create_asset", asset=dict(asset), tenant_id=tenant_id)

    def delete_asset(self, asset_id: str, *, tenant_id: str | None = None) -> None:
        self._record("delete_asset", asset_id=asset_id, tenant_id=tenant_id)

    def delete_assets_by_query(self, filters: Sequence[FilterExpression], *, tenant_id: str | None = None) -> int:
        self._record("delete_assets_by_query", filters=list(filters), tenant_id=tenant_id)
        return self.counts.get("assets", 0)

    def delete_asset_usages_by_query(
        self, filters: Sequence[FilterExpression], *, tenant_id: str | None = None
    ) -> int:
        self._record("delete_asset_usages_by_query", filters=list(filters), tenant_id=tenant_id)
        return self.counts.get("usages", 0)

    def delete_asset_lineages_by_query(
        self, filters: Sequence[FilterExpression], *, tenant_id: str | None = None
    ) -> int:
        self._record("delete_asset_lineages_by_query", filters=list(filters), tenant_id=tenant_id)
        return self.counts.get("lineages", 0)

    # ------------------------------------------------------------------ #
    # Triggers / test suites
    # ------------------------------------------------------------------ #

    def search_triggers(
        self, page: int, size: int, filters: Sequence[FilterExpression] = (), *, tenant_id: str | None = None
    ) -> PageResult[dict[str, Any]]:
        self._record("search_triggers", page=page, size=size, filters=list(filters), tenant_id=tenant_id)
        return self._page(self.triggers, page, size)

    def set_triggers_disabled_by_query(
        self, disabled: bool, filters: Sequence[FilterExpression], *, tenant_id: str | None = None
    ) -> int:
        self._record("set_triggers_disabled_by_query", disabled=disabled, filters=list(filters), tenant_id=tenant_id)
        return self.counts.get("triggers", 0)

    def run_test_suite(
        self,
        namespace: str,
        test_suite_id: str,
        *,
        test_cases: Sequence[str] | None = None,
        tenant_id: str | None = None,
    ) -> dict[str, Any]:
        self._record(
            "run_test_suite",
            namespace=namespace,
            test_suite_id=test_suite_id,
            test_cases=test_cases,
            tenant_id=tenant_id,
        )
        return self.suite_result or {}


# =============================================================================
# Payload factories (camelCase, as the API returns them)
# =============================================================================


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def trigger_payload(
    namespace: str,
    flow_id: str,
    trigger_id: str,
    *,
    next_execution: datetime | None = None,
    last_execution: datetime | None = None,
    disabled: bool = False,
    type: str = SCHEDULE_TRIGGER_TYPE,
    execution_id: str | None = None,
    backfill: dict[str, Any] | None = None,
    tenant_id: str = "main",
) -> dict[str, Any]:
    return {
        "abstractTrigger": {"id": trigger_id, "type": type, "disabled": disabled},
        "triggerContext": {
            "tenantId": tenant_id,
            "namespace": namespace,
            "flowId": flow_id,
            "triggerId": trigger_id,
            "date": _iso(last_execution),
            "nextExecutionDate": _iso(next_execution),
            "executionId": execution_id,
            "backfill": backfill,
            "disabled": disabled,
        },
    }


def execution_payload(
    execution_id: str,
    *,
    namespace: str = "company.team",
    flow_id: str = "etl",
    state: str = "SUCCESS",
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    labels: Sequence[tuple[str, str]] = (),
) -> dict[str, Any]:
    return {
        "id": execution_id,
        "namespace": namespace,
        "flowId": flow_id,
        "state": {"current": state, "startDate": _iso(start_date), "endDate": _iso(end_date)},
        "labels": [{"key": k, "value": v} for k, v in labels],
    }


def asset_payload(
    asset_id: str,
    *,
    namespace: str = "company.team",
    type: str = "io.kestra.plugin.ee.assets.Table",
    updated: datetime | None = None,
    metadata: dict[str, Any] | None = None,
    tenant_id: str = "main",
) -> dict[str, Any]:
    return {
        "tenantId": tenant_id,
        "namespace": namespace,
        "id": asset_id,
        "type": type,
        "metadata": metadata or {},
        "created": _iso(updated),
        "updated": _iso(updated),
    }
