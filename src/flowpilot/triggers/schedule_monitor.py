"""
Polling trigger that detects stuck, misconfigured or disabled schedules.

Each tick pages through the trigger search endpoint (100 per page), keeps
schedule triggers only and classifies each one with
:func:`flowpilot.health.classifier.classify`. Anomalous triggers are
bundled into one ``{"data": [...]}`` payload.

The namespace criterion is sent as PREFIX and checked again locally, so
``company.team`` matches ``company.team.sub`` but never ``company.teamwork``
even if the server matches plain string prefixes.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from flowpilot.core.clock import Clock, SystemClock
from flowpilot.core.errors import NotFoundError
from flowpilot.core.logging import get_logger
from flowpilot.health.classifier import (
    DEFAULT_ALLOWED_DELAY,
    AnomalyVerdict,
    ScheduleRules,
    classify,
)
from flowpilot.models import ExecutionRecord, TriggerRecord
from flowpilot.query.builder import FilterBuilder, FilterCriteria, NamespaceMatch
from flowpilot.query.filters import FilterExpression, FilterField, FilterOperator
from flowpilot.query.paging import PageRequest, PageResult, PageWalker
from flowpilot.triggers.evaluation import (
    ExecutionGenerator,
    TickResult,
    TriggerContext,
    TriggerEvaluationLoop,
)

if TYPE_CHECKING:
    from flowpilot.client.http import OrchestratorClient

logger = get_logger(__name__)

PAGE_SIZE = 100


class ScheduleMonitor:
    """Detect unhealthy schedule triggers.

    Args:
        client: API client.
        tenant_id: Tenant to inspect.
        namespace: Limit the check to this namespace and its children.
        flow_id: Limit the check to one flow.
        include_disabled: Report disabled schedules too.
        allowed_delay: Grace period after the expected next run.
        max_execution_interval: Longest acceptable gap between runs.
        max_execution_duration: Longest acceptable RUNNING time.
        interval: Polling interval.
        clock: Source of "now".
        generator: Creates the execution when anomalies are found.
        context: Flow trigger the emitted execution belongs to.
    """

    def __init__(
        self,
        client: OrchestratorClient,
        *,
        interval: timedelta,
        tenant_id: str = "main",
        namespace: str | None = None,
        flow_id: str | None = None,
        include_disabled: bool = False,
        allowed_delay: timedelta = DEFAULT_ALLOWED_DELAY,
        max_execution_interval: timedelta | None = None,
        max_execution_duration: timedelta | None = None,
        clock: Clock | None = None,
        generator: ExecutionGenerator | None = None,
        context: TriggerContext | None = None,
    ) -> None:
        self.client = client
        self.tenant_id = tenant_id
        self.namespace = namespace
        self.flow_id = flow_id
        self.include_disabled = include_disabled
        self.allowed_delay = allowed_delay
        self.max_execution_interval = max_execution_interval
        self.max_execution_duration = max_execution_duration
        self.clock = clock or SystemClock()
        self.walker = PageWalker()

        self._namespace_guard = (
            FilterExpression(FilterField.NAMESPACE, FilterOperator.PREFIX, namespace)
            if namespace is not None
            else None
        )
        self.filters = FilterBuilder(namespace_match=NamespaceMatch.PREFIX, clock=self.clock).build(
            FilterCriteria(namespace=namespace, flow_id=flow_id)
        )

        self.loop = TriggerEvaluationLoop(
            fetch=self.fetch,
            classify=self.classify,
            build_payload=self.build_payload,
            generator=generator,
            context=context or TriggerContext(tenant_id, namespace or "", flow_id or "", "schedule_monitor"),
            interval=interval,
            clock=self.clock,
        )

    @property
    def interval(self) -> timedelta:
        return self.loop.interval

    def rules(self, now: datetime) -> ScheduleRules:
        return ScheduleRules(
            now=now,
            allowed_delay=self.allowed_delay,
            max_execution_interval=self.max_execution_interval,
            max_execution_duration=self.max_execution_duration,
        )

    def _search(self, page: int, size: int) -> PageResult[dict[str, Any]]:
        return self.client.search_triggers(page, size, self.filters, tenant_id=self.tenant_id)

    def fetch(self, now: datetime | None = None) -> list[TriggerRecord]:
        """Return every schedule trigger in scope."""
        raw = self.walker.walk(PageRequest(size=PAGE_SIZE, tenant_id=self.tenant_id, filters=self.filters), self._search)

        records: list[TriggerRecord] = []
        for payload in raw:
            record = TriggerRecord.from_api(payload)
            if record is None or not record.is_schedule:
                continue
            if self._namespace_guard is not None and not self._namespace_guard.matches(record.namespace):
                continue
            if self.max_execution_duration is not None:
                record = self._with_running_since(record)
            records.append(record)

        logger.debug("schedule_triggers_fetched", count=len(records), pages=self.walker.stats.pages_fetched)
        return records

    def _with_running_since(self, record: TriggerRecord) -> TriggerRecord:
        if record.disabled or record.backfill or record.running_execution_id is None:
            return record
        try:
            execution = ExecutionRecord.from_api(
                self.client.get_execution(record.running_execution_id, tenant_id=self.tenant_id)
            )
        except NotFoundError:
            logger.debug("running_execution_missing", execution_id=record.running_execution_id)
            return record
        if execution.is_running and execution.start_date is not None:
            return replace(record, running_since=execution.start_date)
        return record

    def classify(self, record: TriggerRecord, now: datetime) -> AnomalyVerdict | None:
        return classify(record, self.rules(now), include_disabled=self.include_disabled)

    def build_payload(self, verdicts: Sequence[AnomalyVerdict], now: datetime) -> dict[str, Any]:
        data = []
        for verdict in verdicts:
            info = verdict.record.to_dict()
            info["anomaly"] = verdict.kind.value
            info["reason"] = verdict.reason
            data.append(info)
        return {"data": data}

    def run_checks(self) -> list[AnomalyVerdict]:
        """Fetch and classify once, without emitting anything."""
        now = self.clock.now()
        return [v for r in self.fetch(now) if (v := self.classify(r, now)) is not None]

    def evaluate(self) -> TickResult:
        return self.loop.evaluate()


__all__ = ["PAGE_SIZE", "ScheduleMonitor"]
