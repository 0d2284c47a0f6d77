"""
Trigger tasks: enable/disable triggers and a one-shot stuck-schedule check.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from flowpilot.core.errors import EmptyRequiredValue, ValidationError
from flowpilot.core.logging import get_logger
from flowpilot.health.classifier import AnomalyKind
from flowpilot.query.filters import FilterExpression, FilterField, FilterOperator
from flowpilot.tasks.context import TaskContext, start_timer
from flowpilot.tasks.requests import DetectStuckSchedulesRequest, ToggleTriggersRequest
from flowpilot.triggers.schedule_monitor import ScheduleMonitor

logger = get_logger(__name__)


def toggle_triggers(ctx: TaskContext, request: ToggleTriggersRequest) -> int:
    """Enable or disable every trigger matching the criteria.

    Returns:
        Number of triggers updated.

    Raises:
        EmptyRequiredValue: ``targeted`` is set without a trigger id.
    """
    if request.targeted and not request.trigger_id:
        raise EmptyRequiredValue("trigger ID", "A trigger ID is required when targeting a single trigger")

    namespace = request.namespace or ctx.namespace
    filters: list[FilterExpression] = []
    for field_, value in (
        (FilterField.NAMESPACE, namespace),
        (FilterField.FLOW_ID, request.flow_id),
        (FilterField.TRIGGER_ID, request.trigger_id),
    ):
        if value:
            filters.append(FilterExpression(field_, FilterOperator.EQUALS, value))

    count = ctx.client.set_triggers_disabled_by_query(
        not request.enabled, filters, tenant_id=ctx.tenant(request.tenant_id)
    )
    logger.info(
        "triggers_toggled",
        enabled=request.enabled,
        count=count,
        trigger_namespace=namespace,
        trigger_flow_id=request.flow_id,
        trigger_id=request.trigger_id,
    )
    return count


@dataclass(frozen=True, slots=True)
class StuckSchedulesOutput:
    """Result of :func:`detect_stuck_schedules`; lists hold trigger dicts."""

    disabled: list[dict[str, Any]] = field(default_factory=list)
    stuck: list[dict[str, Any]] = field(default_factory=list)
    misconfigured: list[dict[str, Any]] = field(default_factory=list)
    total_checked: int = 0

    @property
    def total_found(self) -> int:
        return len(self.disabled) + len(self.stuck) + len(self.misconfigured)

    @property
    def summary(self) -> str:
        return f"Detection complete: {self.total_found} issues found"

    def to_dict(self) -> dict[str, Any]:
        return {
            "disabled": self.disabled,
            "stuck": self.stuck,
            "misconfigured": self.misconfigured,
            "totalChecked": self.total_checked,
            "totalFound": self.total_found,
            "summary": self.summary,
        }


def detect_stuck_schedules(ctx: TaskContext, request: DetectStuckSchedulesRequest) -> StuckSchedulesOutput:
    """Check every schedule trigger once, reporting disabled ones too.

    ``request.threshold`` is the grace period after a trigger's expected
    next run. Stuck and running-too-long triggers land in ``stuck``; a
    trigger without a next execution date is ``misconfigured``.
    """
    if request.threshold <= timedelta(0):
        raise ValidationError(
            "threshold must be a positive duration", field="threshold", value=request.threshold
        )

    timer = start_timer()
    monitor = ScheduleMonitor(
        ctx.client,
        # Checked once here, never polled
        interval=request.threshold,
        tenant_id=ctx.tenant(request.tenant_id),
        namespace=request.namespace or ctx.namespace,
        include_disabled=True,
        allowed_delay=request.threshold,
        clock=ctx.clock,
    )

    now = ctx.clock.now()
    records = monitor.fetch(now)
    buckets: dict[AnomalyKind, list[dict[str, Any]]] = {kind: [] for kind in AnomalyKind}
    for record in records:
        verdict = monitor.classify(record, now)
        if verdict is not None:
            buckets[verdict.kind].append(record.to_dict())

    output = StuckSchedulesOutput(
        disabled=buckets[AnomalyKind.DISABLED],
        stuck=buckets[AnomalyKind.STUCK] + buckets[AnomalyKind.RUNNING_TOO_LONG],
        misconfigured=buckets[AnomalyKind.MISSING_SCHEDULE],
        total_checked=len(records),
    )
    logger.info(
        "stuck_schedules_detected",
        total_checked=output.total_checked,
        total_found=output.total_found,
        elapsed_ms=round(timer.elapsed_ms, 2),
        **ctx.log_fields(),
    )
    return output


__all__ = ["StuckSchedulesOutput", "detect_stuck_schedules", "toggle_triggers"]
