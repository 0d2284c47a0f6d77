"""
Health classification for schedule triggers and assets.

Turns one fetched record plus a set of rules into at most one
:class:`AnomalyVerdict`. Classification is pure: ``now`` arrives inside the
rules (sourced from an injected clock at the call site), so the same record
and rules always give the same verdict.

Manifesto:
    Several generations of "detect stuck schedules" checks disagreed on
    precedence and on whether a missing next run is a problem. Here there is
    exactly one ordering:

    - **Disabled first:** a disabled trigger is reported or skipped, never
      also checked for lateness
    - **Backfills are skipped:** a trigger replaying history is not late
    - **Running too long beats late:** an execution stuck RUNNING is the
      more specific diagnosis
    - **Missing schedule is an anomaly:** no next run means the trigger will
      never fire again

Architecture:
    ::

        classify(record, rules, include_disabled)
          │
          ├─ disabled?              → DISABLED (if include_disabled) | None
          ├─ backfill active?       → None
          ├─ running > max_duration → RUNNING_TOO_LONG(duration)
          ├─ last run > interval    → STUCK(late_by = now - last - interval)
          ├─ no next run            → MISSING_SCHEDULE
          ├─ now > next + delay     → STUCK(late_by = now - next - delay)
          └─ otherwise              → None

        classify_staleness(asset, rule)
          ├─ no updated timestamp   → STALE (if missing_is_stale) | None
          ├─ now - updated > max    → STALE(duration = now - updated)
          └─ otherwise              → None

Examples:
    >>> rules = ScheduleRules(now=now, allowed_delay=timedelta(hours=1))
    >>> verdict = classify(record_due_two_hours_ago, rules)
    >>> verdict.kind, verdict.late_by
    (<AnomalyKind.STUCK: 'STUCK'>, datetime.timedelta(seconds=3600))

Tags:
    anomaly, health-check, schedule-monitoring, staleness, pure-function
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from flowpilot.core.clock import duration_iso8601, ensure_utc
from flowpilot.models import AssetRecord, TriggerRecord

DEFAULT_ALLOWED_DELAY = timedelta(minutes=1)


class AnomalyKind(str, Enum):
    """What is wrong with a record."""

    DISABLED = "DISABLED"
    STUCK = "STUCK"
    MISSING_SCHEDULE = "MISSING_SCHEDULE"
    RUNNING_TOO_LONG = "RUNNING_TOO_LONG"
    STALE = "STALE"


@dataclass(frozen=True, slots=True)
class AnomalyVerdict:
    """One classification outcome, created fresh every tick.

    Attributes:
        kind: Anomaly kind.
        record: The record the verdict is about.
        reason: Human-readable explanation.
        late_by: How far past its tolerance the record is (STUCK, STALE).
        duration: Running time (RUNNING_TOO_LONG) or age since the last
            update (STALE).
        overdue: Time since the missed next execution (STUCK only).
    """

    kind: AnomalyKind
    record: Any
    reason: str
    late_by: timedelta | None = None
    duration: timedelta | None = None
    overdue: timedelta | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"kind": self.kind.value, "reason": self.reason}
        if hasattr(self.record, "to_dict"):
            d["record"] = self.record.to_dict()
        if self.late_by is not None:
            d["lateBy"] = duration_iso8601(self.late_by)
        if self.duration is not None:
            d["duration"] = duration_iso8601(self.duration)
        if self.overdue is not None:
            d["overdue"] = duration_iso8601(self.overdue)
        return d


@dataclass(frozen=True, slots=True)
class ScheduleRules:
    """Thresholds for schedule trigger health, evaluated at ``now``."""

    now: datetime
    allowed_delay: timedelta = DEFAULT_ALLOWED_DELAY
    max_execution_interval: timedelta | None = None
    max_execution_duration: timedelta | None = None


@dataclass(frozen=True, slots=True)
class StalenessRule:
    """Maximum age of an asset's last update, evaluated at ``now``."""

    max_staleness: timedelta
    now: datetime
    missing_is_stale: bool = True


def classify(
    record: TriggerRecord,
    rules: ScheduleRules,
    include_disabled: bool = False,
) -> AnomalyVerdict | None:
    """Classify one trigger; the first matching rule wins."""
    now = ensure_utc(rules.now)

    if record.disabled:
        if include_disabled:
            return AnomalyVerdict(AnomalyKind.DISABLED, record, "Trigger is disabled")
        return None

    if record.backfill:
        return None

    if (
        rules.max_execution_duration is not None
        and record.running_execution_id is not None
        and record.running_since is not None
    ):
        running_for = now - ensure_utc(record.running_since)
        if running_for > rules.max_execution_duration:
            return AnomalyVerdict(
                AnomalyKind.RUNNING_TOO_LONG,
                record,
                f"Execution {record.running_execution_id} running for {duration_iso8601(running_for)}",
                duration=running_for,
            )

    if rules.max_execution_interval is not None and record.last_execution_time is not None:
        since_last = now - ensure_utc(record.last_execution_time)
        if since_last > rules.max_execution_interval:
            return AnomalyVerdict(
                AnomalyKind.STUCK,
                record,
                f"No execution for {duration_iso8601(since_last)}",
                late_by=since_last - rules.max_execution_interval,
            )

    if record.next_execution_time is None:
        return AnomalyVerdict(AnomalyKind.MISSING_SCHEDULE, record, "No next execution date")

    next_run = ensure_utc(record.next_execution_time)
    if now > next_run + rules.allowed_delay:
        overdue = now - next_run
        return AnomalyVerdict(
            AnomalyKind.STUCK,
            record,
            f"Next execution overdue by {duration_iso8601(overdue)}",
            late_by=overdue - rules.allowed_delay,
            overdue=overdue,
        )

    return None


def classify_staleness(asset: AssetRecord, rule: StalenessRule) -> AnomalyVerdict | None:
    """Return STALE when ``asset`` was last updated longer ago than allowed."""
    if asset.updated is None:
        if rule.missing_is_stale:
            return AnomalyVerdict(AnomalyKind.STALE, asset, "Asset has never been updated")
        return None

    age = ensure_utc(rule.now) - ensure_utc(asset.updated)
    if age > rule.max_staleness:
        return AnomalyVerdict(
            AnomalyKind.STALE,
            asset,
            f"Last updated {duration_iso8601(age)} ago",
            late_by=age - rule.max_staleness,
            duration=age,
        )
    return None


__all__ = [
    "DEFAULT_ALLOWED_DELAY",
    "AnomalyKind",
    "AnomalyVerdict",
    "ScheduleRules",
    "StalenessRule",
    "classify",
    "classify_staleness",
]
