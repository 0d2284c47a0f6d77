"""
Translate optional search criteria into an ordered list of filter expressions.

Every list/search/purge task and both polling triggers describe *what* they
are looking for with a :class:`FilterCriteria`. A :class:`FilterBuilder`,
configured for the endpoint being called, turns those criteria into
:class:`~flowpilot.query.filters.FilterExpression` objects:

┌──────────────────────────────────────────────────────────────────────────────┐
│  FilterCriteria ──► FilterBuilder.build() ──► [FilterExpression, ...]        │
│                                                                              │
│  Builder configuration (per endpoint):                                       │
│  - namespace_match   EXACT → EQUALS        PREFIX → PREFIX                   │
│  - multi_value       IN → one IN filter    PER_ITEM → one EQUALS per value   │
│  - id_field          ID (assets) / ASSET_ID (usages, lineages)               │
│  - start_field       START_DATE ≥ start   (executions, logs)                 │
│  - end_field         END_DATE ≤ end / UPDATED ≤ end / CREATED ≤ end          │
└──────────────────────────────────────────────────────────────────────────────┘

Rules:
    - absent criteria contribute nothing (never a filter with a None value)
    - metadata queries collapse into one METADATA filter per comparison kind
    - ``time_range`` cannot be combined with ``start_date`` or ``end_date``;
      on its own it resolves to ``[now - time_range, now]``
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from flowpilot.core.clock import Clock, SystemClock, ensure_utc
from flowpilot.core.errors import InvalidFilterCombination, ValidationError
from flowpilot.query.filters import (
    FieldQuery,
    FilterExpression,
    FilterField,
    FilterOperator,
    MetadataComparison,
)


class NamespaceMatch(str, Enum):
    """How the namespace criterion is matched."""

    EXACT = "EXACT"
    PREFIX = "PREFIX"


class MultiValueEncoding(str, Enum):
    """How multi-valued criteria are encoded."""

    IN = "IN"
    PER_ITEM = "PER_ITEM"


@dataclass(frozen=True, slots=True)
class FilterCriteria:
    """Optional, independently nullable search criteria.

    Attributes:
        namespace: Single namespace (exact or prefix, per builder).
        namespaces: Several namespaces, encoded like any multi-valued criterion.
        id: Resource id (executions, assets).
        flow_id: Flow id.
        trigger_id: Trigger id.
        trigger_execution_id: Only executions triggered by this execution.
        types: Resource types.
        states: Execution states.
        scopes: Flow scopes (``USER``/``SYSTEM``).
        labels: Label key/value pairs, encoded as ``key:value``.
        metadata: Metadata queries, grouped by comparison kind.
        start_date: Lower bound (inclusive).
        end_date: Upper bound (inclusive).
        time_range: Duration back from now; excludes start/end.
        child_filter: Child execution filter (``CHILD``/``MAIN``).
        extra: Pre-built expressions appended last.
    """

    namespace: str | None = None
    namespaces: Sequence[str] | None = None
    id: str | None = None
    flow_id: str | None = None
    trigger_id: str | None = None
    trigger_execution_id: str | None = None
    types: Sequence[str] | None = None
    states: Sequence[Any] | None = None
    scopes: Sequence[Any] | None = None
    labels: Mapping[str, str] | None = None
    metadata: Sequence[FieldQuery] | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    time_range: timedelta | None = None
    child_filter: str | None = None
    extra: Sequence[FilterExpression] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class DateWindow:
    """Resolved ``[start, end]`` window; either bound may be open."""

    start: datetime | None
    end: datetime | None


def resolve_date_window(
    start_date: datetime | None,
    end_date: datetime | None,
    time_range: timedelta | None,
    now: datetime,
) -> DateWindow:
    """Resolve explicit dates and a relative time range into one window.

    Raises:
        InvalidFilterCombination: if ``time_range`` is combined with an
            explicit start or end date.
    """
    if time_range is None:
        return DateWindow(
            start=ensure_utc(start_date) if start_date else None,
            end=ensure_utc(end_date) if end_date else None,
        )

    if start_date is not None or end_date is not None:
        raise InvalidFilterCombination(
            "`time_range` cannot be used together with `start_date` or `end_date`.",
            field="time_range",
            value=time_range,
        )
    if time_range <= timedelta(0):
        raise ValidationError("`time_range` must be positive", field="time_range", value=time_range)

    now = ensure_utc(now)
    return DateWindow(start=now - time_range, end=now)


class FilterBuilder:
    """Build filter expressions for one endpoint's encoding conventions.

    Example:
        >>> builder = FilterBuilder(multi_value=MultiValueEncoding.IN)
        >>> [e.field.value for e in builder.build(FilterCriteria(namespace="company", types=["table"]))]
        ['namespace', 'type']
    """

    def __init__(
        self,
        *,
        namespace_match: NamespaceMatch = NamespaceMatch.EXACT,
        multi_value: MultiValueEncoding = MultiValueEncoding.IN,
        id_field: FilterField = FilterField.ID,
        start_field: FilterField = FilterField.START_DATE,
        end_field: FilterField = FilterField.END_DATE,
        clock: Clock | None = None,
    ) -> None:
        self.namespace_match = namespace_match
        self.multi_value = multi_value
        self.id_field = id_field
        self.start_field = start_field
        self.end_field = end_field
        self.clock = clock or SystemClock()

    def build(self, criteria: FilterCriteria) -> list[FilterExpression]:
        """Return the ordered filter list for ``criteria``."""
        window = resolve_date_window(
            criteria.start_date, criteria.end_date, criteria.time_range, self._now(criteria)
        )

        filters: list[FilterExpression] = []

        if criteria.namespace is not None:
            op = FilterOperator.PREFIX if self.namespace_match is NamespaceMatch.PREFIX else FilterOperator.EQUALS
            filters.append(FilterExpression(FilterField.NAMESPACE, op, criteria.namespace))
        filters.extend(self._multi(FilterField.NAMESPACE, criteria.namespaces))

        if criteria.id is not None:
            filters.append(FilterExpression(self.id_field, FilterOperator.EQUALS, criteria.id))
        if criteria.flow_id is not None:
            filters.append(FilterExpression(FilterField.FLOW_ID, FilterOperator.EQUALS, criteria.flow_id))
        if criteria.trigger_id is not None:
            filters.append(FilterExpression(FilterField.TRIGGER_ID, FilterOperator.EQUALS, criteria.trigger_id))
        if criteria.trigger_execution_id is not None:
            filters.append(
                FilterExpression(
                    FilterField.TRIGGER_EXECUTION_ID, FilterOperator.EQUALS, criteria.trigger_execution_id
                )
            )

        filters.extend(self._multi(FilterField.TYPE, criteria.types))
        filters.extend(self._multi(FilterField.STATE, criteria.states))
        filters.extend(self._multi(FilterField.SCOPE, criteria.scopes))
        if criteria.labels:
            filters.extend(
                self._multi(FilterField.LABELS, [f"{k}:{v}" for k, v in criteria.labels.items()])
            )

        filters.extend(self._metadata(criteria.metadata))

        if window.start is not None:
            filters.append(
                FilterExpression(self.start_field, FilterOperator.GREATER_THAN_OR_EQUAL_TO, window.start)
            )
        if window.end is not None:
            filters.append(
                FilterExpression(self.end_field, FilterOperator.LESS_THAN_OR_EQUAL_TO, window.end)
            )

        if criteria.child_filter is not None:
            filters.append(
                FilterExpression(FilterField.CHILD_FILTER, FilterOperator.EQUALS, criteria.child_filter)
            )

        filters.extend(criteria.extra)
        return filters

    def _now(self, criteria: FilterCriteria) -> datetime:
        # only read the clock when a relative range needs it
        if criteria.time_range is None:
            return datetime.min
        return self.clock.now()

    def _multi(self, field_: FilterField, values: Sequence[Any] | None) -> list[FilterExpression]:
        if not values:
            return []
        if self.multi_value is MultiValueEncoding.IN:
            return [FilterExpression(field_, FilterOperator.IN, list(values))]
        return [FilterExpression(field_, FilterOperator.EQUALS, v) for v in values]

    @staticmethod
    def _metadata(queries: Sequence[FieldQuery] | None) -> list[FilterExpression]:
        if not queries:
            return []

        grouped: dict[MetadataComparison, dict[str, str]] = {}
        for query in queries:
            grouped.setdefault(MetadataComparison(query.type), {})[query.field] = query.value

        return [
            FilterExpression(FilterField.METADATA, kind.to_operator(), values)
            for kind, values in grouped.items()
        ]


__all__ = [
    "DateWindow",
    "FilterBuilder",
    "FilterCriteria",
    "MultiValueEncoding",
    "NamespaceMatch",
    "resolve_date_window",
]
