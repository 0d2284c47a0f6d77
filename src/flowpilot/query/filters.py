"""
Filter expressions for remote search and by-query endpoints.

A :class:`FilterExpression` is one ``{field, operator, value}`` predicate.
It is validated and frozen at construction: an IN expression always holds a
tuple, a METADATA expression always holds a read-only mapping, and every
other expression holds a single scalar. ``None`` values are rejected, so
callers simply skip absent criteria.

The enum values are the tokens the remote API expects on the wire; the
encoding itself lives in :mod:`flowpilot.client.http`.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

from flowpilot.core.clock import ensure_utc
from flowpilot.core.errors import ValidationError


class FilterField(str, Enum):
    """Fields the remote API can filter on."""

    NAMESPACE = "namespace"
    ID = "id"
    TYPE = "type"
    STATE = "state"
    FLOW_ID = "flowId"
    START_DATE = "startDate"
    END_DATE = "endDate"
    METADATA = "metadata"
    TRIGGER_ID = "triggerId"
    SCOPE = "scope"
    CHILD_FILTER = "childFilter"
    LABELS = "labels"
    TRIGGER_EXECUTION_ID = "triggerExecutionId"
    UPDATED = "updated"
    CREATED = "created"
    ASSET_ID = "assetId"
    LEVEL = "level"
    QUERY = "q"


class FilterOperator(str, Enum):
    """Comparison operators understood by the remote API."""

    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    IN = "IN"
    PREFIX = "PREFIX"
    LESS_THAN_OR_EQUAL_TO = "LESS_THAN_OR_EQUAL_TO"
    GREATER_THAN_OR_EQUAL_TO = "GREATER_THAN_OR_EQUAL_TO"
    STARTS_WITH = "STARTS_WITH"


class MetadataComparison(str, Enum):
    """Comparison kinds for metadata queries."""

    EQUAL_TO = "EQUAL_TO"
    NOT_EQUAL_TO = "NOT_EQUAL_TO"

    def to_operator(self) -> FilterOperator:
        if self is MetadataComparison.EQUAL_TO:
            return FilterOperator.EQUALS
        return FilterOperator.NOT_EQUALS


@dataclass(frozen=True, slots=True)
class FieldQuery:
    """One metadata criterion, e.g. ``owner EQUAL_TO data-team``."""

    field: str
    value: str
    type: MetadataComparison = MetadataComparison.EQUAL_TO

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FieldQuery:
        return cls(
            field=str(data["field"]),
            value=str(data["value"]),
            type=MetadataComparison(data.get("type", MetadataComparison.EQUAL_TO)),
        )


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


@dataclass(frozen=True, eq=True)
class FilterExpression:
    """An immutable ``{field, operator, value}`` predicate.

    Examples:
        >>> FilterExpression(FilterField.TYPE, FilterOperator.IN, ["table", "view"]).value
        ('table', 'view')
        >>> FilterExpression(FilterField.NAMESPACE, FilterOperator.IN, "company")
        Traceback (most recent call last):
        ...
        flowpilot.core.errors.ValidationError: IN filter on 'namespace' expects a sequence value
    """

    field: FilterField
    operator: FilterOperator
    value: Any

    def __post_init__(self) -> None:
        object.__setattr__(self, "field", FilterField(self.field))
        object.__setattr__(self, "operator", FilterOperator(self.operator))

        if self.value is None:
            raise ValidationError(
                f"Filter on '{self.field.value}' has no value", field=self.field.value
            )

        if self.field is FilterField.METADATA:
            if not isinstance(self.value, Mapping):
                raise ValidationError(
                    "METADATA filter expects a key/value mapping",
                    field=self.field.value,
                    value=self.value,
                )
            if self.operator not in (FilterOperator.EQUALS, FilterOperator.NOT_EQUALS):
                raise ValidationError(
                    f"METADATA filter does not support {self.operator.value}",
                    field=self.field.value,
                )
            object.__setattr__(self, "value", MappingProxyType(dict(self.value)))
            return

        if self.operator is FilterOperator.IN:
            if not _is_sequence(self.value):
                raise ValidationError(
                    f"IN filter on '{self.field.value}' expects a sequence value",
                    field=self.field.value,
                    value=self.value,
                )
            object.__setattr__(self, "value", tuple(self.value))
            return

        if _is_sequence(self.value) or isinstance(self.value, Mapping):
            raise ValidationError(
                f"{self.operator.value} filter on '{self.field.value}' expects a scalar value",
                field=self.field.value,
                value=self.value,
            )

    def matches(self, candidate: Any) -> bool:
        """Evaluate this predicate locally against a record's field value.

        PREFIX follows namespace semantics: ``company.team`` matches
        ``company.team`` and ``company.team.sub``, never ``company.teamwork``.
        """
        op = self.operator
        value = self.value

        if self.field is FilterField.METADATA:
            candidate = candidate or {}
            if op is FilterOperator.EQUALS:
                return all(k in candidate and str(candidate[k]) == str(v) for k, v in value.items())
            return all(str(candidate.get(k)) != str(v) for k, v in value.items())

        if candidate is None:
            return op is FilterOperator.NOT_EQUALS

        if op is FilterOperator.EQUALS:
            return _normalize(candidate) == _normalize(value)
        if op is FilterOperator.NOT_EQUALS:
            return _normalize(candidate) != _normalize(value)
        if op is FilterOperator.IN:
            return _normalize(candidate) in {_normalize(v) for v in value}
        if op is FilterOperator.PREFIX:
            return candidate == value or str(candidate).startswith(f"{value}.")
        if op is FilterOperator.STARTS_WITH:
            return str(candidate).startswith(str(value))
        if op is FilterOperator.LESS_THAN_OR_EQUAL_TO:
            return _normalize(candidate) <= _normalize(value)
        if op is FilterOperator.GREATER_THAN_OR_EQUAL_TO:
            return _normalize(candidate) >= _normalize(value)
        raise ValidationError(f"Unsupported operator {op!r}")

    def to_dict(self) -> dict[str, Any]:
        value = self.value
        if isinstance(value, Mapping):
            value = dict(value)
        elif isinstance(value, tuple):
            value = list(value)
        return {"field": self.field.value, "operation": self.operator.value, "value": value}


def _normalize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return ensure_utc(value)
    return value


__all__ = [
    "FieldQuery",
    "FilterExpression",
    "FilterField",
    "FilterOperator",
    "MetadataComparison",
]
