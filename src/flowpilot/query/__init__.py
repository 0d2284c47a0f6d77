"""Filter building, page walking and result projection."""

from flowpilot.query.builder import FilterBuilder, FilterCriteria, MultiValueEncoding, NamespaceMatch
from flowpilot.query.filters import (
    FieldQuery,
    FilterExpression,
    FilterField,
    FilterOperator,
    MetadataComparison,
)
from flowpilot.query.paging import PageRequest, PageResult, PageWalker, WalkStats
from flowpilot.query.projection import FetchOutput, FetchType, JsonLinesSink, RecordSink, project

__all__ = [
    "FilterBuilder",
    "FilterCriteria",
    "MultiValueEncoding",
    "NamespaceMatch",
    "FieldQuery",
    "FilterExpression",
    "FilterField",
    "FilterOperator",
    "MetadataComparison",
    "PageRequest",
    "PageResult",
    "PageWalker",
    "WalkStats",
    "FetchOutput",
    "FetchType",
    "JsonLinesSink",
    "RecordSink",
    "project",
]
