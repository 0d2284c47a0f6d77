"""Pure health classification for triggers and assets."""

from flowpilot.health.classifier import (
    AnomalyKind,
    AnomalyVerdict,
    ScheduleRules,
    StalenessRule,
    classify,
    classify_staleness,
)

__all__ = [
    "AnomalyKind",
    "AnomalyVerdict",
    "ScheduleRules",
    "StalenessRule",
    "classify",
    "classify_staleness",
]
