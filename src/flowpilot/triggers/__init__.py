"""Polling triggers and their evaluation loop."""

from flowpilot.triggers.evaluation import (
    EvaluationState,
    ExecutionGenerator,
    RemoteExecutionGenerator,
    TickResult,
    TriggerContext,
    TriggerEvaluationLoop,
    TriggerStats,
)
from flowpilot.triggers.freshness import FreshnessTrigger
from flowpilot.triggers.poller import ThreadTriggerPoller
from flowpilot.triggers.schedule_monitor import ScheduleMonitor

__all__ = [
    "EvaluationState",
    "ExecutionGenerator",
    "RemoteExecutionGenerator",
    "TickResult",
    "TriggerContext",
    "TriggerEvaluationLoop",
    "TriggerStats",
    "FreshnessTrigger",
    "ThreadTriggerPoller",
    "ScheduleMonitor",
]
