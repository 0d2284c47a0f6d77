"""
Task functions.

Every task takes a :class:`TaskContext` and a frozen request dataclass,
validates the request before its first remote call and returns a typed
output (or ``None`` for pure side effects).
"""

from flowpilot.tasks.assets import PurgeOutput, delete_asset, list_assets, purge_assets, set_asset
from flowpilot.tasks.context import TaskContext
from flowpilot.tasks.executions import (
    count_executions,
    delete_execution,
    kill_execution,
    resume_execution,
    search_executions,
)
from flowpilot.tasks.logs import fetch_logs
from flowpilot.tasks.namespaces import list_namespaces
from flowpilot.tasks.requests import (
    CountExecutionsRequest,
    DeleteAssetRequest,
    DeleteExecutionRequest,
    DetectStuckSchedulesRequest,
    FetchLogsRequest,
    KillExecutionRequest,
    ListAssetsRequest,
    ListNamespacesRequest,
    PurgeAssetsRequest,
    ResumeExecutionRequest,
    RunTestSuiteRequest,
    SearchExecutionsRequest,
    SetAssetRequest,
    ToggleTriggersRequest,
)
from flowpilot.tasks.testsuites import SuiteRunOutput, run_test_suite
from flowpilot.tasks.triggers import StuckSchedulesOutput, detect_stuck_schedules, toggle_triggers

__all__ = [
    "TaskContext",
    # executions
    "search_executions",
    "count_executions",
    "delete_execution",
    "kill_execution",
    "resume_execution",
    # logs / namespaces
    "fetch_logs",
    "list_namespaces",
    # assets
    "list_assets",
    "set_asset",
    "delete_asset",
    "purge_assets",
    "PurgeOutput",
    # triggers / test suites
    "toggle_triggers",
    "detect_stuck_schedules",
    "StuckSchedulesOutput",
    "run_test_suite",
    "SuiteRunOutput",
    # requests
    "CountExecutionsRequest",
    "DeleteAssetRequest",
    "DeleteExecutionRequest",
    "DetectStuckSchedulesRequest",
    "FetchLogsRequest",
    "KillExecutionRequest",
    "ListAssetsRequest",
    "ListNamespacesRequest",
    "PurgeAssetsRequest",
    "ResumeExecutionRequest",
    "RunTestSuiteRequest",
    "SearchExecutionsRequest",
    "SetAssetRequest",
    "ToggleTriggersRequest",
]
