"""Run a namespace test suite and map its outcome to a task state."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flowpilot.core.errors import EmptyRequiredValue
from flowpilot.core.logging import get_logger
from flowpilot.models import SuiteRunResult, SuiteState, TaskState
from flowpilot.tasks.context import TaskContext, start_timer
from flowpilot.tasks.requests import RunTestSuiteRequest

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SuiteRunOutput:
    """Suite result plus the task state the runner should apply, if any."""

    result: SuiteRunResult
    task_state_override: TaskState | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "result": self.result.to_dict(),
            "taskStateOverride": self.task_state_override.value if self.task_state_override else None,
        }


def task_state_for(state: SuiteState, fail_on_test_failure: bool = False) -> TaskState | None:
    if state is SuiteState.ERROR:
        return TaskState.FAILED
    if state is SuiteState.FAILED:
        return TaskState.FAILED if fail_on_test_failure else TaskState.WARNING
    if state is SuiteState.SKIPPED:
        return TaskState.WARNING
    return None


def run_test_suite(ctx: TaskContext, request: RunTestSuiteRequest) -> SuiteRunOutput:
    """Run the suite and log every test case result.

    Raises:
        EmptyRequiredValue: Namespace or test suite id is blank.
        ResponseParseError: The response carries no results.
    """
    if not request.namespace.strip():
        raise EmptyRequiredValue("namespace")
    if not request.test_id.strip():
        raise EmptyRequiredValue("test suite ID")

    timer = start_timer()
    result = SuiteRunResult.from_api(
        ctx.client.run_test_suite(
            request.namespace,
            request.test_id,
            test_cases=request.test_cases,
            tenant_id=ctx.tenant(request.tenant_id),
        )
    )

    for case in result.results:
        log = logger.info if case.state is SuiteState.SUCCESS else logger.warning
        log(
            "test_case_finished",
            test_id=case.test_id,
            state=case.state.value,
            execution_id=case.execution_id,
            url=case.url,
            errors=case.errors or None,
        )

    override = task_state_for(result.state, request.fail_on_test_failure)
    logger.info(
        "test_suite_finished",
        test_suite_id=result.test_suite_id or request.test_id,
        state=result.state.value,
        cases=len(result.results),
        task_state_override=override.value if override else None,
        elapsed_ms=round(timer.elapsed_ms, 2),
    )
    return SuiteRunOutput(result=result, task_state_override=override)


__all__ = ["SuiteRunOutput", "run_test_suite", "task_state_for"]
