"""
Execution tasks: search, count, delete, kill and resume.

All tasks validate their request before the first remote call and raise on
failure; none of them turns an error into an empty result.
"""

from __future__ import annotations

from typing import Any

from flowpilot.core.errors import EmptyRequiredValue, ValidationError
from flowpilot.core.logging import get_logger
from flowpilot.models import ExecutionRecord
from flowpilot.query.builder import FilterBuilder, FilterCriteria, MultiValueEncoding, NamespaceMatch
from flowpilot.query.paging import PageRequest, PageWalker
from flowpilot.query.projection import FetchOutput, project
from flowpilot.tasks.context import TaskContext, start_timer
from flowpilot.tasks.requests import (
    CountExecutionsRequest,
    DeleteExecutionRequest,
    KillExecutionRequest,
    ResumeExecutionRequest,
    SearchExecutionsRequest,
)

logger = get_logger(__name__)


def _execution_filter_builder(ctx: TaskContext) -> FilterBuilder:
    return FilterBuilder(
        namespace_match=NamespaceMatch.EXACT,
        multi_value=MultiValueEncoding.PER_ITEM,
        clock=ctx.clock,
    )


def search_executions(ctx: TaskContext, request: SearchExecutionsRequest) -> FetchOutput:
    """Search executions and materialize them per ``request.fetch_type``.

    Args:
        ctx: Task context with the API client.
        request: Search criteria, paging and fetch type.

    Returns:
        :class:`FetchOutput` holding rows, one row or a stored file URI.

    Raises:
        InvalidFilterCombination: ``time_range`` combined with explicit dates.
        TransportFailure: The API could not be reached.
    """
    timer = start_timer()
    tenant = ctx.tenant(request.tenant_id)

    filters = _execution_filter_builder(ctx).build(
        FilterCriteria(
            namespace=request.namespace,
            flow_id=request.flow_id,
            trigger_execution_id=request.trigger_execution_id,
            states=request.states,
            scopes=request.flow_scopes,
            labels=request.labels,
            start_date=request.start_date,
            end_date=request.end_date,
            time_range=request.time_range,
            child_filter=request.child_filter,
        )
    )
    page_request = PageRequest(page=request.page, size=request.size, tenant_id=tenant, filters=filters)

    walker = PageWalker()
    raw = walker.walk(
        page_request,
        lambda page, size: ctx.client.search_executions(page, size, filters, tenant_id=tenant),
    )
    output = project(
        (ExecutionRecord.from_api(r) for r in raw), request.fetch_type, ctx.sink_factory
    )

    logger.info(
        "executions_searched",
        size=output.size,
        pages=walker.stats.pages_fetched,
        fetch_type=request.fetch_type.value,
        elapsed_ms=round(timer.elapsed_ms, 2),
        **ctx.log_fields(),
    )
    return output


def count_executions(ctx: TaskContext, request: CountExecutionsRequest) -> int:
    """Count executions matching the criteria using a single 1-record page.

    When ``request.expression`` is given and returns ``False`` for the
    count, 0 is returned instead.
    """
    tenant = ctx.tenant(request.tenant_id)
    filters = _execution_filter_builder(ctx).build(
        FilterCriteria(
            namespaces=request.namespaces,
            flow_id=request.flow_id,
            states=request.states,
            start_date=request.start_date,
            end_date=request.end_date,
        )
    )

    count = ctx.client.search_executions(1, 1, filters, tenant_id=tenant).total
    logger.info("executions_counted", count=count, **ctx.log_fields())

    if request.expression is not None and not request.expression(count):
        return 0
    return count


def delete_execution(ctx: TaskContext, request: DeleteExecutionRequest) -> None:
    """Delete a terminated execution other than the one running the task."""
    execution_id = (request.execution_id or "").strip()
    if not execution_id:
        raise EmptyRequiredValue("execution ID")
    if execution_id == ctx.current_execution_id:
        raise ValidationError(
            f"It's not allowed to delete the current execution {execution_id}",
            field="execution_id",
            value=execution_id,
        )

    tenant = ctx.tenant(request.tenant_id)
    execution = ExecutionRecord.from_api(ctx.client.get_execution(execution_id, tenant_id=tenant))
    if execution.state is None or not execution.state.is_terminated:
        raise ValidationError(
            f"Execution {execution_id} is not in a terminated state ({execution.state_name})",
            field="execution_id",
            value=execution_id,
        )

    logger.info(
        "execution_deleting",
        execution_id=execution_id,
        delete_logs=request.delete_logs,
        delete_metrics=request.delete_metrics,
        delete_storage=request.delete_storage,
    )
    ctx.client.delete_execution(
        execution_id,
        tenant_id=tenant,
        delete_logs=request.delete_logs,
        delete_metrics=request.delete_metrics,
        delete_storage=request.delete_storage,
    )


def kill_execution(ctx: TaskContext, request: KillExecutionRequest) -> None:
    execution_id = (request.execution_id or "").strip()
    if not execution_id:
        raise EmptyRequiredValue("execution ID")

    logger.info("execution_killing", execution_id=execution_id, propagate_kill=request.propagate_kill)
    ctx.client.kill_execution(
        execution_id, propagate_kill=request.propagate_kill, tenant_id=ctx.tenant(request.tenant_id)
    )


def resume_execution(ctx: TaskContext, request: ResumeExecutionRequest) -> None:
    """Resume a paused execution, by default the one running the task."""
    execution_id = request.execution_id or ctx.current_execution_id
    if not execution_id:
        raise EmptyRequiredValue("execution ID")

    inputs: dict[str, Any] = dict(request.inputs)
    logger.info("execution_resuming", execution_id=execution_id, inputs=sorted(inputs))
    ctx.client.resume_execution(execution_id, inputs=inputs, tenant_id=ctx.tenant(request.tenant_id))
