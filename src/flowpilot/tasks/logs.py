"""Log retrieval task."""

from __future__ import annotations

from flowpilot.core.logging import get_logger
from flowpilot.models import LogRecord
from flowpilot.query.builder import FilterBuilder, FilterCriteria
from flowpilot.query.filters import FilterExpression, FilterField, FilterOperator
from flowpilot.query.paging import PageRequest, PageWalker
from flowpilot.query.projection import FetchOutput, project
from flowpilot.tasks.context import TaskContext, start_timer
from flowpilot.tasks.requests import FetchLogsRequest

logger = get_logger(__name__)


def fetch_logs(ctx: TaskContext, request: FetchLogsRequest) -> FetchOutput:
    """Fetch log entries matching the request.

    ``min_level`` keeps entries at that level or above; ``query`` is a
    free-text search forwarded to the API.
    """
    timer = start_timer()
    tenant = ctx.tenant(request.tenant_id)

    extra: list[FilterExpression] = []
    if request.min_level is not None:
        extra.append(FilterExpression(FilterField.LEVEL, FilterOperator.EQUALS, request.min_level.upper()))
    if request.query is not None:
        extra.append(FilterExpression(FilterField.QUERY, FilterOperator.EQUALS, request.query))

    filters = FilterBuilder(clock=ctx.clock).build(
        FilterCriteria(
            namespace=request.namespace,
            flow_id=request.flow_id,
            trigger_id=request.trigger_id,
            start_date=request.start_date,
            end_date=request.end_date,
            extra=extra,
        )
    )
    page_request = PageRequest(page=request.page, size=request.size, tenant_id=tenant, filters=filters)

    walker = PageWalker()
    raw = walker.walk(
        page_request,
        lambda page, size: ctx.client.search_logs(page, size, filters, tenant_id=tenant),
    )
    output = project((LogRecord.from_api(r) for r in raw), request.fetch_type, ctx.sink_factory)

    logger.info(
        "logs_fetched",
        size=output.size,
        pages=walker.stats.pages_fetched,
        elapsed_ms=round(timer.elapsed_ms, 2),
        **ctx.log_fields(),
    )
    return output
