"""Namespace listing task."""

from __future__ import annotations

from flowpilot.core.logging import get_logger
from flowpilot.query.filters import FilterExpression, FilterField, FilterOperator
from flowpilot.query.paging import PageRequest, PageWalker
from flowpilot.tasks.context import TaskContext
from flowpilot.tasks.requests import ListNamespacesRequest

logger = get_logger(__name__)


def list_namespaces(ctx: TaskContext, request: ListNamespacesRequest) -> list[str]:
    """Return the ids of namespaces starting with ``request.prefix``.

    The search endpoint's ``q`` parameter matches anywhere in the id, so the
    prefix is checked again on every returned id.
    """
    tenant = ctx.tenant(request.tenant_id)
    page_request = PageRequest(page=request.page, size=request.size, tenant_id=tenant)
    guard = FilterExpression(FilterField.NAMESPACE, FilterOperator.STARTS_WITH, request.prefix)

    raw = PageWalker().walk(
        page_request,
        lambda page, size: ctx.client.search_namespaces(
            page,
            size,
            prefix=request.prefix,
            existing_only=request.existing_only,
            tenant_id=tenant,
        ),
    )
    namespaces = [r["id"] for r in raw if guard.matches(r["id"])]
    if len(namespaces) != len(raw):
        logger.debug("namespaces_dropped_by_prefix", dropped=len(raw) - len(namespaces), prefix=request.prefix)
    logger.info("namespaces_listed", count=len(namespaces), prefix=request.prefix)
    return namespaces
