"""
Asset tasks: list, set, delete and purge.

Purging spans three stores with different filter support:

    ┌──────────────────┬──────────┬───────────┬──────┬──────────┬──────────┐
    │ store            │ id field │ date field│ ns   │ types    │ metadata │
    ├──────────────────┼──────────┼───────────┼──────┼──────────┼──────────┤
    │ assets           │ ID       │ UPDATED   │ yes  │ yes      │ yes      │
    │ usage events     │ ASSET_ID │ CREATED   │ yes  │ no       │ no       │
    │ lineage events   │ ASSET_ID │ CREATED   │ yes  │ no       │ no       │
    └──────────────────┴──────────┴───────────┴──────┴──────────┴──────────┘

Lineage events cannot be filtered by asset id either. Asking for an
unsupported filter raises :class:`UnsupportedFilterError` before anything
is deleted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flowpilot.core.errors import EmptyRequiredValue, UnsupportedFilterError
from flowpilot.core.logging import get_logger
from flowpilot.models import AssetRecord
from flowpilot.query.builder import FilterBuilder, FilterCriteria, MultiValueEncoding, NamespaceMatch
from flowpilot.query.filters import FilterField
from flowpilot.query.paging import PageRequest, PageWalker
from flowpilot.query.projection import FetchOutput, project
from flowpilot.tasks.context import TaskContext, start_timer
from flowpilot.tasks.requests import (
    DeleteAssetRequest,
    ListAssetsRequest,
    PurgeAssetsRequest,
    SetAssetRequest,
)

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PurgeOutput:
    """Counts of purged records; ``None`` where that store was not purged."""

    purged_assets_count: int | None = None
    purged_asset_usages_count: int | None = None
    purged_asset_lineages_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "purgedAssetsCount": self.purged_assets_count,
            "purgedAssetUsagesCount": self.purged_asset_usages_count,
            "purgedAssetLineagesCount": self.purged_asset_lineages_count,
        }


def list_assets(ctx: TaskContext, request: ListAssetsRequest) -> FetchOutput:
    """List assets by namespace, types and metadata."""
    timer = start_timer()
    tenant = ctx.tenant(request.tenant_id)

    filters = FilterBuilder(multi_value=MultiValueEncoding.IN, clock=ctx.clock).build(
        FilterCriteria(
            namespace=request.namespace,
            types=request.types,
            metadata=request.metadata_query,
        )
    )
    page_request = PageRequest(page=request.page, size=request.size, tenant_id=tenant, filters=filters)

    walker = PageWalker()
    raw = walker.walk(
        page_request,
        lambda page, size: ctx.client.search_assets(page, size, filters, tenant_id=tenant),
    )
    output = project((AssetRecord.from_api(r) for r in raw), request.fetch_type, ctx.sink_factory)

    logger.info(
        "assets_listed",
        size=output.size,
        pages=walker.stats.pages_fetched,
        elapsed_ms=round(timer.elapsed_ms, 2),
        **ctx.log_fields(),
    )
    return output


def set_asset(ctx: TaskContext, request: SetAssetRequest) -> None:
    """Create or update an asset."""
    if not request.asset_id.strip():
        raise EmptyRequiredValue("asset ID")
    if not request.asset_type.strip():
        raise EmptyRequiredValue("asset type")

    ctx.client.create_asset(
        {
            "namespace": request.namespace,
            "id": request.asset_id,
            "type": request.asset_type,
            "displayName": request.display_name,
            "description": request.description,
            "metadata": dict(request.metadata),
        },
        tenant_id=ctx.tenant(request.tenant_id),
    )
    logger.info("asset_set", asset_id=request.asset_id, asset_type=request.asset_type)


def delete_asset(ctx: TaskContext, request: DeleteAssetRequest) -> None:
    if not request.asset_id.strip():
        raise EmptyRequiredValue("asset ID")
    ctx.client.delete_asset(request.asset_id, tenant_id=ctx.tenant(request.tenant_id))
    logger.info("asset_deleted", asset_id=request.asset_id)


def _check_purge_filters(request: PurgeAssetsRequest) -> None:
    if request.purge_asset_lineages:
        if request.asset_id is not None:
            raise UnsupportedFilterError(
                "Asset ID filtering is not supported for lineage events", field="asset_id"
            )
        if request.asset_types:
            raise UnsupportedFilterError(
                "Asset type filtering is not supported for lineage events", field="asset_types"
            )
        if request.metadata_query:
            raise UnsupportedFilterError(
                "Asset metadata filtering is not supported for lineage events", field="metadata_query"
            )
    if request.purge_asset_usages:
        if request.asset_types:
            raise UnsupportedFilterError(
                "Asset type filtering is not supported for usage events", field="asset_types"
            )
        if request.metadata_query:
            raise UnsupportedFilterError(
                "Asset metadata filtering is not supported for usage events", field="metadata_query"
            )


def purge_assets(ctx: TaskContext, request: PurgeAssetsRequest) -> PurgeOutput:
    """Delete assets, usage events and lineage events up to ``end_date``."""
    _check_purge_filters(request)
    tenant = ctx.tenant(request.tenant_id)

    criteria = FilterCriteria(
        namespace=request.namespace,
        id=request.asset_id,
        types=request.asset_types,
        metadata=request.metadata_query,
        end_date=request.end_date,
    )

    def build(id_field: FilterField, date_field: FilterField):
        return FilterBuilder(
            namespace_match=NamespaceMatch.PREFIX,
            multi_value=MultiValueEncoding.IN,
            id_field=id_field,
            end_field=date_field,
            clock=ctx.clock,
        ).build(criteria)

    assets = usages = lineages = None
    if request.purge_assets:
        assets = ctx.client.delete_assets_by_query(
            build(FilterField.ID, FilterField.UPDATED), tenant_id=tenant
        )
    if request.purge_asset_usages:
        usages = ctx.client.delete_asset_usages_by_query(
            build(FilterField.ASSET_ID, FilterField.CREATED), tenant_id=tenant
        )
    if request.purge_asset_lineages:
        lineages = ctx.client.delete_asset_lineages_by_query(
            build(FilterField.ASSET_ID, FilterField.CREATED), tenant_id=tenant
        )

    output = PurgeOutput(assets, usages, lineages)
    logger.info("assets_purged", **output.to_dict())
    return output
