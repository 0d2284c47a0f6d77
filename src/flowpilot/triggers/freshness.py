"""
Polling trigger that reports assets not updated within ``max_staleness``.

The search asks the server for assets with ``updated <= now - max_staleness``;
each returned asset is then confirmed locally with
:func:`flowpilot.health.classifier.classify_staleness`, so a lenient server
filter never produces a false alarm.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from flowpilot.core.clock import Clock, SystemClock, duration_iso8601, to_iso8601
from flowpilot.core.errors import ValidationError
from flowpilot.core.logging import get_logger
from flowpilot.health.classifier import AnomalyVerdict, StalenessRule, classify_staleness
from flowpilot.models import AssetRecord
from flowpilot.query.builder import FilterBuilder, FilterCriteria, MultiValueEncoding
from flowpilot.query.filters import FieldQuery, FilterExpression, FilterField
from flowpilot.query.paging import PageRequest, PageWalker
from flowpilot.triggers.evaluation import (
    ExecutionGenerator,
    TickResult,
    TriggerContext,
    TriggerEvaluationLoop,
)

if TYPE_CHECKING:
    from flowpilot.client.http import OrchestratorClient

logger = get_logger(__name__)

PAGE_SIZE = 100


class FreshnessTrigger:
    """Detect stale assets."""

    def __init__(
        self,
        client: OrchestratorClient,
        *,
        interval: timedelta,
        max_staleness: timedelta,
        tenant_id: str = "main",
        asset_id: str | None = None,
        namespace: str | None = None,
        asset_type: str | None = None,
        metadata_query: Sequence[FieldQuery] | None = None,
        clock: Clock | None = None,
        generator: ExecutionGenerator | None = None,
        context: TriggerContext | None = None,
    ) -> None:
        if max_staleness is None or max_staleness <= timedelta(0):
            raise ValidationError("max_staleness must be a positive duration", field="max_staleness")

        self.client = client
        self.max_staleness = max_staleness
        self.tenant_id = tenant_id
        self.asset_id = asset_id
        self.namespace = namespace
        self.asset_type = asset_type
        self.metadata_query = list(metadata_query or [])
        self.clock = clock or SystemClock()
        self.walker = PageWalker()
        self._builder = FilterBuilder(
            multi_value=MultiValueEncoding.PER_ITEM, end_field=FilterField.UPDATED, clock=self.clock
        )

        self.loop = TriggerEvaluationLoop(
            fetch=self.fetch,
            classify=self.classify,
            build_payload=self.build_payload,
            generator=generator,
            context=context or TriggerContext(tenant_id, namespace or "", "", "freshness"),
            interval=interval,
            clock=self.clock,
        )

    @property
    def interval(self) -> timedelta:
        return self.loop.interval

    def filters(self, now: datetime) -> list[FilterExpression]:
        return self._builder.build(
            FilterCriteria(
                id=self.asset_id,
                namespace=self.namespace,
                types=[self.asset_type] if self.asset_type else None,
                metadata=self.metadata_query,
                end_date=now - self.max_staleness,
            )
        )

    def fetch(self, now: datetime) -> list[AssetRecord]:
        filters = self.filters(now)
        raw = self.walker.walk(
            PageRequest(size=PAGE_SIZE, tenant_id=self.tenant_id, filters=filters),
            lambda page, size: self.client.search_assets(page, size, filters, tenant_id=self.tenant_id),
        )
        logger.debug("stale_candidates_fetched", count=len(raw), pages=self.walker.stats.pages_fetched)
        return [AssetRecord.from_api(r) for r in raw]

    def classify(self, asset: AssetRecord, now: datetime) -> AnomalyVerdict | None:
        return classify_staleness(asset, StalenessRule(max_staleness=self.max_staleness, now=now))

    def build_payload(self, verdicts: Sequence[AnomalyVerdict], now: datetime) -> dict[str, Any]:
        assets = []
        for verdict in verdicts:
            asset = verdict.record.to_dict()
            asset["tenantId"] = asset.get("tenantId") or self.tenant_id
            asset["lastUpdated"] = asset.pop("updated")
            asset["staleDuration"] = duration_iso8601(verdict.duration) if verdict.duration else None
            asset["checkTime"] = to_iso8601(now)
            assets.append(asset)
        return {"assets": assets}

    def evaluate(self) -> TickResult:
        return self.loop.evaluate()


__all__ = ["FreshnessTrigger"]
