"""
Page-walking over a paginated remote listing.

The remote search endpoints answer ``(page, size, filters) -> {results,
total}``. :class:`PageWalker` turns that into either one page (when the
caller pinned ``page``) or the concatenation of every page, in call order.

Walk algorithm:
    ::

        page = 1
        loop:
            result = fetch_page(page, size)
            records += result.records           (appended, never re-sorted)
            stop if result.records is empty
            stop if page * size >= result.total (latest total)
            stop if page == max_pages           (max_pages fixed from page 1)
            page += 1

    ``max_pages = first_total // size + 1`` bounds the walk even when the
    server keeps growing its total. Hitting the bound, or any change of the
    total mid-walk, is logged as ``inconsistent_pagination``; it is never
    raised.

Failure semantics:
    Any exception from ``fetch_page`` propagates untouched. Records gathered
    so far are discarded; the walker does not retry.

Examples:
    >>> pages = {1: PageResult(["a", "b"], total=3), 2: PageResult(["c"], total=3)}
    >>> PageWalker().walk(PageRequest(size=2), lambda page, size: pages[page])
    ['a', 'b', 'c']
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from flowpilot.core.errors import ValidationError
from flowpilot.core.logging import get_logger
from flowpilot.query.filters import FilterExpression

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PageRequest:
    """What to fetch: one pinned page, or every page of ``size`` records.

    Attributes:
        page: 1-based page to fetch; ``None`` walks all pages.
        size: Records per page.
        tenant_id: Tenant the listing belongs to.
        filters: Filter expressions sent with every page.
        sort: Optional sort specs (``field:asc``).
    """

    page: int | None = None
    size: int = 10
    tenant_id: str | None = None
    filters: Sequence[FilterExpression] = field(default_factory=tuple)
    sort: Sequence[str] | None = None

    def __post_init__(self) -> None:
        if self.page is not None and self.page < 1:
            raise ValidationError("page must be >= 1", field="page", value=self.page)
        if self.size < 1:
            raise ValidationError("size must be >= 1", field="size", value=self.size)


@dataclass(frozen=True, slots=True)
class PageResult[T]:
    """One page of records and the server-reported total."""

    records: list[T]
    total: int

    def __post_init__(self) -> None:
        if self.total < 0:
            raise ValidationError("total must be >= 0", field="total", value=self.total)


@dataclass
class WalkStats:
    """Counters describing the most recent walk."""

    pages_fetched: int = 0
    first_total: int | None = None
    last_total: int | None = None
    records: int = 0
    inconsistent: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "pages_fetched": self.pages_fetched,
            "first_total": self.first_total,
            "last_total": self.last_total,
            "records": self.records,
            "inconsistent": self.inconsistent,
        }


FetchPage = Callable[[int, int], PageResult[Any]]


class PageWalker:
    """Fetch one page or walk every page of a remote listing."""

    def __init__(self) -> None:
        self.stats = WalkStats()

    def walk[T](self, request: PageRequest, fetch_page: Callable[[int, int], PageResult[T]]) -> list[T]:
        """Return the records of ``request.page``, or of every page in order."""
        self.stats = WalkStats()
        size = request.size

        if request.page is not None:
            result = fetch_page(request.page, size)
            self._record(result)
            return list(result.records)

        records: list[T] = []
        page = 1
        max_pages: int | None = None

        while True:
            result = fetch_page(page, size)
            self._record(result)
            records.extend(result.records)

            if max_pages is None:
                max_pages = result.total // size + 1
            elif result.total != self.stats.first_total and not self.stats.inconsistent:
                self.stats.inconsistent = True
                logger.warning(
                    "inconsistent_pagination",
                    reason="total_changed",
                    page=page,
                    first_total=self.stats.first_total,
                    total=result.total,
                )

            if not result.records or page * size >= result.total:
                break
            if page >= max_pages:
                self.stats.inconsistent = True
                logger.warning(
                    "inconsistent_pagination",
                    reason="max_pages_reached",
                    page=page,
                    max_pages=max_pages,
                    total=result.total,
                )
                break
            page += 1

        logger.debug(
            "walk_completed",
            pages=self.stats.pages_fetched,
            records=len(records),
            total=self.stats.last_total,
        )
        return records

    def _record(self, result: PageResult[Any]) -> None:
        self.stats.pages_fetched += 1
        if self.stats.first_total is None:
            self.stats.first_total = result.total
        self.stats.last_total = result.total
        self.stats.records += len(result.records)


__all__ = [
    "FetchPage",
    "PageRequest",
    "PageResult",
    "PageWalker",
    "WalkStats",
]
