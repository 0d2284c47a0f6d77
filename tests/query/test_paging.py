"""Tests for flowpilot.query.paging."""

import pytest

from flowpilot.core.errors import TransportFailure, ValidationError
from flowpilot.query.paging import PageRequest, PageResult, PageWalker


def _pages(total_records: int, *, totals: list[int] | None = None):
    """Return a fetch function over ``total_records`` ints plus its call log."""
    data = list(range(total_records))
    calls: list[tuple[int, int]] = []

    def fetch(page: int, size: int) -> PageResult[int]:
        calls.append((page, size))
        total = totals[min(page, len(totals)) - 1] if totals else len(data)
        return PageResult(records=data[(page - 1) * size:page * size], total=total)

    return fetch, calls


class TestPageRequest:
    @pytest.mark.parametrize("page", [0, -1])
    def test_page_must_be_positive(self, page):
        with pytest.raises(ValidationError):
            PageRequest(page=page)

    def test_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            PageRequest(size=0)

    def test_negative_total_rejected(self):
        with pytest.raises(ValidationError):
            PageResult(records=[], total=-1)


class TestPageWalker:
    def test_pinned_page_makes_one_call(self):
        fetch, calls = _pages(50)
        records = PageWalker().walk(PageRequest(page=2, size=10), fetch)
        assert calls == [(2, 10)]
        assert records == list(range(10, 20))

    def test_walks_every_page_in_order(self):
        fetch, calls = _pages(5)
        walker = PageWalker()
        records = walker.walk(PageRequest(size=1), fetch)
        assert records == [0, 1, 2, 3, 4]
        assert calls == [(1, 1), (2, 1), (3, 1), (4, 1), (5, 1)]
        assert walker.stats.pages_fetched == 5
        assert walker.stats.inconsistent is False

    def test_partial_last_page(self):
        fetch, calls = _pages(101)
        records = PageWalker().walk(PageRequest(size=100), fetch)
        assert len(records) == 101
        assert len(calls) == 2

    def test_empty_listing_makes_one_call(self):
        fetch, calls = _pages(0)
        assert PageWalker().walk(PageRequest(size=10), fetch) == []
        assert calls == [(1, 10)]

    def test_exact_multiple_of_page_size(self):
        fetch, calls = _pages(20)
        assert len(PageWalker().walk(PageRequest(size=10), fetch)) == 20
        assert len(calls) == 2

    def test_stops_on_empty_page_even_if_total_claims_more(self):
        fetch, calls = _pages(3, totals=[50])
        records = PageWalker().walk(PageRequest(size=2), fetch)
        assert records == [0, 1, 2]
        assert calls == [(1, 2), (2, 2), (3, 2)]

    def test_total_change_is_flagged_and_walk_is_bounded(self):
        # Total grows every page; the walk must stop at first_total // size + 1 pages.
        fetch, calls = _pages(1000, totals=[10, 20, 30, 40, 50, 60])
        walker = PageWalker()
        walker.walk(PageRequest(size=5), fetch)
        assert walker.stats.inconsistent is True
        assert len(calls) == 10 // 5 + 1
        assert walker.stats.first_total == 10

    def test_stats_reset_between_walks(self):
        walker = PageWalker()
        walker.walk(PageRequest(size=1), _pages(3)[0])
        walker.walk(PageRequest(size=10), _pages(3)[0])
        assert walker.stats.pages_fetched == 1
        assert walker.stats.to_dict()["records"] == 3

    def test_fetch_error_propagates_and_drops_partial_records(self):
        fetch, calls = _pages(30)

        def failing(page: int, size: int) -> PageResult[int]:
            if page == 2:
                raise TransportFailure("connection reset")
            return fetch(page, size)

        walker = PageWalker()
        with pytest.raises(TransportFailure):
            walker.walk(PageRequest(size=10), failing)
        assert calls == [(1, 10)]
        assert walker.stats.pages_fetched == 1

    def test_reordered_pages_are_kept_in_arrival_order(self):
        # Page 2 comes back in a different order than page 1 implied.
        pages = {1: ["c", "a"], 2: ["d", "b"], 3: ["e"]}

        def fetch(page: int, size: int) -> PageResult[str]:
            return PageResult(records=pages[page], total=5)

        records = PageWalker().walk(PageRequest(size=2), fetch)
        assert records == ["c", "a", "d", "b", "e"]
