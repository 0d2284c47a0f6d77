"""Tests for flowpilot.core.clock."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from flowpilot.core.clock import (
    Clock,
    FixedClock,
    SystemClock,
    duration_iso8601,
    ensure_utc,
    from_iso8601,
    to_iso8601,
)


class TestClocks:
    def test_system_clock_is_aware(self):
        assert SystemClock().now().tzinfo is not None

    def test_clocks_satisfy_protocol(self):
        assert isinstance(SystemClock(), Clock)
        assert isinstance(FixedClock(datetime(2025, 1, 1, tzinfo=UTC)), Clock)

    def test_fixed_clock_advance_and_set(self):
        clock = FixedClock(datetime(2025, 1, 1, tzinfo=UTC))
        assert clock.advance(timedelta(minutes=5)) == datetime(2025, 1, 1, 0, 5, tzinfo=UTC)
        assert clock.now() == datetime(2025, 1, 1, 0, 5, tzinfo=UTC)
        clock.set(datetime(2024, 6, 1))
        assert clock.now() == datetime(2024, 6, 1, tzinfo=UTC)


class TestTimestampHelpers:
    def test_ensure_utc_naive_and_aware(self):
        assert ensure_utc(datetime(2025, 1, 1)).tzinfo is UTC
        plus_two = datetime(2025, 1, 1, 12, tzinfo=timezone(timedelta(hours=2)))
        assert ensure_utc(plus_two) == datetime(2025, 1, 1, 10, tzinfo=UTC)

    def test_from_iso8601_accepts_z_suffix(self):
        assert from_iso8601("2025-01-15T10:00:00Z") == datetime(2025, 1, 15, 10, tzinfo=UTC)

    @pytest.mark.parametrize("value", [None, ""])
    def test_from_iso8601_empty(self, value):
        assert from_iso8601(value) is None

    def test_to_iso8601(self):
        assert to_iso8601(None) is None
        assert to_iso8601(datetime(2025, 1, 15, 10, tzinfo=UTC)) == "2025-01-15T10:00:00+00:00"

    @pytest.mark.parametrize(
        ("delta", "expected"),
        [
            (timedelta(0), "PT0S"),
            (timedelta(hours=1, minutes=30), "PT1H30M"),
            (timedelta(days=1, seconds=5), "PT24H5S"),
            (timedelta(seconds=1.5), "PT1.5S"),
            (timedelta(minutes=-2), "-PT2M"),
        ],
    )
    def test_duration_iso8601(self, delta, expected):
        assert duration_iso8601(delta) == expected
