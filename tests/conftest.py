"""
Shared pytest fixtures and configuration for flowpilot tests.

This module provides:
- A fixed clock so every time-based check is deterministic
- A fake API client serving canned, paginated resources
- A task context wired to both, storing STORE outputs under tmp_path
- structlog context cleanup between tests
"""

from __future__ import annotations

from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path

import pytest

from flowpilot.core.clock import FixedClock
from flowpilot.core.logging import clear_context
from flowpilot.query.projection import JsonLinesSink
from flowpilot.tasks.context import TaskContext
from tests._support.fake_api import FakeOrchestratorClient

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark everything without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "slow"}):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def _clean_log_context() -> Generator[None, None, None]:
    clear_context()
    yield
    clear_context()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def fake_client() -> FakeOrchestratorClient:
    return FakeOrchestratorClient()


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    return tmp_path / "storage"


@pytest.fixture
def make_ctx(clock: FixedClock, storage_dir: Path):
    """Factory for a :class:`TaskContext` around a given fake client."""

    def _make(client: FakeOrchestratorClient, **kwargs) -> TaskContext:
        kwargs.setdefault("namespace", "company.team")
        kwargs.setdefault("flow_id", "maintenance")
        kwargs.setdefault("current_execution_id", "exec-current")
        return TaskContext(
            client=client,
            clock=clock,
            sink_factory=lambda: JsonLinesSink(storage_dir),
            **kwargs,
        )

    return _make
