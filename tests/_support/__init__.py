"""
Test support utilities for flowpilot tests.

Helpers that are not fixtures but are shared across test modules. The fake
API client lives in :mod:`tests._support.fake_api`.
"""

from __future__ import annotations

from typing import Any

from flowpilot.query.filters import FilterExpression


def assert_dict_subset(actual: dict, expected: dict, path: str = "") -> None:
    """Assert that ``expected`` is a (recursive) subset of ``actual``."""
    for key, expected_value in expected.items():
        current_path = f"{path}.{key}" if path else key

        assert key in actual, f"Missing key at {current_path}"
        actual_value = actual[key]

        if isinstance(expected_value, dict) and isinstance(actual_value, dict):
            assert_dict_subset(actual_value, expected_value, current_path)
        else:
            assert actual_value == expected_value, (
                f"Mismatch at {current_path}: "
                f"expected {expected_value!r}, got {actual_value!r}"
            )


def filter_triples(filters: list[FilterExpression]) -> list[tuple[str, str, Any]]:
    """Flatten expressions to ``(field, operator, value)`` for compact asserts."""
    return [(f.field.value, f.operator.value, f.value) for f in filters]
