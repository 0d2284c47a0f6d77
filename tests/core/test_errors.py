"""Tests for flowpilot.core.errors module."""

import pytest

from flowpilot.core.errors import (
    ConfigError,
    EmptyRequiredValue,
    ErrorCategory,
    ErrorContext,
    FlowpilotError,
    InconsistentPagination,
    InvalidFilterCombination,
    NotFoundError,
    RemoteApiError,
    ResponseParseError,
    StorageError,
    TransportFailure,
    UnsupportedFilterError,
    ValidationError,
    categorize_error,
    is_retryable,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_empty_context_serializes_to_empty_dict(self):
        assert ErrorContext().to_dict() == {}

    def test_only_set_fields_are_included(self):
        ctx = ErrorContext(tenant_id="main", http_status=404, metadata={"attempt": 1})
        assert ctx.to_dict() == {"tenant_id": "main", "http_status": 404, "attempt": 1}


class TestFlowpilotError:
    """Test the base error."""

    def test_defaults(self):
        err = FlowpilotError("boom")
        assert err.message == "boom"
        assert err.category is ErrorCategory.INTERNAL
        assert err.retryable is False

    def test_cause_is_chained(self):
        cause = OSError("disk full")
        err = FlowpilotError("write failed", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "disk full"

    def test_with_context_sets_known_fields_and_metadata(self):
        err = FlowpilotError("x").with_context(tenant_id="main", request_id="r-1")
        assert err.context.tenant_id == "main"
        assert err.context.metadata == {"request_id": "r-1"}

    def test_to_dict(self):
        d = FlowpilotError("x").with_context(namespace="company").to_dict()
        assert d["error_type"] == "FlowpilotError"
        assert d["context"] == {"namespace": "company"}


class TestErrorHierarchy:
    """Categories and retryability of concrete errors."""

    def test_transport_failure_is_retryable(self):
        err = TransportFailure("connection refused")
        assert err.retryable is True
        assert err.category is ErrorCategory.TRANSPORT

    def test_remote_api_error_records_status(self):
        err = RemoteApiError("bad gateway", status_code=502)
        assert err.status_code == 502
        assert err.context.http_status == 502
        assert err.retryable is False

    def test_not_found_is_remote_api_error(self):
        assert isinstance(NotFoundError("gone", status_code=404), RemoteApiError)

    def test_response_parse_error_category(self):
        assert ResponseParseError("not json").category is ErrorCategory.PARSE

    def test_validation_errors(self):
        for cls in (InvalidFilterCombination, UnsupportedFilterError):
            err = cls("bad", field="time_range", value=5)
            assert isinstance(err, ValidationError)
            assert err.to_dict()["field"] == "time_range"
            assert err.to_dict()["value"] == "5"

    def test_empty_required_value_message(self):
        err = EmptyRequiredValue("execution ID")
        assert str(err) == "The execution ID is required."
        assert err.field == "execution ID"

    def test_other_categories(self):
        assert InconsistentPagination("x").category is ErrorCategory.PAGINATION
        assert ConfigError("x").category is ErrorCategory.CONFIG
        assert StorageError("x").category is ErrorCategory.STORAGE


class TestHelpers:
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (TransportFailure("x"), True),
            (ValidationError("x"), False),
            (ConnectionError(), True),
            (KeyError("x"), False),
        ],
    )
    def test_is_retryable(self, error, expected):
        assert is_retryable(error) is expected

    def test_categorize_error(self):
        assert categorize_error(NotFoundError("x")) is ErrorCategory.REMOTE
        assert categorize_error(OSError()) is ErrorCategory.TRANSPORT
        assert categorize_error(ValueError()) is ErrorCategory.VALIDATION
        assert categorize_error(RuntimeError()) is ErrorCategory.UNKNOWN
