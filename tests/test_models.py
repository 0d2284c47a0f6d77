"""Tests for flowpilot.models."""

from datetime import UTC, datetime

import pytest

from flowpilot.core.errors import ResponseParseError
from flowpilot.models import (
    AssetRecord,
    ExecutionRecord,
    ExecutionState,
    LogRecord,
    SuiteRunResult,
    SuiteState,
    TriggerRecord,
)
from tests._support.fake_api import asset_payload, execution_payload, trigger_payload

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


class TestExecutionState:
    @pytest.mark.parametrize("state", ["SUCCESS", "WARNING", "FAILED", "KILLED", "CANCELLED", "RETRIED", "SKIPPED"])
    def test_terminal(self, state):
        assert ExecutionState(state).is_terminated

    @pytest.mark.parametrize("state", ["CREATED", "RUNNING", "PAUSED", "QUEUED", "KILLING"])
    def test_not_terminal(self, state):
        assert not ExecutionState(state).is_terminated


class TestTriggerRecord:
    def test_from_api(self):
        record = TriggerRecord.from_api(
            trigger_payload("company.team", "etl", "daily", next_execution=NOW, execution_id="e1")
        )
        assert record.namespace == "company.team"
        assert record.next_execution_time == NOW
        assert record.running_execution_id == "e1"
        assert record.is_schedule
        assert record.backfill is False

    def test_backfill_flag(self):
        record = TriggerRecord.from_api(trigger_payload("c", "f", "t", backfill={"start": "2025-01-01"}))
        assert record.backfill is True

    def test_missing_context_gives_none(self):
        assert TriggerRecord.from_api({"abstractTrigger": {"id": "t"}}) is None

    def test_non_mapping_rejected(self):
        with pytest.raises(ResponseParseError):
            TriggerRecord.from_api(["not", "a", "dict"])

    def test_to_dict(self):
        record = TriggerRecord.from_api(trigger_payload("c", "f", "t", next_execution=NOW))
        assert record.to_dict() == {
            "tenantId": "main",
            "namespace": "c",
            "flowId": "f",
            "triggerId": "t",
            "disabled": False,
            "lastExecution": None,
            "expectedNext": "2025-01-15T12:00:00+00:00",
        }


class TestExecutionRecord:
    def test_from_api_keeps_raw(self):
        payload = execution_payload("e1", state="RUNNING", start_date=NOW, labels=[("env", "prod")])
        payload["extra"] = {"kept": True}
        record = ExecutionRecord.from_api(payload)
        assert record.is_running
        assert record.start_date == NOW
        assert record.labels == {"env": "prod"}
        assert record.to_dict()["extra"] == {"kept": True}

    def test_labels_as_mapping(self):
        record = ExecutionRecord.from_api({"id": "e1", "labels": {"env": "prod"}})
        assert record.labels == {"env": "prod"}
        assert record.state is None

    def test_unknown_state_kept_by_name(self):
        record = ExecutionRecord.from_api({"id": "x", "state": {"current": "SUBMITTED"}})
        assert record.state is None
        assert record.state_name == "SUBMITTED"
        assert not record.is_running
        assert record.to_dict()["state"]["current"] == "SUBMITTED"

    def test_missing_id(self):
        with pytest.raises(ResponseParseError):
            ExecutionRecord.from_api({"namespace": "c"})


class TestAssetAndLogRecords:
    def test_asset_round_trip_fields(self):
        asset = AssetRecord.from_api(asset_payload("orders", updated=NOW, metadata={"owner": "data"}))
        d = asset.to_dict()
        assert d["updated"] == "2025-01-15T12:00:00+00:00"
        assert d["metadata"] == {"owner": "data"}

    def test_log_record(self):
        log = LogRecord.from_api({"level": "ERROR", "message": "boom", "timestamp": "2025-01-15T12:00:00Z"})
        assert log.timestamp == NOW
        assert log.to_dict()["level"] == "ERROR"


class TestSuiteRunResult:
    def test_from_api(self):
        result = SuiteRunResult.from_api(
            {
                "namespace": "company.team",
                "testSuiteId": "smoke",
                "state": "FAILED",
                "results": [
                    {"testId": "c1", "state": "SUCCESS"},
                    {"testId": "c2", "state": "FAILED", "errors": [{"message": "bad", "details": "x != y"}]},
                ],
            }
        )
        assert result.state is SuiteState.FAILED
        assert [c.test_id for c in result.results] == ["c1", "c2"]
        assert result.results[1].errors == ["bad, details: x != y"]

    def test_results_required(self):
        with pytest.raises(ResponseParseError):
            SuiteRunResult.from_api({"state": "SUCCESS"})

    def test_unknown_state_is_a_parse_error(self):
        with pytest.raises(ResponseParseError):
            SuiteRunResult.from_api({"state": "EXPLODED", "results": []})


class TestFrozenRecords:
    def test_trigger_record_is_read_only(self):
        record = TriggerRecord.from_api(trigger_payload("c", "f", "t"))
        with pytest.raises(AttributeError):
            record.running_since = NOW
