"""Tests for flowpilot.triggers.evaluation."""

from datetime import timedelta

import pytest

from flowpilot.core.errors import ValidationError
from flowpilot.health.classifier import AnomalyKind, AnomalyVerdict
from flowpilot.triggers.evaluation import (
    EvaluationState,
    ExecutionGenerator,
    RemoteExecutionGenerator,
    TriggerContext,
    TriggerEvaluationLoop,
)
from tests._support.fake_api import FakeOrchestratorClient

CONTEXT = TriggerContext("main", "company.ops", "alerts", "watch")


class RecordingGenerator:
    def __init__(self) -> None:
        self.payloads: list[dict] = []

    def generate(self, context, payload):
        self.payloads.append(payload)
        return {"id": f"gen-{len(self.payloads)}"}


def _loop(clock, records, *, generator=None, flag=lambda r: r > 0):
    seen_now = []

    def fetch(now):
        seen_now.append(now)
        return records

    def classify(record, now):
        seen_now.append(now)
        return AnomalyVerdict(AnomalyKind.STUCK, record, "flagged") if flag(record) else None

    def build_payload(verdicts, now):
        return {"data": [v.record for v in verdicts]}

    loop = TriggerEvaluationLoop(
        fetch=fetch,
        classify=classify,
        build_payload=build_payload,
        generator=generator,
        context=CONTEXT,
        interval=timedelta(minutes=1),
        clock=clock,
    )
    return loop, seen_now


class TestTriggerEvaluationLoop:
    @pytest.mark.parametrize("interval", [timedelta(0), timedelta(seconds=-5), 60])
    def test_interval_must_be_positive_timedelta(self, interval):
        with pytest.raises(ValidationError):
            TriggerEvaluationLoop(
                fetch=lambda now: [],
                classify=lambda r, now: None,
                build_payload=lambda v, now: {},
                generator=None,
                context=CONTEXT,
                interval=interval,
            )

    def test_no_anomalies_no_event(self, clock):
        generator = RecordingGenerator()
        loop, _ = _loop(clock, [0, 0], generator=generator)
        result = loop.evaluate()
        assert result.state is EvaluationState.NO_EVENT
        assert result.verdicts == []
        assert generator.payloads == []
        assert loop.state is EvaluationState.IDLE

    def test_anomalies_emit_exactly_once(self, clock):
        generator = RecordingGenerator()
        loop, _ = _loop(clock, [1, 0, 2], generator=generator)
        result = loop.evaluate()
        assert result.emitted
        assert result.execution == {"id": "gen-1"}
        assert generator.payloads == [{"data": [1, 2]}]
        assert loop.stats.events_emitted == 1

    def test_now_read_once_per_tick(self, clock, now):
        loop, seen_now = _loop(clock, [1, 2, 3])
        loop.evaluate()
        assert seen_now == [now] * 4

    def test_no_generator_still_reports_event(self, clock):
        loop, _ = _loop(clock, [1])
        result = loop.evaluate()
        assert result.emitted
        assert result.execution is None

    def test_failure_is_counted_and_reraised(self, clock):
        def fetch(now):
            raise RuntimeError("boom")

        loop = TriggerEvaluationLoop(
            fetch=fetch,
            classify=lambda r, now: None,
            build_payload=lambda v, now: {},
            generator=None,
            context=CONTEXT,
            interval=timedelta(minutes=1),
            clock=clock,
        )
        with pytest.raises(RuntimeError):
            loop.evaluate()
        assert loop.stats.ticks_failed == 1
        assert loop.stats.last_error == "boom"
        assert loop.state is EvaluationState.IDLE

    def test_same_state_same_verdicts(self, clock):
        loop, _ = _loop(clock, [1, 0, 3])
        first = loop.evaluate()
        second = loop.evaluate()
        assert [v.record for v in first.verdicts] == [v.record for v in second.verdicts]
        assert loop.stats.to_dict()["tick_count"] == 2


class TestRemoteExecutionGenerator:
    def test_satisfies_protocol(self):
        assert isinstance(RemoteExecutionGenerator(FakeOrchestratorClient()), ExecutionGenerator)

    def test_generate(self):
        client = FakeOrchestratorClient()
        RemoteExecutionGenerator(client).generate(CONTEXT, {"data": [{"id": 1}]})
        call = client.calls_to("create_execution")[0]
        assert (call["namespace"], call["flow_id"], call["tenant_id"]) == ("company.ops", "alerts", "main")
        assert call["inputs"] == {"trigger": '{"data":[{"id":1}]}'}
