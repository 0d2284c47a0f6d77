"""
One polling-trigger tick as an explicit state machine.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TRIGGER EVALUATION LOOP                                                     │
│                                                                              │
│   IDLE ──evaluate()──► FETCHING ──records──► CLASSIFYING                     │
│    ▲                      │                       │                          │
│    │               fetch failed              verdicts?                       │
│    │             (record, re-raise)        ┌──────┴──────┐                   │
│    │                      │               yes            no                  │
│    │                      │                ▼             ▼                   │
│    │                      │         EVENT_EMITTED     NO_EVENT               │
│    │                      │      generate(ctx, payload)  │                   │
│    └──────────────────────┴────────────────┴─────────────┘                   │
│                                                                              │
│  Responsibility split (same as scheduler backend/service):                   │
│  - Poller: controls WHEN evaluate() runs (fixed interval, one at a time)     │
│  - Loop:   controls WHAT a tick does (fetch, classify, emit)                 │
│  - Trigger: supplies fetch / classify / payload for its resource             │
└──────────────────────────────────────────────────────────────────────────────┘

"now" is read from the injected clock once per tick and handed to ``fetch``
and every ``classify`` call, so a tick classifies all records against the same
instant and the same remote state always yields the same verdicts.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from flowpilot.core.clock import Clock, SystemClock
from flowpilot.core.errors import ValidationError
from flowpilot.core.logging import LogContext, get_logger
from flowpilot.health.classifier import AnomalyVerdict
from flowpilot.query.projection import to_json_line

if TYPE_CHECKING:
    from flowpilot.client.http import OrchestratorClient

logger = get_logger(__name__)


class EvaluationState(str, Enum):
    IDLE = "IDLE"
    FETCHING = "FETCHING"
    CLASSIFYING = "CLASSIFYING"
    EVENT_EMITTED = "EVENT_EMITTED"
    NO_EVENT = "NO_EVENT"


@dataclass(frozen=True, slots=True)
class TriggerContext:
    """Identity of the flow trigger an emitted execution belongs to."""

    tenant_id: str
    namespace: str
    flow_id: str
    trigger_id: str


@runtime_checkable
class ExecutionGenerator(Protocol):
    """Creates one execution from a trigger payload."""

    def generate(self, context: TriggerContext, payload: dict[str, Any]) -> Any:
        """Create the execution and return a handle to it."""
        ...


class RemoteExecutionGenerator:
    """Create executions through the API, passing the payload as ``trigger`` input."""

    def __init__(self, client: OrchestratorClient) -> None:
        self.client = client

    def generate(self, context: TriggerContext, payload: dict[str, Any]) -> dict[str, Any]:
        return self.client.create_execution(
            context.namespace,
            context.flow_id,
            inputs={"trigger": to_json_line(payload)},
            labels={"system.triggerId": context.trigger_id},
            tenant_id=context.tenant_id,
        )


@dataclass
class TriggerStats:
    """Statistics for one trigger's evaluation loop."""

    tick_count: int = 0
    events_emitted: int = 0
    ticks_failed: int = 0
    last_tick: datetime | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tick_count": self.tick_count,
            "events_emitted": self.events_emitted,
            "ticks_failed": self.ticks_failed,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            "last_error": self.last_error,
        }


@dataclass(frozen=True, slots=True)
class TickResult:
    """Outcome of one tick."""

    verdicts: list[AnomalyVerdict] = field(default_factory=list)
    execution: Any | None = None
    state: EvaluationState = EvaluationState.NO_EVENT

    @property
    def emitted(self) -> bool:
        return self.state is EvaluationState.EVENT_EMITTED


Fetch = Callable[[datetime], Iterable[Any]]
Classify = Callable[[Any, datetime], AnomalyVerdict | None]
BuildPayload = Callable[[Sequence[AnomalyVerdict], datetime], dict[str, Any]]


class TriggerEvaluationLoop:
    """Run fetch → classify → emit for one trigger, one tick at a time.

    Example:
        >>> loop = TriggerEvaluationLoop(
        ...     fetch=monitor.fetch,
        ...     classify=monitor.classify,
        ...     build_payload=monitor.build_payload,
        ...     generator=generator,
        ...     context=TriggerContext("main", "company.team", "alerts", "stuck_schedules"),
        ...     interval=timedelta(minutes=2),
        ... )
        >>> loop.evaluate().state
        <EvaluationState.NO_EVENT: 'NO_EVENT'>
    """

    def __init__(
        self,
        *,
        fetch: Fetch,
        classify: Classify,
        build_payload: BuildPayload,
        generator: ExecutionGenerator | None,
        context: TriggerContext,
        interval: timedelta,
        clock: Clock | None = None,
    ) -> None:
        if not isinstance(interval, timedelta) or interval <= timedelta(0):
            raise ValidationError("interval must be a positive timedelta", field="interval", value=interval)

        self._fetch = fetch
        self._classify = classify
        self._build_payload = build_payload
        self.generator = generator
        self.context = context
        self.interval = interval
        self.clock = clock or SystemClock()
        self.state = EvaluationState.IDLE
        self.stats = TriggerStats()
        self._lock = threading.Lock()

    def evaluate(self) -> TickResult:
        """Run one tick.

        Raises:
            Exception: Whatever ``fetch``, ``classify`` or the generator
                raised. The loop is back in IDLE and the failure is counted
                in :attr:`stats`.
        """
        with self._lock, LogContext(
            trigger_id=self.context.trigger_id, tenant_id=self.context.tenant_id
        ):
            now = self.clock.now()
            self.stats.tick_count += 1
            self.stats.last_tick = now

            try:
                return self._tick(now)
            except Exception as e:
                self.stats.ticks_failed += 1
                self.stats.last_error = str(e)
                logger.warning(
                    "tick_failed",
                    state=self.state.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise
            finally:
                self.state = EvaluationState.IDLE

    def _tick(self, now: datetime) -> TickResult:
        self.state = EvaluationState.FETCHING
        records = list(self._fetch(now))

        self.state = EvaluationState.CLASSIFYING
        verdicts: list[AnomalyVerdict] = []
        for record in records:
            verdict = self._classify(record, now)
            if verdict is not None:
                verdicts.append(verdict)

        if not verdicts:
            self.state = EvaluationState.NO_EVENT
            logger.debug("no_event", records=len(records))
            return TickResult(verdicts=[], execution=None, state=EvaluationState.NO_EVENT)

        payload = self._build_payload(verdicts, now)
        execution = None
        if self.generator is not None:
            execution = self.generator.generate(self.context, payload)
        self.state = EvaluationState.EVENT_EMITTED
        self.stats.events_emitted += 1
        logger.info("event_emitted", records=len(records), verdicts=len(verdicts))
        return TickResult(verdicts=verdicts, execution=execution, state=EvaluationState.EVENT_EMITTED)


__all__ = [
    "EvaluationState",
    "ExecutionGenerator",
    "RemoteExecutionGenerator",
    "TickResult",
    "TriggerContext",
    "TriggerEvaluationLoop",
    "TriggerStats",
]
