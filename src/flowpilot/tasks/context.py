"""
Run-scoped context for tasks.

Every task function receives a :class:`TaskContext` as its first argument.
The context carries the API client, the tenant and flow the task runs in,
the clock, and where STORE outputs go. Values arrive already rendered;
flowpilot does no templating.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from flowpilot.client.http import OrchestratorClient
from flowpilot.core.clock import Clock, SystemClock
from flowpilot.query.projection import JsonLinesSink, SinkFactory

if TYPE_CHECKING:
    from flowpilot.core.settings import FlowpilotSettings


@dataclass
class TaskContext:
    """Context passed to every task function.

    Attributes:
        client: API client (anything exposing the :class:`OrchestratorClient` methods).
        tenant_id: Tenant used when a request does not override it.
        clock: Source of "now" for relative time ranges.
        sink_factory: Opens a sink for STORE fetches; needed only once a STORE
            fetch has a record to write.
        namespace: Namespace of the flow running the task.
        flow_id: Id of the flow running the task.
        current_execution_id: Id of the execution running the task.
        request_id: Unique ID for this task invocation (auto-generated).
        metadata: Arbitrary key/value pairs forwarded to logging.
    """

    client: OrchestratorClient
    tenant_id: str = "main"
    clock: Clock = field(default_factory=SystemClock)
    sink_factory: SinkFactory | None = None
    namespace: str | None = None
    flow_id: str | None = None
    current_execution_id: str | None = None
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_settings(
        cls,
        settings: FlowpilotSettings,
        client: OrchestratorClient | None = None,
        **kwargs: Any,
    ) -> TaskContext:
        """Build a context whose STORE fetches write under ``settings.storage_dir``.

        A client is built from the same settings unless one is given.
        """
        if client is None:
            client = OrchestratorClient.from_settings(settings)
        storage_dir = settings.storage_dir
        kwargs.setdefault("tenant_id", settings.tenant_id)
        kwargs.setdefault("sink_factory", lambda: JsonLinesSink(storage_dir))
        return cls(client=client, **kwargs)

    def tenant(self, override: str | None) -> str:
        return override or self.tenant_id

    def log_fields(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "tenant_id": self.tenant_id,
            "namespace": self.namespace,
            "flow_id": self.flow_id,
            **self.metadata,
        }


class _Timer:
    """Minimal stopwatch for timing tasks."""

    __slots__ = ("_start",)

    def __init__(self) -> None:
        self._start = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000


def start_timer() -> _Timer:
    """Return a lightweight timer.  Use ``timer.elapsed_ms`` when done."""
    return _Timer()
