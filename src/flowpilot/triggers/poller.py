"""Fixed-interval, thread-based poller for flowpilot triggers.

┌──────────────────────────────────────────────────────────────────────────────┐
│  THREAD POLLER                                                               │
│                                                                              │
│   start()                                                                    │
│      │                                                                       │
│      ▼                                                                       │
│   ┌─────────────────────────────────────────────────────────┐               │
│   │              Daemon Thread (one per trigger)            │               │
│   │                                                         │               │
│   │   while not stop_event.wait(interval):                  │               │
│   │       tick_count += 1                                   │               │
│   │       trigger.evaluate()   ◄── FlowpilotError: skipped  │               │
│   │                            ◄── other errors: failed     │               │
│   │                                                         │               │
│   └─────────────────────────────────────────────────────────┘               │
│                                                                              │
│   stop()  →  stop_event.set(); thread.join(timeout=5.0)                      │
│                                                                              │
│  A failed tick is logged and counted; the next interval is the retry.       │
│  Ticks of one trigger never overlap: the thread runs them sequentially.     │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol, runtime_checkable

from flowpilot.core.errors import FlowpilotError
from flowpilot.core.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class PollingTrigger(Protocol):
    """Anything with a positive ``interval`` and an ``evaluate()`` tick."""

    @property
    def interval(self) -> timedelta: ...

    def evaluate(self) -> Any: ...


class ThreadTriggerPoller:
    """Run ``trigger.evaluate()`` every ``trigger.interval`` in a daemon thread.

    Example:
        >>> poller = ThreadTriggerPoller(ScheduleMonitor(client, interval=timedelta(minutes=2)))
        >>> poller.start()
        >>> # ... later ...
        >>> poller.stop()
    """

    def __init__(self, trigger: PollingTrigger, *, name: str = "flowpilot-trigger") -> None:
        self.trigger = trigger
        self.name = name
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._tick_count = 0
        self._skipped_count = 0
        self._failed_count = 0
        self._last_tick: datetime | None = None
        self._last_error: str | None = None
        self._started = False
        self._lock = threading.Lock()

    def start(self) -> None:
        if self._started:
            logger.warning("poller_already_started", poller=self.name)
            return

        interval = self.trigger.interval.total_seconds()
        self._stop_event.clear()

        def _loop() -> None:
            logger.info("poller_started", poller=self.name, interval_seconds=interval)
            while not self._stop_event.wait(interval):
                try:
                    self.tick()
                except Exception as e:
                    with self._lock:
                        self._failed_count += 1
                        self._last_error = str(e)
                    logger.exception("tick_failed", poller=self.name)
            logger.info("poller_stopped", poller=self.name)

        self._thread = threading.Thread(target=_loop, daemon=True, name=self.name)
        self._thread.start()
        self._started = True

    def tick(self) -> Any | None:
        """Evaluate the trigger once; a :class:`FlowpilotError` skips the tick."""
        with self._lock:
            self._tick_count += 1
            self._last_tick = datetime.now(UTC)

        try:
            return self.trigger.evaluate()
        except FlowpilotError as e:
            with self._lock:
                self._skipped_count += 1
                self._last_error = str(e)
            logger.warning("tick_skipped", poller=self.name, **e.to_dict())
            return None

    def stop(self) -> None:
        """Stop the loop, waiting up to 5 seconds for the current tick."""
        if not self._started:
            return

        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5.0)
            if self._thread.is_alive():
                logger.warning("poller_thread_still_running", poller=self.name)

        self._started = False

    def health(self) -> dict[str, Any]:
        return {
            "healthy": self.is_running,
            "poller": self.name,
            "tick_count": self._tick_count,
            "skipped_count": self._skipped_count,
            "failed_count": self._failed_count,
            "last_tick": self._last_tick.isoformat() if self._last_tick else None,
            "last_error": self._last_error,
            "interval_seconds": self.trigger.interval.total_seconds(),
        }

    @property
    def is_running(self) -> bool:
        return self._started and self._thread is not None and self._thread.is_alive()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def skipped_count(self) -> int:
        return self._skipped_count

    @property
    def failed_count(self) -> int:
        return self._failed_count


__all__ = ["PollingTrigger", "ThreadTriggerPoller"]
