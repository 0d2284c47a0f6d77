"""
Materialize fetched records the way the caller asked for.

    FETCH      → rows (full list) and size
    FETCH_ONE  → row (first record in traversal order) and size 0/1
    STORE      → records streamed to a RecordSink, uri and size
    NONE       → size only

STORE never buffers: records are written one per line as they are
iterated. When there is nothing to write no sink is opened and ``uri`` stays
``None``, so an empty result never points at an empty file.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from flowpilot.core.clock import duration_iso8601
from flowpilot.core.errors import StorageError
from flowpilot.core.logging import get_logger

logger = get_logger(__name__)


class FetchType(str, Enum):
    FETCH = "FETCH"
    FETCH_ONE = "FETCH_ONE"
    STORE = "STORE"
    NONE = "NONE"


@dataclass(frozen=True, slots=True)
class FetchOutput:
    """Projection result; only the fields relevant to the fetch type are set."""

    size: int
    rows: list[Any] | None = None
    row: Any | None = None
    uri: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"size": self.size}
        if self.rows is not None:
            d["rows"] = [_to_plain(r) for r in self.rows]
        if self.row is not None:
            d["row"] = _to_plain(self.row)
        if self.uri is not None:
            d["uri"] = self.uri
        return d


@runtime_checkable
class RecordSink(Protocol):
    """Destination for STORE projections."""

    def write(self, record: Any) -> None: ...

    def finish(self) -> str:
        """Flush, close and return the URI of what was written."""
        ...

    def abort(self) -> None:
        """Discard what was written; called when the walk fails midway."""
        ...


SinkFactory = Callable[[], RecordSink]


def _to_plain(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        value = value.to_dict()
    if isinstance(value, dict):
        return {str(k): _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return duration_iso8601(value)
    if isinstance(value, Enum):
        return value.value
    return value


def to_json_line(record: Any) -> str:
    """Serialize one record as a single JSON line (no trailing newline)."""
    return json.dumps(_to_plain(record), default=str, separators=(",", ":"))


class JsonLinesSink:
    """Write records to ``<directory>/<uuid>.jsonl``.

    Example:
        >>> sink = JsonLinesSink(tmp_path)
        >>> sink.write({"id": "a"})
        >>> sink.finish()
        'file:///.../3f1c...jsonl'
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.path = self.directory / f"{uuid.uuid4()}.jsonl"
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._fh = self.path.open("w", encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot open {self.path}", cause=e) from e
        self.count = 0

    def write(self, record: Any) -> None:
        try:
            self._fh.write(to_json_line(record))
            self._fh.write("\n")
        except OSError as e:
            raise StorageError(f"Cannot write to {self.path}", cause=e) from e
        self.count += 1

    def finish(self) -> str:
        self._fh.close()
        return self.path.resolve().as_uri()

    def abort(self) -> None:
        """Close and delete the partial file."""
        self._fh.close()
        self.path.unlink(missing_ok=True)


def project(
    records: Iterable[Any],
    fetch_type: FetchType | str,
    sink_factory: SinkFactory | None = None,
) -> FetchOutput:
    """Project ``records`` according to ``fetch_type``."""
    fetch_type = FetchType(fetch_type)

    if fetch_type is FetchType.FETCH:
        rows = list(records)
        return FetchOutput(size=len(rows), rows=rows)

    if fetch_type is FetchType.FETCH_ONE:
        first = next(iter(records), None)
        return FetchOutput(size=0 if first is None else 1, row=first)

    if fetch_type is FetchType.NONE:
        return FetchOutput(size=sum(1 for _ in records))

    sink: RecordSink | None = None
    size = 0
    try:
        for record in records:
            if sink is None:
                if sink_factory is None:
                    raise StorageError("STORE fetch type requires a record sink")
                sink = sink_factory()
            sink.write(record)
            size += 1
    except Exception:
        if sink is not None:
            sink.abort()
            logger.warning("store_aborted", written=size)
        raise

    if sink is None:
        return FetchOutput(size=0)

    uri = sink.finish()
    logger.debug("records_stored", uri=uri, size=size)
    return FetchOutput(size=size, uri=uri)


__all__ = [
    "FetchOutput",
    "FetchType",
    "JsonLinesSink",
    "RecordSink",
    "SinkFactory",
    "project",
    "to_json_line",
]
