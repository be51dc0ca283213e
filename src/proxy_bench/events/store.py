from __future__ import annotations

from collections.abc import Iterable
import json
from pathlib import Path
from threading import Lock
from typing import Any

from proxy_bench.events.ingest import event_to_batch_record, event_to_stream_record
from proxy_bench.events.model import ProbeEvent, sort_events


class ResultStore:
    """Append-only event buffer shared by concurrent probe workers."""

    def __init__(self, events: Iterable[ProbeEvent] | None = None) -> None:
        self._lock = Lock()
        self._events: list[ProbeEvent] = list(events or [])

    def append(self, event: ProbeEvent) -> None:
        with self._lock:
            self._events.append(event)

    def extend(self, events: Iterable[ProbeEvent]) -> None:
        batch = list(events)
        with self._lock:
            self._events.extend(batch)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def events(self) -> list[ProbeEvent]:
        with self._lock:
            snapshot = list(self._events)
        return sort_events(snapshot)

    def write_batch(self, path: str | Path, extra: dict[str, Any] | None = None) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        payload: dict[str, Any] = dict(extra or {})
        payload["results"] = [event_to_batch_record(event) for event in self.events()]
        output_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        return output_path

    def write_stream(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding="utf-8") as handle:
            for event in self.events():
                handle.write(json.dumps(event_to_stream_record(event), sort_keys=True))
                handle.write("\n")
        return output_path
