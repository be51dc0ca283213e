from __future__ import annotations

import json
from pathlib import Path
from threading import Thread

from proxy_bench.events import ProbeEvent, ResultStore, load_event_file


def _event(index: int) -> ProbeEvent:
    return ProbeEvent(
        vendor=f"vendor-{index % 3}",
        ok=index % 4 != 0,
        blocked=False,
        failure_reason=None if index % 4 != 0 else "error",
        timestamp=float(1000 - index),
        total=float(index),
    )


def test_concurrent_appends_are_not_lost() -> None:
    store = ResultStore()

    def _writer(offset: int) -> None:
        for index in range(offset, offset + 250):
            store.append(_event(index))

    workers = [Thread(target=_writer, args=(offset,)) for offset in range(0, 2000, 250)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join()

    assert len(store) == 2000
    timestamps = [event.timestamp for event in store.events()]
    assert timestamps == sorted(timestamps)


def test_written_files_are_readable_offline(tmp_path: Path) -> None:
    store = ResultStore()
    store.extend(_event(index) for index in range(10))

    batch_path = store.write_batch(tmp_path / "out" / "results.json", extra={"run_id": "r1"})
    stream_path = store.write_stream(tmp_path / "out" / "samples.ndjson")

    payload = json.loads(batch_path.read_text(encoding="utf-8"))
    assert payload["run_id"] == "r1"
    assert len(payload["results"]) == 10
    assert load_event_file(batch_path) == store.events()
    assert load_event_file(stream_path) == store.events()
