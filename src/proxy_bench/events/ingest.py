from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
import json
import logging
from pathlib import Path
from typing import Any

from proxy_bench.events.fields import normalize_record
from proxy_bench.events.model import ProbeEvent, sort_events

logger = logging.getLogger(__name__)

STREAM_SUFFIXES = frozenset({".ndjson", ".jsonl", ".log"})
BATCH_FILENAME = "results.json"


class IngestionError(ValueError):
    """A persisted result file could not be ingested."""


@dataclass(frozen=True)
class IngestionFailure:
    path: str
    error: str


@dataclass(frozen=True)
class IngestionReport:
    events: list[ProbeEvent]
    failures: list[IngestionFailure] = field(default_factory=list)
    files_loaded: int = 0


def flatten_batch_record(record: Mapping[str, Any]) -> dict[str, Any]:
    flat = {key: value for key, value in record.items() if key != "timings"}
    timings = record.get("timings")
    if isinstance(timings, Mapping):
        for key, value in timings.items():
            if key == "raw":
                continue
            flat[key] = value
        raw = timings.get("raw")
        if isinstance(raw, Mapping):
            flat["raw"] = raw
    return flat


def parse_batch_document(payload: Any) -> list[ProbeEvent]:
    if not isinstance(payload, Mapping):
        raise IngestionError("Batch document must be a JSON object.")
    records = payload.get("results")
    if not isinstance(records, list):
        raise IngestionError("Batch document must contain a 'results' array.")

    events: list[ProbeEvent] = []
    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise IngestionError(f"Batch record #{index} is not a JSON object.")
        events.append(normalize_record(flatten_batch_record(record)))
    return events


def parse_event_lines(lines: Iterable[str]) -> list[ProbeEvent]:
    events: list[ProbeEvent] = []
    for line_no, raw_line in enumerate(lines, start=1):
        line = raw_line.strip()
        if not line:
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed event line %s", line_no)
            continue
        if not isinstance(payload, Mapping):
            logger.debug("Skipping non-object event line %s", line_no)
            continue
        events.append(normalize_record(payload))
    return events


def _decode_lines(data: bytes) -> Iterator[str]:
    """Yield UTF-8 lines, dropping any single line that does not decode."""
    for line_no, raw_line in enumerate(data.splitlines(), start=1):
        try:
            yield raw_line.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Skipping undecodable event line %s", line_no)


def load_event_file(path: str | Path) -> list[ProbeEvent]:
    file_path = Path(path)
    try:
        data = file_path.read_bytes()
    except OSError as exc:
        raise IngestionError(f"Unable to read {file_path}: {exc}") from exc

    name = file_path.name.lower()
    if file_path.suffix.lower() in STREAM_SUFFIXES or "samples" in name:
        return parse_event_lines(_decode_lines(data))

    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        if name == BATCH_FILENAME:
            raise IngestionError(f"Invalid batch document {file_path}: {exc}") from exc
        payload = None

    if name == BATCH_FILENAME or (isinstance(payload, Mapping) and "results" in payload):
        return parse_batch_document(payload)
    return parse_event_lines(_decode_lines(data))


def load_event_files(paths: Iterable[str | Path], max_workers: int = 4) -> IngestionReport:
    file_paths = [Path(path) for path in paths]
    if not file_paths:
        return IngestionReport(events=[])

    def _load(path: Path) -> tuple[Path, list[ProbeEvent], IngestionFailure | None]:
        try:
            return (path, load_event_file(path), None)
        except IngestionError as exc:
            return (path, [], IngestionFailure(path=str(path), error=str(exc)))

    worker_count = max(1, min(max_workers, len(file_paths)))
    with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="ingest") as pool:
        outcomes = list(pool.map(_load, file_paths))

    events: list[ProbeEvent] = []
    failures: list[IngestionFailure] = []
    for path, loaded, failure in outcomes:
        if failure is not None:
            logger.error("Failed to ingest %s: %s", path, failure.error)
            failures.append(failure)
            continue
        logger.info("Loaded %s event(s) from %s", len(loaded), path)
        events.extend(loaded)

    return IngestionReport(
        events=sort_events(events),
        failures=failures,
        files_loaded=len(file_paths) - len(failures),
    )


def event_to_batch_record(event: ProbeEvent) -> dict[str, Any]:
    return {
        "vendor": event.vendor,
        "query": event.query,
        "ok": event.ok,
        "blocked": event.blocked,
        "blockType": event.failure_reason,
        "error": event.error,
        "ts": event.timestamp,
        "conc": event.concurrency,
        "timings": {
            "dns": event.dns,
            "connect": event.connect,
            "tls": event.tls,
            "ttfb": event.ttfb,
            "contentDownload": event.content_download,
            "total": event.total,
        },
        "results": [{"url": identifier} for identifier in event.top_k],
        "sessionId": event.session_id,
        "observedIp": event.observed_ip,
        "observedAsn": event.observed_asn,
        "hintGeo": event.hint_geo,
        "observedGeo": event.observed_geo,
        "bytesUp": event.bytes_up,
        "bytesDown": event.bytes_down,
    }


def event_to_stream_record(event: ProbeEvent) -> dict[str, Any]:
    record = {
        "vendor": event.vendor,
        "q": event.query,
        "ok": event.ok,
        "blocked": event.blocked,
        "failure_reason": event.failure_reason,
        "err": event.error,
        "ts": event.timestamp,
        "conc": event.concurrency,
        "dns_ms": event.dns,
        "connect_ms": event.connect,
        "tls_ms": event.tls,
        "ttfb_ms": event.ttfb,
        "content_download_ms": event.content_download,
        "total_ms": event.total,
        "topk": list(event.top_k),
        "session_id": event.session_id,
        "ip": event.observed_ip,
        "asn": event.observed_asn,
        "hint_geo": event.hint_geo,
        "observed_geo": event.observed_geo,
        "bytes_up": event.bytes_up,
        "bytes_down": event.bytes_down,
    }
    return {key: value for key, value in record.items() if value is not None}
