from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass
import logging
from threading import Lock, Thread
import time
from typing import Any

from proxy_bench.config.errors import ConfigurationError
from proxy_bench.events.fields import normalize_record
from proxy_bench.events.model import ProbeEvent
from proxy_bench.events.store import ResultStore
from proxy_bench.probing.base import Probe, ProbeContext
from proxy_bench.queries.source import QuerySource
from proxy_bench.scheduler.classify import classify_probe_error
from proxy_bench.vendors.registry import Vendor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlateauRecord:
    concurrency: int
    vendor: str
    started_at: float
    finished_at: float
    attempts: int
    ok: int

    @property
    def duration_s(self) -> float:
        return self.finished_at - self.started_at


class _PlateauTally:
    def __init__(self) -> None:
        self.lock = Lock()
        self.attempts = 0
        self.ok = 0
        self.events: list[ProbeEvent] = []

    def record(self, event: ProbeEvent) -> None:
        with self.lock:
            self.attempts += 1
            if event.ok:
                self.ok += 1
            self.events.append(event)


class LoadScheduler:
    """Drives time-boxed concurrency plateaus against each vendor in turn.

    For every plateau size and vendor, exactly ``size`` worker threads loop
    until the plateau deadline passes. The deadline is only checked before a
    new attempt starts; an in-flight probe always finishes and is recorded.
    Vendors never overlap: all workers are joined before the next one starts.
    An exception anywhere in an attempt becomes a failed event, so a worker
    never dies mid-plateau.
    """

    def __init__(
        self,
        probe: Probe,
        query_source: QuerySource,
        *,
        store: ResultStore | None = None,
        context: ProbeContext | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._probe = probe
        self._queries = query_source
        self._store = store if store is not None else ResultStore()
        self._context = context or ProbeContext()
        self._clock = clock
        self._wall_clock = wall_clock
        self._plateaus: list[PlateauRecord] = []

    @property
    def store(self) -> ResultStore:
        return self._store

    def plateau_log(self) -> list[dict[str, Any]]:
        return [dict(asdict(record), duration_s=record.duration_s) for record in self._plateaus]

    def run(
        self,
        plateau_sizes: Sequence[int],
        plateau_duration_s: float,
        vendors: Sequence[Vendor],
    ) -> list[ProbeEvent]:
        sizes = _validate_sizes(plateau_sizes)
        if isinstance(plateau_duration_s, bool) or not isinstance(plateau_duration_s, (int, float)) or plateau_duration_s <= 0:
            raise ConfigurationError(f"Plateau duration must be a positive number, got {plateau_duration_s!r}.")
        if not vendors:
            raise ConfigurationError("Vendor list is empty.")

        produced: list[ProbeEvent] = []
        for size in sizes:
            for vendor in vendors:
                produced.extend(self._run_plateau(size, float(plateau_duration_s), vendor))
        return produced

    def _run_plateau(self, size: int, duration_s: float, vendor: Vendor) -> list[ProbeEvent]:
        logger.info("Plateau start: vendor=%s concurrency=%s duration=%.1fs", vendor.name, size, duration_s)
        tally = _PlateauTally()
        started_at = self._wall_clock()
        deadline = self._clock() + duration_s

        workers = [
            Thread(
                target=self._worker_loop,
                args=(vendor, size, deadline, tally),
                name=f"probe-{vendor.name}-{size}-{index}",
                daemon=True,
            )
            for index in range(size)
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

        record = PlateauRecord(
            concurrency=size,
            vendor=vendor.name,
            started_at=started_at,
            finished_at=self._wall_clock(),
            attempts=tally.attempts,
            ok=tally.ok,
        )
        self._plateaus.append(record)
        logger.info(
            "Plateau finish: vendor=%s concurrency=%s attempts=%s ok=%s",
            vendor.name,
            size,
            record.attempts,
            record.ok,
        )
        return list(tally.events)

    def _worker_loop(self, vendor: Vendor, concurrency: int, deadline: float, tally: _PlateauTally) -> None:
        while self._clock() < deadline:
            event = self.attempt(vendor, self._queries.next(), concurrency)
            self._store.append(event)
            tally.record(event)

    def attempt(self, vendor: Vendor, query: str, concurrency: int | None = None) -> ProbeEvent:
        timestamp_ms = self._wall_clock() * 1000.0
        base = {
            "vendor": vendor.name,
            "query": query,
            "ts": timestamp_ms,
            "concurrency": concurrency,
        }

        try:
            outcome = self._probe.probe(vendor, query, self._context)
            record = dict(outcome.to_record(), **base)
            if outcome.ok and not outcome.top_k:
                record["ok"] = False
                record["failure_reason"] = outcome.block_type or "no-results"
            event = normalize_record(record)
        except Exception as exc:
            failure = classify_probe_error(exc)
            logger.info("Probe failed: vendor=%s query=%r reason=%s error=%s", vendor.name, query, failure.reason, failure.error)
            return normalize_record(
                dict(
                    base,
                    ok=False,
                    blocked=failure.blocked,
                    failure_reason=failure.reason,
                    error=failure.error,
                )
            )

        if not event.ok:
            logger.info("Probe failed: vendor=%s query=%r reason=%s", vendor.name, query, event.failure_reason)
        return event


def _validate_sizes(plateau_sizes: Sequence[int]) -> list[int]:
    sizes = list(plateau_sizes)
    if not sizes:
        raise ConfigurationError("At least one plateau size is required.")
    for size in sizes:
        if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
            raise ConfigurationError(f"Plateau sizes must be positive integers, got {size!r}.")
    return sizes
