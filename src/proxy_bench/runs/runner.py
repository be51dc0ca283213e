from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
from pathlib import Path
from time import perf_counter
from typing import Any

from proxy_bench.config.schema import (
    create_run_metadata,
    load_bench_config,
    write_run_metadata,
)
from proxy_bench.events.ingest import IngestionReport, load_event_files
from proxy_bench.events.model import ProbeEvent
from proxy_bench.events.store import ResultStore
from proxy_bench.metrics.aggregator import AggregateResult, aggregate_events
from proxy_bench.metrics.decision import DEFAULT_THRESHOLDS, Decision, DecisionThresholds, decide
from proxy_bench.probing.base import Probe, ProbeContext
from proxy_bench.probing.loader import load_probe
from proxy_bench.queries.source import load_queries
from proxy_bench.scheduler.load import LoadScheduler
from proxy_bench.vendors.registry import load_vendors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BenchRunResult:
    run_id: str
    run_dir: str
    metadata_path: str
    results_path: str
    samples_path: str
    summary_path: str
    event_count: int
    all_passed: bool


@dataclass(frozen=True)
class AggregateRunResult:
    summary: dict[str, Any]
    report: IngestionReport
    output_path: str | None = None

    @property
    def event_count(self) -> int:
        return len(self.report.events)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def evaluate(
    aggregate: AggregateResult,
    thresholds: DecisionThresholds = DEFAULT_THRESHOLDS,
    min_samples: int = 0,
) -> dict[str, Decision]:
    return {
        vendor: decide(metrics, thresholds=thresholds, min_samples=min_samples)
        for vendor, metrics in aggregate.metrics.items()
    }


def build_summary(
    aggregate: AggregateResult,
    thresholds: DecisionThresholds = DEFAULT_THRESHOLDS,
    min_samples: int = 0,
) -> dict[str, Any]:
    decisions = evaluate(aggregate, thresholds=thresholds, min_samples=min_samples)
    vendors: dict[str, Any] = {}
    for vendor, metrics in aggregate.metrics.items():
        decision = decisions[vendor]
        vendors[vendor] = {
            "metrics": metrics.to_dict(),
            "decision": decision.to_dict(),
        }
        logger.info(
            "%s: %s (%s)",
            vendor,
            "PASS" if decision.pass_ else "FAIL",
            decision.diagnosis.message,
        )

    return {
        "baseline": aggregate.baseline,
        "vendor_count": len(vendors),
        "min_samples": min_samples,
        "thresholds": thresholds.to_dict(),
        "vendors": vendors,
        "all_passed": bool(decisions) and all(decision.pass_ for decision in decisions.values()),
    }


def summarize_events(
    events: Iterable[ProbeEvent],
    *,
    baseline: str = "direct",
    top_k: int = 10,
    price_per_gb: float | None = None,
    thresholds: DecisionThresholds = DEFAULT_THRESHOLDS,
    min_samples: int = 0,
) -> dict[str, Any]:
    aggregate = aggregate_events(
        events,
        baseline_name=baseline,
        top_k=top_k,
        price_per_gb=price_per_gb,
    )
    return build_summary(aggregate, thresholds=thresholds, min_samples=min_samples)


def _write_json(path: Path, payload: dict[str, Any]) -> Path:
    path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    return path


def run_bench(
    *,
    config_path: str | Path,
    output_root: str | Path = "outputs/runs",
    run_id: str | None = None,
    probe: Probe | None = None,
) -> BenchRunResult:
    config = load_bench_config(config_path)
    registry = load_vendors(config.vendors_file, baseline_name=config.baseline)
    queries = load_queries(config.queries_file, seed=config.seed)
    if probe is None:
        probe = load_probe(config.probe_backend, config.probe_options, seed=config.seed)

    metadata = create_run_metadata(
        config,
        baseline=registry.baseline.name,
        vendors=registry.names,
        run_id=run_id,
        notes={"query_count": len(queries), "top_k": config.top_k},
    )
    run_dir = Path(output_root) / metadata.run_id
    metadata_path = write_run_metadata(metadata, run_dir)
    logger.info("Run %s: %s vendor(s), %s queries", metadata.run_id, len(registry), len(queries))

    store = ResultStore()
    scheduler = LoadScheduler(
        probe,
        queries,
        store=store,
        context=ProbeContext(options=dict(config.probe_options), seed=config.seed, top_k=config.top_k),
    )

    started_at = _utc_now()
    wall_start = perf_counter()
    scheduler.run(config.concurrency, config.plateau_sec, list(registry))
    wall_time_s = perf_counter() - wall_start
    finished_at = _utc_now()

    summary = summarize_events(
        store.events(),
        baseline=registry.baseline.name,
        top_k=config.top_k,
        price_per_gb=config.price_per_gb,
        thresholds=config.thresholds,
        min_samples=config.min_samples,
    )
    summary.update(
        {
            "run_id": metadata.run_id,
            "name": config.name,
            "started_at_utc": started_at,
            "finished_at_utc": finished_at,
            "wall_time_s": wall_time_s,
            "event_count": len(store),
        }
    )
    plateaus = scheduler.plateau_log()

    results_path = store.write_batch(
        run_dir / "results.json",
        extra={
            "run_id": metadata.run_id,
            "plateaus": plateaus,
            "summary": summary,
        },
    )
    samples_path = store.write_stream(run_dir / "samples.ndjson")
    summary_path = _write_json(
        run_dir / "summary.json",
        summary,
    )
    logger.info("Wrote %s event(s) to %s", len(store), run_dir)

    return BenchRunResult(
        run_id=metadata.run_id,
        run_dir=str(run_dir.resolve()),
        metadata_path=str(metadata_path.resolve()),
        results_path=str(results_path.resolve()),
        samples_path=str(samples_path.resolve()),
        summary_path=str(summary_path.resolve()),
        event_count=len(store),
        all_passed=bool(summary["all_passed"]),
    )


def run_aggregate(
    paths: Iterable[str | Path],
    *,
    baseline: str = "direct",
    top_k: int = 10,
    price_per_gb: float | None = None,
    thresholds: DecisionThresholds = DEFAULT_THRESHOLDS,
    min_samples: int = 0,
    output_path: str | Path | None = None,
) -> AggregateRunResult:
    report = load_event_files(paths)
    summary = summarize_events(
        report.events,
        baseline=baseline,
        top_k=top_k,
        price_per_gb=price_per_gb,
        thresholds=thresholds,
        min_samples=min_samples,
    )
    summary["event_count"] = len(report.events)
    summary["files_loaded"] = report.files_loaded
    summary["failures"] = [{"path": failure.path, "error": failure.error} for failure in report.failures]

    written: str | None = None
    if output_path is not None:
        target = Path(output_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        written = str(_write_json(target, summary).resolve())

    return AggregateRunResult(summary=summary, report=report, output_path=written)
