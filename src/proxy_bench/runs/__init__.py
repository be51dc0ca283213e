from proxy_bench.runs.runner import (
    AggregateRunResult,
    BenchRunResult,
    build_summary,
    evaluate,
    run_aggregate,
    run_bench,
    summarize_events,
)

__all__ = [
    "AggregateRunResult",
    "BenchRunResult",
    "build_summary",
    "evaluate",
    "run_aggregate",
    "run_bench",
    "summarize_events",
]
