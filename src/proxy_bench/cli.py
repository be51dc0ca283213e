from __future__ import annotations

import argparse
import json
import logging

from rich.console import Console
from rich.logging import RichHandler

from proxy_bench.config.errors import ConfigurationError
from proxy_bench.runs.runner import run_aggregate, run_bench

logger = logging.getLogger(__name__)


def _configure_logging(level_name: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
    )


def cmd_run(args: argparse.Namespace) -> int:
    result = run_bench(
        config_path=args.config,
        output_root=args.output_root,
        run_id=args.run_id,
    )
    print(
        json.dumps(
            {
                "run_id": result.run_id,
                "run_dir": result.run_dir,
                "metadata_path": result.metadata_path,
                "results_path": result.results_path,
                "samples_path": result.samples_path,
                "summary_path": result.summary_path,
                "event_count": result.event_count,
                "all_passed": result.all_passed,
            },
            indent=2,
            sort_keys=True,
        )
    )
    return 0


def cmd_aggregate(args: argparse.Namespace) -> int:
    result = run_aggregate(
        args.files,
        baseline=args.baseline,
        top_k=args.top_k,
        price_per_gb=args.price_per_gb,
        min_samples=args.min_samples,
        output_path=args.output,
    )
    if result.event_count == 0:
        logger.error("No events loaded from %s file(s).", len(args.files))
        return 2

    print(json.dumps(result.summary, indent=2, sort_keys=True))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="proxy-bench",
        description="Benchmark proxy vendors against a direct baseline and decide PASS/FAIL per vendor.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for the run.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run",
        help="Probe every vendor across the configured concurrency plateaus and write run artifacts.",
    )
    run_parser.add_argument(
        "--config",
        required=True,
        help="Path to the run YAML config.",
    )
    run_parser.add_argument(
        "--output-root",
        default="outputs/runs",
        help="Directory where outputs/runs/<run_id>/ artifacts will be written.",
    )
    run_parser.add_argument(
        "--run-id",
        default=None,
        help="Optional explicit run_id; autogenerated when omitted.",
    )
    run_parser.set_defaults(func=cmd_run)

    aggregate_parser = subparsers.add_parser(
        "aggregate",
        help="Aggregate persisted result files (batch JSON or NDJSON samples) offline.",
    )
    aggregate_parser.add_argument(
        "files",
        nargs="+",
        help="One or more results.json / samples.ndjson files.",
    )
    aggregate_parser.add_argument(
        "--baseline",
        default="direct",
        help="Baseline vendor name; falls back to the first vendor seen.",
    )
    aggregate_parser.add_argument(
        "--top-k",
        type=int,
        default=10,
        help="Number of leading result identifiers compared for correctness.",
    )
    aggregate_parser.add_argument(
        "--price-per-gb",
        type=float,
        default=None,
        help="Vendor price per GiB; enables cost per 1000 successes.",
    )
    aggregate_parser.add_argument(
        "--min-samples",
        type=int,
        default=0,
        help="Fail vendors with fewer events than this (0 disables the check).",
    )
    aggregate_parser.add_argument(
        "--output",
        default=None,
        help="Optional path for the summary JSON.",
    )
    aggregate_parser.set_defaults(func=cmd_aggregate)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    try:
        return args.func(args)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 2
    except Exception as exc:  # pragma: no cover - CLI boundary
        logger.exception("Error: %s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
