from __future__ import annotations

import json
from pathlib import Path

import pytest

from proxy_bench.cli import main
from proxy_bench.events import load_event_file
from proxy_bench.runs import run_aggregate, run_bench

CONFIG_TEMPLATE = """\
name: runner_smoke
seed: 3
vendors_file: vendors.json
concurrency: [1, 2]
plateau_sec: 0.05
top_k: 5
price_per_gb: 2.5
probe:
  backend: simulated
  options:
    time_scale: 0.001
    profiles:
      vendor-a:
        failure_rate: 0.0
        captcha_rate: 0.0
        geo: us
"""


@pytest.fixture()
def bench_config(tmp_path: Path) -> Path:
    (tmp_path / "vendors.json").write_text(
        json.dumps(
            [
                {"name": "vendor-a", "proxy": "http://proxy-a.example:8000"},
                {"name": "direct", "proxy": None},
            ]
        ),
        encoding="utf-8",
    )
    config_path = tmp_path / "bench.yaml"
    config_path.write_text(CONFIG_TEMPLATE, encoding="utf-8")
    return config_path


def test_run_bench_writes_all_artifacts(bench_config: Path, tmp_path: Path) -> None:
    result = run_bench(config_path=bench_config, output_root=tmp_path / "runs", run_id="smoke-run")

    run_dir = Path(result.run_dir)
    assert run_dir == (tmp_path / "runs" / "smoke-run").resolve()
    for name in ("run_metadata.json", "results.json", "samples.ndjson", "summary.json"):
        assert (run_dir / name).exists()

    assert result.event_count > 0
    assert len(load_event_file(result.results_path)) == result.event_count
    assert load_event_file(result.samples_path) == load_event_file(result.results_path)

    results = json.loads(Path(result.results_path).read_text(encoding="utf-8"))
    assert [(entry["concurrency"], entry["vendor"]) for entry in results["plateaus"]] == [
        (1, "direct"),
        (1, "vendor-a"),
        (2, "direct"),
        (2, "vendor-a"),
    ]
    assert results["summary"]["baseline"] == "direct"
    assert set(results["summary"]["vendors"]) == {"direct", "vendor-a"}

    summary = json.loads(Path(result.summary_path).read_text(encoding="utf-8"))
    assert summary["run_id"] == "smoke-run"
    assert summary["all_passed"] == result.all_passed
    vendor_a = summary["vendors"]["vendor-a"]
    assert vendor_a["metrics"]["reliability"]["success_rate"] == 1.0
    assert vendor_a["metrics"]["cost_per_1k_successes"] is not None
    assert vendor_a["metrics"]["geo"]["geo_accuracy"] == 1.0
    assert "criteria" in vendor_a["decision"]


def test_run_aggregate_matches_live_run(bench_config: Path, tmp_path: Path) -> None:
    live = run_bench(config_path=bench_config, output_root=tmp_path / "runs", run_id="agg-run")

    offline = run_aggregate([live.samples_path], top_k=5, price_per_gb=2.5, output_path=tmp_path / "agg.json")

    assert offline.event_count == live.event_count
    assert offline.summary["baseline"] == "direct"
    assert offline.output_path is not None
    written = json.loads(Path(offline.output_path).read_text(encoding="utf-8"))
    live_summary = json.loads(Path(live.summary_path).read_text(encoding="utf-8"))
    assert written["vendors"]["vendor-a"]["metrics"] == live_summary["vendors"]["vendor-a"]["metrics"]


def test_cli_run_and_aggregate(bench_config: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = main(
        [
            "--log-level",
            "WARNING",
            "run",
            "--config",
            str(bench_config),
            "--output-root",
            str(tmp_path / "runs"),
            "--run-id",
            "cli-run",
        ]
    )
    assert exit_code == 0
    printed = json.loads(capsys.readouterr().out)
    assert printed["run_id"] == "cli-run"
    assert printed["event_count"] > 0

    exit_code = main(["aggregate", printed["results_path"], "--min-samples", "1"])
    assert exit_code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["event_count"] == printed["event_count"]
    assert summary["min_samples"] == 1


def test_cli_aggregate_without_events_exits_2(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    empty = tmp_path / "samples.ndjson"
    empty.write_text("\n", encoding="utf-8")

    assert main(["aggregate", str(empty)]) == 2
    assert capsys.readouterr().out == ""


def test_cli_configuration_error_exits_2(tmp_path: Path) -> None:
    assert main(["run", "--config", str(tmp_path / "missing.yaml")]) == 2


def test_cli_bad_vendor_file_exits_2(tmp_path: Path) -> None:
    (tmp_path / "vendors.json").write_text("[]", encoding="utf-8")
    config_path = tmp_path / "bench.yaml"
    config_path.write_text("vendors_file: vendors.json\nplateau_sec: 0.01\n", encoding="utf-8")

    assert main(["run", "--config", str(config_path), "--output-root", str(tmp_path / "runs")]) == 2
