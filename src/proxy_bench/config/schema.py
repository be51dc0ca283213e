from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
import hashlib
import json
import os
from pathlib import Path
import platform
import re
import socket
from typing import Any
import uuid

from proxy_bench.config.errors import ConfigurationError
from proxy_bench.config.io import load_simple_yaml
from proxy_bench.metrics.decision import DEFAULT_THRESHOLDS, DecisionThresholds

DEFAULT_CONCURRENCY: tuple[int, ...] = (1, 5, 10)
DEFAULT_PLATEAU_SEC = 60.0
DEFAULT_TOP_K = 10


@dataclass(frozen=True)
class HostInfo:
    hostname: str
    os_name: str
    os_version: str
    machine: str
    python_version: str
    cpu_count: int | None


@dataclass(frozen=True)
class RunMetadata:
    run_id: str
    created_at_utc: str
    bench_name: str
    config_path: str
    input_digests: dict[str, str]
    baseline: str
    vendors: list[str]
    concurrency: list[int]
    plateau_sec: float
    probe_backend: str
    seed: int | None
    host: HostInfo
    notes: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BenchConfig:
    name: str
    config_path: str
    baseline: str = "direct"
    seed: int | None = None
    vendors_file: Path | None = None
    queries_file: Path | None = None
    concurrency: tuple[int, ...] = DEFAULT_CONCURRENCY
    plateau_sec: float = DEFAULT_PLATEAU_SEC
    top_k: int = DEFAULT_TOP_K
    price_per_gb: float | None = None
    min_samples: int = 0
    probe_backend: str = "simulated"
    probe_options: dict[str, Any] = field(default_factory=dict)
    thresholds: DecisionThresholds = DEFAULT_THRESHOLDS


def generate_run_id(bench_name: str = "bench") -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", bench_name.lower()).strip("-") or "bench"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"{slug}-{timestamp}-{uuid.uuid4().hex[:8]}"


def _file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def compute_input_digests(config: BenchConfig) -> dict[str, str]:
    """SHA-256 of every input file that shaped the run, keyed by role.

    The run config must exist; vendor and query files are optional inputs
    and are skipped when the built-in defaults were used.
    """
    config_path = Path(config.config_path)
    if not config_path.is_file():
        raise ConfigurationError(f"Config file does not exist: {config_path}")

    digests = {"config": _file_sha256(config_path)}
    for role, path in (("vendors", config.vendors_file), ("queries", config.queries_file)):
        if path is not None and path.is_file():
            digests[role] = _file_sha256(path)
    return digests


def collect_host_info() -> HostInfo:
    return HostInfo(
        hostname=socket.gethostname(),
        os_name=platform.system(),
        os_version=platform.version(),
        machine=platform.machine(),
        python_version=platform.python_version(),
        cpu_count=os.cpu_count(),
    )


def create_run_metadata(
    config: BenchConfig,
    *,
    baseline: str,
    vendors: list[str],
    run_id: str | None = None,
    notes: dict[str, Any] | None = None,
) -> RunMetadata:
    return RunMetadata(
        run_id=run_id or generate_run_id(config.name),
        created_at_utc=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        bench_name=config.name,
        config_path=config.config_path,
        input_digests=compute_input_digests(config),
        baseline=baseline,
        vendors=list(vendors),
        concurrency=list(config.concurrency),
        plateau_sec=config.plateau_sec,
        probe_backend=config.probe_backend,
        seed=config.seed,
        host=collect_host_info(),
        notes=notes or {},
    )


def write_run_metadata(metadata: RunMetadata, run_dir: str | Path) -> Path:
    directory = Path(run_dir)
    directory.mkdir(parents=True, exist_ok=True)
    output_path = directory / "run_metadata.json"
    output_path.write_text(json.dumps(metadata.to_dict(), indent=2, sort_keys=True), encoding="utf-8")
    return output_path


def load_bench_config(config_path: str | Path) -> BenchConfig:
    path = Path(config_path)
    payload = load_simple_yaml(path)
    return bench_config_from_mapping(payload, config_path=path)


def bench_config_from_mapping(payload: dict[str, Any], *, config_path: str | Path) -> BenchConfig:
    path = Path(config_path)
    base_dir = path.resolve().parent

    probe_section = _as_mapping(payload.get("probe"), "probe")
    probe_options = _as_mapping(probe_section.get("options"), "probe.options")

    return BenchConfig(
        name=_safe_str(payload.get("name"), "proxy-bench"),
        config_path=str(path.resolve()),
        baseline=_safe_str(payload.get("baseline"), "direct"),
        seed=_optional_int(payload.get("seed"), "seed"),
        vendors_file=_resolve_path(payload.get("vendors_file"), base_dir),
        queries_file=_resolve_path(payload.get("queries_file"), base_dir),
        concurrency=_positive_int_list(payload.get("concurrency"), "concurrency"),
        plateau_sec=_positive_float(payload.get("plateau_sec"), "plateau_sec", DEFAULT_PLATEAU_SEC),
        top_k=_positive_int(payload.get("top_k"), "top_k", DEFAULT_TOP_K),
        price_per_gb=_optional_float(payload.get("price_per_gb"), "price_per_gb"),
        min_samples=max(0, _optional_int(payload.get("min_samples"), "min_samples") or 0),
        probe_backend=_safe_str(probe_section.get("backend"), "simulated"),
        probe_options=dict(probe_options),
        thresholds=_thresholds(payload.get("thresholds")),
    )


def _thresholds(value: Any) -> DecisionThresholds:
    overrides = _as_mapping(value, "thresholds")
    try:
        return DecisionThresholds.from_mapping(overrides)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid 'thresholds' section: {exc}") from exc


def _resolve_path(value: Any, base_dir: Path) -> Path | None:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError("File paths in the run config must be non-empty strings.")
    candidate = Path(value.strip()).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return candidate


def _positive_int_list(value: Any, key_name: str) -> tuple[int, ...]:
    if value is None:
        return DEFAULT_CONCURRENCY
    if isinstance(value, str):
        value = [part.strip() for part in value.split(",") if part.strip()]
    if not isinstance(value, list) or not value:
        raise ConfigurationError(f"'{key_name}' must be a non-empty list of positive integers.")
    parsed = tuple(_positive_int(item, key_name, None) for item in value)
    return parsed


def _positive_int(value: Any, key_name: str, default: int | None) -> int:
    if value is None and default is not None:
        return default
    parsed = _optional_int(value, key_name)
    if parsed is None or parsed <= 0:
        raise ConfigurationError(f"'{key_name}' must be a positive integer, got {value!r}.")
    return parsed


def _positive_float(value: Any, key_name: str, default: float) -> float:
    if value is None:
        return default
    parsed = _optional_float(value, key_name)
    if parsed is None or parsed <= 0:
        raise ConfigurationError(f"'{key_name}' must be a positive number, got {value!r}.")
    return parsed


def _optional_int(value: Any, key_name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigurationError(f"'{key_name}' must be an integer, got {value!r}.")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped and (stripped.isdigit() or (stripped.startswith("-") and stripped[1:].isdigit())):
            return int(stripped)
    raise ConfigurationError(f"'{key_name}' must be an integer, got {value!r}.")


def _optional_float(value: Any, key_name: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigurationError(f"'{key_name}' must be a number, got {value!r}.")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            pass
    raise ConfigurationError(f"'{key_name}' must be a number, got {value!r}.")


def _safe_str(value: Any, default: str) -> str:
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            return stripped
    return default


def _as_mapping(value: Any, key_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"Expected '{key_name}' to be a mapping.")
    return value
