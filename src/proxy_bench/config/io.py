from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from proxy_bench.config.errors import ConfigurationError


def load_simple_yaml(path: str | Path) -> dict[str, Any]:
    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Config file does not exist: {file_path}")

    try:
        payload = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {file_path}: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigurationError(f"Top-level YAML document must be a mapping in {file_path}")
    return payload


def load_json_file(path: str | Path) -> Any:
    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"JSON file does not exist: {file_path}")

    try:
        return json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Unable to read {file_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in {file_path}: {exc}") from exc


def read_text_lines(path: str | Path) -> list[str]:
    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Text file does not exist: {file_path}")

    try:
        text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Unable to read {file_path}: {exc}") from exc
    return [line.strip() for line in text.splitlines() if line.strip()]
