"""Field reconciliation shared by every ingestion path.

Both persisted formats (and the live scheduler) funnel their records through
:func:`normalize_record`, so an event looks the same no matter where it came
from.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
import math
from typing import Any

from proxy_bench.events.model import STAGES, ProbeEvent

# canonical field -> accepted input names, first match wins
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "vendor": ("vendor", "path"),
    "ok": ("ok",),
    "blocked": ("blocked",),
    "captcha": ("captcha",),
    "query": ("query", "q"),
    "timestamp": ("ts", "timestamp"),
    "failure_reason": ("failure_reason", "failureReason", "blockType", "block_type"),
    "error": ("error", "err"),
    "concurrency": ("concurrency", "conc"),
    "dns": ("dns", "dns_ms"),
    "connect": ("connect", "connect_ms", "tcp_ms"),
    "tls": ("tls", "tls_ms"),
    "ttfb": ("ttfb", "ttfb_ms"),
    "content_download": ("content_download", "contentDownload", "content_download_ms", "download_ms"),
    "total": ("total", "total_ms"),
    "top_k": ("topK", "top_k", "topk", "top10", "results"),
    "session_id": ("session_id", "sessionId", "session"),
    "observed_ip": ("observed_ip", "observedIp", "ip"),
    "observed_asn": ("observed_asn", "observedAsn", "asn"),
    "hint_geo": ("hint_geo", "hintGeo"),
    "observed_geo": ("observed_geo", "observedGeo"),
    "bytes_up": ("bytes_up", "bytesUp"),
    "bytes_down": ("bytes_down", "bytesDown"),
}

# stage -> (start mark, end mark) in a Navigation Timing entry
RAW_STAGE_BOUNDS: dict[str, tuple[str, str]] = {
    "dns": ("domainLookupStart", "domainLookupEnd"),
    "connect": ("connectStart", "connectEnd"),
    "tls": ("secureConnectionStart", "connectEnd"),
    "ttfb": ("requestStart", "responseStart"),
    "content_download": ("responseStart", "responseEnd"),
    "total": ("startTime", "loadEventEnd"),
}

# marks reported as 0 when the phase did not happen
_ZERO_MEANS_ABSENT = frozenset({"secureConnectionStart"})


def lookup(record: Mapping[str, Any], field_name: str) -> Any:
    for alias in FIELD_ALIASES[field_name]:
        value = record.get(alias)
        if value is not None:
            return value
    return None


def normalize_record(record: Mapping[str, Any]) -> ProbeEvent:
    blocked = _safe_bool(lookup(record, "blocked"))
    ok = _safe_bool(lookup(record, "ok")) and not blocked
    error = _safe_optional_str(lookup(record, "error"))

    failure_reason: str | None = None
    if not ok:
        failure_reason = _safe_optional_str(lookup(record, "failure_reason"))
        if _safe_bool(lookup(record, "captcha")):
            failure_reason = "captcha"
        elif failure_reason is None:
            if error is not None:
                failure_reason = "error"
            elif blocked:
                failure_reason = "blocked"
            else:
                failure_reason = "no-results"

    raw = record.get("raw")
    raw_timings = raw if isinstance(raw, Mapping) else {}

    stages = {stage: _stage_value(record, raw_timings, stage) for stage in STAGES}

    return ProbeEvent(
        vendor=_safe_optional_str(lookup(record, "vendor")) or "unknown",
        ok=ok,
        blocked=blocked,
        query=_safe_optional_str(lookup(record, "query")),
        timestamp=parse_timestamp(lookup(record, "timestamp")),
        failure_reason=failure_reason,
        concurrency=_safe_optional_int(lookup(record, "concurrency")),
        top_k=_top_k(lookup(record, "top_k")),
        session_id=_safe_optional_str(lookup(record, "session_id")),
        observed_ip=_safe_optional_str(lookup(record, "observed_ip")),
        observed_asn=_safe_optional_str(lookup(record, "observed_asn")),
        hint_geo=_safe_optional_str(lookup(record, "hint_geo")),
        observed_geo=_safe_optional_str(lookup(record, "observed_geo")),
        bytes_up=_safe_byte_count(lookup(record, "bytes_up")),
        bytes_down=_safe_byte_count(lookup(record, "bytes_down")),
        error=error,
        **stages,
    )


def parse_timestamp(value: Any) -> float | None:
    numeric = _finite_float(value)
    if numeric is not None:
        return numeric
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp() * 1000.0
    return None


def _stage_value(record: Mapping[str, Any], raw_timings: Mapping[str, Any], stage: str) -> float | None:
    direct = _finite_float(lookup(record, stage))
    if direct is not None and direct >= 0:
        return direct

    start_key, end_key = RAW_STAGE_BOUNDS[stage]
    start = _finite_float(raw_timings.get(start_key))
    end = _finite_float(raw_timings.get(end_key))
    if start is None or end is None:
        return None
    if start_key in _ZERO_MEANS_ABSENT and start == 0:
        return None
    duration = end - start
    if duration < 0:
        return None
    return duration


def _top_k(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    identifiers: list[str] = []
    for item in value:
        if isinstance(item, Mapping):
            item = item.get("url", item.get("id"))
        identifier = _safe_optional_str(item)
        if identifier is not None:
            identifiers.append(identifier)
    return tuple(identifiers)


def _finite_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and math.isfinite(float(value)):
        return float(value)
    return None


def _safe_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return False


def _safe_optional_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    return None


def _safe_byte_count(value: Any) -> int | None:
    numeric = _finite_float(value)
    if numeric is None or numeric < 0:
        return None
    return int(numeric)


def _safe_optional_str(value: Any) -> str | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            return stripped
    return None
