from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from proxy_bench.vendors.registry import Vendor


class ProbeError(Exception):
    """A probe attempt failed in a way the adapter already classified."""

    def __init__(self, message: str, reason: str | None = None, blocked: bool = False) -> None:
        super().__init__(message)
        self.reason = reason
        self.blocked = blocked


@dataclass(frozen=True)
class ProbeContext:
    options: dict[str, Any] = field(default_factory=dict)
    seed: int | None = None
    top_k: int = 10


@dataclass(frozen=True)
class ProbeOutcome:
    ok: bool
    blocked: bool = False
    block_type: str | None = None
    timings: dict[str, Any] = field(default_factory=dict)
    top_k: tuple[str, ...] = ()
    session_id: str | None = None
    observed_ip: str | None = None
    observed_asn: str | None = None
    hint_geo: str | None = None
    observed_geo: str | None = None
    bytes_up: int | None = None
    bytes_down: int | None = None
    error: str | None = None

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "ok": self.ok,
            "blocked": self.blocked,
            "failure_reason": self.block_type,
            "top_k": list(self.top_k),
            "session_id": self.session_id,
            "observed_ip": self.observed_ip,
            "observed_asn": self.observed_asn,
            "hint_geo": self.hint_geo,
            "observed_geo": self.observed_geo,
            "bytes_up": self.bytes_up,
            "bytes_down": self.bytes_down,
            "error": self.error,
        }
        for key, value in self.timings.items():
            if key == "raw":
                record["raw"] = value
            else:
                record[key] = value
        return record


@runtime_checkable
class Probe(Protocol):
    def probe(self, vendor: Vendor, query: str, context: ProbeContext) -> ProbeOutcome:
        ...
