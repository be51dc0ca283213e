from __future__ import annotations

from dataclasses import asdict, dataclass
import re
from typing import Any

STAGES: tuple[str, ...] = ("dns", "connect", "tls", "ttfb", "content_download", "total")
PRE_ORIGIN_STAGES: tuple[str, ...] = ("dns", "connect", "tls")

_CAPTCHA_PATTERN = re.compile(r"captcha", re.IGNORECASE)
_TIMEOUT_PATTERN = re.compile(r"timeout|timed out", re.IGNORECASE)


@dataclass(frozen=True)
class ProbeEvent:
    """One normalised probe attempt.

    Stage timings are milliseconds and are either a non-negative number or
    ``None``; ``timestamp`` is epoch milliseconds and only used for ordering.
    """

    vendor: str
    ok: bool
    blocked: bool
    query: str | None = None
    timestamp: float | None = None
    failure_reason: str | None = None
    concurrency: int | None = None
    dns: float | None = None
    connect: float | None = None
    tls: float | None = None
    ttfb: float | None = None
    content_download: float | None = None
    total: float | None = None
    top_k: tuple[str, ...] = ()
    session_id: str | None = None
    observed_ip: str | None = None
    observed_asn: str | None = None
    hint_geo: str | None = None
    observed_geo: str | None = None
    bytes_up: int | None = None
    bytes_down: int | None = None
    error: str | None = None

    @property
    def is_captcha(self) -> bool:
        return bool(self.failure_reason and _CAPTCHA_PATTERN.search(self.failure_reason))

    @property
    def is_timeout(self) -> bool:
        return bool(self.failure_reason and _TIMEOUT_PATTERN.search(self.failure_reason))

    @property
    def session_key(self) -> str | None:
        return self.session_id or self.observed_ip

    def stage(self, name: str) -> float | None:
        if name not in STAGES:
            raise KeyError(f"Unknown stage '{name}'. Known stages: {', '.join(STAGES)}")
        return getattr(self, name)

    def sort_key(self) -> float:
        return self.timestamp if self.timestamp is not None else 0.0

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["top_k"] = list(self.top_k)
        return payload


def sort_events(events: list[ProbeEvent]) -> list[ProbeEvent]:
    return sorted(events, key=ProbeEvent.sort_key)
