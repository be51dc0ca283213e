from __future__ import annotations

from dataclasses import asdict, dataclass
import hashlib
import random
from threading import Lock
import time
from typing import Any

from proxy_bench.probing.base import ProbeContext, ProbeError, ProbeOutcome
from proxy_bench.vendors.registry import Vendor


@dataclass(frozen=True)
class SimulatedProfile:
    dns_ms: float = 5.0
    connect_ms: float = 20.0
    tls_ms: float = 30.0
    ttfb_ms: float = 150.0
    download_ms: float = 80.0
    jitter: float = 0.2
    failure_rate: float = 0.0
    captcha_rate: float = 0.0
    result_drift: float = 0.0
    session_length: int = 50
    geo: str | None = None
    geo_accuracy: float = 1.0
    bytes_down: int = 350_000
    bytes_up: int = 4_000


DIRECT_PROFILE = SimulatedProfile()
PROXY_PROFILE = SimulatedProfile(
    dns_ms=8.0,
    connect_ms=45.0,
    tls_ms=60.0,
    ttfb_ms=190.0,
    download_ms=110.0,
    jitter=0.3,
    failure_rate=0.01,
    captcha_rate=0.005,
    result_drift=0.05,
    session_length=40,
)


def _profile_from_mapping(payload: Any, base: SimulatedProfile) -> SimulatedProfile:
    if not isinstance(payload, dict):
        return base
    values = asdict(base)
    for key, value in payload.items():
        if key in values:
            values[key] = value
    return SimulatedProfile(**values)


class SimulatedProbe:
    """Seeded latency and failure model that stands in for a real browser probe.

    Options:
      time_scale: fraction of the simulated total latency actually slept (default 1.0).
      profiles: vendor name -> profile overrides (see ``SimulatedProfile``).
    """

    def __init__(self, options: dict[str, Any] | None = None, seed: int | None = None) -> None:
        options = options or {}
        self._time_scale = max(0.0, float(options.get("time_scale", 1.0)))
        self._profile_overrides = options.get("profiles") or {}
        self._rng = random.Random(seed)
        self._lock = Lock()
        self._sessions: dict[str, tuple[int, int]] = {}

    def profile_for(self, vendor: Vendor) -> SimulatedProfile:
        base = DIRECT_PROFILE if vendor.routing is None else PROXY_PROFILE
        return _profile_from_mapping(self._profile_overrides.get(vendor.name), base)

    def probe(self, vendor: Vendor, query: str, context: ProbeContext) -> ProbeOutcome:
        profile = self.profile_for(vendor)
        with self._lock:
            draws = [self._rng.random() for _ in range(9)]
            session_id = self._session_for(vendor.name, profile)
            if draws[0] < profile.failure_rate or draws[1] < profile.captcha_rate:
                self._rotate_session(vendor.name)

        timings = {
            "dns": self._jittered(profile.dns_ms, profile.jitter, draws[2]),
            "connect": self._jittered(profile.connect_ms, profile.jitter, draws[3]),
            "tls": self._jittered(profile.tls_ms, profile.jitter, draws[4]),
            "ttfb": self._jittered(profile.ttfb_ms, profile.jitter, draws[5]),
            "content_download": self._jittered(profile.download_ms, profile.jitter, draws[6]),
        }
        timings["total"] = sum(timings.values())

        if self._time_scale > 0:
            time.sleep(timings["total"] / 1000.0 * self._time_scale)

        if draws[0] < profile.failure_rate:
            raise ProbeError(
                f"net::ERR_PROXY_CONNECTION_FAILED via {vendor.name}",
                reason="proxy-conn-failed",
                blocked=True,
            )

        observed_geo = profile.geo
        if profile.geo is not None and draws[7] >= profile.geo_accuracy:
            observed_geo = "zz"

        common = {
            "timings": timings,
            "session_id": f"{vendor.name}-{session_id}",
            "observed_ip": _fake_ip(vendor.name, session_id),
            "observed_asn": f"AS{64512 + session_id % 100}" if vendor.routing else "AS64500",
            "hint_geo": profile.geo,
            "observed_geo": observed_geo,
            "bytes_up": profile.bytes_up,
        }

        if draws[1] < profile.captcha_rate:
            return ProbeOutcome(ok=False, blocked=True, block_type="captcha", bytes_down=profile.bytes_down // 10, **common)

        return ProbeOutcome(
            ok=True,
            top_k=self._results_for(query, profile.result_drift, context.top_k, draws[8]),
            bytes_down=profile.bytes_down,
            **common,
        )

    def _session_for(self, vendor_name: str, profile: SimulatedProfile) -> int:
        session_id, used = self._sessions.get(vendor_name, (0, 0))
        if used >= max(1, int(profile.session_length)):
            session_id, used = session_id + 1, 0
        self._sessions[vendor_name] = (session_id, used + 1)
        return session_id

    def _rotate_session(self, vendor_name: str) -> None:
        session_id, _ = self._sessions.get(vendor_name, (0, 0))
        self._sessions[vendor_name] = (session_id + 1, 0)

    @staticmethod
    def _jittered(base_ms: float, jitter: float, draw: float) -> float:
        return max(0.0, base_ms * (1.0 + jitter * (2.0 * draw - 1.0)))

    @staticmethod
    def _results_for(query: str, drift: float, top_k: int, draw: float) -> tuple[str, ...]:
        digest = hashlib.sha256(query.encode("utf-8")).hexdigest()[:10]
        results = [f"https://example.com/{digest}/{rank}" for rank in range(top_k)]
        if drift > 0 and draw < drift and results:
            results[-1] = f"https://example.net/{digest}/drift"
        return tuple(results)


def _fake_ip(vendor_name: str, session_id: int) -> str:
    digest = hashlib.sha256(f"{vendor_name}:{session_id}".encode("utf-8")).digest()
    return f"10.{digest[0]}.{digest[1]}.{digest[2]}"


def build_simulated_probe(options: dict[str, Any], seed: int | None = None) -> SimulatedProbe:
    return SimulatedProbe(options=options, seed=seed)
