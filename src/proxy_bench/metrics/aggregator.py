"""Per-vendor metrics computed against a baseline vendor.

Every metric that lacks data is ``None`` ("unknown") rather than zero, and
that ``None`` is carried through every derived value.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field
import logging
from typing import Any

from proxy_bench.events.model import PRE_ORIGIN_STAGES, STAGES, ProbeEvent, sort_events
from proxy_bench.metrics.stats import delta, distribution, jaccard, mean, percentile, ratio

logger = logging.getLogger(__name__)

BYTES_PER_GIB = 1024.0 * 1024.0 * 1024.0


@dataclass(frozen=True)
class Reliability:
    total: int
    ok: int
    blocked: int
    captcha: int
    timeouts: int
    success_rate: float | None
    blocked_rate: float | None
    captcha_rate: float | None
    timeout_rate: float | None
    other_failure_rate: float | None
    reasons: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class StageOverhead:
    stage: str
    vendor_p95: float | None
    baseline_p95: float | None
    delta_ms: float | None
    ratio: float | None


@dataclass(frozen=True)
class StageBreakdown:
    stages: dict[str, StageOverhead]
    pre_origin_overhead_ms: float | None

    def get(self, stage: str) -> StageOverhead:
        return self.stages[stage]


@dataclass(frozen=True)
class TailAmplification:
    vendor: float | None
    baseline: float | None
    ratio: float | None


@dataclass(frozen=True)
class ConcurrencyPoint:
    concurrency: int
    success_rate: float
    p95_total_ms: float | None
    samples: int


@dataclass(frozen=True)
class CorrectnessScore:
    baseline: str
    k: int
    mean_jaccard: float | None
    pairs: int


@dataclass(frozen=True)
class StickySurvival:
    p50: float | None
    p90: float | None
    samples: int
    censored: int


@dataclass(frozen=True)
class GeoPoolQuality:
    geo_accuracy: float | None
    geo_samples: int
    distinct_ips: int
    distinct_asns: int


@dataclass(frozen=True)
class VendorMetrics:
    vendor: str
    baseline: str
    sample_count: int
    reliability: Reliability
    latency: dict[str, float | None]
    baseline_latency: dict[str, float | None]
    overhead_p50_ms: float | None
    overhead_p95_ratio: float | None
    ttfb_p95_overhead_ms: float | None
    stages: StageBreakdown
    tail_amplification: TailAmplification
    concurrency_curve: tuple[ConcurrencyPoint, ...]
    correctness: CorrectnessScore
    sticky: StickySurvival
    geo: GeoPoolQuality
    cost_per_1k_successes: float | None
    price_per_gb: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AggregateResult:
    baseline: str | None
    metrics: dict[str, VendorMetrics]

    @property
    def vendors(self) -> list[str]:
        return list(self.metrics.keys())


def successes(events: Iterable[ProbeEvent]) -> list[ProbeEvent]:
    return [event for event in events if event.ok]


def reliability(events: Sequence[ProbeEvent]) -> Reliability:
    total = len(events)
    ok = sum(1 for event in events if event.ok)
    blocked = sum(1 for event in events if event.blocked)
    captcha = sum(1 for event in events if event.is_captcha)
    timeouts = sum(1 for event in events if event.is_timeout)

    reasons: Counter[str] = Counter()
    for event in events:
        if event.ok:
            reasons["success"] += 1
        else:
            reasons[event.failure_reason or ("blocked" if event.blocked else "error")] += 1

    def _rate(count: int) -> float | None:
        return count / total if total else None

    return Reliability(
        total=total,
        ok=ok,
        blocked=blocked,
        captcha=captcha,
        timeouts=timeouts,
        success_rate=_rate(ok),
        blocked_rate=_rate(blocked),
        captcha_rate=_rate(captcha),
        timeout_rate=_rate(timeouts),
        other_failure_rate=_rate(total - ok - blocked),
        reasons=dict(sorted(reasons.items())),
    )


def stage_p95(events: Iterable[ProbeEvent], stage: str) -> float | None:
    return percentile([event.stage(stage) for event in events], 95.0)


def stage_overheads(vendor_events: Sequence[ProbeEvent], baseline_events: Sequence[ProbeEvent]) -> StageBreakdown:
    vendor_ok = successes(vendor_events)
    baseline_ok = successes(baseline_events)
    comparable = bool(vendor_ok) and bool(baseline_ok)

    stages: dict[str, StageOverhead] = {}
    for stage in STAGES:
        if not comparable:
            stages[stage] = StageOverhead(stage, None, None, None, None)
            continue
        vendor_p95 = stage_p95(vendor_ok, stage)
        baseline_p95 = stage_p95(baseline_ok, stage)
        stages[stage] = StageOverhead(
            stage=stage,
            vendor_p95=vendor_p95,
            baseline_p95=baseline_p95,
            delta_ms=delta(vendor_p95, baseline_p95),
            ratio=ratio(vendor_p95, baseline_p95),
        )

    pre_origin: float | None = None
    pre_stages = [stages[stage] for stage in PRE_ORIGIN_STAGES]
    if all(item.vendor_p95 is not None and item.baseline_p95 is not None for item in pre_stages):
        pre_origin = sum(item.vendor_p95 for item in pre_stages) - sum(  # type: ignore[misc]
            item.baseline_p95 for item in pre_stages  # type: ignore[misc]
        )

    return StageBreakdown(stages=stages, pre_origin_overhead_ms=pre_origin)


def tail_amplification(events: Iterable[ProbeEvent]) -> float | None:
    totals = [event.total for event in successes(events)]
    return ratio(percentile(totals, 99.0), percentile(totals, 50.0))


def concurrency_curve(events: Iterable[ProbeEvent]) -> list[ConcurrencyPoint]:
    by_level: dict[int, list[ProbeEvent]] = {}
    for event in events:
        if event.concurrency is None:
            continue
        by_level.setdefault(event.concurrency, []).append(event)

    points: list[ConcurrencyPoint] = []
    for level in sorted(by_level):
        level_events = by_level[level]
        ok_events = successes(level_events)
        points.append(
            ConcurrencyPoint(
                concurrency=level,
                success_rate=len(ok_events) / len(level_events),
                p95_total_ms=percentile([event.total for event in ok_events], 95.0),
                samples=len(level_events),
            )
        )
    return points


def latest_success_by_query(events: Iterable[ProbeEvent]) -> dict[str, ProbeEvent]:
    latest: dict[str, ProbeEvent] = {}
    for event in sort_events(list(events)):
        if event.ok and event.query:
            latest[event.query] = event
    return latest


def correctness(
    vendor_events: Iterable[ProbeEvent],
    baseline_events: Iterable[ProbeEvent],
    *,
    baseline: str,
    k: int = 10,
) -> CorrectnessScore:
    vendor_by_query = latest_success_by_query(vendor_events)
    baseline_by_query = latest_success_by_query(baseline_events)

    scores: list[float] = []
    for query, vendor_event in vendor_by_query.items():
        baseline_event = baseline_by_query.get(query)
        if baseline_event is None:
            continue
        score = jaccard(baseline_event.top_k, vendor_event.top_k, k)
        if score is not None:
            scores.append(score)

    return CorrectnessScore(baseline=baseline, k=k, mean_jaccard=mean(scores), pairs=len(scores))


def sticky_survival(events: Iterable[ProbeEvent]) -> StickySurvival:
    sessions: dict[str, list[ProbeEvent]] = {}
    for event in events:
        key = event.session_key
        if key is None:
            continue
        sessions.setdefault(key, []).append(event)

    lengths: list[int] = []
    censored = 0
    for session_events in sessions.values():
        count = 0
        failed = False
        for event in sort_events(session_events):
            if not event.ok:
                failed = True
                break
            count += 1
        if failed:
            lengths.append(count)
        else:
            censored += 1

    return StickySurvival(
        p50=percentile(lengths, 50.0),
        p90=percentile(lengths, 90.0),
        samples=len(lengths),
        censored=censored,
    )


def geo_pool_quality(events: Sequence[ProbeEvent]) -> GeoPoolQuality:
    geo_known = [event for event in events if event.hint_geo or event.observed_geo]
    accurate = sum(
        1
        for event in geo_known
        if event.hint_geo
        and event.observed_geo
        and event.hint_geo.lower() == event.observed_geo.lower()
    )
    return GeoPoolQuality(
        geo_accuracy=(accurate / len(geo_known)) if geo_known else None,
        geo_samples=len(geo_known),
        distinct_ips=len({event.observed_ip for event in events if event.observed_ip}),
        distinct_asns=len({event.observed_asn for event in events if event.observed_asn}),
    )


def cost_per_thousand(events: Iterable[ProbeEvent], price_per_gb: float | None) -> float | None:
    if price_per_gb is None or price_per_gb <= 0:
        return None
    ok_events = successes(events)
    if not ok_events:
        return None
    total_bytes = sum((event.bytes_up or 0) + (event.bytes_down or 0) for event in ok_events)
    if total_bytes <= 0:
        return None
    cost = price_per_gb * (total_bytes / BYTES_PER_GIB)
    return cost / len(ok_events) * 1000.0


def aggregate_vendor(
    vendor_events: Sequence[ProbeEvent],
    baseline_events: Sequence[ProbeEvent],
    *,
    vendor: str,
    baseline: str,
    top_k: int = 10,
    price_per_gb: float | None = None,
) -> VendorMetrics:
    vendor_latency = distribution([event.total for event in successes(vendor_events)])
    baseline_latency = distribution([event.total for event in successes(baseline_events)])
    vendor_ttfb_p95 = stage_p95(successes(vendor_events), "ttfb")
    baseline_ttfb_p95 = stage_p95(successes(baseline_events), "ttfb")

    vendor_tail = tail_amplification(vendor_events)
    baseline_tail = tail_amplification(baseline_events)

    return VendorMetrics(
        vendor=vendor,
        baseline=baseline,
        sample_count=len(vendor_events),
        reliability=reliability(vendor_events),
        latency=vendor_latency,
        baseline_latency=baseline_latency,
        overhead_p50_ms=delta(vendor_latency["p50"], baseline_latency["p50"]),
        overhead_p95_ratio=ratio(vendor_latency["p95"], baseline_latency["p95"]),
        ttfb_p95_overhead_ms=delta(vendor_ttfb_p95, baseline_ttfb_p95),
        stages=stage_overheads(vendor_events, baseline_events),
        tail_amplification=TailAmplification(
            vendor=vendor_tail,
            baseline=baseline_tail,
            ratio=ratio(vendor_tail, baseline_tail),
        ),
        concurrency_curve=tuple(concurrency_curve(vendor_events)),
        correctness=correctness(vendor_events, baseline_events, baseline=baseline, k=top_k),
        sticky=sticky_survival(vendor_events),
        geo=geo_pool_quality(vendor_events),
        cost_per_1k_successes=cost_per_thousand(vendor_events, price_per_gb),
        price_per_gb=price_per_gb,
    )


def group_by_vendor(events: Iterable[ProbeEvent]) -> dict[str, list[ProbeEvent]]:
    grouped: dict[str, list[ProbeEvent]] = {}
    for event in events:
        grouped.setdefault(event.vendor, []).append(event)
    return grouped


def resolve_baseline(vendors: Sequence[str], baseline_name: str = "direct") -> str | None:
    if baseline_name in vendors:
        return baseline_name
    if vendors:
        return vendors[0]
    return None


def aggregate_events(
    events: Iterable[ProbeEvent],
    *,
    baseline_name: str = "direct",
    top_k: int = 10,
    price_per_gb: float | None = None,
) -> AggregateResult:
    grouped = group_by_vendor(sort_events(list(events)))
    baseline = resolve_baseline(list(grouped.keys()), baseline_name)
    if baseline is None:
        return AggregateResult(baseline=None, metrics={})
    if baseline != baseline_name:
        logger.warning("Baseline vendor '%s' not found; using '%s'", baseline_name, baseline)

    baseline_events = grouped[baseline]
    metrics = {
        vendor: aggregate_vendor(
            vendor_events,
            baseline_events,
            vendor=vendor,
            baseline=baseline,
            top_k=top_k,
            price_per_gb=price_per_gb,
        )
        for vendor, vendor_events in grouped.items()
    }
    return AggregateResult(baseline=baseline, metrics=metrics)
