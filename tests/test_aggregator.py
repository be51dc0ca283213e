from __future__ import annotations

import pytest

from proxy_bench.events import ProbeEvent
from proxy_bench.metrics import (
    aggregate_events,
    aggregate_vendor,
    concurrency_curve,
    correctness,
    cost_per_thousand,
    geo_pool_quality,
    reliability,
    stage_overheads,
    sticky_survival,
    tail_amplification,
)


def _event(vendor: str = "proxy", ok: bool = True, **kwargs: object) -> ProbeEvent:
    kwargs.setdefault("blocked", False)
    if not ok and "failure_reason" not in kwargs:
        kwargs["failure_reason"] = "blocked" if kwargs["blocked"] else "error"
    return ProbeEvent(vendor=vendor, ok=ok, **kwargs)  # type: ignore[arg-type]


def test_latency_overhead_scenario() -> None:
    vendor_events = [
        _event(total=100.0),
        _event(total=150.0),
        _event(ok=False, total=5000.0, failure_reason="timeout"),
    ]
    baseline_events = [_event("direct", total=90.0), _event("direct", total=110.0)]

    metrics = aggregate_vendor(vendor_events, baseline_events, vendor="proxy", baseline="direct")

    assert metrics.reliability.success_rate == pytest.approx(2 / 3)
    assert metrics.reliability.timeout_rate == pytest.approx(1 / 3)
    assert metrics.latency["p50"] == 100.0
    assert metrics.latency["p95"] == 150.0
    assert metrics.baseline_latency["p95"] == 110.0
    assert metrics.overhead_p50_ms == pytest.approx(10.0)
    assert metrics.overhead_p95_ratio == pytest.approx(150.0 / 110.0)


def test_reliability_rates_sum_to_one() -> None:
    events = [
        _event(),
        _event(),
        _event(ok=False, blocked=True, failure_reason="captcha"),
        _event(ok=False, failure_reason="timeout"),
        _event(ok=False, blocked=True, failure_reason="proxy-conn-failed"),
    ]
    result = reliability(events)

    assert result.total == 5
    assert result.ok == 2
    assert result.captcha == 1
    assert result.timeouts == 1
    assert result.success_rate + result.blocked_rate + result.other_failure_rate == pytest.approx(1.0)
    assert result.reasons == {"captcha": 1, "proxy-conn-failed": 1, "success": 2, "timeout": 1}


def test_reliability_without_events_is_unknown() -> None:
    result = reliability([])
    assert result.success_rate is None
    assert result.blocked_rate is None
    assert result.reasons == {}


def test_constant_latency_has_unit_tail_amplification() -> None:
    events = [_event(total=250.0) for _ in range(20)]
    assert tail_amplification(events) == pytest.approx(1.0)


def test_tail_amplification_unknown_without_successes() -> None:
    assert tail_amplification([_event(ok=False, total=10.0)]) is None
    assert tail_amplification([_event(total=0.0)]) is None


def test_missing_pre_origin_timings_leave_stage_overhead_unknown() -> None:
    vendor_events = [_event(ttfb=80.0, total=200.0)]
    baseline_events = [_event("direct", dns=1.0, connect=5.0, tls=9.0, ttfb=40.0, total=100.0)]

    breakdown = stage_overheads(vendor_events, baseline_events)

    assert breakdown.get("dns").delta_ms is None
    assert breakdown.get("connect").ratio is None
    assert breakdown.pre_origin_overhead_ms is None
    assert breakdown.get("ttfb").delta_ms == pytest.approx(40.0)
    assert breakdown.get("ttfb").ratio == pytest.approx(2.0)


def test_stage_overhead_unknown_when_either_side_has_no_successes() -> None:
    vendor_events = [_event(ok=False, dns=1.0, total=5.0)]
    baseline_events = [_event("direct", dns=1.0, total=5.0)]

    breakdown = stage_overheads(vendor_events, baseline_events)

    assert all(item.vendor_p95 is None and item.baseline_p95 is None for item in breakdown.stages.values())


def test_pre_origin_overhead_sums_dns_connect_tls() -> None:
    vendor_events = [_event(dns=2.0, connect=30.0, tls=40.0, total=300.0)]
    baseline_events = [_event("direct", dns=1.0, connect=10.0, tls=20.0, total=200.0)]

    breakdown = stage_overheads(vendor_events, baseline_events)

    assert breakdown.pre_origin_overhead_ms == pytest.approx(41.0)


def test_correctness_jaccard_scenario() -> None:
    baseline_events = [_event("direct", query="q", top_k=("a", "b", "c"))]
    vendor_events = [_event(query="q", top_k=("b", "c", "d"))]

    score = correctness(vendor_events, baseline_events, baseline="direct", k=10)

    assert score.mean_jaccard == pytest.approx(0.5)
    assert score.pairs == 1


def test_correctness_uses_latest_success_per_query() -> None:
    baseline_events = [_event("direct", query="q", timestamp=1.0, top_k=("a", "b"))]
    vendor_events = [
        _event(query="q", timestamp=5.0, top_k=("a", "b")),
        _event(query="q", timestamp=2.0, top_k=("x", "y")),
        _event(ok=False, query="q", timestamp=9.0, top_k=("z",)),
        _event(query="other", timestamp=3.0, top_k=("a",)),
    ]

    score = correctness(vendor_events, baseline_events, baseline="direct", k=10)

    assert score.mean_jaccard == pytest.approx(1.0)
    assert score.pairs == 1


def test_correctness_unknown_without_shared_queries() -> None:
    score = correctness([_event(query="a", top_k=("x",))], [_event("direct", query="b", top_k=("x",))], baseline="direct")
    assert score.mean_jaccard is None
    assert score.pairs == 0


def test_sticky_survival_censors_sessions_without_failure() -> None:
    events = [
        _event(session_id="s1", timestamp=1.0),
        _event(session_id="s1", timestamp=2.0),
        _event(session_id="s1", timestamp=3.0),
        _event(ok=False, session_id="s1", timestamp=4.0),
        _event(session_id="s1", timestamp=5.0),
        _event(session_id="s2", timestamp=1.0),
        _event(session_id="s2", timestamp=2.0),
    ]

    result = sticky_survival(events)

    assert result.p50 == 3.0
    assert result.samples == 1
    assert result.censored == 1


def test_sticky_survival_groups_by_observed_ip_when_no_session() -> None:
    events = [
        _event(observed_ip="10.0.0.1", timestamp=2.0),
        _event(ok=False, observed_ip="10.0.0.1", timestamp=1.0),
        _event(timestamp=1.0),
    ]

    result = sticky_survival(events)

    assert result.p50 == 0.0
    assert result.samples == 1
    assert result.censored == 0


def test_geo_pool_quality() -> None:
    events = [
        _event(hint_geo="us", observed_geo="US", observed_ip="1.1.1.1", observed_asn="AS1"),
        _event(hint_geo="us", observed_geo="de", observed_ip="1.1.1.2", observed_asn="AS1"),
        _event(observed_geo="us", observed_ip="1.1.1.1"),
        _event(),
    ]

    quality = geo_pool_quality(events)

    assert quality.geo_accuracy == pytest.approx(1 / 3)
    assert quality.geo_samples == 3
    assert quality.distinct_ips == 2
    assert quality.distinct_asns == 1


def test_cost_per_thousand_successes() -> None:
    gib = 1024 ** 3
    events = [_event(bytes_down=gib // 2), _event(bytes_up=gib // 4, bytes_down=gib // 4), _event(ok=False, bytes_down=gib)]

    assert cost_per_thousand(events, 10.0) == pytest.approx(10.0 / 2 * 1000)
    assert cost_per_thousand(events, None) is None
    assert cost_per_thousand(events, 0.0) is None
    assert cost_per_thousand([_event()], 10.0) is None


def test_concurrency_curve_is_ascending_and_ignores_untagged() -> None:
    events = [
        _event(concurrency=10, total=300.0),
        _event(ok=False, concurrency=10),
        _event(concurrency=1, total=100.0),
        _event(total=50.0),
    ]

    curve = concurrency_curve(events)

    assert [point.concurrency for point in curve] == [1, 10]
    assert curve[0].success_rate == 1.0
    assert curve[1].success_rate == 0.5
    assert curve[1].p95_total_ms == 300.0
    assert curve[1].samples == 2


def test_aggregate_events_groups_and_selects_baseline() -> None:
    events = [
        _event("vendor-a", total=120.0, timestamp=1.0),
        _event("direct", total=100.0, timestamp=2.0),
        _event("vendor-b", total=130.0, timestamp=3.0),
    ]

    result = aggregate_events(events, baseline_name="direct")

    assert result.baseline == "direct"
    assert result.vendors == ["vendor-a", "direct", "vendor-b"]
    assert result.metrics["vendor-a"].overhead_p50_ms == pytest.approx(20.0)
    assert result.metrics["direct"].overhead_p95_ratio == pytest.approx(1.0)


def test_aggregate_events_falls_back_to_first_vendor() -> None:
    events = [_event("vendor-a", total=120.0), _event("vendor-b", total=60.0)]

    result = aggregate_events(events, baseline_name="direct")

    assert result.baseline == "vendor-a"
    assert result.metrics["vendor-b"].overhead_p95_ratio == pytest.approx(0.5)


def test_aggregate_events_empty() -> None:
    result = aggregate_events([])
    assert result.baseline is None
    assert result.metrics == {}


def test_vendor_metrics_to_dict_is_plain_data() -> None:
    metrics = aggregate_vendor([_event(total=1.0)], [_event("direct", total=1.0)], vendor="proxy", baseline="direct")
    payload = metrics.to_dict()
    assert payload["vendor"] == "proxy"
    assert payload["stages"]["stages"]["total"]["ratio"] == pytest.approx(1.0)
    assert payload["reliability"]["success_rate"] == 1.0
