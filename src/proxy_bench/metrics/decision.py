from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
import logging
from typing import Any

from proxy_bench.events.model import PRE_ORIGIN_STAGES
from proxy_bench.metrics.aggregator import (
    CorrectnessScore,
    Reliability,
    StageBreakdown,
    StickySurvival,
    VendorMetrics,
)

logger = logging.getLogger(__name__)

PASS = "pass"
FAIL = "fail"
UNKNOWN = "unknown"

BLOCKED_RATE_BAN = 0.15
PRE_ORIGIN_RATIO_MAX = 1.5
TTFB_RATIO_THROTTLE = 1.7


@dataclass(frozen=True)
class DecisionThresholds:
    overhead_p95_ratio_max: float = 1.3
    success_rate_min: float = 0.98
    captcha_rate_max: float = 0.01
    sticky_survival_p50_min: float = 10.0
    tail_amp_ratio_max: float = 1.2
    top_k_jaccard_min: float = 0.9

    @classmethod
    def from_mapping(
        cls,
        overrides: Mapping[str, Any] | None,
        base: DecisionThresholds | None = None,
    ) -> DecisionThresholds:
        values = asdict(base or cls())
        for key, raw in (overrides or {}).items():
            if key not in values:
                known = ", ".join(sorted(values))
                raise ValueError(f"Unknown threshold '{key}'. Known thresholds: {known}")
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                raise TypeError(f"Threshold '{key}' must be a number, got {raw!r}")
            values[key] = float(raw)
        return cls(**values)

    def to_dict(self) -> dict[str, float]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


DEFAULT_THRESHOLDS = DecisionThresholds()


@dataclass(frozen=True)
class Diagnosis:
    kind: str
    message: str


@dataclass(frozen=True)
class Decision:
    vendor: str
    pass_: bool
    thresholds: DecisionThresholds
    observed: dict[str, float | None]
    criteria: dict[str, str]
    diagnosis: Diagnosis

    def to_dict(self) -> dict[str, Any]:
        return {
            "vendor": self.vendor,
            "pass": self.pass_,
            "thresholds": self.thresholds.to_dict(),
            "observed": dict(self.observed),
            "criteria": dict(self.criteria),
            "diagnosis": asdict(self.diagnosis),
        }


def _at_most(value: float | None, limit: float) -> str:
    if value is None:
        return UNKNOWN
    return PASS if value <= limit else FAIL


def _at_least(value: float | None, limit: float) -> str:
    if value is None:
        return UNKNOWN
    return PASS if value >= limit else FAIL


def diagnose(reliability: Reliability, stages: StageBreakdown) -> Diagnosis:
    if (reliability.blocked_rate or 0.0) > BLOCKED_RATE_BAN:
        return Diagnosis(
            kind="ban",
            message="Likely target ban or blocking; blocked rate exceeds 15%.",
        )

    pre_origin = [stages.get(stage) for stage in PRE_ORIGIN_STAGES]
    if any(item.vendor_p95 is None or item.baseline_p95 is None for item in pre_origin):
        return Diagnosis(
            kind="insufficient_samples",
            message="Insufficient successful samples to assess stage timings.",
        )

    for item in pre_origin:
        if item.vendor_p95 > item.baseline_p95 * PRE_ORIGIN_RATIO_MAX:  # type: ignore[operator]
            return Diagnosis(
                kind="network",
                message=f"Likely network or egress degradation; {item.stage} p95 spikes on the vendor path.",
            )

    ttfb = stages.get("ttfb")
    if (
        ttfb.vendor_p95 is not None
        and ttfb.baseline_p95 is not None
        and ttfb.vendor_p95 > ttfb.baseline_p95 * TTFB_RATIO_THROTTLE
    ):
        return Diagnosis(
            kind="throttling",
            message="Likely target throttling; vendor TTFB p95 balloons against the baseline.",
        )

    return Diagnosis(
        kind="none",
        message="No obvious single root cause; inspect vendor and session level logs.",
    )


def decide(
    metrics: VendorMetrics,
    correctness: CorrectnessScore | None = None,
    sticky: StickySurvival | None = None,
    thresholds: DecisionThresholds = DEFAULT_THRESHOLDS,
    *,
    min_samples: int = 0,
) -> Decision:
    """Apply the acceptance thresholds to one vendor's metrics.

    A criterion without data is reported as ``unknown`` and does not fail the
    vendor. ``min_samples`` adds a ``sample_count`` criterion that fails when
    the vendor produced fewer events than required.
    """
    correctness = correctness if correctness is not None else metrics.correctness
    sticky = sticky if sticky is not None else metrics.sticky

    observed: dict[str, float | None] = {
        "overhead_p95_ratio": metrics.overhead_p95_ratio,
        "success_rate": metrics.reliability.success_rate,
        "captcha_rate": metrics.reliability.captcha_rate,
        "sticky_survival_p50": sticky.p50,
        "tail_amp_ratio": metrics.tail_amplification.ratio,
        "top_k_jaccard": correctness.mean_jaccard,
    }
    criteria = {
        "overhead_p95_ratio": _at_most(observed["overhead_p95_ratio"], thresholds.overhead_p95_ratio_max),
        "success_rate": _at_least(observed["success_rate"], thresholds.success_rate_min),
        "captcha_rate": _at_most(observed["captcha_rate"], thresholds.captcha_rate_max),
        "sticky_survival_p50": _at_least(observed["sticky_survival_p50"], thresholds.sticky_survival_p50_min),
        "tail_amp_ratio": _at_most(observed["tail_amp_ratio"], thresholds.tail_amp_ratio_max),
        "top_k_jaccard": _at_least(observed["top_k_jaccard"], thresholds.top_k_jaccard_min),
    }

    if min_samples > 0:
        observed["sample_count"] = float(metrics.sample_count)
        criteria["sample_count"] = PASS if metrics.sample_count >= min_samples else FAIL

    passed = all(status != FAIL for status in criteria.values())
    decision = Decision(
        vendor=metrics.vendor,
        pass_=passed,
        thresholds=thresholds,
        observed=observed,
        criteria=criteria,
        diagnosis=diagnose(metrics.reliability, metrics.stages),
    )
    logger.debug("Decision for %s: %s %s", metrics.vendor, "PASS" if passed else "FAIL", criteria)
    return decision
