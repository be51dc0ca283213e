from proxy_bench.metrics.aggregator import (
    AggregateResult,
    ConcurrencyPoint,
    CorrectnessScore,
    GeoPoolQuality,
    Reliability,
    StageBreakdown,
    StageOverhead,
    StickySurvival,
    TailAmplification,
    VendorMetrics,
    aggregate_events,
    aggregate_vendor,
    concurrency_curve,
    correctness,
    cost_per_thousand,
    geo_pool_quality,
    group_by_vendor,
    reliability,
    resolve_baseline,
    stage_overheads,
    sticky_survival,
    tail_amplification,
)
from proxy_bench.metrics.decision import (
    DEFAULT_THRESHOLDS,
    Decision,
    DecisionThresholds,
    Diagnosis,
    decide,
    diagnose,
)
from proxy_bench.metrics.stats import delta, distribution, jaccard, mean, percentile, ratio

__all__ = [
    "AggregateResult",
    "ConcurrencyPoint",
    "CorrectnessScore",
    "DEFAULT_THRESHOLDS",
    "Decision",
    "DecisionThresholds",
    "Diagnosis",
    "GeoPoolQuality",
    "Reliability",
    "StageBreakdown",
    "StageOverhead",
    "StickySurvival",
    "TailAmplification",
    "VendorMetrics",
    "aggregate_events",
    "aggregate_vendor",
    "concurrency_curve",
    "correctness",
    "cost_per_thousand",
    "decide",
    "delta",
    "diagnose",
    "distribution",
    "geo_pool_quality",
    "group_by_vendor",
    "jaccard",
    "mean",
    "percentile",
    "ratio",
    "reliability",
    "resolve_baseline",
    "stage_overheads",
    "sticky_survival",
    "tail_amplification",
]
