from __future__ import annotations

import pytest

from proxy_bench.config import ConfigurationError
from proxy_bench.probing import Probe, ProbeContext, ProbeError, SimulatedProbe, load_probe
from proxy_bench.vendors import Vendor

DIRECT = Vendor(name="direct")
PROXY = Vendor(name="vendor-a", routing="http://proxy.example:8000")


class EchoProbe:
    def __init__(self, options: dict, seed: int | None = None) -> None:
        self.options = options
        self.seed = seed

    def probe(self, vendor, query, context):
        raise ProbeError("not wired", reason="error")


def build_echo_probe(options: dict, seed: int | None = None) -> EchoProbe:
    return EchoProbe(options, seed=seed)


def build_nothing(options: dict, seed: int | None = None) -> object:
    return object()


def test_simulated_probe_produces_results() -> None:
    probe = SimulatedProbe({"time_scale": 0}, seed=1)
    outcome = probe.probe(DIRECT, "python dataclass", ProbeContext(top_k=5))

    assert outcome.ok is True
    assert len(outcome.top_k) == 5
    assert outcome.timings["total"] == pytest.approx(
        sum(outcome.timings[stage] for stage in ("dns", "connect", "tls", "ttfb", "content_download"))
    )
    assert outcome.session_id == "direct-0"


def test_simulated_probe_is_seeded() -> None:
    options = {"time_scale": 0, "profiles": {"vendor-a": {"failure_rate": 0.0, "captcha_rate": 0.0}}}
    first = SimulatedProbe(options, seed=5)
    second = SimulatedProbe(options, seed=5)
    context = ProbeContext()

    assert [first.probe(PROXY, "q", context).timings["total"] for _ in range(5)] == [
        second.probe(PROXY, "q", context).timings["total"] for _ in range(5)
    ]


def test_simulated_profiles_model_failures() -> None:
    probe = SimulatedProbe(
        {"time_scale": 0, "profiles": {"vendor-a": {"failure_rate": 1.0}, "direct": {"captcha_rate": 1.0}}},
        seed=2,
    )

    with pytest.raises(ProbeError) as excinfo:
        probe.probe(PROXY, "q", ProbeContext())
    assert excinfo.value.reason == "proxy-conn-failed"
    assert excinfo.value.blocked is True

    captcha = probe.probe(DIRECT, "q", ProbeContext())
    assert captcha.ok is False
    assert captcha.block_type == "captcha"


def test_load_probe_builtin_and_dotted_path() -> None:
    assert isinstance(load_probe("simulated", {"time_scale": 0}, seed=1), SimulatedProbe)

    probe = load_probe(f"{__name__}:build_echo_probe", {"endpoint": "x"}, seed=9)
    assert isinstance(probe, Probe)
    assert probe.options == {"endpoint": "x"}
    assert probe.seed == 9


@pytest.mark.parametrize(
    "backend",
    [
        "playwright",
        "no_such_module_for_probes:factory",
        f"{__name__}:missing_factory",
        f"{__name__}:build_nothing",
    ],
)
def test_load_probe_rejects_bad_backends(backend: str) -> None:
    with pytest.raises(ConfigurationError):
        load_probe(backend, {})
