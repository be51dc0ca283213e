from proxy_bench.probing.base import Probe, ProbeContext, ProbeError, ProbeOutcome
from proxy_bench.probing.loader import BUILTIN_BACKENDS, load_probe
from proxy_bench.probing.simulated import SimulatedProbe, SimulatedProfile, build_simulated_probe

__all__ = [
    "BUILTIN_BACKENDS",
    "Probe",
    "ProbeContext",
    "ProbeError",
    "ProbeOutcome",
    "SimulatedProbe",
    "SimulatedProfile",
    "build_simulated_probe",
    "load_probe",
]
