from proxy_bench.scheduler.classify import FailureClass, classify_probe_error
from proxy_bench.scheduler.load import LoadScheduler, PlateauRecord

__all__ = [
    "FailureClass",
    "LoadScheduler",
    "PlateauRecord",
    "classify_probe_error",
]
