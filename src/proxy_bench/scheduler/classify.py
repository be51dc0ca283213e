from __future__ import annotations

from dataclasses import dataclass
import re

from proxy_bench.probing.base import ProbeError

_PROXY_FAILURE = re.compile(r"ERR_PROXY_CONNECTION_FAILED|ERR_TUNNEL_CONNECTION_FAILED|proxy connection", re.IGNORECASE)
_NETWORK_FAILURE = re.compile(r"net::ERR_|ECONNREFUSED|ECONNRESET|connection refused|connection reset", re.IGNORECASE)
_TIMEOUT = re.compile(r"timeout|timed out", re.IGNORECASE)


@dataclass(frozen=True)
class FailureClass:
    reason: str
    blocked: bool
    error: str


def classify_probe_error(exc: Exception) -> FailureClass:
    text = str(exc) or type(exc).__name__

    if isinstance(exc, ProbeError) and exc.reason:
        return FailureClass(reason=exc.reason, blocked=exc.blocked, error=text)
    if _PROXY_FAILURE.search(text):
        return FailureClass(reason="proxy-conn-failed", blocked=True, error=text)
    if _NETWORK_FAILURE.search(text):
        return FailureClass(reason="network-error", blocked=True, error=text)
    if isinstance(exc, TimeoutError) or _TIMEOUT.search(text):
        return FailureClass(reason="timeout", blocked=False, error=text)
    return FailureClass(reason="error", blocked=False, error=text)
