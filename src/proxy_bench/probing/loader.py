from __future__ import annotations

import importlib
import logging
from typing import Any

from proxy_bench.config.errors import ConfigurationError
from proxy_bench.probing.base import Probe
from proxy_bench.probing.simulated import build_simulated_probe

logger = logging.getLogger(__name__)

BUILTIN_BACKENDS = {
    "simulated": build_simulated_probe,
}


def load_probe(backend: str, options: dict[str, Any] | None = None, seed: int | None = None) -> Probe:
    """Build a probe from a built-in backend name or a ``package.module:factory`` path.

    The factory is called as ``factory(options, seed=seed)`` and must return an
    object implementing ``Probe``.
    """
    options = dict(options or {})
    factory = BUILTIN_BACKENDS.get(backend)
    if factory is None:
        factory = _import_factory(backend)

    probe = factory(options, seed=seed)
    if not isinstance(probe, Probe):
        raise ConfigurationError(f"Probe backend '{backend}' did not return a Probe implementation.")
    logger.info("Using probe backend '%s'", backend)
    return probe


def _import_factory(path: str) -> Any:
    module_name, sep, attribute = path.partition(":")
    if not sep or not module_name or not attribute:
        known = ", ".join(sorted(BUILTIN_BACKENDS))
        raise ConfigurationError(
            f"Unknown probe backend '{path}'. Use one of: {known}, or 'package.module:factory'."
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Unable to import probe module '{module_name}': {exc}") from exc

    factory = getattr(module, attribute, None)
    if not callable(factory):
        raise ConfigurationError(f"'{path}' is not a callable probe factory.")
    return factory
