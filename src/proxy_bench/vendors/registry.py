from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any

from proxy_bench.config.errors import ConfigurationError
from proxy_bench.config.io import load_json_file

logger = logging.getLogger(__name__)

DEFAULT_BASELINE = "direct"


@dataclass(frozen=True)
class Vendor:
    name: str
    routing: str | None = None

    @property
    def is_direct(self) -> bool:
        return self.routing is None


class VendorRegistry:
    """Ordered, immutable set of vendors with the baseline listed first."""

    def __init__(self, vendors: Iterable[Vendor], baseline_name: str = DEFAULT_BASELINE) -> None:
        listed = list(vendors)
        if not listed:
            raise ConfigurationError("Vendor list is empty.")

        seen: set[str] = set()
        for vendor in listed:
            if not vendor.name:
                raise ConfigurationError("Vendor names must be non-empty.")
            if vendor.name in seen:
                raise ConfigurationError(f"Duplicate vendor name: {vendor.name}")
            seen.add(vendor.name)

        baseline = next((vendor for vendor in listed if vendor.name == baseline_name), listed[0])
        self._baseline = baseline
        self._vendors: tuple[Vendor, ...] = (baseline,) + tuple(
            vendor for vendor in listed if vendor is not baseline
        )

    @property
    def baseline(self) -> Vendor:
        return self._baseline

    @property
    def vendors(self) -> tuple[Vendor, ...]:
        return self._vendors

    @property
    def names(self) -> list[str]:
        return [vendor.name for vendor in self._vendors]

    def __iter__(self) -> Iterator[Vendor]:
        return iter(self._vendors)

    def __len__(self) -> int:
        return len(self._vendors)


def _safe_routing(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def vendor_from_mapping(payload: Mapping[str, Any]) -> Vendor:
    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError(f"Vendor entry is missing a name: {dict(payload)!r}")
    routing = payload.get("routing", payload.get("proxy"))
    return Vendor(name=name.strip(), routing=_safe_routing(routing))


def parse_vendors(payload: Any) -> list[Vendor]:
    if isinstance(payload, Mapping) and isinstance(payload.get("vendors"), list):
        payload = payload["vendors"]

    if isinstance(payload, list):
        vendors: list[Vendor] = []
        for entry in payload:
            if not isinstance(entry, Mapping):
                raise ConfigurationError(f"Vendor entries must be objects, got {entry!r}")
            vendors.append(vendor_from_mapping(entry))
        return vendors

    if isinstance(payload, Mapping):
        return [
            Vendor(name=str(name).strip(), routing=_safe_routing(routing))
            for name, routing in payload.items()
        ]

    raise ConfigurationError("Vendors file must be an array, {\"vendors\": [...]} or a name -> routing object.")


def load_vendors(path: str | Path | None, baseline_name: str = DEFAULT_BASELINE) -> VendorRegistry:
    if path is None:
        return VendorRegistry([Vendor(name=DEFAULT_BASELINE, routing=None)], baseline_name=baseline_name)

    vendors = parse_vendors(load_json_file(path))
    registry = VendorRegistry(vendors, baseline_name=baseline_name)
    if registry.baseline.name != baseline_name:
        logger.warning(
            "Baseline vendor '%s' not listed in %s; using '%s'",
            baseline_name,
            path,
            registry.baseline.name,
        )
    logger.info("Loaded %s vendor(s): %s", len(registry), ", ".join(registry.names))
    return registry
