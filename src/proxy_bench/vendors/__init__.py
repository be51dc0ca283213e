from proxy_bench.vendors.registry import (
    DEFAULT_BASELINE,
    Vendor,
    VendorRegistry,
    load_vendors,
    parse_vendors,
    vendor_from_mapping,
)

__all__ = [
    "DEFAULT_BASELINE",
    "Vendor",
    "VendorRegistry",
    "load_vendors",
    "parse_vendors",
    "vendor_from_mapping",
]
