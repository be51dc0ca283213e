from __future__ import annotations


class ConfigurationError(ValueError):
    """Invalid or unreadable run configuration. Fatal for a run."""
