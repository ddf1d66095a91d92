"""Tagged failures surfaced by the refresh pipeline."""
from __future__ import annotations


class RiskboardError(Exception):
    kind = "error"
    summary = "refresh failed"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ConfigurationError(RiskboardError):
    """Required credentials or configuration are absent or invalid."""

    kind = "missing_configuration"
    summary = "missing configuration"


class UpstreamError(RiskboardError):
    """A provider call failed or returned no usable number."""

    kind = "upstream_error"
    summary = "upstream fetch failed"

    def __init__(self, provider: str, detail: str) -> None:
        super().__init__(f"{provider}: {detail}")
        self.provider = provider


class AggregationError(RiskboardError):
    kind = "aggregation_error"
    summary = "aggregation failed"


class StoreError(RiskboardError):
    kind = "store_error"
    summary = "row store failed"
