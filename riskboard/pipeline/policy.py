"""Per-field fallback policy for upstream failures."""
from __future__ import annotations

from enum import Enum

from riskboard.config import SourceSpec
from riskboard.errors import ConfigurationError


class FallbackPolicy(str, Enum):
    CRITICAL = "critical"
    DEGRADE_WITH_DEFAULT = "degrade_with_default"
    DEGRADE_WITH_PREVIOUS = "degrade_with_previous"


NEUTRAL_DEFAULTS = {
    "pmi": 50.0,
    "unemployment": 6.0,
}

_BY_INDICATOR = {
    "hy_oas": FallbackPolicy.CRITICAL,
    "fci": FallbackPolicy.CRITICAL,
    "dxy": FallbackPolicy.CRITICAL,
    "pmi": FallbackPolicy.DEGRADE_WITH_PREVIOUS,
    "unemployment": FallbackPolicy.DEGRADE_WITH_PREVIOUS,
}

# (region, indicator) exceptions to the per-indicator default.
_OVERRIDES = {
    ("USA", "unemployment"): FallbackPolicy.CRITICAL,
}


def policy_for(region: str, indicator_id: str, source: SourceSpec | None = None) -> FallbackPolicy:
    """Resolve the policy: explicit config, then region override, then indicator default."""
    if source is not None and source.policy is not None:
        policy = FallbackPolicy(source.policy)
    elif (region, indicator_id) in _OVERRIDES:
        policy = _OVERRIDES[(region, indicator_id)]
    else:
        policy = _BY_INDICATOR.get(indicator_id, FallbackPolicy.CRITICAL)

    if policy is not FallbackPolicy.CRITICAL and indicator_id not in NEUTRAL_DEFAULTS:
        raise ConfigurationError(
            f"{region} {indicator_id}: policy {policy.value} needs a neutral default"
        )
    return policy
