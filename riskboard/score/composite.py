"""Deterministic composite risk scoring."""
from __future__ import annotations

import math
from dataclasses import dataclass, fields
from enum import Enum

from riskboard.score.versions import (
    INDICATOR_BOUNDS,
    NEUTRAL_THRESHOLD,
    SCORE_WEIGHTS,
    TIGHT_THRESHOLD,
)


class Signal(str, Enum):
    TIGHT = "tight"
    NEUTRAL = "neutral"
    LOOSE = "loose"

    @property
    def colour(self) -> str:
        return {"tight": "red", "neutral": "yellow", "loose": "green"}[self.value]


@dataclass(frozen=True)
class IndicatorBundle:
    """Raw inputs for one region in one period."""
    hy_oas: float
    fci: float
    pmi: float
    dxy: float
    book_bill: float
    ur: float

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{f.name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ValueError(f"{f.name} must be finite, got {value!r}")


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def normalize(value: float, zero_point: float, full_point: float) -> float:
    """Map value onto [0, 1] where zero_point -> 0 and full_point -> 1."""
    if zero_point < full_point:
        ratio = (value - zero_point) / (full_point - zero_point)
    else:
        ratio = (zero_point - value) / (zero_point - full_point)
    return clamp(ratio, 0.0, 1.0)


def compute_subscores(bundle: IndicatorBundle) -> dict[str, float]:
    """Return the six per-indicator risk sub-scores, each in [0, 1]."""
    raw = {
        "oas": bundle.hy_oas,
        "fci": bundle.fci,
        "pmi": bundle.pmi,
        "dxy": bundle.dxy,
        "book_bill": bundle.book_bill,
        "ur": bundle.ur,
    }
    return {
        name: normalize(raw[name], *INDICATOR_BOUNDS[name])
        for name in SCORE_WEIGHTS
    }


def compute_score(bundle: IndicatorBundle) -> float:
    """Weighted composite of the sub-scores, clamped to [0, 1]."""
    subscores = compute_subscores(bundle)
    score = sum(SCORE_WEIGHTS[name] * subscores[name] for name in SCORE_WEIGHTS)
    return clamp(score, 0.0, 1.0)


def to_signal(score: float) -> Signal:
    if score > TIGHT_THRESHOLD:
        return Signal.TIGHT
    if score > NEUTRAL_THRESHOLD:
        return Signal.NEUTRAL
    return Signal.LOOSE
