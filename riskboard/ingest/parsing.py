"""Tagged parse results shared by the provider parsers."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date

from riskboard.errors import UpstreamError


@dataclass(frozen=True)
class Parsed:
    value: float
    observed: date | None = None


@dataclass(frozen=True)
class ParseFailure:
    provider: str
    detail: str


ParseResult = Parsed | ParseFailure


def to_finite(raw: object) -> float | None:
    """Coerce a provider value to a finite float, or None."""
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.strip().replace("%", "").replace(",", "")
        if raw in ("", "."):
            return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def latest_at_or_before(
    points: list[tuple[date, float]],
    cutoff: date | None,
    provider: str,
    label: str,
) -> ParseResult:
    """Pick the newest point not after cutoff (any point when cutoff is None)."""
    eligible = [p for p in points if cutoff is None or p[0] <= cutoff]
    if not eligible:
        where = f" at or before {cutoff}" if cutoff else ""
        return ParseFailure(provider, f"{label}: no numeric observation{where}")
    observed, value = max(eligible, key=lambda p: p[0])
    return Parsed(value, observed)


def unwrap(result: ParseResult) -> float:
    if isinstance(result, ParseFailure):
        raise UpstreamError(result.provider, result.detail)
    return result.value
