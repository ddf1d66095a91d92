"""Global row construction from the five regional rows."""
from __future__ import annotations

from collections.abc import Iterable, Mapping

from riskboard.errors import AggregationError
from riskboard.score.composite import IndicatorBundle
from riskboard.snapshots.schemas import REGIONAL, QuarterRow, Region

# Weighted fields; dxy is a single global quantity and is copied from USA.
AGGREGATED_FIELDS = ("hy_oas", "fci", "pmi", "book_bill", "unemployment")


def _regional_rows(period: str, rows: Iterable[QuarterRow]) -> dict[Region, QuarterRow]:
    found: dict[Region, QuarterRow] = {}
    for row in rows:
        if row.period == period and row.region in REGIONAL:
            found[row.region] = row

    missing = [r.value for r in REGIONAL if r not in found]
    if missing:
        raise AggregationError(
            f"Cannot build Global row for {period}: missing regional rows {missing}"
        )
    return found


def weighted_fields(
    regional: Mapping[Region, QuarterRow],
    weights: Mapping[str, float],
) -> dict[str, float]:
    """Sum each aggregated field across regions using the fixed weights.

    Weights are used as given; a map that does not sum to 1.0 is rejected
    when configuration is loaded, not here.
    """
    out: dict[str, float] = {}
    for field in AGGREGATED_FIELDS:
        out[field] = sum(
            getattr(regional[region], field) * weights[region.value]
            for region in REGIONAL
        )
    return out


def build_global_row(
    period: str,
    rows: Iterable[QuarterRow],
    weights: Mapping[str, float],
    global_defaults: float = 2.0,
) -> QuarterRow:
    """Build and score the Global row for period from the working set."""
    regional = _regional_rows(period, rows)
    agg = weighted_fields(regional, weights)

    bundle = IndicatorBundle(
        hy_oas=agg["hy_oas"],
        fci=agg["fci"],
        pmi=agg["pmi"],
        dxy=regional[Region.USA].dxy,
        book_bill=agg["book_bill"],
        ur=agg["unemployment"],
    )
    return QuarterRow.build(period, Region.GLOBAL, bundle, defaults=global_defaults)
