from __future__ import annotations

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from riskboard.periods import parse_period
from riskboard.score.composite import IndicatorBundle, Signal, compute_score, to_signal

_SCORE_TOLERANCE = 1e-9


class Region(str, Enum):
    USA = "USA"
    EUROPE = "Europe"
    CHINA = "China"
    INDIA = "India"
    LATIN_AMERICA = "Latin America"
    GLOBAL = "Global"


REGIONAL = (Region.USA, Region.EUROPE, Region.CHINA, Region.INDIA, Region.LATIN_AMERICA)


class QuarterRow(BaseModel):
    """One persisted (period, region) record.

    ``risk_score`` and ``signal`` are derived: construction fails unless they
    match the Scoring Engine's output for the row's own inputs.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    period: str
    region: Region
    hy_oas: float = Field(alias="hyOAS")
    fci: float
    pmi: float
    dxy: float
    book_bill: float = Field(alias="bookBill")
    defaults: float
    unemployment: float
    risk_score: float = Field(alias="riskScore")
    signal: Signal

    @field_validator("period")
    @classmethod
    def _check_period(cls, v: str) -> str:
        parse_period(v)
        return v

    @model_validator(mode="after")
    def _check_derived(self) -> QuarterRow:
        expected = compute_score(self.bundle())
        if not math.isclose(self.risk_score, expected, rel_tol=0.0, abs_tol=_SCORE_TOLERANCE):
            raise ValueError(
                f"riskScore {self.risk_score!r} for {self.period} {self.region.value} "
                f"does not match computed score {expected!r}"
            )
        if self.signal != to_signal(self.risk_score):
            raise ValueError(
                f"signal {self.signal.value!r} disagrees with riskScore {self.risk_score!r}"
            )
        return self

    @classmethod
    def build(
        cls,
        period: str,
        region: Region,
        bundle: IndicatorBundle,
        defaults: float,
    ) -> QuarterRow:
        score = compute_score(bundle)
        return cls(
            period=period,
            region=region,
            hy_oas=bundle.hy_oas,
            fci=bundle.fci,
            pmi=bundle.pmi,
            dxy=bundle.dxy,
            book_bill=bundle.book_bill,
            defaults=defaults,
            unemployment=bundle.ur,
            risk_score=score,
            signal=to_signal(score),
        )

    @property
    def key(self) -> tuple[str, Region]:
        return self.period, self.region

    def bundle(self) -> IndicatorBundle:
        return IndicatorBundle(
            hy_oas=self.hy_oas,
            fci=self.fci,
            pmi=self.pmi,
            dxy=self.dxy,
            book_bill=self.book_bill,
            ur=self.unemployment,
        )

    def to_record(self) -> dict:
        """Persisted shape: wire field names, JSON-native values."""
        return self.model_dump(mode="json", by_alias=True)
