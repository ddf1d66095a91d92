"""BLS public API v2 time series."""
from __future__ import annotations

from datetime import date

import httpx
from pydantic import BaseModel, ValidationError

from riskboard.errors import UpstreamError
from riskboard.ingest.parsing import ParseFailure, ParseResult, latest_at_or_before, to_finite
from riskboard.periods import quarter_end

_URL = "https://api.bls.gov/publicAPI/v2/timeseries/data/"
PROVIDER = "bls"


class BlsDataPoint(BaseModel):
    year: str
    period: str
    value: str


class BlsSeries(BaseModel):
    seriesID: str
    data: list[BlsDataPoint] = []


class BlsResults(BaseModel):
    series: list[BlsSeries] = []


class BlsResponse(BaseModel):
    status: str
    message: list[str] = []
    Results: BlsResults | None = None


def _point_date(point: BlsDataPoint) -> date | None:
    """Month-start date for monthly (Mnn) and quarter-end for quarterly (Qnn) periods."""
    try:
        year = int(point.year)
        num = int(point.period[1:])
    except ValueError:
        return None
    if point.period.startswith("M") and 1 <= num <= 12:
        return date(year, num, 1)
    if point.period.startswith("Q") and 1 <= num <= 4:
        return quarter_end(year, num)
    return None


def parse_bls_series(payload: object, series_id: str, cutoff: date | None = None) -> ParseResult:
    try:
        parsed = BlsResponse.model_validate(payload)
    except ValidationError as e:
        return ParseFailure(PROVIDER, f"{series_id}: unexpected response shape ({e.error_count()} errors)")

    if parsed.status != "REQUEST_SUCCEEDED" or parsed.Results is None:
        detail = "; ".join(parsed.message) or parsed.status
        return ParseFailure(PROVIDER, f"{series_id}: {detail}")

    points: list[tuple[date, float]] = []
    for series in parsed.Results.series:
        if series.seriesID != series_id:
            continue
        for point in series.data:
            point_date = _point_date(point)
            value = to_finite(point.value)
            if point_date is not None and value is not None:
                points.append((point_date, value))
    return latest_at_or_before(points, cutoff, PROVIDER, series_id)


async def fetch_bls_series(
    client: httpx.AsyncClient,
    series_id: str,
    api_key: str,
    cutoff: date | None = None,
    timeout: float = 30,
) -> ParseResult:
    end_year = (cutoff or date.today()).year
    body = {
        "seriesid": [series_id],
        "startyear": str(end_year - 2),
        "endyear": str(end_year),
        "registrationkey": api_key,
    }
    try:
        resp = await client.post(_URL, json=body, timeout=timeout)
        resp.raise_for_status()
        payload = resp.json()
    except httpx.HTTPStatusError as e:
        raise UpstreamError(PROVIDER, f"{series_id}: HTTP {e.response.status_code}") from e
    except (httpx.HTTPError, ValueError) as e:
        raise UpstreamError(PROVIDER, f"{series_id}: {e}") from e

    return parse_bls_series(payload, series_id, cutoff)
