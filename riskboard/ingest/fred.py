"""FRED series observations."""
from __future__ import annotations

from datetime import date, datetime

import httpx
from pydantic import BaseModel, ValidationError

from riskboard.errors import UpstreamError
from riskboard.ingest.parsing import ParseFailure, ParseResult, latest_at_or_before, to_finite

_BASE_URL = "https://api.stlouisfed.org/fred"
PROVIDER = "fred"


class FredObservation(BaseModel):
    date: str
    value: str


class FredResponse(BaseModel):
    observations: list[FredObservation] = []


def parse_fred_observations(payload: object, series_id: str, cutoff: date | None = None) -> ParseResult:
    """Latest numeric observation at/before cutoff; "." marks a missing value."""
    try:
        parsed = FredResponse.model_validate(payload)
    except ValidationError as e:
        return ParseFailure(PROVIDER, f"{series_id}: unexpected response shape ({e.error_count()} errors)")

    points: list[tuple[date, float]] = []
    for obs in parsed.observations:
        value = to_finite(obs.value)
        if value is None:
            continue
        try:
            obs_date = datetime.strptime(obs.date, "%Y-%m-%d").date()
        except ValueError:
            continue
        points.append((obs_date, value))
    return latest_at_or_before(points, cutoff, PROVIDER, series_id)


async def fetch_fred_series(
    client: httpx.AsyncClient,
    series_id: str,
    api_key: str,
    cutoff: date | None = None,
    timeout: float = 30,
) -> ParseResult:
    """Fetch observations for series_id, ending at cutoff when given."""
    params = {
        "series_id": series_id,
        "api_key": api_key,
        "file_type": "json",
        "sort_order": "asc",
    }
    if cutoff is not None:
        params["observation_end"] = cutoff.isoformat()

    try:
        resp = await client.get(f"{_BASE_URL}/series/observations", params=params, timeout=timeout)
        resp.raise_for_status()
        payload = resp.json()
    except httpx.HTTPStatusError as e:
        raise UpstreamError(PROVIDER, f"{series_id}: HTTP {e.response.status_code}") from e
    except (httpx.HTTPError, ValueError) as e:
        raise UpstreamError(PROVIDER, f"{series_id}: {e}") from e

    return parse_fred_observations(payload, series_id, cutoff)
