"""Trading Economics historical indicator values."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from urllib.parse import quote

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from riskboard.errors import UpstreamError
from riskboard.ingest.parsing import ParseFailure, ParseResult, latest_at_or_before, to_finite

_BASE_URL = "https://api.tradingeconomics.com"
PROVIDER = "tradingeconomics"

# Window of history requested; monthly indicators need only the last few prints.
_LOOKBACK = timedelta(days=400)


class TeHistoricalPoint(BaseModel):
    DateTime: str
    Value: float | str | None = None


_HISTORY = TypeAdapter(list[TeHistoricalPoint])


def parse_te_historical(payload: object, label: str, cutoff: date | None = None) -> ParseResult:
    try:
        items = _HISTORY.validate_python(payload)
    except ValidationError as e:
        return ParseFailure(PROVIDER, f"{label}: unexpected response shape ({e.error_count()} errors)")

    points: list[tuple[date, float]] = []
    for item in items:
        value = to_finite(item.Value)
        if value is None:
            continue
        try:
            observed = datetime.fromisoformat(item.DateTime).date()
        except ValueError:
            continue
        points.append((observed, value))
    return latest_at_or_before(points, cutoff, PROVIDER, label)


async def fetch_te_indicator(
    client: httpx.AsyncClient,
    country: str,
    indicator: str,
    user: str,
    key: str,
    cutoff: date | None = None,
    timeout: float = 30,
) -> ParseResult:
    end = cutoff or date.today()
    start = end - _LOOKBACK
    path = (
        f"/historical/country/{quote(country.lower())}/indicator/{quote(indicator.lower())}"
        f"/{start.isoformat()}/{end.isoformat()}"
    )
    label = f"{country} {indicator}"
    try:
        resp = await client.get(
            f"{_BASE_URL}{path}",
            params={"c": f"{user}:{key}", "f": "json"},
            timeout=timeout,
        )
        resp.raise_for_status()
        payload = resp.json()
    except httpx.HTTPStatusError as e:
        raise UpstreamError(PROVIDER, f"{label}: HTTP {e.response.status_code}") from e
    except (httpx.HTTPError, ValueError) as e:
        raise UpstreamError(PROVIDER, f"{label}: {e}") from e

    return parse_te_historical(payload, label, cutoff)
