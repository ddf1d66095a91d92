"""Tests for provider parsers and the fetcher, using mocked HTTP responses."""
from __future__ import annotations

import json
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from riskboard.config import RegionConfig, Settings
from riskboard.errors import ConfigurationError, UpstreamError
from riskboard.ingest.bls import fetch_bls_series, parse_bls_series
from riskboard.ingest.fetcher import ProviderFetcher, missing_credentials
from riskboard.ingest.fred import fetch_fred_series, parse_fred_observations
from riskboard.ingest.parsing import Parsed, ParseFailure, to_finite, unwrap
from riskboard.ingest.tradingeconomics import fetch_te_indicator, parse_te_historical


def _mock_client(payload, method: str = "get"):
    mock_resp = MagicMock()
    mock_resp.text = json.dumps(payload)
    mock_resp.json.return_value = payload
    mock_resp.raise_for_status = MagicMock()

    mock_client = AsyncMock()
    getattr(mock_client, method).return_value = mock_resp
    return mock_client


def _failing_client(status: int):
    request = httpx.Request("GET", "https://example.test")
    response = httpx.Response(status, request=request)
    mock_resp = MagicMock()
    mock_resp.raise_for_status.side_effect = httpx.HTTPStatusError("boom", request=request, response=response)

    mock_client = AsyncMock()
    mock_client.get.return_value = mock_resp
    mock_client.post.return_value = mock_resp
    return mock_client


# ---------------------------------------------------------------------------
# Shared parsing helpers
# ---------------------------------------------------------------------------

def test_to_finite():
    assert to_finite("5.33") == 5.33
    assert to_finite("4.2%") == 4.2
    assert to_finite("1,204.5") == 1204.5
    assert to_finite(".") is None
    assert to_finite("") is None
    assert to_finite(None) is None
    assert to_finite("NaN") is None
    assert to_finite(True) is None


def test_unwrap():
    assert unwrap(Parsed(1.5)) == 1.5
    with pytest.raises(UpstreamError, match="fred"):
        unwrap(ParseFailure("fred", "no data"))


# ---------------------------------------------------------------------------
# FRED
# ---------------------------------------------------------------------------

_FRED = {
    "observations": [
        {"date": "2024-03-28", "value": "310.0"},
        {"date": "2024-04-01", "value": "315.5"},
        {"date": "2024-04-02", "value": "."},
    ]
}


def test_parse_fred_latest_skips_missing():
    result = parse_fred_observations(_FRED, "BAMLH0A0HYM2")
    assert result == Parsed(315.5, date(2024, 4, 1))


def test_parse_fred_respects_cutoff():
    result = parse_fred_observations(_FRED, "BAMLH0A0HYM2", cutoff=date(2024, 3, 31))
    assert result == Parsed(310.0, date(2024, 3, 28))


def test_parse_fred_no_observations():
    result = parse_fred_observations({"observations": []}, "NFCI")
    assert isinstance(result, ParseFailure)
    assert "NFCI" in result.detail


def test_parse_fred_bad_shape():
    result = parse_fred_observations({"observations": [{"when": "x"}]}, "NFCI")
    assert isinstance(result, ParseFailure)


@pytest.mark.asyncio
async def test_fetch_fred_series_passes_cutoff():
    client = _mock_client(_FRED)
    result = await fetch_fred_series(client, "NFCI", "testkey", cutoff=date(2024, 6, 30))

    assert result == Parsed(315.5, date(2024, 4, 1))
    params = client.get.await_args.kwargs["params"]
    assert params["observation_end"] == "2024-06-30"
    assert params["api_key"] == "testkey"


@pytest.mark.asyncio
async def test_fetch_fred_http_error_is_upstream_error():
    with pytest.raises(UpstreamError, match="HTTP 403"):
        await fetch_fred_series(_failing_client(403), "NFCI", "badkey")


# ---------------------------------------------------------------------------
# BLS
# ---------------------------------------------------------------------------

_BLS = {
    "status": "REQUEST_SUCCEEDED",
    "message": [],
    "Results": {
        "series": [
            {
                "seriesID": "LNS14000000",
                "data": [
                    {"year": "2024", "period": "M05", "value": "4.0"},
                    {"year": "2024", "period": "M04", "value": "3.9"},
                    {"year": "2024", "period": "M13", "value": "3.8"},
                ],
            }
        ]
    },
}


def test_parse_bls_latest():
    assert parse_bls_series(_BLS, "LNS14000000") == Parsed(4.0, date(2024, 5, 1))


def test_parse_bls_cutoff():
    assert parse_bls_series(_BLS, "LNS14000000", cutoff=date(2024, 4, 30)) == Parsed(3.9, date(2024, 4, 1))


def test_parse_bls_request_failed():
    payload = {"status": "REQUEST_NOT_PROCESSED", "message": ["daily threshold reached"], "Results": None}
    result = parse_bls_series(payload, "LNS14000000")
    assert isinstance(result, ParseFailure)
    assert "threshold" in result.detail


@pytest.mark.asyncio
async def test_fetch_bls_posts_registration_key():
    client = _mock_client(_BLS, method="post")
    result = await fetch_bls_series(client, "LNS14000000", "blskey", cutoff=date(2024, 6, 30))

    assert result == Parsed(4.0, date(2024, 5, 1))
    body = client.post.await_args.kwargs["json"]
    assert body["registrationkey"] == "blskey"
    assert body["seriesid"] == ["LNS14000000"]
    assert body["endyear"] == "2024"


# ---------------------------------------------------------------------------
# Trading Economics
# ---------------------------------------------------------------------------

_TE = [
    {"Country": "China", "Category": "Manufacturing PMI", "DateTime": "2024-04-30T00:00:00", "Value": 50.4},
    {"Country": "China", "Category": "Manufacturing PMI", "DateTime": "2024-05-31T00:00:00", "Value": 49.5},
    {"Country": "China", "Category": "Manufacturing PMI", "DateTime": "2024-06-30T00:00:00", "Value": None},
]


def test_parse_te_latest_numeric():
    assert parse_te_historical(_TE, "China PMI") == Parsed(49.5, date(2024, 5, 31))


def test_parse_te_not_a_list():
    result = parse_te_historical({"Message": "No Access"}, "China PMI")
    assert isinstance(result, ParseFailure)


@pytest.mark.asyncio
async def test_fetch_te_builds_historical_path():
    client = _mock_client(_TE)
    result = await fetch_te_indicator(
        client, "China", "Manufacturing PMI", "user", "key", cutoff=date(2024, 6, 30),
    )
    assert result == Parsed(49.5, date(2024, 5, 31))
    url = client.get.await_args.args[0]
    assert "/historical/country/china/indicator/manufacturing%20pmi/" in url
    assert url.endswith("/2024-06-30")
    assert client.get.await_args.kwargs["params"]["c"] == "user:key"


# ---------------------------------------------------------------------------
# ProviderFetcher routing
# ---------------------------------------------------------------------------

def _region_config() -> RegionConfig:
    return RegionConfig.model_validate({
        "weights": {"USA": 0.3, "Europe": 0.25, "China": 0.25, "India": 0.1, "Latin America": 0.1},
        "regions": {
            "USA": {
                "book_bill": 1.06,
                "defaults": 2.0,
                "indicators": {
                    "hy_oas": {"source": "fred", "series_id": "BAMLH0A0HYM2"},
                    "dxy": {"source": "fred", "series_id": "DTWEXBGS"},
                },
            },
            "China": {
                "book_bill": 1.02,
                "defaults": 3.0,
                "indicators": {
                    "hy_oas": {"source": "constant", "value": 380},
                    "pmi": {
                        "source": "mean",
                        "parts": [
                            {"source": "constant", "value": 49.0},
                            {"source": "constant", "value": 51.0},
                        ],
                    },
                },
            },
        },
    })


@pytest.mark.asyncio
async def test_fetcher_constant_and_mean_sources():
    fetcher = ProviderFetcher(Settings(), _region_config(), client=AsyncMock())
    async with fetcher:
        assert await fetcher.fetch_latest("hy_oas", "China") == 380.0
        assert await fetcher.fetch_as_of("pmi", "China", date(2024, 3, 31)) == 50.0


@pytest.mark.asyncio
async def test_fetcher_memoizes_shared_series():
    client = _mock_client(_FRED)
    fetcher = ProviderFetcher(Settings(fred_api_key="k"), _region_config(), client=client)
    async with fetcher:
        first = await fetcher.fetch_latest("dxy", "USA")
        second = await fetcher.fetch_latest("dxy", "USA")
    assert first == second == 315.5
    assert client.get.await_count == 1


@pytest.mark.asyncio
async def test_fetcher_unconfigured_indicator():
    fetcher = ProviderFetcher(Settings(), _region_config(), client=AsyncMock())
    async with fetcher:
        with pytest.raises(ConfigurationError):
            await fetcher.fetch_latest("fci", "USA")


@pytest.mark.asyncio
async def test_fetcher_parse_failure_raises_upstream_error():
    client = _mock_client({"observations": []})
    fetcher = ProviderFetcher(Settings(fred_api_key="k"), _region_config(), client=client)
    async with fetcher:
        with pytest.raises(UpstreamError):
            await fetcher.fetch_latest("hy_oas", "USA")


def test_missing_credentials():
    empty = Settings(fred_api_key="", bls_api_key="", te_user="", te_key="")
    errs = missing_credentials(empty, {"fred", "bls", "tradingeconomics"})
    assert errs == ["FRED_API_KEY missing", "BLS_API_KEY missing", "TE_USER/TE_KEY missing"]
    assert missing_credentials(Settings(fred_api_key="k"), {"fred"}) == []
