"""Routes (indicator, region) lookups to the configured provider."""
from __future__ import annotations

import logging
from datetime import date
from typing import Protocol

import httpx

from riskboard.config import INDICATOR_NAMES, RegionConfig, Settings, SourceSpec
from riskboard.errors import ConfigurationError, UpstreamError
from riskboard.ingest.bls import fetch_bls_series
from riskboard.ingest.fred import fetch_fred_series
from riskboard.ingest.parsing import ParseResult, unwrap
from riskboard.ingest.tradingeconomics import fetch_te_indicator

logger = logging.getLogger(__name__)

INDICATOR_IDS = INDICATOR_NAMES


class IndicatorFetcher(Protocol):
    async def fetch_latest(self, indicator_id: str, region: str) -> float: ...

    async def fetch_as_of(self, indicator_id: str, region: str, cutoff: date) -> float: ...


def missing_credentials(settings: Settings, providers: set[str]) -> list[str]:
    """Names of credentials required by providers but absent from settings."""
    errs: list[str] = []
    if "fred" in providers and not settings.fred_api_key:
        errs.append("FRED_API_KEY missing")
    if "bls" in providers and not settings.bls_api_key:
        errs.append("BLS_API_KEY missing")
    if "tradingeconomics" in providers and not (settings.te_user and settings.te_key):
        errs.append("TE_USER/TE_KEY missing")
    return errs


class ProviderFetcher:
    """IndicatorFetcher backed by FRED, BLS and Trading Economics.

    Values are memoized per (source, cutoff) for the lifetime of the fetcher,
    so one refresh cycle hits each upstream series once even when several
    regions share it (e.g. the currency index).
    """

    def __init__(
        self,
        settings: Settings,
        region_config: RegionConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.region_config = region_config
        self._client = client
        self._owns_client = False
        self._cache: dict[tuple, float] = {}

    async def __aenter__(self) -> ProviderFetcher:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.http_timeout_seconds)
            self._owns_client = True
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def source_for(self, indicator_id: str, region: str) -> SourceSpec:
        spec = self.region_config.regions.get(region)
        if spec is None:
            raise ConfigurationError(f"No source configuration for region {region!r}")
        source = spec.indicators.get(indicator_id)
        if source is None:
            raise ConfigurationError(f"No source configured for {region} {indicator_id}")
        return source

    async def fetch_latest(self, indicator_id: str, region: str) -> float:
        return await self._resolve(self.source_for(indicator_id, region), None)

    async def fetch_as_of(self, indicator_id: str, region: str, cutoff: date) -> float:
        return await self._resolve(self.source_for(indicator_id, region), cutoff)

    async def _resolve(self, source: SourceSpec, cutoff: date | None) -> float:
        if source.source == "constant":
            if source.value is None:
                raise ConfigurationError("constant source without a value")
            return float(source.value)

        if source.source == "mean":
            if not source.parts:
                raise ConfigurationError("mean source without parts")
            values = [await self._resolve(part, cutoff) for part in source.parts]
            return sum(values) / len(values)

        cache_key = (source.source, source.series_id, source.country, source.indicator, cutoff)
        if cache_key in self._cache:
            return self._cache[cache_key]

        value = unwrap(await self._fetch(source, cutoff))
        self._cache[cache_key] = value
        return value

    async def _fetch(self, source: SourceSpec, cutoff: date | None) -> ParseResult:
        if self._client is None:
            raise RuntimeError("ProviderFetcher used outside its async context")
        s = self.settings
        timeout = s.http_timeout_seconds

        if source.source == "fred":
            if not s.fred_api_key:
                raise ConfigurationError("FRED_API_KEY missing")
            logger.debug("FRED %s (cutoff=%s)", source.series_id, cutoff)
            return await fetch_fred_series(self._client, source.series_id, s.fred_api_key, cutoff, timeout)

        if source.source == "bls":
            if not s.bls_api_key:
                raise ConfigurationError("BLS_API_KEY missing")
            logger.debug("BLS %s (cutoff=%s)", source.series_id, cutoff)
            return await fetch_bls_series(self._client, source.series_id, s.bls_api_key, cutoff, timeout)

        if source.source == "tradingeconomics":
            if not (s.te_user and s.te_key):
                raise ConfigurationError("TE_USER/TE_KEY missing")
            logger.debug("TE %s %s (cutoff=%s)", source.country, source.indicator, cutoff)
            return await fetch_te_indicator(
                self._client, source.country, source.indicator, s.te_user, s.te_key, cutoff, timeout,
            )

        raise UpstreamError(source.source, "unknown provider")
