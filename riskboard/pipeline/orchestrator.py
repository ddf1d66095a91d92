"""Refresh and backfill: fetch -> score -> upsert -> aggregate -> upsert -> write.

Each cycle reads every stored row, mutates an in-memory working copy and
writes it back once, so a failed cycle commits nothing. Cycles within one
process are serialized by ``RefreshService._lock``. Cycles running in
separate processes are not: the later ``write_all`` wins for the file
backend, and per-key upserts interleave for the database backend. Refreshes
run quarterly, so this is accepted rather than guarded with a distributed
lock.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable

from riskboard.config import PipelineConfig
from riskboard.errors import ConfigurationError, UpstreamError
from riskboard.ingest.fetcher import INDICATOR_IDS, IndicatorFetcher, ProviderFetcher, missing_credentials
from riskboard.periods import parse_period, quarter_label, recent_quarter_ends
from riskboard.pipeline.policy import NEUTRAL_DEFAULTS, FallbackPolicy, policy_for
from riskboard.score.aggregate import build_global_row
from riskboard.score.composite import IndicatorBundle
from riskboard.snapshots.schemas import REGIONAL, QuarterRow, Region
from riskboard.snapshots.store import RowStore, upsert_row, upsert_rows

logger = logging.getLogger(__name__)

FetcherFactory = Callable[[], AbstractAsyncContextManager[IndicatorFetcher]]


@dataclass
class RefreshResult:
    period: str
    updated_rows: list[QuarterRow]
    warnings: list[str] = field(default_factory=list)


@dataclass
class BackfillResult:
    periods: list[str]
    warnings: list[str] = field(default_factory=list)


def _previous_value(
    rows: list[QuarterRow],
    region: Region,
    indicator_id: str,
    period: str,
) -> tuple[float, str] | None:
    """Most recent stored value of the field for region strictly before period."""
    earlier = [r for r in rows if r.region == region and r.period < period]
    if not earlier:
        return None
    prev = max(earlier, key=lambda r: r.period)
    return getattr(prev, indicator_id), prev.period


class RefreshService:
    def __init__(
        self,
        config: PipelineConfig,
        store: RowStore,
        fetcher_factory: FetcherFactory | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self._fetcher_factory = fetcher_factory or (
            lambda: ProviderFetcher(config.settings, config.regions)
        )
        self._lock = asyncio.Lock()

    def _check_credentials(self) -> None:
        errs = missing_credentials(self.config.settings, self.config.regions.required_providers())
        if errs:
            raise ConfigurationError("; ".join(errs))

    async def refresh(
        self,
        period: str | None = None,
        log_fn: Callable[[str], None] = logger.info,
    ) -> RefreshResult:
        """Fetch latest values and upsert the six rows of period (default: current quarter)."""
        if period is None:
            period = quarter_label(datetime.now(tz=timezone.utc))
        else:
            parse_period(period)

        async with self._lock:
            self._check_credentials()
            rows = await self.store.read_all()
            warnings: list[str] = []
            log_fn(f"Refresh: period={period}, {len(rows)} stored rows")

            async with self._fetcher_factory() as fetcher:
                updated = await self._run_period(fetcher, rows, period, None, warnings, log_fn)

            await self.store.write_all(rows)
            log_fn(f"Refresh complete: {len(updated)} rows upserted, {len(warnings)} warning(s)")
        return RefreshResult(period=period, updated_rows=updated, warnings=warnings)

    async def backfill(
        self,
        quarter_count: int | None = None,
        log_fn: Callable[[str], None] = logger.info,
        today: date | None = None,
    ) -> BackfillResult:
        """Rebuild the last quarter_count quarters from point-in-time values."""
        if quarter_count is None:
            quarter_count = self.config.settings.backfill_default_quarters
        quarters = recent_quarter_ends(quarter_count, today=today)

        async with self._lock:
            self._check_credentials()
            rows = await self.store.read_all()
            warnings: list[str] = []
            log_fn(f"Backfill: {quarters[0].period} .. {quarters[-1].period}")

            async with self._fetcher_factory() as fetcher:
                for q in quarters:
                    log_fn(f"\n--- {q.period} (as of {q.as_of}) ---")
                    await self._run_period(fetcher, rows, q.period, q.as_of, warnings, log_fn)

            await self.store.write_all(rows)
            log_fn(f"Backfill complete: {len(quarters)} periods")
        return BackfillResult(periods=[q.period for q in quarters], warnings=warnings)

    async def get_snapshot(self, region: Region | str, limit: int | None = None) -> list[QuarterRow]:
        """Rows of region ascending by period; limit keeps the most recent ones."""
        region = Region(region)
        if limit is not None and limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        rows = [r for r in await self.store.read_all() if r.region == region]
        rows.sort(key=lambda r: r.period)
        if limit is not None:
            rows = rows[-limit:]
        return rows

    async def _run_period(
        self,
        fetcher: IndicatorFetcher,
        rows: list[QuarterRow],
        period: str,
        cutoff: date | None,
        warnings: list[str],
        log_fn: Callable[[str], None],
    ) -> list[QuarterRow]:
        regions_cfg = self.config.regions
        regional: list[QuarterRow] = []

        for region in REGIONAL:
            values: dict[str, float] = {}
            for indicator_id in INDICATOR_IDS:
                values[indicator_id] = await self._fetch_value(
                    fetcher, rows, region, indicator_id, period, cutoff, warnings,
                )
            spec = regions_cfg.regions[region.value]
            bundle = IndicatorBundle(
                hy_oas=values["hy_oas"],
                fci=values["fci"],
                pmi=values["pmi"],
                dxy=values["dxy"],
                book_bill=spec.book_bill,
                ur=values["unemployment"],
            )
            row = QuarterRow.build(period, region, bundle, defaults=spec.defaults)
            regional.append(row)
            log_fn(f"  {region.value}: riskScore={row.risk_score:.3f} ({row.signal.value})")

        upsert_rows(rows, regional)

        global_row = build_global_row(
            period, rows, regions_cfg.weights, global_defaults=regions_cfg.global_defaults,
        )
        upsert_row(rows, global_row)
        log_fn(f"  Global: riskScore={global_row.risk_score:.3f} ({global_row.signal.value})")
        return [*regional, global_row]

    async def _fetch_value(
        self,
        fetcher: IndicatorFetcher,
        rows: list[QuarterRow],
        region: Region,
        indicator_id: str,
        period: str,
        cutoff: date | None,
        warnings: list[str],
    ) -> float:
        source = self.config.regions.regions[region.value].indicators.get(indicator_id)
        policy = policy_for(region.value, indicator_id, source)
        try:
            if cutoff is None:
                return await fetcher.fetch_latest(indicator_id, region.value)
            return await fetcher.fetch_as_of(indicator_id, region.value, cutoff)
        except UpstreamError as e:
            if policy is FallbackPolicy.CRITICAL:
                raise

            previous = None
            if policy is FallbackPolicy.DEGRADE_WITH_PREVIOUS:
                previous = _previous_value(rows, region, indicator_id, period)

            if previous is not None:
                value, prev_period = previous
                note = f"used previous-period value {value:g} from {prev_period}"
            else:
                value = NEUTRAL_DEFAULTS[indicator_id]
                note = f"used neutral default {value:g}"

            message = f"{region.value} {indicator_id}: {e.detail}; {note}"
            logger.warning(message)
            warnings.append(message)
            return value
