"""Row store backends: read-all / write-all of QuarterRows.

The pipeline reads every row, mutates an in-memory working copy and writes
the whole collection back. Two writers in different processes race with
last-write-wins; the database backend narrows this to per-key upserts but
does not make concurrent cycles atomic.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError

from riskboard.db.models import QuarterSnapshot
from riskboard.errors import StoreError
from riskboard.snapshots.schemas import QuarterRow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from riskboard.config import Settings

logger = logging.getLogger(__name__)


class RowStore(Protocol):
    async def read_all(self) -> list[QuarterRow]: ...

    async def write_all(self, rows: list[QuarterRow]) -> None: ...


def upsert_row(rows: list[QuarterRow], row: QuarterRow) -> None:
    """Replace the entry with the same (period, region) in place, else append."""
    for i, existing in enumerate(rows):
        if existing.key == row.key:
            rows[i] = row
            return
    rows.append(row)


def upsert_rows(rows: list[QuarterRow], batch: Iterable[QuarterRow]) -> None:
    for row in batch:
        upsert_row(rows, row)


def _parse_records(records: list[dict], origin: str) -> list[QuarterRow]:
    try:
        return [QuarterRow.model_validate(r) for r in records]
    except ValidationError as e:
        raise StoreError(f"Invalid row in {origin}: {e}") from e


class JsonFileRowStore:
    """Rows as a JSON array in a single file, replaced atomically on write."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    async def read_all(self) -> list[QuarterRow]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        try:
            records = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreError(f"Corrupt snapshot file {self.path}: {e}") from e
        if not isinstance(records, list):
            raise StoreError(f"Snapshot file {self.path} does not hold a JSON array")
        return _parse_records(records, str(self.path))

    async def write_all(self, rows: list[QuarterRow]) -> None:
        content = json.dumps([r.to_record() for r in rows], indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".snapshots-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(content)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StoreError(f"Failed to write {self.path}: {e}") from e
        logger.info("Wrote %d rows to %s", len(rows), self.path)


class SqlRowStore:
    """Rows in the ``quarter_snapshots`` table, upserted on (period, region)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def read_all(self) -> list[QuarterRow]:
        try:
            async with self.session_factory() as db:
                result = await db.execute(select(QuarterSnapshot).order_by(QuarterSnapshot.seq))
                snapshots = list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read snapshots: {e}") from e

        records = [
            {
                "period": s.period,
                "region": s.region,
                "hyOAS": s.hy_oas,
                "fci": s.fci,
                "pmi": s.pmi,
                "dxy": s.dxy,
                "bookBill": s.book_bill,
                "defaults": s.defaults,
                "unemployment": s.unemployment,
                "riskScore": s.risk_score,
                "signal": s.signal,
            }
            for s in snapshots
        ]
        return _parse_records(records, "quarter_snapshots")

    async def write_all(self, rows: list[QuarterRow]) -> None:
        columns = {c.name: c for c in QuarterSnapshot.__table__.c}
        try:
            async with self.session_factory() as db:
                for row in rows:
                    # Keyed by column name: hyOAS, bookBill and riskScore differ from the attributes.
                    values = {
                        "period": row.period,
                        "region": row.region.value,
                        "hyOAS": row.hy_oas,
                        "fci": row.fci,
                        "pmi": row.pmi,
                        "dxy": row.dxy,
                        "bookBill": row.book_bill,
                        "defaults": row.defaults,
                        "unemployment": row.unemployment,
                        "riskScore": row.risk_score,
                        "signal": row.signal.value,
                    }
                    stmt = pg_insert(QuarterSnapshot.__table__).values(
                        {columns[name]: v for name, v in values.items()}
                    )
                    set_ = {
                        columns[name]: stmt.excluded[columns[name].key]
                        for name in values
                        if name not in ("period", "region")
                    }
                    # onupdate does not fire for ON CONFLICT DO UPDATE
                    set_[columns["updated_at"]] = func.now()
                    stmt = stmt.on_conflict_do_update(constraint="uq_snapshot_period_region", set_=set_)
                    await db.execute(stmt)
                await db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to write snapshots: {e}") from e
        logger.info("Upserted %d rows into quarter_snapshots", len(rows))


def make_row_store(settings: Settings) -> RowStore:
    if settings.store_backend == "database":
        from riskboard.db.session import get_session_factory
        return SqlRowStore(get_session_factory())
    return JsonFileRowStore(settings.store_path)
