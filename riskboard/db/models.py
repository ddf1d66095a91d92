from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class Base(DeclarativeBase):
    pass


class QuarterSnapshot(Base):
    __tablename__ = "quarter_snapshots"
    __table_args__ = (
        UniqueConstraint("period", "region", name="uq_snapshot_period_region"),
        Index("ix_snapshots_region_period", "region", "period"),
    )

    # Insertion order; an upsert keeps the original seq.
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    region: Mapped[str] = mapped_column(String(20), nullable=False)
    hy_oas: Mapped[float] = mapped_column("hyOAS", Float, nullable=False)
    fci: Mapped[float] = mapped_column(Float, nullable=False)
    pmi: Mapped[float] = mapped_column(Float, nullable=False)
    dxy: Mapped[float] = mapped_column(Float, nullable=False)
    book_bill: Mapped[float] = mapped_column("bookBill", Float, nullable=False)
    defaults: Mapped[float] = mapped_column(Float, nullable=False)
    unemployment: Mapped[float] = mapped_column(Float, nullable=False)
    risk_score: Mapped[float] = mapped_column("riskScore", Float, nullable=False)
    signal: Mapped[str] = mapped_column(String(10), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
