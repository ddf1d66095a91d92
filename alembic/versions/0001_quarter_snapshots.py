"""quarter snapshots

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "quarter_snapshots",
        sa.Column("seq", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("period", sa.String(7), nullable=False),
        sa.Column("region", sa.String(20), nullable=False),
        sa.Column("hyOAS", sa.Float(), nullable=False),
        sa.Column("fci", sa.Float(), nullable=False),
        sa.Column("pmi", sa.Float(), nullable=False),
        sa.Column("dxy", sa.Float(), nullable=False),
        sa.Column("bookBill", sa.Float(), nullable=False),
        sa.Column("defaults", sa.Float(), nullable=False),
        sa.Column("unemployment", sa.Float(), nullable=False),
        sa.Column("riskScore", sa.Float(), nullable=False),
        sa.Column("signal", sa.String(10), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("seq"),
        sa.UniqueConstraint("period", "region", name="uq_snapshot_period_region"),
    )
    op.create_index("ix_snapshots_region_period", "quarter_snapshots", ["region", "period"])


def downgrade() -> None:
    op.drop_index("ix_snapshots_region_period", table_name="quarter_snapshots")
    op.drop_table("quarter_snapshots")
