"""Fold legacy report timestamps into sale_lines.reported_at

Revision ID: 20261019_reported_at
Revises: 20261019_initial
Create Date: 2026-10-19

Older databases kept the report timestamp in one of two columns depending
on which screen last wrote it. Precedence when both are set:
earnings_datetime, then store_sale_datetime, then captured_at.

Columns that do not exist are skipped, so the revision also applies to
databases that only ever had one of them.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_reported_at"
down_revision = "20261019_initial"
branch_labels = None
depends_on = None

LEGACY_COLUMNS = ("earnings_datetime", "store_sale_datetime")


def _columns(table: str) -> set[str]:
    inspector = sa.inspect(op.get_bind())
    return {c["name"] for c in inspector.get_columns(table)}


def upgrade():
    existing = _columns("sale_lines")
    legacy = [c for c in LEGACY_COLUMNS if c in existing]

    if "reported_at" not in existing:
        with op.batch_alter_table("sale_lines", schema=None) as batch_op:
            batch_op.add_column(sa.Column("reported_at", sa.DateTime(timezone=True), nullable=True))

    sources = ", ".join(legacy + ["reported_at", "captured_at"])
    op.execute(f"UPDATE sale_lines SET reported_at = COALESCE({sources})")

    with op.batch_alter_table("sale_lines", schema=None) as batch_op:
        batch_op.alter_column("reported_at", existing_type=sa.DateTime(timezone=True), nullable=False)
        for column in legacy:
            batch_op.drop_column(column)
        batch_op.create_index("ix_sale_lines_reported_cancelled", ["reported_at", "cancelled"])


def downgrade():
    with op.batch_alter_table("sale_lines", schema=None) as batch_op:
        batch_op.drop_index("ix_sale_lines_reported_cancelled")
        batch_op.add_column(sa.Column("earnings_datetime", sa.DateTime(timezone=True), nullable=True))
        batch_op.add_column(sa.Column("store_sale_datetime", sa.DateTime(timezone=True), nullable=True))

    op.execute("UPDATE sale_lines SET earnings_datetime = reported_at")

    with op.batch_alter_table("sale_lines", schema=None) as batch_op:
        batch_op.drop_column("reported_at")
