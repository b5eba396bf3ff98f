"""Initial schema — energy_generation_records, backfill_runs.

Revision ID: 0001
Revises:
Create Date: 2025-10-01 00:00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS timescaledb")

    # ── 1. energy_generation_records (TimescaleDB hypertable on timestamp) ─────
    op.create_table(
        "energy_generation_records",
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("serial_number", sa.String(64), nullable=False),
        sa.Column("energy_generated", sa.Integer, nullable=False),
        sa.Column("interval_hours", sa.Float, nullable=False, server_default="2"),
        sa.Column("weather_condition", sa.String(20), nullable=True),
        sa.Column("cloud_cover", sa.Integer, nullable=True),
        sa.Column("injected_anomaly", sa.String(40), nullable=True),
        sa.PrimaryKeyConstraint("timestamp", "serial_number"),
        sa.CheckConstraint("energy_generated >= 0", name="ck_energy_non_negative"),
        sa.CheckConstraint(
            "cloud_cover IS NULL OR cloud_cover BETWEEN 0 AND 100",
            name="ck_cloud_cover_percent",
        ),
        sa.CheckConstraint(
            "interval_hours >= 0.1 AND interval_hours <= 24",
            name="ck_interval_hours_range",
        ),
    )
    op.execute(
        "SELECT create_hypertable('energy_generation_records', 'timestamp', "
        "if_not_exists => TRUE)"
    )
    # Read path: one unit's readings after a timestamp, oldest first
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_energy_records_serial_ts "
        "ON energy_generation_records (serial_number, timestamp)"
    )

    # ── 2. backfill_runs ───────────────────────────────────────────────────────
    op.create_table(
        "backfill_runs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "status",
            sa.Enum("idle", "running", "completed", "failed", name="driverstate"),
            nullable=False,
            server_default="idle",
        ),
        sa.Column("serial_number", sa.String(64), nullable=False),
        sa.Column("start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("interval_hours", sa.Float, nullable=False),
        sa.Column("rated_capacity_watts", sa.Float, nullable=False),
        sa.Column("anomaly_windows", postgresql.JSON, nullable=True),
        sa.Column("readings_generated", sa.Integer, nullable=True),
        sa.Column("readings_inserted", sa.Integer, nullable=True),
        sa.Column("anomaly_counts", postgresql.JSON, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("backfill_runs")
    op.execute("DROP TYPE IF EXISTS driverstate")
    op.drop_table("energy_generation_records")
