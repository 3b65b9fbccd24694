"""create jobs, trigger runs and catalog tables

Revision ID: 3b7e1c9a2f40
Revises:
Create Date: 2026-10-18 09:12:31.504118

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b7e1c9a2f40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "jobs",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("queue_name", sa.Text, nullable=False, comment="Logical queue"),
        sa.Column("kind", sa.Text, nullable=False, comment="Job semantics within the queue"),
        sa.Column("payload", sa.JSON, nullable=False, comment="Kind-specific data"),
        sa.Column(
            "dedup_key",
            sa.Text,
            nullable=True,
            comment="At most one non-terminal job per (queue, key)",
        ),
        sa.Column(
            "priority",
            sa.SmallInteger,
            nullable=False,
            comment="Priority 1-10, lower is picked first",
        ),
        sa.Column(
            "state", sa.Text, nullable=False, comment="waiting|active|completed|failed"
        ),
        sa.Column("attempts", sa.Integer, nullable=False, comment="Attempts started so far"),
        sa.Column("max_attempts", sa.Integer, nullable=False),
        sa.Column("backoff_type", sa.Text, nullable=False),
        sa.Column("backoff_delay_ms", sa.Integer, nullable=False),
        sa.Column(
            "run_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            comment="Earliest time the job may be claimed",
        ),
        # Worker coordination
        sa.Column("locked_by", sa.Text, nullable=True),
        # Results and progress
        sa.Column(
            "progress", sa.JSON, nullable=True, comment="Last progress reported by the worker"
        ),
        sa.Column("result", sa.JSON, nullable=True),
        sa.Column("error_code", sa.Text, nullable=True),
        sa.Column("last_error", sa.Text, nullable=True),
        # Timestamps
        sa.Column(
            "processed_on",
            sa.TIMESTAMP(timezone=True),
            nullable=True,
            comment="Last time a worker claimed it",
        ),
        sa.Column(
            "finished_on",
            sa.TIMESTAMP(timezone=True),
            nullable=True,
            comment="Terminal transition time",
        ),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint(
            "state IN ('waiting', 'active', 'completed', 'failed')",
            name="jobs_state_check",
        ),
        sa.CheckConstraint("priority BETWEEN 1 AND 10", name="jobs_priority_check"),
    )
    op.create_index("ix_jobs_queue_state_run_at", "jobs", ["queue_name", "state", "run_at"])
    op.create_index("ix_jobs_created_at", "jobs", ["created_at"])

    # Makes dedup check-and-create atomic; finished jobs release their key
    op.create_index(
        "ix_jobs_dedup_key_active",
        "jobs",
        ["queue_name", "dedup_key"],
        unique=True,
        postgresql_where=sa.text(
            "dedup_key IS NOT NULL AND state IN ('waiting', 'active')"
        ),
    )

    op.create_table(
        "trigger_runs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("trigger_name", sa.Text, nullable=False),
        sa.Column(
            "tick_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            comment="Scheduled fire time in UTC",
        ),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("finished_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("succeeded", sa.Boolean, nullable=True),
        sa.Column("error", sa.Text, nullable=True),
        sa.UniqueConstraint("trigger_name", "tick_at", name="uq_trigger_runs_name_tick"),
    )

    op.create_table(
        "brands",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("shopify_domain", sa.Text, nullable=True),
        sa.Column("shopify_access_token", sa.Text, nullable=True),
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("brand_id", sa.String(64), nullable=False),
        sa.Column("city", sa.Text, nullable=True),
        sa.Column("state", sa.Text, nullable=True),
        sa.Column("order_created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_orders_order_created_at", "orders", ["order_created_at"])

    op.create_table(
        "city_metadata",
        sa.Column("lookup_key", sa.String(255), primary_key=True),
        sa.Column("city", sa.Text, nullable=False),
        sa.Column("state", sa.Text, nullable=False),
        sa.Column("city_normalized", sa.Text, nullable=False),
        sa.Column("metro_status", sa.Text, nullable=True, comment="metro|non-metro"),
        sa.Column("tier", sa.Text, nullable=True, comment="tier1|tier2|tier3"),
        sa.Column(
            "region", sa.Text, nullable=True, comment="north|south|east|west|central|other"
        ),
        sa.Column("is_coastal", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("source", sa.Text, nullable=False, comment="gpt|manual"),
        sa.Column("confidence", sa.Float, nullable=False),
        sa.Column(
            "processing_status",
            sa.Text,
            nullable=False,
            comment="pending|processing|completed|failed",
        ),
        sa.Column("processed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("last_verified_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_city_metadata_city_state", "city_metadata", ["city_normalized", "state"]
    )
    op.create_index(
        "ix_city_metadata_processing_status", "city_metadata", ["processing_status"]
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("city_metadata")
    op.drop_table("orders")
    op.drop_table("brands")
    op.drop_table("trigger_runs")
    op.drop_table("jobs")
