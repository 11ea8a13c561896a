"""Initial schema with queue entries and exchange rates

Revision ID: 001
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        DO $$ BEGIN
            CREATE TYPE entry_state AS ENUM ('ready', 'reserved', 'buried');
        EXCEPTION
            WHEN duplicate_object THEN null;
        END $$;
    """)

    # Create queue table
    op.create_table(
        "queue_entries",
        sa.Column("id", sa.BigInteger, sa.Identity(), nullable=False),
        sa.Column("tube", sa.String(200), nullable=False),
        sa.Column("priority", sa.Integer, nullable=False),
        sa.Column("payload", sa.Text, nullable=False),
        sa.Column(
            "state",
            postgresql.ENUM("ready", "reserved", "buried", name="entry_state", create_type=False),
            nullable=False,
            server_default="ready",
        ),
        sa.Column("ttr_seconds", sa.Integer, nullable=False, server_default="120"),
        sa.Column("available_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("reserved_until", sa.DateTime, nullable=True),
        sa.Column("reserved_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index(
        "ix_queue_entries_reserve",
        "queue_entries",
        ["tube", "state", "priority", "id"],
    )

    # Create exchange rate table
    op.create_table(
        "exchange_rates",
        sa.Column("id", sa.BigInteger, sa.Identity(), nullable=False),
        sa.Column("task_id", sa.BigInteger, nullable=False),
        sa.Column("from_currency", sa.String(3), nullable=False),
        sa.Column("to_currency", sa.String(3), nullable=False),
        sa.Column("rate", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index("ix_exchange_rates_task_id", "exchange_rates", ["task_id"])


def downgrade() -> None:
    op.drop_index("ix_exchange_rates_task_id")
    op.drop_table("exchange_rates")

    op.drop_index("ix_queue_entries_reserve")
    op.drop_table("queue_entries")

    op.execute("DROP TYPE IF EXISTS entry_state")
