"""create records table

Revision ID: 3f9a2c1d7e4b
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f9a2c1d7e4b"
down_revision: str | None = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

record_state = sa.Enum("unregistered", "active", "pending_deletion", "pending_regeneration", name="record_state")


def upgrade() -> None:
    op.create_table(
        "records",
        sa.Column("token", sa.String(64), primary_key=True),
        sa.Column("account_id", sa.BigInteger(), nullable=False),
        sa.Column("state", record_state, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("state != 'unregistered'", name="ck_records_state_persisted"),
    )
    op.create_index("ix_records_account_id", "records", ["account_id"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_records_account_id", table_name="records")
    op.drop_table("records")
    record_state.drop(op.get_bind(), checkfirst=True)
