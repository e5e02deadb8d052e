"""Create lockouts table

Revision ID: 20261019_create_lockouts
Revises:
Create Date: 2026-10-19

The table name follows LOCKOUT_TABLE, the same setting the ORM model binds.

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op
from lockout.core.config import settings

# revision identifiers, used by Alembic.
revision: str = "20261019_create_lockouts"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _table() -> str:
    return settings.LOCKOUT_TABLE


def upgrade() -> None:
    table = _table()
    op.create_table(
        table,
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("identifier", sa.String(length=255), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lock_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_failed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reason", sa.String(length=64), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(f"ix_{table}_identifier", table, ["identifier"], unique=True)


def downgrade() -> None:
    table = _table()
    op.drop_index(f"ix_{table}_identifier", table_name=table)
    op.drop_table(table)
