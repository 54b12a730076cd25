"""Add users.deactivated_at so soft-deleted accounts are never treated as pending.

Revision ID: 20251020000000
Revises: 20251018000000
Create Date: 2025-10-20

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "20251020000000"
down_revision: Union[str, None] = "20251018000000"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "users",
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
    )
    # Inactive rows that were activated before can only have been soft-deleted.
    op.execute(
        "UPDATE users SET deactivated_at = updated_at "
        "WHERE is_active = false AND activated_at IS NOT NULL"
    )


def downgrade() -> None:
    op.drop_column("users", "deactivated_at")
