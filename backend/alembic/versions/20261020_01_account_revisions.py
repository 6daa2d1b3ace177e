"""Per-account revision watermarks."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261020_01_account_revisions"
down_revision = "20261019_01_guild_log_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "account_revisions",
        sa.Column("account_key", sa.String(length=64), nullable=False),
        sa.Column("profile_revision", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quests_revision", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("account_key", name="pk_account_revisions"),
    )


def downgrade() -> None:
    op.drop_table("account_revisions")
