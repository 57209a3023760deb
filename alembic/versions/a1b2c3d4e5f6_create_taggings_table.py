"""Create taggings table.

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-17

One row per (item, tagger, tag) with the item's language. Tag text is
stored as entered; canonical grouping happens at query time.
"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "a1b2c3d4e5f6"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "taggings",
        sa.Column("item_id", sa.Text(), nullable=False),
        sa.Column("tagger", sa.Text(), nullable=False),
        sa.Column("tag", sa.Text(), nullable=False),
        sa.Column("language", sa.Text(), nullable=False, server_default=""),
        sa.PrimaryKeyConstraint("item_id", "tagger", "tag"),
    )
    op.create_index("idx_taggings_tagger", "taggings", ["tagger"])


def downgrade() -> None:
    op.drop_index("idx_taggings_tagger", table_name="taggings")
    op.drop_table("taggings")
