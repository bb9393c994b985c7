"""Initial quest journal schema

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-09-28 00:00:00.000000

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
        "storylines",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_storylines"),
    )
    op.create_index("ix_storylines_user_id", "storylines", ["user_id"])

    # Sibling order came later (see b7c8d9e0f1a2); rows were ordered by created_at
    op.create_table(
        "quests",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("storyline_id", sa.String(), nullable=False),
        sa.Column("parent_id", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("completed", sa.Boolean(), server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ["storyline_id"], ["storylines.id"],
            name="fk_quests_storyline_id_storylines", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["parent_id"], ["quests.id"],
            name="fk_quests_parent_id_quests", ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_quests"),
    )
    op.create_index("ix_quests_storyline_id", "quests", ["storyline_id"])

    op.create_table(
        "user_progress",
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("xp", sa.Integer(), server_default="0", nullable=False),
        sa.Column("level", sa.Integer(), server_default="1", nullable=False),
        sa.PrimaryKeyConstraint("user_id", name="pk_user_progress"),
    )

    op.create_table(
        "items",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("rarity", sa.String(), server_default="common", nullable=False),
        sa.Column("image_ref", sa.String(), nullable=True),
        sa.CheckConstraint(
            "rarity IN ('common', 'rare', 'epic', 'legendary')", name=op.f("ck_items_rarity")
        ),
        sa.PrimaryKeyConstraint("id", name="pk_items"),
    )

    op.create_table(
        "inventory",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("item_id", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), server_default="1", nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"], name="fk_inventory_item_id_items"),
        sa.PrimaryKeyConstraint("id", name="pk_inventory"),
        sa.UniqueConstraint("user_id", "item_id", name="uq_inventory_user_id"),
    )
    op.create_index("ix_inventory_user_id", "inventory", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_inventory_user_id", table_name="inventory")
    op.drop_table("inventory")
    op.drop_table("items")
    op.drop_table("user_progress")
    op.drop_index("ix_quests_storyline_id", table_name="quests")
    op.drop_table("quests")
    op.drop_index("ix_storylines_user_id", table_name="storylines")
    op.drop_table("storylines")
