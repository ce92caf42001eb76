"""Branching story schema - stories, story_nodes, tags, story_tags, user_story_progress

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the flat node storage for branching stories. Deleting a story
cascades to its nodes, tag links and reader progress; deleting a node
cascades to its descendants.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Enable pgcrypto extension for gen_random_uuid()
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # ==========================================================================
    # stories table
    # ==========================================================================
    op.create_table(
        "stories",
        sa.Column(
            "id",
            sa.UUID(),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("author_id", sa.UUID(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("media_url", sa.Text(), nullable=True),
        sa.Column("media_type", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), server_default="draft", nullable=False),
        sa.Column("max_depth", sa.Integer(), server_default="5", nullable=False),
        sa.Column("scheduled_publish_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('draft', 'published', 'scheduled')",
            name="ck_stories_status",
        ),
        sa.CheckConstraint(
            "media_type IS NULL OR media_type IN ('image', 'video')",
            name="ck_stories_media_type",
        ),
        sa.CheckConstraint("max_depth >= 1", name="ck_stories_max_depth_positive"),
    )

    op.create_index("idx_stories_author", "stories", ["author_id"])

    # ==========================================================================
    # story_nodes table
    # ==========================================================================
    op.create_table(
        "story_nodes",
        sa.Column(
            "id",
            sa.UUID(),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("story_id", sa.UUID(), nullable=False),
        sa.Column("parent_node_id", sa.UUID(), nullable=True),
        sa.Column("depth", sa.Integer(), nullable=False),
        sa.Column("choice_label", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("media_url", sa.Text(), nullable=True),
        sa.Column("media_type", sa.Text(), nullable=True),
        sa.Column("choice_a_label", sa.Text(), nullable=True),
        sa.Column("choice_a_content", sa.Text(), nullable=True),
        sa.Column("choice_b_label", sa.Text(), nullable=True),
        sa.Column("choice_b_content", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["story_id"],
            ["stories.id"],
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["parent_node_id"],
            ["story_nodes.id"],
            ondelete="CASCADE",
        ),
        sa.CheckConstraint(
            "choice_label IS NULL OR choice_label IN ('A', 'B')",
            name="ck_story_nodes_choice_label",
        ),
        sa.CheckConstraint("depth >= 1", name="ck_story_nodes_depth_positive"),
        sa.CheckConstraint(
            "parent_node_id IS NULL OR parent_node_id <> id",
            name="ck_story_nodes_parent_nonself",
        ),
    )

    op.create_index("idx_story_nodes_story_depth", "story_nodes", ["story_id", "depth"])
    op.create_index("idx_story_nodes_parent", "story_nodes", ["parent_node_id"])

    # ==========================================================================
    # tags / story_tags tables
    # ==========================================================================
    op.create_table(
        "tags",
        sa.Column(
            "id",
            sa.UUID(),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_tags_name"),
        sa.UniqueConstraint("slug", name="uq_tags_slug"),
    )

    op.create_table(
        "story_tags",
        sa.Column("story_id", sa.UUID(), nullable=False),
        sa.Column("tag_id", sa.UUID(), nullable=False),
        sa.PrimaryKeyConstraint("story_id", "tag_id"),
        sa.ForeignKeyConstraint(
            ["story_id"],
            ["stories.id"],
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["tag_id"],
            ["tags.id"],
            ondelete="CASCADE",
        ),
    )

    # ==========================================================================
    # user_story_progress table
    # ==========================================================================
    op.create_table(
        "user_story_progress",
        sa.Column(
            "id",
            sa.UUID(),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("story_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("path", sa.JSON(), server_default=sa.text("'[]'::json"), nullable=False),
        sa.Column("current_depth", sa.Integer(), server_default="0", nullable=False),
        sa.Column("completed", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("last_node_id", sa.UUID(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["story_id"],
            ["stories.id"],
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("user_id", "story_id", name="uq_user_story_progress_user_story"),
        sa.CheckConstraint("current_depth >= 0", name="ck_user_story_progress_depth"),
    )

    op.create_index("idx_user_story_progress_story", "user_story_progress", ["story_id"])


def downgrade() -> None:
    # Drop tables in reverse order (respecting foreign key dependencies)
    op.drop_table("user_story_progress")
    op.drop_table("story_tags")
    op.drop_table("tags")
    op.drop_table("story_nodes")
    op.drop_table("stories")
