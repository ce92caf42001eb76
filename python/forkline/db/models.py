"""SQLAlchemy ORM models for Forkline.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Column types are the portable SQLAlchemy generics (Uuid, JSON, DateTime)
so the same models run on PostgreSQL in production and SQLite in tests.
"""

from datetime import datetime
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    false,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class StoryStatus(str, PyEnum):
    """Publication states of a story.

    Duplicated and imported stories always start as drafts.
    """

    draft = "draft"
    published = "published"
    scheduled = "scheduled"


class MediaType(str, PyEnum):
    """Kinds of media a story or node may reference."""

    image = "image"
    video = "video"


class ChoiceLabel(str, PyEnum):
    """Branch labels. A node fulfils either the A or the B option of its parent."""

    A = "A"
    B = "B"


# =============================================================================
# Models
# =============================================================================


class Story(Base):
    """Story model - the root of a branching narrative."""

    __tablename__ = "stories"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    author_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, server_default="draft", nullable=False)
    max_depth: Mapped[int] = mapped_column(Integer, server_default="5", nullable=False)
    scheduled_publish_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'published', 'scheduled')",
            name="ck_stories_status",
        ),
        CheckConstraint(
            "media_type IS NULL OR media_type IN ('image', 'video')",
            name="ck_stories_media_type",
        ),
        CheckConstraint("max_depth >= 1", name="ck_stories_max_depth_positive"),
    )

    # Relationships
    nodes: Mapped[list["StoryNode"]] = relationship(
        "StoryNode",
        back_populates="story",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    story_tags: Mapped[list["StoryTag"]] = relationship(
        "StoryTag",
        back_populates="story",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class StoryNode(Base):
    """Story node model - one flat record of a story's branching tree.

    Two storage shapes coexist:
    - leaf: choice_label is A/B (embedded fields describe the branch point)
      or null with no embedded fields
    - embedded pair: choice_label is null and choice_a_* / choice_b_* carry
      both options on this one record
    """

    __tablename__ = "story_nodes"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    story_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("stories.id", ondelete="CASCADE"),
        nullable=False,
    )
    parent_node_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("story_nodes.id", ondelete="CASCADE"),
        nullable=True,
    )
    depth: Mapped[int] = mapped_column(Integer, nullable=False)
    choice_label: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    choice_a_label: Mapped[str | None] = mapped_column(Text, nullable=True)
    choice_a_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    choice_b_label: Mapped[str | None] = mapped_column(Text, nullable=True)
    choice_b_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "choice_label IS NULL OR choice_label IN ('A', 'B')",
            name="ck_story_nodes_choice_label",
        ),
        CheckConstraint("depth >= 1", name="ck_story_nodes_depth_positive"),
        CheckConstraint(
            "parent_node_id IS NULL OR parent_node_id <> id",
            name="ck_story_nodes_parent_nonself",
        ),
        Index("idx_story_nodes_story_depth", "story_id", "depth"),
    )

    # Relationships
    story: Mapped["Story"] = relationship("Story", back_populates="nodes")


class Tag(Base):
    """Tag model - free-standing classification shared across stories."""

    __tablename__ = "tags"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("name", name="uq_tags_name"),
        UniqueConstraint("slug", name="uq_tags_slug"),
    )


class StoryTag(Base):
    """Association between stories and tags."""

    __tablename__ = "story_tags"

    story_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("stories.id", ondelete="CASCADE"),
        primary_key=True,
    )
    tag_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    )

    # Relationships
    story: Mapped["Story"] = relationship("Story", back_populates="story_tags")
    tag: Mapped["Tag"] = relationship("Tag", lazy="joined")


class UserStoryProgress(Base):
    """A reader's position in a story.

    Written by reader-facing playback (one row per user and story);
    only ever read by path analytics.
    """

    __tablename__ = "user_story_progress"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    story_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("stories.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    path: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    current_depth: Mapped[int] = mapped_column(Integer, server_default="0", nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, server_default=false(), nullable=False)
    last_node_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "story_id", name="uq_user_story_progress_user_story"),
        CheckConstraint("current_depth >= 0", name="ck_user_story_progress_depth"),
    )
