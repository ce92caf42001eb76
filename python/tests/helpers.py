"""Test helpers for building in-memory records.

Provides:
- NodeRecord builders for the two storage shapes
- A FakeStoryStore seeded with a two-level authored story
- ProgressRecord builders for analytics tests
"""

from uuid import uuid4

from forkline.store import FakeStoryStore, NodeRecord, ProgressRecord, StoryRecord, TagRecord

STORY_ID = "story-1"


def leaf(
    node_id: str,
    *,
    parent: str | None = None,
    depth: int = 1,
    label: str | None = None,
    content: str | None = None,
    story_id: str = STORY_ID,
    **embedded,
) -> NodeRecord:
    """Build a leaf-shaped record (labeled, or an unlabeled continuation)."""
    return NodeRecord(
        id=node_id,
        story_id=story_id,
        parent_node_id=parent,
        depth=depth,
        choice_label=label,
        content=content if content is not None else f"content {node_id}",
        **embedded,
    )


def pair(
    node_id: str,
    *,
    parent: str | None = None,
    depth: int = 1,
    a: tuple[str, str] = ("Go left", "left"),
    b: tuple[str, str] = ("Go right", "right"),
    story_id: str = STORY_ID,
) -> NodeRecord:
    """Build an embedded-pair record that carries both options itself."""
    return NodeRecord(
        id=node_id,
        story_id=story_id,
        parent_node_id=parent,
        depth=depth,
        choice_label=None,
        content=f"content {node_id}",
        choice_a_label=a[0],
        choice_a_content=a[1],
        choice_b_label=b[0],
        choice_b_content=b[1],
    )


def branch(
    a_id: str,
    b_id: str,
    *,
    parent: str | None = None,
    depth: int = 1,
    a: tuple[str, str] = ("Go left", "left"),
    b: tuple[str, str] = ("Go right", "right"),
    story_id: str = STORY_ID,
) -> list[NodeRecord]:
    """Build an authored A/B branch: two leaf records sharing embedded fields."""
    embedded = {
        "choice_a_label": a[0],
        "choice_a_content": a[1],
        "choice_b_label": b[0],
        "choice_b_content": b[1],
    }
    common = {"parent": parent, "depth": depth, "story_id": story_id, **embedded}
    return [
        leaf(a_id, label="A", content=a[1], **common),
        leaf(b_id, label="B", content=b[1], **common),
    ]


def authored_story_records(story_id: str = STORY_ID) -> list[NodeRecord]:
    """A two-level story: a root branch, then a branch under each option.

    Paths: A,A  A,B  B,A  B,B
    """
    root = branch(
        "n-a", "n-b", a=("Open the door", "door"), b=("Climb the wall", "wall"), story_id=story_id
    )
    under_a = branch(
        "n-aa", "n-ab", parent="n-a", depth=2, a=("Run", "run"), b=("Hide", "hide"),
        story_id=story_id,
    )
    under_b = branch(
        "n-ba", "n-bb", parent="n-b", depth=2, a=("Jump", "jump"), b=("Wait", "wait"),
        story_id=story_id,
    )
    return root + under_a + under_b


def seeded_store(**store_options) -> tuple[FakeStoryStore, StoryRecord]:
    """A FakeStoryStore holding the authored two-level story and one tag."""
    store = FakeStoryStore(**store_options)
    story = StoryRecord(
        id=str(uuid4()),
        author_id=str(uuid4()),
        title="The Fork in the Road",
        description="A short branching story",
        status="published",
        max_depth=3,
    )
    store.put_story(story)
    store.put_nodes(authored_story_records(story.id))
    store.put_tag(TagRecord(id="tag-1", name="Mystery", slug="mystery"), story_id=story.id)
    return store, story


def progress(
    path: list[str],
    *,
    completed: bool = False,
    current_depth: int | None = None,
    story_id: str = STORY_ID,
) -> ProgressRecord:
    """Build a reader progress row."""
    return ProgressRecord(
        story_id=story_id,
        user_id=str(uuid4()),
        path=tuple(path),
        current_depth=len(path) if current_depth is None else current_depth,
        completed=completed,
    )
