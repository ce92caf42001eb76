#!/usr/bin/env python
"""Seed development database with a demo branching story.

Seeds one published two-level story (a root A/B branch, then a branch under
each option) plus a tag, for exercising the tree, export and analytics
endpoints locally.

Constraints:
- Refuses to run in staging or prod (FORKLINE_ENV check)
- Idempotent via ON CONFLICT DO NOTHING
- Never runs automatically (manual invocation only)

Usage:
    cd python && DATABASE_URL=... python ../scripts/seed_dev.py
"""

import os
import sys
from uuid import UUID

DEMO_STORY_ID = UUID("7a0c1a52-5e0b-4c39-9d8e-2b1f0f6a0001")
DEMO_AUTHOR_ID = UUID("7a0c1a52-5e0b-4c39-9d8e-2b1f0f6a00aa")
DEMO_TAG_ID = UUID("7a0c1a52-5e0b-4c39-9d8e-2b1f0f6a00bb")
DEMO_TITLE = "The Lighthouse Keeper"

# (A node id suffix, parent suffix, depth, (A label, A content), (B label, B content))
DEMO_BRANCHES = [
    ("11", None, 1, ("Climb the stairs", "The lamp room is dark."), ("Check the dock", "A boat.")),
    ("21", "11", 2, ("Light the lamp", "Ships turn away."), ("Wait", "Something knocks.")),
    ("31", "12", 2, ("Board the boat", "It drifts out."), ("Call out", "No one answers.")),
]


def _node_id(suffix: str) -> UUID:
    return UUID(f"7a0c1a52-5e0b-4c39-9d8e-2b1f0f6a00{suffix}")


def main():
    # 1. Environment check (hard fail in staging/prod)
    forkline_env = os.getenv("FORKLINE_ENV", "local")
    if forkline_env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in FORKLINE_ENV={forkline_env}")
        sys.exit(1)

    # 2. Check DATABASE_URL
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL environment variable must be set")
        sys.exit(1)

    from sqlalchemy import create_engine, text

    engine = create_engine(database_url)

    with engine.connect() as conn:
        # 3. Idempotent seeding
        result = conn.execute(
            text("""
                INSERT INTO stories (id, author_id, title, status, max_depth)
                VALUES (:story_id, :author_id, :title, 'published', 3)
                ON CONFLICT (id) DO NOTHING
                RETURNING id
            """),
            {"story_id": DEMO_STORY_ID, "author_id": DEMO_AUTHOR_ID, "title": DEMO_TITLE},
        )
        story_created = result.fetchone() is not None

        nodes_created = 0
        for first_suffix, parent_suffix, depth, a, b in DEMO_BRANCHES:
            second_suffix = str(int(first_suffix) + 1)
            for suffix, label, (_, content) in ((first_suffix, "A", a), (second_suffix, "B", b)):
                result = conn.execute(
                    text("""
                        INSERT INTO story_nodes (
                            id, story_id, parent_node_id, depth, choice_label, content,
                            choice_a_label, choice_a_content, choice_b_label, choice_b_content
                        )
                        VALUES (
                            :id, :story_id, :parent_id, :depth, :label, :content,
                            :a_label, :a_content, :b_label, :b_content
                        )
                        ON CONFLICT (id) DO NOTHING
                        RETURNING id
                    """),
                    {
                        "id": _node_id(suffix),
                        "story_id": DEMO_STORY_ID,
                        "parent_id": _node_id(parent_suffix) if parent_suffix else None,
                        "depth": depth,
                        "label": label,
                        "content": content,
                        "a_label": a[0],
                        "a_content": a[1],
                        "b_label": b[0],
                        "b_content": b[1],
                    },
                )
                nodes_created += result.fetchone() is not None

        conn.execute(
            text("""
                INSERT INTO tags (id, name, slug) VALUES (:tag_id, 'Mystery', 'mystery')
                ON CONFLICT DO NOTHING
            """),
            {"tag_id": DEMO_TAG_ID},
        )
        conn.execute(
            text("""
                INSERT INTO story_tags (story_id, tag_id) VALUES (:story_id, :tag_id)
                ON CONFLICT DO NOTHING
            """),
            {"story_id": DEMO_STORY_ID, "tag_id": DEMO_TAG_ID},
        )

        conn.commit()

    # 4. Report
    db_display = database_url.split("@")[1] if "@" in database_url else database_url
    print(f"Database: {db_display}")
    print(f"FORKLINE_ENV: {forkline_env}")
    print()
    print(f"{'✓ Created' if story_created else '• Exists'}: story {DEMO_STORY_ID}")
    print(f"✓ Created {nodes_created} node(s)")
    print()
    print(f"Try: GET /stories/{DEMO_STORY_ID}/tree")


if __name__ == "__main__":
    main()
