"""Story export and import.

Export flattens a story's tree into the portable bundle: one record per
tree node, ascending depth, with parent references expressed as the
parent's path key ("A,B") so the bundle carries no database ids. Every
record also carries the display labels and content of its sibling group in
choice_a_* / choice_b_*, which is the denormalized form authoring writes.
A stored embedded-pair row is exported as an unlabeled record followed by
its two options as ordinary A/B records one level deeper.

Import reverses this on a best-effort basis. Records are grouped by depth
and parent reference, each group is paired into an A/B branch node, and
each branch is written as two leaf records. A group holding one plain
unlabeled record is written as a continuation. Records that do not parse,
groups that cannot be paired, and branches whose parent never got imported
are skipped and reported as warnings rather than failing the whole import.

Pairing preference within a group:
1. explicit choice_label
2. embedded choice_a_* / choice_b_* fields on an unlabeled record (one
   record may supply both options)
3. positional (first = A, second = B), only when the group is exactly two
   records with no labels and no embedded fields
"""

import itertools
import re
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import ValidationError

from forkline.config import get_settings
from forkline.errors import ApiErrorCode, BundleValidationError, NotFoundError, StoreError
from forkline.logging import get_logger
from forkline.schemas.bundle import (
    BundleNode,
    BundleStory,
    BundleTag,
    ExportBundle,
    ImportBundle,
    ImportNode,
)
from forkline.services.duplicate import discard_story
from forkline.services.paths import encode_path
from forkline.services.tree import TreeNode, build_story_tree
from forkline.services.types import (
    BranchChoice,
    BranchNode,
    BundleStoryFields,
    ContinuationNode,
    ImportPlan,
    ImportResult,
    PartialFailure,
    SkippedGroup,
    TagRef,
)
from forkline.store.client import StoryStoreBase
from forkline.store.records import NodeRecord, StoryDraft, StoryRecord, TagRecord

logger = get_logger(__name__)

_FILENAME_UNSAFE_RE = re.compile(r"[^a-z0-9]", re.IGNORECASE)

# Parent reference + depth of the referenced record -> (node id, label path)
_Resolved = dict[tuple[str | None, int], tuple[str | None, tuple[str, ...]]]


# =============================================================================
# Export
# =============================================================================


def _sibling_fields(group: list[TreeNode]) -> dict[str, str | None]:
    a = next((node for node in group if node.choice_label == "A"), None)
    b = next((node for node in group if node.choice_label == "B"), None)
    return {
        "choice_a_label": a.option_label if a else None,
        "choice_a_content": a.content if a else None,
        "choice_b_label": b.option_label if b else None,
        "choice_b_content": b.content if b else None,
    }


def build_export_bundle(
    story: StoryRecord,
    tree: list[TreeNode],
    tags: list[TagRecord],
    *,
    version: str | None = None,
    exported_at: datetime | None = None,
) -> ExportBundle:
    """Flatten a story tree into an export bundle.

    Virtual nodes are exported as ordinary A/B records under the record
    they were synthesized from, so that record keeps its own content and
    its options stay one level below it.
    """
    settings = get_settings()

    entries: list[BundleNode] = []
    stack: list[tuple[TreeNode, tuple[str, ...], list[TreeNode]]] = [
        (node, (), tree) for node in reversed(tree)
    ]
    while stack:
        node, parent_labels, siblings = stack.pop()
        entries.append(
            BundleNode(
                parent_node_id=encode_path(parent_labels) if node.parent_id else None,
                choice_label=node.choice_label,
                content=node.content,
                media_url=node.media_url,
                media_type=node.media_type,
                depth=node.depth,
                **_sibling_fields(siblings),
            )
        )

        labels = parent_labels + (node.choice_label,) if node.choice_label else parent_labels
        stack.extend((child, labels, node.children) for child in reversed(node.children))

    return ExportBundle(
        version=version or settings.export_format_version,
        exported_at=exported_at or datetime.now(UTC),
        story=BundleStory(
            title=story.title,
            description=story.description,
            media_url=story.media_url,
            media_type=story.media_type,
            max_depth=story.max_depth,
        ),
        # sorted() is stable: depth-first order survives within a depth
        nodes=sorted(entries, key=lambda entry: entry.depth),
        tags=[BundleTag(name=tag.name, slug=tag.slug) for tag in tags] or None,
    )


def export_story(store: StoryStoreBase, story_id: str) -> ExportBundle:
    """Export a story with its nodes and tags.

    Raises:
        NotFoundError: If the story does not exist.
        StructuralError: If the stored nodes do not form a valid tree.
        StoreError: If fetching fails.
    """
    story = store.get_story(story_id)
    if story is None:
        raise NotFoundError(ApiErrorCode.E_STORY_NOT_FOUND, "Story not found")

    tree = build_story_tree(store.list_nodes(story.id))
    tags = store.list_story_tags(story.id)
    bundle = build_export_bundle(story, tree, tags)

    logger.info(
        "story_exported", story_id=story.id, node_count=len(bundle.nodes), tag_count=len(tags)
    )
    return bundle


def export_filename(title: str, story_id: str) -> str:
    """Attachment filename for an exported story."""
    return f"{_FILENAME_UNSAFE_RE.sub('_', title).lower()}_{str(story_id)[:8]}.json"


# =============================================================================
# Import planning
# =============================================================================


def _describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"Invalid bundle field {location}: {first['msg']}"


def _describe_record_error(index: int, exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    field_name = f" {location}" if location else ""
    return f"invalid record nodes.{index}{field_name}: {first['msg']}"


def _parse_bundle(payload: Any) -> ImportBundle:
    if not isinstance(payload, dict):
        raise BundleValidationError("Bundle must be a JSON object")
    if not isinstance(payload.get("nodes"), list):
        raise BundleValidationError("Bundle nodes must be a list")
    try:
        return ImportBundle.model_validate(payload)
    except ValidationError as e:
        raise BundleValidationError(_describe_validation_error(e)) from e


def _raw_group_key(raw: Any) -> tuple[int, str | None] | None:
    """Best-effort (depth, parent) of a record that failed to parse."""
    if not isinstance(raw, dict):
        return None
    depth = raw.get("depth")
    if type(depth) is not int or depth < 1:
        return None
    parent = raw.get("parent_node_id")
    if type(parent) is int:
        parent = str(parent)
    if parent is not None and not isinstance(parent, str):
        return None
    return depth, parent


def _choice(record: ImportNode, side: str) -> BranchChoice:
    prefix = "choice_a" if side == "A" else "choice_b"
    embedded_content = getattr(record, f"{prefix}_content")
    return BranchChoice(
        label=getattr(record, f"{prefix}_label") or side,
        content=embedded_content if embedded_content is not None else record.content,
        media_url=record.media_url,
        media_type=record.media_type,
        source_id=record.id,
    )


def _pair_group(records: list[ImportNode]) -> tuple[BranchChoice, BranchChoice] | str:
    """Pair one (depth, parent) group into A/B options.

    Returns:
        The two options, or the reason the group cannot form a branch.
    """
    if len(records) > 2:
        return f"{len(records)} records in one group; a branch has exactly two options"

    labeled_a = [record for record in records if record.choice_label == "A"]
    labeled_b = [record for record in records if record.choice_label == "B"]
    if len(labeled_a) > 1 or len(labeled_b) > 1:
        return "duplicate choice labels"

    unlabeled = [record for record in records if record.choice_label is None]
    a = _choice(labeled_a[0], "A") if labeled_a else None
    b = _choice(labeled_b[0], "B") if labeled_b else None

    if a is None:
        source = next((record for record in unlabeled if record.has_embedded_a), None)
        if source is not None:
            a = _choice(source, "A")
    if b is None:
        source = next((record for record in unlabeled if record.has_embedded_b), None)
        if source is not None:
            b = _choice(source, "B")

    if a is None and b is None and len(unlabeled) == 2:
        if not any(record.has_embedded_a or record.has_embedded_b for record in unlabeled):
            a = _choice(unlabeled[0], "A")
            b = _choice(unlabeled[1], "B")

    if a is None and b is None:
        return "no A or B option"
    if a is None:
        return "no matching A option"
    if b is None:
        return "no matching B option"
    return a, b


def _skip_warning(group: SkippedGroup) -> PartialFailure:
    where = f" at depth {group.depth} under {group.parent_id or 'root'}" if group.depth else ""
    return PartialFailure(
        step="pairing",
        message=f"Skipped {group.record_count} record(s){where}: {group.reason}",
    )


def _is_continuation(records: list[ImportNode]) -> bool:
    if len(records) != 1:
        return False
    record = records[0]
    return record.choice_label is None and not (record.has_embedded_a or record.has_embedded_b)


def plan_import(payload: Any) -> ImportPlan:
    """Validate a bundle and pair its records into branch nodes.

    Pure: nothing is written. Only the envelope is fatal; a node record that
    does not parse takes its (depth, parent) group down with it, or is
    reported on its own when even that cannot be read.

    Raises:
        BundleValidationError: If the payload is not a usable bundle.
    """
    bundle = _parse_bundle(payload)

    groups: dict[tuple[int, str | None], list[ImportNode]] = {}
    invalid: dict[tuple[int, str | None], list[str]] = {}
    skipped: list[SkippedGroup] = []
    for index, raw in enumerate(bundle.nodes):
        try:
            node = ImportNode.model_validate(raw)
        except ValidationError as e:
            reason = _describe_record_error(index, e)
            key = _raw_group_key(raw)
            if key is None:
                skipped.append(SkippedGroup(parent_id=None, depth=0, record_count=1, reason=reason))
            else:
                groups.setdefault(key, [])
                invalid.setdefault(key, []).append(reason)
            logger.info("import_record_invalid", index=index, reason=reason)
            continue
        groups.setdefault((node.depth, node.parent_node_id), []).append(node)

    branches: list[BranchNode] = []
    continuations: list[ContinuationNode] = []
    # sorted() is stable: groups at one depth keep first-encountered order
    for depth, parent_id in sorted(groups, key=lambda key: key[0]):
        records = groups[(depth, parent_id)]
        errors = invalid.get((depth, parent_id), [])
        if errors:
            skipped.append(
                SkippedGroup(
                    parent_id=parent_id,
                    depth=depth,
                    record_count=len(records) + len(errors),
                    reason=errors[0],
                )
            )
            continue

        if _is_continuation(records):
            record = records[0]
            continuations.append(
                ContinuationNode(
                    id=f"continuation-{len(continuations) + 1}",
                    parent_id=parent_id,
                    depth=depth,
                    content=record.content,
                    media_url=record.media_url,
                    media_type=record.media_type,
                    source_id=record.id,
                )
            )
            continue

        paired = _pair_group(records)
        if isinstance(paired, str):
            skipped.append(
                SkippedGroup(
                    parent_id=parent_id, depth=depth, record_count=len(records), reason=paired
                )
            )
            logger.info(
                "import_group_skipped", depth=depth, parent_id=parent_id, reason=paired
            )
            continue

        choice_a, choice_b = paired
        branches.append(
            BranchNode(
                id=f"branch-{len(branches) + 1}",
                parent_id=parent_id,
                depth=depth,
                choice_a=choice_a,
                choice_b=choice_b,
            )
        )

    tags = [
        TagRef(name=tag.name, slug=tag.slug) for tag in bundle.tags or [] if tag.name or tag.slug
    ]

    return ImportPlan(
        story=BundleStoryFields(
            title=bundle.story.title,
            description=bundle.story.description,
            media_url=bundle.story.media_url,
            media_type=bundle.story.media_type,
            max_depth=bundle.story.max_depth,
        ),
        branches=branches,
        skipped=skipped,
        tags=tags,
        warnings=[_skip_warning(group) for group in skipped],
        continuations=continuations,
    )


def _planned_records(
    plan: ImportPlan,
    story_id: str,
    new_id: Callable[[], str],
) -> tuple[list[NodeRecord], list[SkippedGroup]]:
    """Lay out the node rows for every planned node whose parent resolves.

    Rows come out parents first. A parent reference resolves to a record
    written one level up, matched by its path key or its bundle id.
    """
    resolved: _Resolved = {(None, 0): (None, ())}
    records: list[NodeRecord] = []
    skipped: list[SkippedGroup] = []

    planned: list[BranchNode | ContinuationNode] = [*plan.branches, *plan.continuations]
    for item in sorted(planned, key=lambda entry: entry.depth):
        parent = resolved.get((item.parent_id, item.depth - 1))
        if parent is None:
            skipped.append(
                SkippedGroup(
                    parent_id=item.parent_id,
                    depth=item.depth,
                    record_count=2 if isinstance(item, BranchNode) else 1,
                    reason="parent record was not imported",
                )
            )
            continue

        parent_node_id, parent_labels = parent
        if isinstance(item, ContinuationNode):
            node_id = new_id()
            records.append(
                NodeRecord(
                    id=node_id,
                    story_id=story_id,
                    parent_node_id=parent_node_id,
                    depth=item.depth,
                    content=item.content,
                    media_url=item.media_url,
                    media_type=item.media_type,
                )
            )
            resolved[(encode_path(parent_labels), item.depth)] = (node_id, parent_labels)
            if item.source_id is not None:
                resolved.setdefault((item.source_id, item.depth), (node_id, parent_labels))
            continue

        a, b = item.choice_a, item.choice_b
        for side, choice in (("A", a), ("B", b)):
            node_id = new_id()
            labels = parent_labels + (side,)
            records.append(
                NodeRecord(
                    id=node_id,
                    story_id=story_id,
                    parent_node_id=parent_node_id,
                    depth=item.depth,
                    choice_label=side,
                    content=choice.content,
                    media_url=choice.media_url,
                    media_type=choice.media_type,
                    choice_a_label=a.label,
                    choice_a_content=a.content,
                    choice_b_label=b.label,
                    choice_b_content=b.content,
                )
            )
            resolved[(encode_path(labels), item.depth)] = (node_id, labels)
            # A record that supplied both options cannot stand for either one
            if choice.source_id is not None and a.source_id != b.source_id:
                resolved.setdefault((choice.source_id, item.depth), (node_id, labels))

    return records, skipped


def bundle_to_tree(plan: ImportPlan) -> list[TreeNode]:
    """Build the tree an import of this plan would produce, without writing."""
    counter = itertools.count(1)
    records, _ = _planned_records(plan, "planned", lambda: f"planned-{next(counter)}")
    return build_story_tree(records)


# =============================================================================
# Import writes
# =============================================================================


def _attach_bundle_tags(
    store: StoryStoreBase, story_id: str, refs: list[TagRef]
) -> tuple[int, list[PartialFailure]]:
    if not refs:
        return 0, []

    keys = [key for ref in refs for key in (ref.name, ref.slug) if key]
    try:
        found = store.find_tags(keys)
    except StoreError as e:
        logger.warning("import_tags_failed", story_id=story_id, error=e.message)
        return 0, [PartialFailure(step="tags", message=f"Tags were not attached: {e.message}")]

    warnings: list[PartialFailure] = []
    tag_ids: list[str] = []
    missing: list[str] = []
    for ref in refs:
        tag = next(
            (
                tag
                for tag in found
                if (ref.name and tag.name == ref.name) or (ref.slug and tag.slug == ref.slug)
            ),
            None,
        )
        if tag is None:
            missing.append(ref.display)
        elif tag.id not in tag_ids:
            tag_ids.append(tag.id)

    if missing:
        warnings.append(
            PartialFailure(step="tags", message=f"Unknown tags skipped: {', '.join(missing)}")
        )

    try:
        store.attach_tags(story_id, tag_ids)
    except StoreError as e:
        logger.warning("import_tags_failed", story_id=story_id, error=e.message)
        warnings.append(PartialFailure(step="tags", message=f"Tags were not attached: {e.message}"))
        return 0, warnings

    return len(tag_ids), warnings


def import_story(store: StoryStoreBase, author_id: str, payload: Any) -> ImportResult:
    """Create a new draft story from a bundle.

    The bundle is validated and paired before anything is written. Node rows
    are inserted parents first; if one fails, the new story is deleted and
    the failure re-raised.

    Raises:
        BundleValidationError: If the payload is not a usable bundle.
        StoreError: If creating the story or a node fails.
    """
    plan = plan_import(payload)
    settings = get_settings()

    story = store.create_story(
        StoryDraft(
            author_id=author_id,
            title=plan.story.title,
            description=plan.story.description,
            media_url=plan.story.media_url,
            media_type=plan.story.media_type,
            status="draft",
            max_depth=plan.story.max_depth or settings.default_max_depth,
        )
    )

    records, unresolved = _planned_records(plan, story.id, lambda: str(uuid4()))
    for group in unresolved:
        logger.info(
            "import_group_skipped",
            story_id=story.id,
            depth=group.depth,
            parent_id=group.parent_id,
            reason=group.reason,
        )

    for written, record in enumerate(records):
        try:
            store.insert_node(record)
        except StoreError as e:
            logger.warning(
                "import_nodes_failed",
                story_id=story.id,
                written=written,
                total=len(records),
                error=e.message,
            )
            discard_story(store, story.id)
            raise

    tag_count, tag_warnings = _attach_bundle_tags(store, story.id, plan.tags)

    skipped = plan.skipped + unresolved
    branch_count = sum(1 for record in records if record.choice_label == "A")
    warnings = plan.warnings + [_skip_warning(group) for group in unresolved] + tag_warnings

    logger.info(
        "story_imported",
        story_id=story.id,
        branch_count=branch_count,
        node_count=len(records),
        skipped_groups=len(skipped),
    )

    return ImportResult(
        story_id=story.id,
        branch_count=branch_count,
        node_count=len(records),
        tag_count=tag_count,
        skipped=skipped,
        warnings=warnings,
    )
