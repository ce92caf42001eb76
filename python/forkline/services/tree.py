"""Story tree reconstruction.

Turns the flat, unordered story_nodes rows of one story into an ordered,
rooted binary tree. The story itself is the implicit root: nodes with a
null parent_node_id form the top-level group at depth 1.

Two storage shapes are resolved here, once, into a tagged union:
- LeafRecord: the row is a single node (labeled A/B, or an unlabeled
  continuation without embedded fields)
- PairRecord: the row is unlabeled and carries choice_a_* / choice_b_*
  fields, so it stands for a branch point whose two options get synthesized
  as virtual children at depth + 1

Every structural violation raises StructuralError. Nothing is silently
dropped, merged or re-parented.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field

from forkline.errors import StructuralError
from forkline.logging import get_logger
from forkline.services.paths import decode_path
from forkline.store.records import NodeRecord

logger = get_logger(__name__)

_LABEL_ORDER = {"A": 0, "B": 1}
MAX_GROUP_SIZE = 2


@dataclass(frozen=True)
class LeafRecord:
    """A stored row that is exactly one tree node."""

    record: NodeRecord


@dataclass(frozen=True)
class PairRecord:
    """A stored row that embeds both options of a branch point."""

    record: NodeRecord


StoredNode = LeafRecord | PairRecord


@dataclass
class TreeNode:
    """One node of the reconstructed tree.

    option_label is the author's display text for the choice that leads
    here (e.g. "Open the door"); choice_label is the structural A/B slot.
    """

    id: str
    parent_id: str | None
    choice_label: str | None
    option_label: str | None
    content: str | None
    media_url: str | None
    media_type: str | None
    depth: int
    is_virtual: bool = False
    children: list[TreeNode] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children


def classify_record(record: NodeRecord) -> StoredNode:
    """Resolve which storage shape a row uses."""
    if record.choice_label is None and record.has_embedded_pair:
        return PairRecord(record)
    return LeafRecord(record)


def _option_label(record: NodeRecord) -> str | None:
    if record.choice_label == "A":
        return record.choice_a_label
    if record.choice_label == "B":
        return record.choice_b_label
    return None


def _tree_node(record: NodeRecord) -> TreeNode:
    return TreeNode(
        id=record.id,
        parent_id=record.parent_node_id,
        choice_label=record.choice_label,
        option_label=_option_label(record),
        content=record.content,
        media_url=record.media_url,
        media_type=record.media_type,
        depth=record.depth,
    )


def _virtual_children(record: NodeRecord) -> list[TreeNode]:
    return [
        TreeNode(
            id=f"{record.id}:A",
            parent_id=record.id,
            choice_label="A",
            option_label=record.choice_a_label,
            content=record.choice_a_content,
            media_url=None,
            media_type=None,
            depth=record.depth + 1,
            is_virtual=True,
        ),
        TreeNode(
            id=f"{record.id}:B",
            parent_id=record.id,
            choice_label="B",
            option_label=record.choice_b_label,
            content=record.choice_b_content,
            media_url=None,
            media_type=None,
            depth=record.depth + 1,
            is_virtual=True,
        ),
    ]


def _order_group(nodes: list[TreeNode], parent_id: str | None) -> list[TreeNode]:
    """Validate one sibling group and order it A, B, then unlabeled."""
    if len(nodes) > MAX_GROUP_SIZE:
        raise StructuralError(
            f"Node {parent_id or 'root'} has {len(nodes)} children; at most 2 are allowed",
            node_id=parent_id,
        )

    seen: set[str] = set()
    for node in nodes:
        if node.choice_label is None:
            continue
        if node.choice_label in seen:
            raise StructuralError(
                f"Duplicate choice label {node.choice_label} under {parent_id or 'root'}",
                node_id=node.id,
            )
        seen.add(node.choice_label)

    # sorted() is stable, so unlabeled nodes keep their input order
    return sorted(nodes, key=lambda n: _LABEL_ORDER.get(n.choice_label, len(_LABEL_ORDER)))


def build_story_tree(records: Iterable[NodeRecord]) -> list[TreeNode]:
    """Build the ordered tree for one story from its flat node rows.

    Args:
        records: Every node row of the story, in any order.

    Returns:
        The ordered top-level group (children of the implicit story root).

    Raises:
        StructuralError: If the rows violate a tree invariant (duplicate id,
            orphaned parent, wrong depth, duplicate label, more than two
            children, or rows unreachable from the top level).
    """
    records = list(records)

    by_id: dict[str, NodeRecord] = {}
    for record in records:
        if record.id in by_id:
            raise StructuralError(f"Duplicate node id {record.id}", node_id=record.id)
        by_id[record.id] = record

    children_of: dict[str | None, list[NodeRecord]] = defaultdict(list)
    for record in records:
        parent_id = record.parent_node_id
        if parent_id is not None and parent_id not in by_id:
            raise StructuralError(
                f"Node {record.id} references missing parent {parent_id}",
                node_id=record.id,
            )
        children_of[parent_id].append(record)

    shapes = {record.id: classify_record(record) for record in records}

    def group_for(parent: TreeNode | None) -> list[TreeNode]:
        parent_id = parent.id if parent is not None else None
        expected_depth = parent.depth + 1 if parent is not None else 1

        group: list[TreeNode] = []
        if parent is not None and isinstance(shapes[parent.id], PairRecord):
            group.extend(_virtual_children(shapes[parent.id].record))

        for child in children_of.get(parent_id, []):
            if child.depth != expected_depth:
                raise StructuralError(
                    f"Node {child.id} has depth {child.depth}; expected {expected_depth}",
                    node_id=child.id,
                )
            group.append(_tree_node(child))

        return _order_group(group, parent_id)

    roots = group_for(None)
    visited: set[str] = set()
    stack = list(reversed(roots))
    while stack:
        node = stack.pop()
        if node.is_virtual:
            continue
        visited.add(node.id)
        node.children = group_for(node)
        stack.extend(reversed(node.children))

    if len(visited) < len(records):
        unreachable = [record.id for record in records if record.id not in visited]
        raise StructuralError(
            f"{len(unreachable)} node(s) are unreachable from the story root "
            f"(cyclic parent references)",
            node_id=unreachable[0],
        )

    logger.debug("story_tree_built", node_count=len(records), root_count=len(roots))
    return roots


def iter_nodes(tree: Sequence[TreeNode]) -> Iterator[TreeNode]:
    """Yield every node depth-first, in tree order."""
    stack = list(reversed(tree))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def count_nodes(tree: Sequence[TreeNode], *, include_virtual: bool = True) -> int:
    """Count the nodes of a tree, optionally leaving out synthesized ones."""
    return sum(1 for node in iter_nodes(tree) if include_virtual or not node.is_virtual)


def _step(group: Sequence[TreeNode], label: str) -> TreeNode | None:
    """Find the child for a label, passing through unlabeled continuations."""
    while True:
        for node in group:
            if node.choice_label == label:
                return node
        unlabeled = [node for node in group if node.choice_label is None]
        if len(unlabeled) != 1:
            return None
        group = unlabeled[0].children


def find_node_by_path(tree: Sequence[TreeNode], path: str | Sequence[str]) -> TreeNode | None:
    """Walk a path from the top-level group.

    Args:
        tree: Top-level group returned by build_story_tree.
        path: A canonical path key ("A,B") or a label sequence.

    Returns:
        The node the path leads to, or None if the path is empty (the story
        root) or does not exist in this tree.

    Raises:
        InvalidPathError: If a path key is malformed.
    """
    labels = decode_path(path) if isinstance(path, str) else list(path)
    if not labels:
        return None

    group: Sequence[TreeNode] = tree
    node: TreeNode | None = None
    for label in labels:
        node = _step(group, label)
        if node is None:
            return None
        group = node.children
    return node


def enumerate_leaf_paths(tree: Sequence[TreeNode]) -> list[list[str]]:
    """List every distinct root-to-leaf label path, in tree order.

    Unlabeled nodes contribute no label; leaves reached without any choice
    (an empty path) are omitted.
    """
    paths: list[list[str]] = []
    seen: set[tuple[str, ...]] = set()

    stack: list[tuple[TreeNode, tuple[str, ...]]] = [(node, ()) for node in reversed(tree)]
    while stack:
        node, prefix = stack.pop()
        path = prefix + (node.choice_label,) if node.choice_label else prefix
        if node.is_leaf:
            if path and path not in seen:
                seen.add(path)
                paths.append(list(path))
            continue
        stack.extend((child, path) for child in reversed(node.children))

    return paths
