"""Shared result types for the story services.

- PartialFailure: A non-critical step failed; the operation still succeeded
- DuplicateResult: Outcome of copying a story
- BranchChoice / BranchNode: One reconstructed A/B branch point of a bundle
- ContinuationNode: A lone unlabeled bundle record that continues its parent
- SkippedGroup: A bundle group that could not be paired into a branch
- TagRef: A tag requested by an import bundle
- ImportPlan / ImportResult: Import before and after it is written
- PathStat / PathAnalyticsSummary / PathCoverage: Reader path statistics

Warnings are values, not exceptions: a PartialFailure never rolls back the
primary write it accompanies.
"""

from dataclasses import dataclass, field
from typing import Literal

PartialFailureStep = Literal["tags", "nodes", "pairing"]


@dataclass(frozen=True)
class PartialFailure:
    """A warning attached to a successful duplicate or import.

    Attributes:
        step: Which non-critical step failed
        message: Human-readable description
    """

    step: PartialFailureStep
    message: str


@dataclass(frozen=True)
class DuplicateResult:
    """Outcome of duplicating a story.

    Attributes:
        story_id: Id of the new draft story
        source_story_id: Id of the story that was copied
        node_count: Number of node rows written
        tag_count: Number of tags attached to the copy
        node_id_map: Source node id -> new node id
        warnings: Non-critical failures (tag copy)
    """

    story_id: str
    source_story_id: str
    node_count: int
    tag_count: int
    node_id_map: dict[str, str]
    warnings: list[PartialFailure] = field(default_factory=list)


@dataclass(frozen=True)
class BranchChoice:
    """One option of a reconstructed branch point.

    Attributes:
        label: Display label, defaulting to the structural "A" / "B"
        content: Continuation content shown after the choice
        source_id: Bundle id of the record this option came from, if any
    """

    label: str
    content: str | None
    media_url: str | None = None
    media_type: str | None = None
    source_id: str | None = None


@dataclass(frozen=True)
class BranchNode:
    """A fully matched A/B group of an import bundle.

    Attributes:
        id: Temporary id, unique within the plan
        parent_id: The bundle's parent reference (path key or bundle id), or
            None for the top-level branch
        depth: Depth of the two option records
        choice_a / choice_b: The two options
    """

    id: str
    parent_id: str | None
    depth: int
    choice_a: BranchChoice
    choice_b: BranchChoice


@dataclass(frozen=True)
class ContinuationNode:
    """A single unlabeled record that continues its parent without a choice.

    Its children reference it by the same path key as its parent, one level
    deeper.
    """

    id: str
    parent_id: str | None
    depth: int
    content: str | None
    media_url: str | None = None
    media_type: str | None = None
    source_id: str | None = None


@dataclass(frozen=True)
class SkippedGroup:
    """A bundle group that could not be paired into a branch node."""

    parent_id: str | None
    depth: int
    record_count: int
    reason: str


@dataclass(frozen=True)
class BundleStoryFields:
    """Story fields carried by an import bundle."""

    title: str
    description: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    max_depth: int | None = None


@dataclass(frozen=True)
class TagRef:
    """A tag requested by a bundle, matched by name or slug."""

    name: str | None
    slug: str | None

    @property
    def display(self) -> str:
        return self.name or self.slug or ""


@dataclass(frozen=True)
class ImportPlan:
    """A parsed and paired bundle, ready to write.

    Attributes:
        story: Story fields from the bundle
        branches: Matched branch points, ascending depth
        skipped: Groups that could not be paired
        tags: Tag names/slugs requested by the bundle
        warnings: Pairing problems, one per skipped group
        continuations: Lone unlabeled records, ascending depth
    """

    story: BundleStoryFields
    branches: list[BranchNode]
    skipped: list[SkippedGroup]
    tags: list[TagRef]
    warnings: list[PartialFailure] = field(default_factory=list)
    continuations: list[ContinuationNode] = field(default_factory=list)


@dataclass(frozen=True)
class ImportResult:
    """Outcome of importing a bundle."""

    story_id: str
    branch_count: int
    node_count: int
    tag_count: int
    skipped: list[SkippedGroup] = field(default_factory=list)
    warnings: list[PartialFailure] = field(default_factory=list)


@dataclass(frozen=True)
class PathStat:
    """Popularity of one path key."""

    path: str
    count: int
    completion_rate: float


@dataclass(frozen=True)
class PathAnalyticsSummary:
    """Aggregated reader path statistics.

    Rates are percentages rounded to two decimals.
    """

    top_paths: list[PathStat]
    completion_by_path: dict[str, float]
    completion_rate: float
    avg_depth: float
    total_progress: int
    completed_progress: int


@dataclass(frozen=True)
class PathCoverage:
    """How many readers ended on one root-to-leaf path of a story."""

    path: str
    display: str
    depth: int
    user_count: int
    percentage: float
