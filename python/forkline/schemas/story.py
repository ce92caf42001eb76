"""Story tree, duplicate/import result and analytics response schemas.

Response bodies are camelCase on the wire. Schemas validate straight from
the service dataclasses (from_attributes) and are dumped with by_alias=True.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for response schemas serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# Tree Schemas
# =============================================================================


class TreeNodeOut(CamelModel):
    """One node of a story tree, with its ordered children.

    Virtual nodes are synthesized from a record that embeds both options;
    their ids are "<record id>:A" / "<record id>:B".
    """

    id: str
    choice_label: str | None = None
    option_label: str | None = None
    content: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    depth: int
    is_virtual: bool = False
    children: list["TreeNodeOut"] = []


class StoryTreeOut(CamelModel):
    """Response for GET /stories/{id}/tree."""

    story_id: str
    node_count: int
    nodes: list[TreeNodeOut]


class PathCoverageOut(CamelModel):
    """One root-to-leaf path with its reader count."""

    path: str
    display: str
    depth: int
    user_count: int
    percentage: float


# =============================================================================
# Duplicate / Import Schemas
# =============================================================================


class PartialFailureOut(CamelModel):
    step: str
    message: str


class SkippedGroupOut(CamelModel):
    parent_id: str | None = None
    depth: int
    record_count: int
    reason: str


class DuplicateResultOut(CamelModel):
    """Response for POST /stories/{id}/duplicate."""

    story_id: str
    source_story_id: str
    node_count: int
    tag_count: int
    node_id_map: dict[str, str]
    warnings: list[PartialFailureOut] = []


class ImportResultOut(CamelModel):
    """Response for POST /stories/import."""

    story_id: str
    branch_count: int
    node_count: int
    tag_count: int
    skipped: list[SkippedGroupOut] = []
    warnings: list[PartialFailureOut] = []


# =============================================================================
# Analytics Schemas
# =============================================================================


class PathStatOut(CamelModel):
    path: str
    count: int
    completion_rate: float


class PathAnalyticsOut(CamelModel):
    """Aggregated reader path statistics. Rates are percentages."""

    top_paths: list[PathStatOut]
    completion_by_path: dict[str, float]
    completion_rate: float
    avg_depth: float
    total_progress: int
    completed_progress: int
