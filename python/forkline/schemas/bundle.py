"""Export bundle Pydantic schemas.

The bundle is the portable JSON document a story is exported to and
imported from. Field names are part of the format and must stay stable:
node and story fields are snake_case, the envelope timestamp is
"exportedAt".

Import validates the envelope as a whole and each node record on its own,
with the same node schema plus an optional "id" that children may
reference instead of a path key.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

CHOICE_LABELS = Literal["A", "B"]


class BundleStory(BaseModel):
    """Story fields carried by a bundle."""

    title: str = Field(min_length=1)
    description: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    max_depth: StrictInt | None = Field(default=None, ge=1)

    model_config = ConfigDict(extra="ignore")

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be blank")
        return value


class BundleNode(BaseModel):
    """One flat node record of a bundle.

    parent_node_id is the canonical path key of the parent node, or null
    for the top-level group. Unlabeled nodes add no label to the path, so
    the children of a top-level continuation reference it as "" and a
    parent is identified by its key together with the child's depth - 1.
    """

    parent_node_id: str | None = None
    choice_label: CHOICE_LABELS | None = None
    content: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    depth: StrictInt = Field(ge=1)
    choice_a_label: str | None = None
    choice_a_content: str | None = None
    choice_b_label: str | None = None
    choice_b_content: str | None = None

    model_config = ConfigDict(extra="ignore")


class ImportNode(BundleNode):
    """A bundle node as accepted on import.

    Parent references may be path keys or the "id" of another record in
    the same bundle; numeric ids are accepted and compared as strings.
    """

    id: str | None = None

    @field_validator("id", "parent_node_id", mode="before")
    @classmethod
    def coerce_reference(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def has_embedded_a(self) -> bool:
        return self.choice_a_label is not None or self.choice_a_content is not None

    @property
    def has_embedded_b(self) -> bool:
        return self.choice_b_label is not None or self.choice_b_content is not None


class BundleTag(BaseModel):
    """A tag reference. Import matches existing tags by name or slug."""

    name: str | None = None
    slug: str | None = None

    model_config = ConfigDict(extra="ignore")


class ExportBundle(BaseModel):
    """The export document."""

    version: str
    exported_at: datetime = Field(alias="exportedAt")
    story: BundleStory
    nodes: list[BundleNode]
    tags: list[BundleTag] | None = None

    model_config = ConfigDict(populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """Dump the bundle in its wire form; "tags" is omitted when empty."""
        document = self.model_dump(mode="json", by_alias=True)
        if not self.tags:
            document.pop("tags", None)
        return document


class ImportBundle(BaseModel):
    """A bundle as accepted on import. Envelope fields are informational.

    Node records are left raw here; each is parsed as an ImportNode so one
    bad record does not reject the rest.
    """

    version: str | None = None
    exported_at: datetime | None = Field(default=None, alias="exportedAt")
    story: BundleStory
    nodes: list[Any]
    tags: list[BundleTag] | None = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")
