"""Tests for story export and import.

Tests cover:
- Export bundle shape, ordering and parent path keys
- Round-trip: importing an export rebuilds the same tree
- Bundle validation before any write
- Best-effort pairing and its degradation cases
- Import writes, tag matching and compensation on node failure
"""

from datetime import UTC, datetime

import pytest

from forkline.errors import ApiErrorCode, BundleValidationError, NotFoundError, StoreError
from forkline.services.bundle import (
    build_export_bundle,
    bundle_to_tree,
    export_filename,
    export_story,
    import_story,
    plan_import,
)
from forkline.services.tree import build_story_tree
from forkline.store import FakeStoryStore, StoryRecord, TagRecord
from tests.helpers import authored_story_records, branch, leaf, pair, seeded_store

STORY = StoryRecord(
    id="6f1c2a9e-0000-4000-8000-000000000001",
    author_id="author-1",
    title="The Fork in the Road",
    description="A short branching story",
    max_depth=3,
)
EXPORTED_AT = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)


def _shape(nodes) -> list:
    """Reduce a tree to what an import must preserve."""
    return [
        (node.choice_label, node.option_label, node.content, node.depth, _shape(node.children))
        for node in nodes
    ]


def _export(records, tags=()) -> dict:
    tree = build_story_tree(records)
    bundle = build_export_bundle(STORY, tree, list(tags), exported_at=EXPORTED_AT)
    return bundle.to_document()


def _bundle(nodes: list[dict], **extra) -> dict:
    return {"story": {"title": "Imported"}, "nodes": nodes, **extra}


class TestExportShape:
    """Tests for build_export_bundle."""

    def test_single_branch_exports_two_top_level_records(self):
        """One A/B branch becomes two records with the sibling pair embedded."""
        document = _export(branch("a", "b", a=("Left", "left"), b=("Right", "right")))

        nodes = document["nodes"]
        assert len(nodes) == 2
        for node in nodes:
            assert node["parent_node_id"] is None
            assert node["depth"] == 1
            assert node["choice_a_content"] == "left"
            assert node["choice_b_content"] == "right"
            assert node["choice_a_label"] == "Left"
            assert node["choice_b_label"] == "Right"
        assert [node["choice_label"] for node in nodes] == ["A", "B"]
        assert [node["content"] for node in nodes] == ["left", "right"]

    def test_envelope_fields(self):
        document = _export(branch("a", "b"))

        assert document["version"] == "1.0"
        assert document["exportedAt"].startswith("2026-01-02T03:04:05")
        assert document["story"] == {
            "title": "The Fork in the Road",
            "description": "A short branching story",
            "media_url": None,
            "media_type": None,
            "max_depth": 3,
        }

    def test_tags_omitted_when_empty(self):
        assert "tags" not in _export(branch("a", "b"))

    def test_tags_included_when_present(self):
        tag = TagRecord(id="t", name="Mystery", slug="mystery")
        document = _export(branch("a", "b"), tags=[tag])

        assert document["tags"] == [{"name": "Mystery", "slug": "mystery"}]

    def test_nodes_ordered_by_depth_with_parent_path_keys(self):
        document = _export(authored_story_records())

        depths = [node["depth"] for node in document["nodes"]]
        assert depths == sorted(depths)
        parents = [node["parent_node_id"] for node in document["nodes"]]
        assert parents == [None, None, "A", "A", "B", "B"]

    def test_no_database_ids_in_bundle(self):
        document = _export(authored_story_records())

        for node in document["nodes"]:
            assert "id" not in node
            assert node["parent_node_id"] in (None, "A", "B")

    def test_pair_record_exports_options_one_level_down(self):
        """An embedded pair becomes a plain record plus its two options."""
        document = _export([pair("p", a=("Stay", "stayed"), b=("Leave", "left"))])

        record, option_a, option_b = document["nodes"]
        assert (record["choice_label"], record["content"], record["depth"]) == (
            None,
            "content p",
            1,
        )
        assert record["choice_a_label"] is None
        assert record["choice_b_content"] is None
        assert [(option["choice_label"], option["content"]) for option in (option_a, option_b)] == [
            ("A", "stayed"),
            ("B", "left"),
        ]
        for option in (option_a, option_b):
            assert option["depth"] == 2
            assert option["parent_node_id"] == ""
            assert option["choice_a_label"] == "Stay"
            assert option["choice_b_label"] == "Leave"

    def test_nested_pair_options_reference_parent_key(self):
        document = _export(branch("a", "b") + [pair("p", parent="a", depth=2)])

        keys = ("depth", "parent_node_id", "choice_label")
        assert [tuple(node[key] for key in keys) for node in document["nodes"]] == [
            (1, None, "A"),
            (1, None, "B"),
            (2, "A", None),
            (3, "A", "A"),
            (3, "A", "B"),
        ]

    def test_version_is_configurable(self, monkeypatch):
        monkeypatch.setenv("EXPORT_FORMAT_VERSION", "2.0")

        assert _export(branch("a", "b"))["version"] == "2.0"


class TestExportStory:
    """Tests for export_story and the attachment filename."""

    def test_export_story_reads_store(self):
        store, story = seeded_store()

        bundle = export_story(store, story.id)

        assert len(bundle.nodes) == 6
        assert [tag.slug for tag in bundle.tags] == ["mystery"]

    def test_missing_story(self):
        with pytest.raises(NotFoundError) as exc_info:
            export_story(FakeStoryStore(), "missing")
        assert exc_info.value.code == ApiErrorCode.E_STORY_NOT_FOUND

    def test_filename_slugifies_title(self):
        filename = export_filename("My Story: Part 2!", "12345678-aaaa-bbbb")

        assert filename == "my_story__part_2__12345678.json"


class TestRoundTrip:
    """Importing an export rebuilds an isomorphic tree."""

    def test_two_level_story_round_trips(self):
        records = authored_story_records()
        original = build_story_tree(records)

        rebuilt = bundle_to_tree(plan_import(_export(records)))

        assert _shape(rebuilt) == _shape(original)

    def test_three_level_story_round_trips(self):
        records = (
            branch("a", "b")
            + branch("aa", "ab", parent="a", depth=2, a=("Up", "up"), b=("Down", "down"))
            + branch("aba", "abb", parent="ab", depth=3, a=("Fight", "won"), b=("Flee", "fled"))
        )
        original = build_story_tree(records)

        rebuilt = bundle_to_tree(plan_import(_export(records)))

        assert _shape(rebuilt) == _shape(original)

    def test_top_level_pair_record_round_trips(self):
        """The pair record keeps its content and its options stay at depth 2."""
        records = [pair("p", a=("Stay", "stayed"), b=("Leave", "left"))]
        original = build_story_tree(records)

        rebuilt = bundle_to_tree(plan_import(_export(records)))

        assert _shape(rebuilt) == _shape(original)
        options = [("A", "Stay", "stayed", 2, []), ("B", "Leave", "left", 2, [])]
        assert _shape(rebuilt) == [(None, None, "content p", 1, options)]

    def test_nested_pair_record_round_trips(self):
        records = branch("a", "b") + [pair("p", parent="a", depth=2, a=("Up", "up"))]
        original = build_story_tree(records)

        rebuilt = bundle_to_tree(plan_import(_export(records)))

        assert _shape(rebuilt) == _shape(original)

    def test_top_level_continuation_with_branch_round_trips(self):
        """Children of an unlabeled top-level record reference it as ""."""
        records = [leaf("intro")] + branch("a", "b", parent="intro", depth=2)
        original = build_story_tree(records)

        plan = plan_import(_export(records))
        rebuilt = bundle_to_tree(plan)

        assert _shape(rebuilt) == _shape(original)
        assert plan.skipped == []

    def test_pair_story_round_trips_through_store(self):
        store = FakeStoryStore()
        story = StoryRecord(id="s-pair", author_id="u", title="Pairs", max_depth=3)
        store.put_story(story)
        store.put_nodes(
            branch("a", "b", story_id=story.id)
            + [pair("p", parent="b", depth=2, story_id=story.id)]
        )
        document = export_story(store, story.id).to_document()

        result = import_story(store, "author-2", document)

        original = build_story_tree(store.list_nodes(story.id))
        imported = build_story_tree(store.list_nodes(result.story_id))
        assert _shape(imported) == _shape(original)
        assert result.branch_count == 2
        assert result.node_count == 5
        assert result.skipped == []

    def test_round_trip_through_store(self):
        store, story = seeded_store()
        document = export_story(store, story.id).to_document()

        result = import_story(store, "author-2", document)

        original = build_story_tree(store.list_nodes(story.id))
        imported = build_story_tree(store.list_nodes(result.story_id))
        assert _shape(imported) == _shape(original)
        assert result.skipped == []


class TestBundleValidation:
    """Malformed bundles are rejected before anything is written."""

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            "bundle",
            {"nodes": []},
            {"story": {"title": ""}, "nodes": []},
            {"story": {"title": "   "}, "nodes": []},
            {"story": {"title": "T"}},
            {"story": {"title": "T"}, "nodes": {"depth": 1}},
            {"story": {"title": "T", "max_depth": "deep"}, "nodes": []},
        ],
    )
    def test_invalid_payload_rejected(self, payload):
        with pytest.raises(BundleValidationError) as exc_info:
            plan_import(payload)
        assert exc_info.value.code == ApiErrorCode.E_INVALID_BUNDLE
        assert exc_info.value.status_code == 400

    def test_invalid_payload_writes_nothing(self):
        store = FakeStoryStore()

        with pytest.raises(BundleValidationError):
            import_story(store, "author", {"story": {}, "nodes": []})

        assert store.story_ids() == []

    def test_envelope_fields_are_optional(self):
        plan = plan_import(_bundle([]))

        assert plan.story.title == "Imported"
        assert plan.branches == []


class TestInvalidRecords:
    """A node record that does not parse is skipped, not fatal."""

    VALID_BRANCH = [
        {"depth": 1, "choice_label": "A", "content": "a"},
        {"depth": 1, "choice_label": "B", "content": "b"},
    ]

    @pytest.mark.parametrize(
        "bad_record, field_name",
        [
            ({"parent_node_id": "A", "choice_label": "C", "depth": 2}, "choice_label"),
            ({"parent_node_id": "A", "depth": 0}, "depth"),
            ({"parent_node_id": "A", "content": "no depth"}, "depth"),
            ({"parent_node_id": "A", "depth": "2"}, "depth"),
        ],
    )
    def test_bad_record_beside_valid_branch(self, bad_record, field_name):
        plan = plan_import(_bundle([*self.VALID_BRANCH, bad_record]))

        (only,) = plan.branches
        assert (only.choice_a.content, only.choice_b.content) == ("a", "b")
        (skipped,) = plan.skipped
        assert skipped.record_count == 1
        assert skipped.reason.startswith(f"invalid record nodes.2 {field_name}")
        assert plan.warnings[0].step == "pairing"

    def test_bad_record_takes_its_group_down(self):
        """The valid half of a group is not paired against nothing."""
        plan = plan_import(
            _bundle(
                [
                    *self.VALID_BRANCH,
                    {"depth": 2, "parent_node_id": "A", "choice_label": "A", "content": "aa"},
                    {"depth": 2, "parent_node_id": "A", "choice_label": "Z", "content": "az"},
                ]
            )
        )

        assert [branch.depth for branch in plan.branches] == [1]
        (skipped,) = plan.skipped
        assert (skipped.depth, skipped.parent_id, skipped.record_count) == (2, "A", 2)

    def test_non_object_record_reported_on_its_own(self):
        plan = plan_import(_bundle([*self.VALID_BRANCH, "not a record"]))

        assert len(plan.branches) == 1
        assert plan.skipped[0].depth == 0
        assert plan.warnings[0].message.startswith("Skipped 1 record(s): invalid record nodes.2")

    def test_bad_record_in_top_level_group_skips_that_branch(self):
        store = FakeStoryStore()
        document = _bundle([*self.VALID_BRANCH, {"depth": 1, "choice_label": "C"}])

        result = import_story(store, "author-1", document)

        assert result.node_count == 0
        assert result.skipped[0].record_count == 3
        assert store.get_story(result.story_id) is not None

    def test_import_keeps_branch_when_bad_record_is_elsewhere(self):
        store = FakeStoryStore()
        document = _bundle(
            [*self.VALID_BRANCH, {"depth": 2, "parent_node_id": "A", "choice_label": "C"}]
        )

        result = import_story(store, "author-1", document)

        assert result.branch_count == 1
        assert store.node_count(result.story_id) == 2
        assert "choice_label" in result.warnings[0].message


class TestPairing:
    """Best-effort grouping and pairing of bundle records."""

    def test_explicit_labels_pair(self):
        plan = plan_import(
            _bundle(
                [
                    {"depth": 1, "choice_label": "B", "content": "right"},
                    {"depth": 1, "choice_label": "A", "content": "left"},
                ]
            )
        )

        (only,) = plan.branches
        assert (only.choice_a.label, only.choice_a.content) == ("A", "left")
        assert (only.choice_b.label, only.choice_b.content) == ("B", "right")

    def test_embedded_content_preferred_over_content(self):
        plan = plan_import(
            _bundle(
                [
                    {"depth": 1, "choice_label": "A", "content": "x", "choice_a_content": "left"},
                    {"depth": 1, "choice_label": "B", "content": "right"},
                ]
            )
        )

        assert plan.branches[0].choice_a.content == "left"

    def test_single_embedded_pair_record_supplies_both_options(self):
        plan = plan_import(
            _bundle(
                [
                    {
                        "depth": 1,
                        "choice_a_label": "Stay",
                        "choice_a_content": "stayed",
                        "choice_b_label": "Leave",
                        "choice_b_content": "left",
                    }
                ]
            )
        )

        (only,) = plan.branches
        assert (only.choice_a.label, only.choice_a.content) == ("Stay", "stayed")
        assert (only.choice_b.label, only.choice_b.content) == ("Leave", "left")

    def test_positional_fallback_for_two_plain_records(self):
        plan = plan_import(
            _bundle([{"depth": 1, "content": "first"}, {"depth": 1, "content": "second"}])
        )

        (only,) = plan.branches
        assert only.choice_a.content == "first"
        assert only.choice_b.content == "second"

    def test_lone_labeled_record_yields_no_branch(self):
        plan = plan_import(
            _bundle(
                [
                    {
                        "depth": 1,
                        "choice_label": "A",
                        "content": "alone",
                        "choice_a_content": "alone",
                        "choice_b_content": "missing",
                    }
                ]
            )
        )

        assert plan.branches == []
        assert plan.skipped[0].reason == "no matching B option"
        assert plan.warnings[0].step == "pairing"

    def test_duplicate_explicit_labels_skipped(self):
        plan = plan_import(
            _bundle(
                [
                    {"depth": 1, "choice_label": "A", "content": "one"},
                    {"depth": 1, "choice_label": "A", "content": "two"},
                ]
            )
        )

        assert plan.branches == []
        assert plan.skipped[0].reason == "duplicate choice labels"

    def test_lone_plain_record_is_a_continuation(self):
        plan = plan_import(_bundle([{"id": "intro", "depth": 1, "content": "Once upon a time"}]))

        assert plan.branches == []
        assert plan.skipped == []
        (continuation,) = plan.continuations
        assert (continuation.depth, continuation.content) == (1, "Once upon a time")
        assert continuation.source_id == "intro"

    def test_three_unmatched_singletons_degrade_gracefully(self):
        """Three records under one parent produce no branch and no error."""
        plan = plan_import(
            _bundle(
                [
                    {"depth": 1, "content": "one"},
                    {"depth": 1, "content": "two"},
                    {"depth": 1, "content": "three"},
                ]
            )
        )

        assert plan.branches == []
        assert len(plan.skipped) == 1
        assert plan.skipped[0].record_count == 3

    def test_groups_keyed_by_depth_and_parent(self):
        plan = plan_import(
            _bundle(
                [
                    {"depth": 2, "parent_node_id": "B", "choice_label": "A", "content": "ba"},
                    {"depth": 1, "choice_label": "A", "content": "a"},
                    {"depth": 2, "parent_node_id": "A", "choice_label": "A", "content": "aa"},
                    {"depth": 1, "choice_label": "B", "content": "b"},
                    {"depth": 2, "parent_node_id": "B", "choice_label": "B", "content": "bb"},
                    {"depth": 2, "parent_node_id": "A", "choice_label": "B", "content": "ab"},
                ]
            )
        )

        assert [(branch.depth, branch.parent_id) for branch in plan.branches] == [
            (1, None),
            (2, "B"),
            (2, "A"),
        ]

    def test_parent_resolved_by_bundle_id(self):
        plan = plan_import(
            _bundle(
                [
                    {"id": 10, "depth": 1, "choice_label": "A", "content": "a"},
                    {"id": 11, "depth": 1, "choice_label": "B", "content": "b"},
                    {"depth": 2, "parent_node_id": 11, "choice_label": "A", "content": "ba"},
                    {"depth": 2, "parent_node_id": 11, "choice_label": "B", "content": "bb"},
                ]
            )
        )

        tree = bundle_to_tree(plan)

        assert [child.content for child in tree[1].children] == ["ba", "bb"]
        assert tree[0].children == []

    def test_tags_collected(self):
        plan = plan_import(_bundle([], tags=[{"name": "Mystery"}, {"slug": "noir"}, {}]))

        assert [tag.display for tag in plan.tags] == ["Mystery", "noir"]


class TestImportStory:
    """Tests for import_story writes."""

    def _two_level_document(self) -> dict:
        return _export(authored_story_records())

    def test_import_creates_draft_story_with_nodes(self):
        store = FakeStoryStore()

        result = import_story(store, "author-1", self._two_level_document())

        story = store.get_story(result.story_id)
        assert story.title == "The Fork in the Road"
        assert story.status == "draft"
        assert story.author_id == "author-1"
        assert story.max_depth == 3
        assert result.branch_count == 3
        assert result.node_count == 6
        assert store.node_count(result.story_id) == 6

    def test_written_records_carry_embedded_pair(self):
        store = FakeStoryStore()

        result = import_story(store, "author-1", self._two_level_document())

        for node in store.list_nodes(result.story_id):
            assert node.choice_label in ("A", "B")
            assert node.choice_a_content is not None
            assert node.choice_b_content is not None

    def test_missing_max_depth_defaults(self):
        store = FakeStoryStore()

        result = import_story(store, "author-1", _bundle([]))

        assert store.get_story(result.story_id).max_depth == 5

    def test_unresolved_parent_skipped_and_reported(self):
        store = FakeStoryStore()
        document = _bundle(
            [
                {"depth": 1, "choice_label": "A", "content": "a"},
                {"depth": 1, "choice_label": "B", "content": "b"},
                {"depth": 2, "parent_node_id": "Z", "choice_label": "A", "content": "x"},
                {"depth": 2, "parent_node_id": "Z", "choice_label": "B", "content": "y"},
            ]
        )

        result = import_story(store, "author-1", document)

        assert result.branch_count == 1
        assert result.skipped[0].reason == "parent record was not imported"
        assert any("under Z" in warning.message for warning in result.warnings)

    def test_children_of_skipped_group_are_skipped(self):
        store = FakeStoryStore()
        document = _bundle(
            [
                {"depth": 1, "choice_label": "A", "content": "lonely"},
                {"depth": 2, "parent_node_id": "A", "choice_label": "A", "content": "x"},
                {"depth": 2, "parent_node_id": "A", "choice_label": "B", "content": "y"},
            ]
        )

        result = import_story(store, "author-1", document)

        assert result.branch_count == 0
        assert len(result.skipped) == 2
        assert store.get_story(result.story_id) is not None

    def test_tags_matched_by_name_or_slug(self):
        store = FakeStoryStore()
        store.put_tag(TagRecord(id="t1", name="Mystery", slug="mystery"))
        store.put_tag(TagRecord(id="t2", name="Film Noir", slug="noir"))
        document = _bundle([], tags=[{"name": "Mystery"}, {"slug": "noir"}, {"name": "Nope"}])

        result = import_story(store, "author-1", document)

        assert result.tag_count == 2
        assert {tag.id for tag in store.list_story_tags(result.story_id)} == {"t1", "t2"}
        assert [warning.message for warning in result.warnings] == ["Unknown tags skipped: Nope"]

    def test_tag_attach_failure_is_warning(self):
        store = FakeStoryStore(fail_attach_tags=True)
        store.put_tag(TagRecord(id="t1", name="Mystery", slug="mystery"))

        result = import_story(store, "author-1", _bundle([], tags=[{"name": "Mystery"}]))

        assert result.tag_count == 0
        assert result.warnings[0].step == "tags"
        assert store.get_story(result.story_id) is not None

    @pytest.mark.parametrize("failing_insert", [1, 3, 6])
    def test_node_failure_deletes_story(self, failing_insert: int):
        store = FakeStoryStore(fail_node_insert_at=failing_insert)

        with pytest.raises(StoreError):
            import_story(store, "author-1", self._two_level_document())

        assert store.story_ids() == []
