"""Tests for nodebanana.graph - workflow models and the workflow store."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from nodebanana.graph.models import (
    Edge,
    ImageGenerateData,
    Node,
    NodeKind,
    NodeStatus,
    PromptData,
    WorkflowDocument,
)
from nodebanana.graph.store import WorkflowStore


class TestNodeModel:
    """Test node payload coercion and wire format."""

    def test_payload_matches_kind(self):
        node = Node.model_validate({"id": "g", "type": "nanoBanana", "data": {"aspectRatio": "16:9"}})

        assert node.type is NodeKind.IMAGE_GENERATE
        assert isinstance(node.data, ImageGenerateData)
        assert node.data.aspect_ratio == "16:9"
        assert node.status is NodeStatus.IDLE

    def test_defaults(self):
        data = Node.model_validate({"id": "g", "type": "nanoBanana", "data": {}}).data

        assert data.model == "nano-banana-pro"
        assert data.resolution == "1K"
        assert data.image_history == []

    def test_pass_through_kind_has_no_status(self):
        node = Node.model_validate({"id": "p", "type": "prompt", "data": {"prompt": "x"}})

        assert isinstance(node.data, PromptData)
        assert node.status is NodeStatus.IDLE
        assert node.error is None

    def test_dump_uses_camel_case(self):
        node = Node.model_validate({"id": "g", "type": "nanoBanana", "data": {}, "groupId": None})

        dumped = node.model_dump(mode="json", by_alias=True)

        assert dumped["type"] == "nanoBanana"
        assert "outputImage" in dumped["data"]
        assert "selectedHistoryIndex" in dumped["data"]

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            Node.model_validate({"id": "x", "type": "teleporter", "data": {}})

    def test_invalid_aspect_ratio_rejected(self):
        with pytest.raises(ValidationError):
            Node.model_validate({"id": "g", "type": "nanoBanana", "data": {"aspectRatio": "7:3"}})


class TestEdgeModel:
    def test_default_id(self):
        edge = Edge(source="a", target="b", source_handle="image", target_handle="image")

        assert edge.id == "edge-a-image-b-image"

    def test_handle_classes(self):
        assert Edge(source="a", target="b").is_image_edge
        assert Edge(source="a", target="b", target_handle="style").is_image_edge
        assert Edge(source="a", target="b", target_handle="text").is_text_edge

    def test_pause_flag(self):
        edge = Edge.model_validate({"source": "a", "target": "b", "data": {"hasPause": True}})

        assert edge.has_pause is True


class TestWorkflowDocument:
    def test_unknown_group_rejected(self):
        with pytest.raises(ValidationError, match="unknown group"):
            WorkflowDocument.model_validate(
                {"name": "w", "nodes": [{"id": "p", "type": "prompt", "data": {}, "groupId": "g1"}]}
            )

    def test_only_version_one(self):
        with pytest.raises(ValidationError):
            WorkflowDocument.model_validate({"version": 2, "name": "w"})


class TestWorkflowStore:
    """Test lookups, patch merging, and snapshots."""

    @pytest.fixture
    def filled(self, store: WorkflowStore, make_document) -> WorkflowStore:
        nodes = [
            {"id": "p", "type": "prompt", "data": {"prompt": "hi"}},
            {"id": "g", "type": "nanoBanana", "data": {}, "groupId": "grp"},
        ]
        edges = [{"source": "p", "target": "g", "targetHandle": "text"}]
        groups = {"grp": {"id": "grp", "name": "Main"}}
        store.load_document(make_document(nodes, edges, groups=groups))
        return store

    def test_load_is_clean(self, filled):
        assert filled.dirty is False
        assert filled.workflow_id == "wf-test"
        assert [node.id for node in filled.nodes()] == ["p", "g"]

    def test_lookups(self, filled):
        assert filled.node_by_id("missing") is None
        assert [edge.source for edge in filled.edges_into("g")] == ["p"]
        assert filled.group_of("g").name == "Main"
        assert filled.group_of("p") is None

    def test_update_accepts_both_spellings(self, filled):
        filled.update_node("g", output_image="img-1")
        filled.update_node("g", selectedHistoryIndex=2)

        data = filled.node_by_id("g").data
        assert data.output_image == "img-1"
        assert data.selected_history_index == 2
        assert filled.dirty is True

    def test_update_rejects_foreign_field(self, filled):
        """A field of another node kind is not attached to the payload."""
        with pytest.raises(ValueError, match="not valid"):
            filled.update_node("p", output_image="img-1")

    def test_update_rejects_invalid_value(self, filled):
        with pytest.raises(ValueError):
            filled.update_node("g", aspect_ratio="7:3")

    def test_update_unknown_node(self, filled):
        with pytest.raises(KeyError):
            filled.update_node("missing", prompt="x")

    def test_snapshot_is_isolated(self, filled):
        snapshot = filled.snapshot()

        filled.update_node("p", prompt="changed")

        assert snapshot.node_by_id("p").data.prompt == "hi"
        assert snapshot.group_of("g").id == "grp"

    def test_group_lock(self, filled):
        filled.set_group_locked("grp", True)

        assert filled.group_of("g").locked is True
        with pytest.raises(KeyError):
            filled.set_group_locked("nope", True)

    def test_round_trip_document(self, filled):
        document = filled.to_document()

        assert document.id == "wf-test"
        assert [node.id for node in document.nodes] == ["p", "g"]
        assert document.groups["grp"].name == "Main"

    def test_mark_saved(self, filled):
        filled.update_node("p", prompt="x")
        filled.mark_saved()

        assert filled.dirty is False
