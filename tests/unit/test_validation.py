"""Tests for nodebanana.engine.validation - pre-run structural checks."""

from __future__ import annotations

from nodebanana.engine.validation import validate_workflow
from nodebanana.graph.models import Edge, Node


def _node(node_id: str, kind: str, **data) -> Node:
    return Node.model_validate({"id": node_id, "type": kind, "data": data})


class TestValidateWorkflow:
    def test_empty_workflow(self):
        report = validate_workflow([], [])

        assert report.valid is False
        assert report.errors == ["Workflow is empty"]

    def test_connected_pipeline_is_valid(self):
        nodes = [
            _node("img", "imageInput"),
            _node("p", "prompt"),
            _node("gen", "nanoBanana"),
            _node("out", "output"),
        ]
        edges = [
            Edge(source="img", target="gen", target_handle="image"),
            Edge(source="p", target="gen", target_handle="text"),
            Edge(source="gen", target="out", target_handle="image"),
        ]

        report = validate_workflow(nodes, edges)

        assert report.valid is True
        assert report.errors == []

    def test_generate_node_missing_inputs(self):
        report = validate_workflow([_node("gen", "nanoBanana")], [])

        assert report.errors == [
            'Generate node "gen" missing image input',
            'Generate node "gen" missing text input',
        ]

    def test_annotation_with_loaded_image_is_valid(self):
        nodes = [_node("a", "annotation", sourceImage="data:image/png;base64,AAAA")]

        assert validate_workflow(nodes, []).valid is True

    def test_annotation_without_input(self):
        report = validate_workflow([_node("a", "annotation")], [])

        assert report.errors == ['Annotation node "a" missing image input']

    def test_output_without_input(self):
        report = validate_workflow([_node("out", "output")], [])

        assert report.errors == ['Output node "out" missing image input']
