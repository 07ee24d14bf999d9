"""Tests for nodebanana.engine.inputs - input resolution."""

from __future__ import annotations

from nodebanana.engine.inputs import resolve_inputs
from nodebanana.graph.models import Edge, Node


def _image_input(node_id: str, image: str | None) -> Node:
    return Node.model_validate({"id": node_id, "type": "imageInput", "data": {"image": image}})


def _prompt(node_id: str, text: str) -> Node:
    return Node.model_validate({"id": node_id, "type": "prompt", "data": {"prompt": text}})


TARGET = Node.model_validate({"id": "gen", "type": "nanoBanana", "data": {}})


class TestResolveInputs:
    """Test image accumulation and text overwrite."""

    def test_no_edges(self):
        resolved = resolve_inputs("gen", [TARGET], [])

        assert resolved.images == []
        assert resolved.text is None

    def test_images_accumulate_in_edge_order(self):
        nodes = [_image_input("a", "img-a"), _image_input("b", "img-b"), _image_input("c", "img-c"), TARGET]
        edges = [
            Edge(source="c", target="gen", target_handle="image"),
            Edge(source="a", target="gen", target_handle="content"),
            Edge(source="b", target="gen", target_handle="style"),
        ]

        assert resolve_inputs("gen", nodes, edges).images == ["img-c", "img-a", "img-b"]

    def test_edge_without_handle_carries_image(self):
        nodes = [_image_input("a", "img-a"), TARGET]

        resolved = resolve_inputs("gen", nodes, [Edge(source="a", target="gen")])

        assert resolved.images == ["img-a"]

    def test_empty_upstream_image_skipped(self):
        nodes = [_image_input("a", None), _image_input("b", "img-b"), TARGET]
        edges = [
            Edge(source="a", target="gen", target_handle="image"),
            Edge(source="b", target="gen", target_handle="image"),
        ]

        assert resolve_inputs("gen", nodes, edges).images == ["img-b"]

    def test_last_text_edge_wins(self):
        nodes = [_prompt("p1", "first"), _prompt("p2", "second"), TARGET]
        edges = [
            Edge(source="p1", target="gen", target_handle="text"),
            Edge(source="p2", target="gen", target_handle="text"),
        ]

        assert resolve_inputs("gen", nodes, edges).text == "second"

    def test_later_empty_text_overwrites(self):
        nodes = [_prompt("p1", "first"), _prompt("p2", ""), TARGET]
        edges = [
            Edge(source="p1", target="gen", target_handle="text"),
            Edge(source="p2", target="gen", target_handle="text"),
        ]

        assert resolve_inputs("gen", nodes, edges).text == ""

    def test_generated_outputs_are_used(self):
        upstream = Node.model_validate(
            {"id": "up", "type": "nanoBanana", "data": {"outputImage": "img-up"}}
        )
        llm = Node.model_validate({"id": "llm", "type": "llmGenerate", "data": {"outputText": "story"}})
        edges = [
            Edge(source="up", target="gen", target_handle="image"),
            Edge(source="llm", target="gen", target_handle="text"),
        ]

        resolved = resolve_inputs("gen", [upstream, llm, TARGET], edges)

        assert resolved.images == ["img-up"]
        assert resolved.text == "story"

    def test_edges_to_other_nodes_ignored(self):
        nodes = [_image_input("a", "img-a"), TARGET]
        edges = [Edge(source="a", target="elsewhere", target_handle="image")]

        assert resolve_inputs("gen", nodes, edges).images == []


class TestStyleTransferImages:
    """Test content/style roles taken from edge handles."""

    def test_roles_follow_handles_not_edge_order(self):
        nodes = [_image_input("c", "img-content"), _image_input("s", "img-style"), TARGET]
        edges = [
            Edge(source="s", target="gen", target_handle="style"),
            Edge(source="c", target="gen", target_handle="content"),
        ]

        resolved = resolve_inputs("gen", nodes, edges)
        content, style, ordered = resolved.style_transfer_images()

        assert resolved.image_handles == ["style", "content"]
        assert content == "img-content"
        assert style == "img-style"
        assert ordered == ["img-content", "img-style"]

    def test_unlabelled_images_fill_roles_in_order(self):
        nodes = [_image_input("a", "img-a"), _image_input("b", "img-b"), TARGET]
        edges = [
            Edge(source="a", target="gen", target_handle="image"),
            Edge(source="b", target="gen"),
        ]

        content, style, _ = resolve_inputs("gen", nodes, edges).style_transfer_images()

        assert (content, style) == ("img-a", "img-b")

    def test_style_only(self):
        nodes = [_image_input("s", "img-style"), TARGET]
        edges = [Edge(source="s", target="gen", target_handle="style")]

        content, style, ordered = resolve_inputs("gen", nodes, edges).style_transfer_images()

        assert content is None
        assert style == "img-style"
        assert ordered == ["img-style"]
