"""Resolution of a node's inputs from its upstream nodes.

Image-class handles (``image``, ``content``, ``style``, or no handle)
accumulate: every edge contributes the upstream node's current output image,
in edge-array order.  The handle each image arrived on is kept alongside it,
so a style transfer can tell its ``content`` image from its ``style`` image
whatever order the edges were drawn in.  The ``text`` handle holds a single
value: when several edges feed it, the edge processed last wins.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from nodebanana.graph.models import (
    AnnotationData,
    Edge,
    ImageGenerateData,
    ImageInputData,
    Node,
    PromptData,
    StyleTransferData,
    TextGenerateData,
)


@dataclass
class ResolvedInputs:
    """Inputs gathered for one node."""

    images: list[str] = field(default_factory=list)
    text: str | None = None
    image_handles: list[str | None] = field(default_factory=list)

    def _labelled(self) -> list[tuple[str, str | None]]:
        handles = self.image_handles + [None] * (len(self.images) - len(self.image_handles))
        return list(zip(self.images, handles))

    def style_transfer_images(self) -> tuple[str | None, str | None, list[str]]:
        """Return ``(content, style, ordered)`` for a style transfer.

        Images on the ``content`` and ``style`` handles take those roles.
        Unlabelled images fill whichever role is still empty, content first.
        ``ordered`` is every image with content first and style second.
        """
        labelled = self._labelled()
        content = [image for image, handle in labelled if handle == "content"]
        style = [image for image, handle in labelled if handle == "style"]
        other = [image for image, handle in labelled if handle not in ("content", "style")]

        content_image = content.pop(0) if content else (other.pop(0) if other else None)
        style_image = style.pop(0) if style else (other.pop(0) if other else None)
        ordered = [image for image in (content_image, style_image) if image]
        return content_image, style_image, ordered + content + style + other


def output_image(node: Node) -> str | None:
    """Return the image a node currently exposes on its output handle."""
    data = node.data
    if isinstance(data, ImageInputData):
        return data.image
    if isinstance(data, (AnnotationData, ImageGenerateData, StyleTransferData)):
        return data.output_image
    return None


def output_text(node: Node) -> str | None:
    """Return the text a node currently exposes on its output handle."""
    data = node.data
    if isinstance(data, PromptData):
        return data.prompt
    if isinstance(data, TextGenerateData):
        return data.output_text
    return None


def resolve_inputs(node_id: str, nodes: Iterable[Node], edges: Iterable[Edge]) -> ResolvedInputs:
    """Gather the images and text feeding node *node_id*.

    Args:
        node_id: Id of the node whose inputs are resolved.
        nodes: Current nodes (read for their output fields).
        edges: Graph edges in array order.

    Returns:
        The resolved image list (possibly empty) and text (possibly
        ``None``).
    """
    by_id = {node.id: node for node in nodes}
    resolved = ResolvedInputs()

    for edge in edges:
        if edge.target != node_id:
            continue
        source = by_id.get(edge.source)
        if source is None:
            continue

        if edge.is_image_edge:
            image = output_image(source)
            if image:
                resolved.images.append(image)
                resolved.image_handles.append(edge.target_handle)
        elif edge.is_text_edge:
            resolved.text = output_text(source)

    return resolved
