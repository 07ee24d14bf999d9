"""Pre-run structural checks.

:func:`validate_workflow` inspects the graph without executing anything and
reports connections a run would trip over.  The report is advisory: the run
controller does not consult it, and a run on an invalid workflow still fails
at the first node that lacks an input.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from nodebanana.graph.models import AnnotationData, Edge, Node, NodeKind, TEXT_HANDLE


@dataclass
class ValidationReport:
    errors: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def validate_workflow(nodes: Sequence[Node], edges: Sequence[Edge]) -> ValidationReport:
    """Check every node for the connections its kind needs.

    Rules:

    - an empty workflow is invalid;
    - an image-generate node needs an ``image`` and a ``text`` connection;
    - an annotation node needs an incoming connection or a loaded image;
    - an output node needs an incoming connection.

    Args:
        nodes: Graph nodes.
        edges: Graph edges.

    Returns:
        A :class:`ValidationReport` listing one message per problem.
    """
    report = ValidationReport()
    if not nodes:
        report.errors.append("Workflow is empty")
        return report

    def connected(node_id: str, handle: str | None = None) -> bool:
        return any(
            edge.target == node_id and (handle is None or edge.target_handle == handle)
            for edge in edges
        )

    for node in nodes:
        if node.type is NodeKind.IMAGE_GENERATE:
            if not connected(node.id, "image"):
                report.errors.append(f'Generate node "{node.id}" missing image input')
            if not connected(node.id, TEXT_HANDLE):
                report.errors.append(f'Generate node "{node.id}" missing text input')

    for node in nodes:
        if node.type is NodeKind.ANNOTATION:
            assert isinstance(node.data, AnnotationData)
            if not connected(node.id) and node.data.source_image is None:
                report.errors.append(f'Annotation node "{node.id}" missing image input')

    for node in nodes:
        if node.type is NodeKind.OUTPUT and not connected(node.id):
            report.errors.append(f'Output node "{node.id}" missing image input')

    return report
