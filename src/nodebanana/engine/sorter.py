"""Topological ordering of a workflow graph.

The order is produced by a depth-first walk over the nodes in their natural
(insertion) order.  Before a node is appended, every node feeding an edge
into it is visited, in edge-array order.  Independent subgraphs therefore
interleave according to natural node order; the engine runs them as one
sequential stream.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from nodebanana.engine.errors import CycleError
from nodebanana.graph.models import Edge, Node

logger = logging.getLogger(__name__)


def topological_sort(nodes: Sequence[Node], edges: Sequence[Edge]) -> list[Node]:
    """Linearise *nodes* so that every edge source precedes its target.

    Args:
        nodes: Graph nodes in natural order.
        edges: Graph edges in array order.

    Returns:
        The nodes in execution order.

    Raises:
        CycleError: If a node is reached again while it is still being
            visited.  The error's ``node_id`` names that node.
    """
    by_id = {node.id: node for node in nodes}
    incoming: dict[str, list[str]] = {node.id: [] for node in nodes}
    for edge in edges:
        if edge.target in incoming:
            incoming[edge.target].append(edge.source)

    ordered: list[Node] = []
    visited: set[str] = set()
    visiting: set[str] = set()

    # Iterative DFS so that long chains do not hit the recursion limit.
    for root in nodes:
        if root.id in visited:
            continue
        stack: list[tuple[str, int]] = [(root.id, 0)]
        visiting.add(root.id)
        while stack:
            node_id, next_dep = stack[-1]
            deps = incoming.get(node_id, [])
            if next_dep < len(deps):
                stack[-1] = (node_id, next_dep + 1)
                dep = deps[next_dep]
                if dep in visited:
                    continue
                if dep in visiting:
                    logger.error("Cycle detected in workflow at node '%s'.", dep)
                    raise CycleError(dep)
                if dep not in by_id:
                    # Dangling edge: nothing to run for it.
                    continue
                visiting.add(dep)
                stack.append((dep, 0))
                continue
            stack.pop()
            visiting.discard(node_id)
            visited.add(node_id)
            ordered.append(by_id[node_id])

    return ordered
