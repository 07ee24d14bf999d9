"""In-memory workflow store.

:class:`WorkflowStore` owns the live nodes, edges, and groups of the open
workflow.  It is the only shared mutable state in the engine: the run loop,
the autosave task, and the API handlers all read and write through it, and
every mutation is serialised by a single re-entrant lock.

Runs never iterate the live lists directly.  The run controller takes a
:meth:`WorkflowStore.snapshot` when a run starts and computes its order from
that copy, so structural edits made while a run is in flight do not change
the current run.  Node payload writes (:meth:`WorkflowStore.update_node`)
always target the live store.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from pydantic import ValidationError as PydanticValidationError

from nodebanana.graph.models import Edge, Group, Node, NodeData, WorkflowDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable copy of the graph taken at run start."""

    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()
    groups: dict[str, Group] = field(default_factory=dict)

    def node_by_id(self, node_id: str) -> Node | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def edges_into(self, node_id: str) -> list[Edge]:
        return [edge for edge in self.edges if edge.target == node_id]

    def group_of(self, node_id: str) -> Group | None:
        node = self.node_by_id(node_id)
        if node is None or node.group_id is None:
            return None
        return self.groups.get(node.group_id)


def _field_names(payload_model: type[NodeData]) -> dict[str, str]:
    """Map both the attribute name and the wire alias of each field to the attribute name."""
    names: dict[str, str] = {}
    for name, info in payload_model.model_fields.items():
        names[name] = name
        if info.alias:
            names[info.alias] = name
    return names


class WorkflowStore:
    """Owned, lock-guarded container for the open workflow.

    Attributes:
        workflow_id: Id of the open workflow, or ``None`` for an unsaved one.
        name: Display name of the open workflow.
        edge_style: Editor edge style, carried through save/load.
        dirty: ``True`` when the store changed since the last save.
    """

    def __init__(self, document: WorkflowDocument | None = None) -> None:
        self._lock = threading.RLock()
        self._nodes: list[Node] = []
        self._edges: list[Edge] = []
        self._groups: dict[str, Group] = {}
        self.workflow_id: str | None = None
        self.name: str = "untitled"
        self.edge_style: str = "angular"
        self.dirty = False
        if document is not None:
            self.load_document(document)

    @property
    def lock(self) -> threading.RLock:
        """The lock serialising every store mutation."""
        return self._lock

    # -- Lookups ------------------------------------------------------------

    def nodes(self) -> list[Node]:
        with self._lock:
            return list(self._nodes)

    def edges(self) -> list[Edge]:
        with self._lock:
            return list(self._edges)

    def groups(self) -> dict[str, Group]:
        with self._lock:
            return dict(self._groups)

    def node_by_id(self, node_id: str) -> Node | None:
        with self._lock:
            for node in self._nodes:
                if node.id == node_id:
                    return node
            return None

    def edges_into(self, node_id: str) -> list[Edge]:
        with self._lock:
            return [edge for edge in self._edges if edge.target == node_id]

    def group_of(self, node_id: str) -> Group | None:
        with self._lock:
            node = self.node_by_id(node_id)
            if node is None or node.group_id is None:
                return None
            return self._groups.get(node.group_id)

    # -- Mutation -----------------------------------------------------------

    def update_node(self, node_id: str, **patch) -> Node:
        """Merge *patch* into the payload of node *node_id*.

        Patch keys may use either the Python attribute name
        (``output_image``) or the wire alias (``outputImage``).  The merged
        payload is re-validated against the node kind's payload model, so a
        field belonging to a different node kind is rejected instead of
        silently attached.

        Args:
            node_id: Id of the node to update.
            **patch: Payload fields to overwrite.

        Returns:
            The updated node.

        Raises:
            KeyError: If no node with *node_id* exists.
            ValueError: If a patch key is not a field of the node's payload,
                or the merged payload fails validation.
        """
        with self._lock:
            for index, node in enumerate(self._nodes):
                if node.id == node_id:
                    break
            else:
                raise KeyError(f"Unknown node '{node_id}'")

            payload_model = type(node.data)
            names = _field_names(payload_model)
            unknown = [key for key in patch if key not in names]
            if unknown:
                raise ValueError(
                    f"Fields {unknown} are not valid for {node.type.value} node '{node_id}'"
                )

            merged = node.data.model_dump()
            merged.update({names[key]: value for key, value in patch.items()})
            try:
                data = payload_model.model_validate(merged)
            except PydanticValidationError as exc:
                raise ValueError(f"Invalid update for node '{node_id}': {exc}") from exc

            updated = node.model_copy(update={"data": data})
            self._nodes[index] = updated
            self.dirty = True
            return updated

    def set_group_locked(self, group_id: str, locked: bool) -> Group:
        with self._lock:
            if group_id not in self._groups:
                raise KeyError(f"Unknown group '{group_id}'")
            group = self._groups[group_id].model_copy(update={"locked": locked})
            self._groups[group_id] = group
            self.dirty = True
            return group

    def mark_saved(self) -> None:
        with self._lock:
            self.dirty = False

    # -- Snapshot & documents -----------------------------------------------

    def snapshot(self) -> GraphSnapshot:
        """Return a deep copy of the graph for the duration of a run."""
        with self._lock:
            return GraphSnapshot(
                nodes=tuple(node.model_copy(deep=True) for node in self._nodes),
                edges=tuple(edge.model_copy(deep=True) for edge in self._edges),
                groups={key: group.model_copy(deep=True) for key, group in self._groups.items()},
            )

    def load_document(self, document: WorkflowDocument) -> None:
        """Replace the store contents with *document*."""
        with self._lock:
            self._nodes = [node.model_copy(deep=True) for node in document.nodes]
            self._edges = [edge.model_copy(deep=True) for edge in document.edges]
            self._groups = {
                key: group.model_copy(deep=True) for key, group in (document.groups or {}).items()
            }
            self.workflow_id = document.id
            self.name = document.name
            self.edge_style = document.edge_style
            self.dirty = False
        logger.info(
            "Loaded workflow '%s' (%d nodes, %d edges, %d groups).",
            document.name,
            len(document.nodes),
            len(document.edges),
            len(document.groups or {}),
        )

    def to_document(self) -> WorkflowDocument:
        with self._lock:
            return WorkflowDocument(
                id=self.workflow_id,
                name=self.name,
                nodes=[node.model_copy(deep=True) for node in self._nodes],
                edges=[edge.model_copy(deep=True) for edge in self._edges],
                edge_style=self.edge_style,
                groups=dict(self._groups) or None,
            )
