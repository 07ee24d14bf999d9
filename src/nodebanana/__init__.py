"""Node Banana - workflow execution engine for image and text generation pipelines."""

__version__ = "0.1.0"

from nodebanana.core.config import NodeBananaConfig, config
from nodebanana.engine.controller import RunController, RunReport, RunState
from nodebanana.engine.executor import NodeExecutor
from nodebanana.graph.models import Edge, Group, Node, NodeKind, NodeStatus, WorkflowDocument
from nodebanana.graph.store import WorkflowStore

__all__ = [
    "Edge",
    "Group",
    "Node",
    "NodeBananaConfig",
    "NodeExecutor",
    "NodeKind",
    "NodeStatus",
    "RunController",
    "RunReport",
    "RunState",
    "WorkflowDocument",
    "WorkflowStore",
    "config",
]
