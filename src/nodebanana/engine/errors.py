"""Exceptions raised by the workflow engine.

Every exception carries a message intended to be shown to the user next to
the failing node.  Any of them raised while a node executes halts the whole
run; :class:`CycleError` is raised before any node executes.

Exceptions that are not :class:`EngineError` are wrapped in
:class:`ExecutionError` by the executor before they reach the run controller.
"""

from __future__ import annotations

from typing import Literal


class EngineError(Exception):
    """Base class for workflow engine failures.

    Attributes:
        node_id: Id of the node the failure is attributed to, if any.
    """

    def __init__(self, message: str, node_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.node_id = node_id


class CycleError(EngineError):
    """The graph is not a DAG."""

    def __init__(self, node_id: str) -> None:
        super().__init__("Cycle detected in workflow", node_id=node_id)


class ValidationError(EngineError):
    """A node is missing an input its kind requires."""


class ConfigurationError(EngineError):
    """A node has not been set up by the user yet (e.g. an unconfigured grid split)."""


class ServiceError(EngineError):
    """A generation service returned a structured failure or an HTTP error status.

    Attributes:
        status_code: HTTP status code, when the failure came from the
            transport layer rather than a ``success: false`` payload.
    """

    def __init__(
        self, message: str, node_id: str | None = None, status_code: int | None = None
    ) -> None:
        super().__init__(message, node_id=node_id)
        self.status_code = status_code


class ExecutionError(EngineError):
    """A node failed for a reason other than its inputs or a service response.

    Wraps unexpected exceptions (a bad grid wiring, an unwritable cost file)
    so the run still ends as ``FAILED``.
    """


TransportKind = Literal["timeout", "network", "generic"]


class TransportError(EngineError):
    """The request to a generation service never produced a response.

    Attributes:
        kind: ``"timeout"``, ``"network"``, or ``"generic"``.
    """

    def __init__(
        self, message: str, kind: TransportKind = "generic", node_id: str | None = None
    ) -> None:
        super().__init__(message, node_id=node_id)
        self.kind = kind
