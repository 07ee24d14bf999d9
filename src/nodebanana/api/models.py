"""Pydantic request models for the Node Banana API.

FastAPI uses these models for request validation and OpenAPI documentation.
Workflow documents themselves are validated with
:class:`~nodebanana.graph.models.WorkflowDocument`.

Models
------
RunRequest
    Payload for ``POST /api/run``: optional entry node (resume point).
OpenRequest
    Payload for ``POST /api/workflow/open``: workflow file to load.
SaveRequest
    Payload for ``POST /api/workflow/save``: target directory.
NodePatchRequest
    Payload for ``PATCH /api/nodes/{id}``: payload fields to merge.
GroupLockRequest
    Payload for ``PUT /api/groups/{id}/lock``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class RunRequest(BaseModel):
    """Request body for ``POST /api/run``.

    Attributes:
        entry_node_id: Node to start from.  When it is the node the last run
            paused at, the run resumes past the pause marker.  ``None`` runs
            the whole workflow.
    """

    entry_node_id: str | None = Field(
        default=None,
        description="Node to start (or resume) from; omit to run everything.",
    )


class OpenRequest(BaseModel):
    """Request body for ``POST /api/workflow/open``."""

    path: str = Field(..., description="Path of a workflow JSON file.")


class SaveRequest(BaseModel):
    """Request body for ``POST /api/workflow/save``.

    Attributes:
        directory: Directory to save into.  It also becomes the autosave
            directory.  When omitted the current autosave directory is used.
    """

    directory: str | None = Field(
        default=None,
        description="Target directory; defaults to the configured save directory.",
    )


class NodePatchRequest(BaseModel):
    """Request body for ``PATCH /api/nodes/{node_id}``."""

    data: dict[str, Any] = Field(
        ...,
        description="Payload fields to merge into the node (snake_case or camelCase keys).",
    )


class GroupLockRequest(BaseModel):
    """Request body for ``PUT /api/groups/{group_id}/lock``."""

    locked: bool = Field(..., description="Whether nodes in the group are skipped during runs.")
