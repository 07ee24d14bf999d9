"""Workflow document persistence.

Workflows are stored as pretty-printed JSON (``version`` 1, camelCase keys)
under ``<directory>/<name>.json``.  Reading validates the document with the
pydantic models in :mod:`nodebanana.graph.models`; a file that fails
validation is rejected as a whole rather than partially loaded.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from nodebanana.graph.models import WorkflowDocument

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9 _.-]+")


def workflow_filename(name: str) -> str:
    """Return the file name a workflow called *name* is saved under."""
    stem = _UNSAFE_FILENAME_RE.sub("_", name).strip(" .") or "untitled"
    return f"{stem}.json"


def document_to_json(document: WorkflowDocument) -> dict[str, Any]:
    """Serialise *document* to its JSON wire form."""
    payload = document.model_dump(mode="json", by_alias=True)
    if not payload.get("groups"):
        payload.pop("groups", None)
    if payload.get("id") is None:
        payload.pop("id", None)
    return payload


def parse_workflow(payload: Any) -> WorkflowDocument:
    """Validate a decoded JSON object as a workflow document.

    Raises:
        ValueError: If the payload is not a valid workflow document.
    """
    try:
        return WorkflowDocument.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValueError(f"Invalid workflow document: {exc}") from exc


def load_workflow(path: Path) -> WorkflowDocument:
    """Read and validate the workflow stored at *path*.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file is not valid JSON or not a valid workflow.
    """
    path = Path(path)
    with open(path, encoding="utf-8") as handle:
        try:
            payload = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{path} is not valid JSON: {exc}") from exc
    document = parse_workflow(payload)
    logger.info("Loaded workflow '%s' from %s", document.name, path)
    return document


def save_workflow(document: WorkflowDocument, directory: Path) -> Path:
    """Write *document* to ``<directory>/<name>.json`` and return the path."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / workflow_filename(document.name)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(document_to_json(document), handle, indent=2, ensure_ascii=False)
    logger.info("Saved workflow '%s' to %s", document.name, path)
    return path
