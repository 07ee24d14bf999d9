"""Node Banana - FastAPI Application.

This module is the single entry point for the HTTP surface of the engine.
It defines the FastAPI ``app`` instance, all REST API routes, and the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **The engine** (store, ledger, executor, run controller, autosaver) is
  built once in the lifespan handler and kept on ``app.state.engine``.
- **Runs** execute inside the request that starts them; ``POST /api/stop``
  from another request stops a run between nodes.
- **Generation** is delegated to the remote image and text services
  configured in :data:`~nodebanana.core.config.config`.

Endpoints
---------
========  ====================================  ================================
Method    Path                                  Purpose
========  ====================================  ================================
GET       ``/api/workflow``                     Current workflow document
PUT       ``/api/workflow``                     Replace the workflow
POST      ``/api/workflow/open``                Load a workflow file
POST      ``/api/workflow/save``                Save the workflow to disk
GET       ``/api/workflow/validation``          Pre-run validation report
POST      ``/api/run``                          Run or resume the workflow
POST      ``/api/stop``                         Stop the current run
GET       ``/api/status``                       Run state and cost
GET       ``/api/nodes/{id}``                   Single node
PATCH     ``/api/nodes/{id}``                   Edit a node's payload
POST      ``/api/nodes/{id}/regenerate``        Re-run one node
GET       ``/api/nodes/{id}/carousel/{index}``  Image of a carousel entry
PUT       ``/api/groups/{id}/lock``             Lock or unlock a group
GET       ``/api/history``                      Global image history
DELETE    ``/api/history``                      Clear the global history
GET       ``/api/cost``                         Incurred cost of the workflow
DELETE    ``/api/cost``                         Reset the incurred cost
========  ====================================  ================================

Usage
-----
CLI (installed entry point)::

    nodebanana

Direct invocation::

    python -m nodebanana.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from nodebanana import __version__
from nodebanana.api.models import (
    GroupLockRequest,
    NodePatchRequest,
    OpenRequest,
    RunRequest,
    SaveRequest,
)
from nodebanana.core.autosave import Autosaver
from nodebanana.core.config import NodeBananaConfig, config
from nodebanana.core.session_log import FileLogSink, SessionLogger
from nodebanana.core.workflow_io import document_to_json, load_workflow, save_workflow
from nodebanana.engine.controller import RunController, RunReport
from nodebanana.engine.executor import NodeExecutor
from nodebanana.engine.ledger import CostLedger, Ledger
from nodebanana.engine.validation import validate_workflow
from nodebanana.graph.models import WorkflowDocument
from nodebanana.graph.store import WorkflowStore
from nodebanana.services.artifacts import FileArtifactStore
from nodebanana.services.generation import (
    ImageGenerationClient,
    ImageGenerator,
    TextGenerationClient,
    TextGenerator,
)
from nodebanana.services.pricing import PricingFunction

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Engine wiring.
# ---------------------------------------------------------------------------


@dataclass
class EngineContext:
    """Everything the route handlers operate on."""

    config: NodeBananaConfig
    store: WorkflowStore
    ledger: Ledger
    executor: NodeExecutor
    controller: RunController
    autosaver: Autosaver
    artifacts: FileArtifactStore


def build_engine(
    cfg: NodeBananaConfig,
    image_service: ImageGenerator | None = None,
    text_service: TextGenerator | None = None,
    pricing: PricingFunction | None = None,
) -> EngineContext:
    """Assemble an engine from *cfg*.

    Args:
        cfg: Configuration to read service URLs and directories from.
        image_service: Image backend; defaults to the HTTP client for
            ``cfg.image_service_url``.
        text_service: Text backend; defaults to the HTTP client for
            ``cfg.text_service_url``.
        pricing: Pricing function; defaults to the built-in price table.

    Returns:
        A fully wired :class:`EngineContext` with an empty workflow.
    """
    store = WorkflowStore()
    ledger = Ledger(CostLedger(cfg.cost_ledger_path), pricing=pricing)
    artifacts = FileArtifactStore()
    executor = NodeExecutor(
        store,
        image_service or ImageGenerationClient.from_config(cfg),
        text_service or TextGenerationClient.from_config(cfg),
        ledger,
        artifact_store=artifacts,
        generations_dir=cfg.generations_dir,
        session_log=SessionLogger(FileLogSink(cfg.logs_dir, cfg.log_max_sessions)),
    )
    return EngineContext(
        config=cfg,
        store=store,
        ledger=ledger,
        executor=executor,
        controller=RunController(store, executor),
        autosaver=Autosaver(store, interval=cfg.autosave_interval),
        artifacts=artifacts,
    )


# ---------------------------------------------------------------------------
# Application lifecycle.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the engine on startup and stop background work on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    # --- Startup -----------------------------------------------------------
    app.state.engine = build_engine(config)
    app.state.engine.autosaver.start()
    logger.info("Engine initialised (image service: %s).", config.image_service_url)

    yield

    # --- Shutdown ----------------------------------------------------------
    engine: EngineContext = app.state.engine
    engine.controller.stop()
    await engine.autosaver.stop()
    logger.info("Engine stopped on shutdown.")


app = FastAPI(
    title="Node Banana",
    description="Workflow execution engine for image and text generation pipelines.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _engine() -> EngineContext:
    return app.state.engine


def _report_dict(report: RunReport) -> dict:
    payload = asdict(report)
    payload["state"] = report.state.value
    return payload


def _require_idle(engine: EngineContext) -> None:
    if engine.controller.is_running:
        raise HTTPException(status_code=409, detail="A run is in progress")


def _load_into_engine(engine: EngineContext, document: WorkflowDocument) -> dict:
    engine.store.load_document(document)
    engine.ledger.costs.load(document.id)
    return {
        "success": True,
        "id": document.id,
        "name": document.name,
        "node_count": len(document.nodes),
        "edge_count": len(document.edges),
        "incurred_cost": engine.ledger.costs.total,
    }


# ---------------------------------------------------------------------------
# Workflow document routes.
# ---------------------------------------------------------------------------


@app.get("/api/workflow")
async def get_workflow() -> dict:
    """Return the open workflow as a JSON document."""
    return document_to_json(_engine().store.to_document())


@app.put("/api/workflow")
async def put_workflow(document: WorkflowDocument) -> dict:
    """Replace the open workflow with *document*.

    The incurred cost switches to the persisted total of the document's id.

    Raises:
        HTTPException: 409 while a run is in progress.
    """
    engine = _engine()
    _require_idle(engine)
    return _load_into_engine(engine, document)


@app.post("/api/workflow/open")
async def open_workflow(req: OpenRequest) -> dict:
    """Load a workflow JSON file from disk.

    Raises:
        HTTPException: 404 if the file does not exist, 400 if it is not a
            valid workflow, 409 while a run is in progress.
    """
    engine = _engine()
    _require_idle(engine)
    try:
        document = load_workflow(Path(req.path))
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"Workflow file not found: {req.path}")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _load_into_engine(engine, document)


@app.post("/api/workflow/save")
async def save_workflow_route(req: SaveRequest) -> dict:
    """Save the workflow and make the directory the autosave target.

    Raises:
        HTTPException: 400 if no directory is given or configured.
    """
    engine = _engine()
    if req.directory:
        engine.autosaver.save_directory = Path(req.directory)
    directory = engine.autosaver.save_directory
    if directory is None:
        raise HTTPException(status_code=400, detail="No save directory configured")

    with engine.store.lock:
        path = save_workflow(engine.store.to_document(), directory)
        engine.store.mark_saved()
    return {"success": True, "path": str(path)}


@app.get("/api/workflow/validation")
async def get_validation() -> dict:
    """Return the pre-run validation report for the open workflow."""
    store = _engine().store
    report = validate_workflow(store.nodes(), store.edges())
    return {"valid": report.valid, "errors": report.errors}


# ---------------------------------------------------------------------------
# Run control routes.
# ---------------------------------------------------------------------------


@app.post("/api/run")
async def run_workflow(req: RunRequest | None = None) -> dict:
    """Run the workflow, or resume it from the paused node.

    The response is the run report.  A failed run is reported with
    ``state == "failed"`` rather than an HTTP error, because the failure
    is recorded on the failing node.
    """
    entry = req.entry_node_id if req is not None else None
    report = await _engine().controller.start(entry)
    return _report_dict(report)


@app.post("/api/stop")
async def stop_workflow() -> dict:
    """Stop the current run before its next node."""
    controller = _engine().controller
    controller.stop()
    return {"success": True, "state": controller.state.value}


@app.get("/api/status")
async def get_status() -> dict:
    """Return the run state, resume point, and incurred cost."""
    engine = _engine()
    controller = engine.controller
    return {
        "state": controller.state.value,
        "current_node_id": controller.current_node_id,
        "paused_at_node_id": controller.paused_at_node_id,
        "has_unsaved_changes": engine.store.dirty,
        "incurred_cost": engine.ledger.costs.total,
    }


# ---------------------------------------------------------------------------
# Node and group routes.
# ---------------------------------------------------------------------------


@app.get("/api/nodes/{node_id}")
async def get_node(node_id: str) -> dict:
    """Return a single node.

    Raises:
        HTTPException: 404 if the node is not found.
    """
    node = _engine().store.node_by_id(node_id)
    if node is None:
        raise HTTPException(status_code=404, detail="Node not found")
    return node.model_dump(mode="json", by_alias=True)


@app.patch("/api/nodes/{node_id}")
async def patch_node(node_id: str, req: NodePatchRequest) -> dict:
    """Merge payload fields into a node.

    Raises:
        HTTPException: 404 if the node is not found, 400 if a field does not
            belong to the node's kind or fails validation.
    """
    try:
        node = _engine().store.update_node(node_id, **req.data)
    except KeyError:
        raise HTTPException(status_code=404, detail="Node not found")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return node.model_dump(mode="json", by_alias=True)


@app.post("/api/nodes/{node_id}/regenerate")
async def regenerate_node(node_id: str) -> dict:
    """Re-run a single generation or grid-split node.

    Raises:
        HTTPException: 404 if the node is not found, 400 if its kind cannot
            be regenerated.
    """
    try:
        report = await _engine().controller.regenerate(node_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Node not found")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _report_dict(report)


@app.get("/api/nodes/{node_id}/carousel/{index}")
async def get_carousel_image(node_id: str, index: int) -> dict:
    """Resolve a carousel history entry to its stored image.

    Raises:
        HTTPException: 404 if the node, the entry, or the stored image does
            not exist, or no generations directory is configured.
    """
    engine = _engine()
    node = engine.store.node_by_id(node_id)
    if node is None:
        raise HTTPException(status_code=404, detail="Node not found")
    history = getattr(node.data, "image_history", None) or []
    if index < 0 or index >= len(history):
        raise HTTPException(status_code=404, detail="History entry not found")

    directory = engine.config.generations_dir
    if directory is None:
        raise HTTPException(status_code=404, detail="Generations directory not configured")

    item = history[index]
    image = await engine.artifacts.load(directory, item.id)
    if image is None:
        raise HTTPException(status_code=404, detail="Image not found")
    return {"item": item.model_dump(mode="json", by_alias=True), "image": image}


@app.put("/api/groups/{group_id}/lock")
async def lock_group(group_id: str, req: GroupLockRequest) -> dict:
    """Lock or unlock a group.

    Raises:
        HTTPException: 404 if the group is not found.
    """
    try:
        group = _engine().store.set_group_locked(group_id, req.locked)
    except KeyError:
        raise HTTPException(status_code=404, detail="Group not found")
    return group.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# History and cost routes.
# ---------------------------------------------------------------------------


@app.get("/api/history")
async def get_history() -> dict:
    """Return the global image history, newest first."""
    items = _engine().ledger.history.global_history()
    return {
        "total": len(items),
        "items": [item.model_dump(mode="json", by_alias=True) for item in items],
    }


@app.delete("/api/history")
async def clear_history() -> dict:
    _engine().ledger.history.clear_global_history()
    return {"success": True}


@app.get("/api/cost")
async def get_cost() -> dict:
    engine = _engine()
    return {
        "workflow_id": engine.ledger.costs.workflow_id,
        "incurred_cost": engine.ledger.costs.total,
    }


@app.delete("/api/cost")
async def reset_cost() -> dict:
    """Reset the incurred cost of the open workflow to zero."""
    _engine().ledger.costs.reset()
    return {"success": True, "incurred_cost": 0.0}


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~nodebanana.core.config.config` (which
    loads from ``NODEBANANA_SERVER_HOST`` and ``NODEBANANA_SERVER_PORT``
    environment variables).  Defaults to ``127.0.0.1:8750``.

    This function is registered as the ``nodebanana`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    uvicorn.run(
        "nodebanana.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
