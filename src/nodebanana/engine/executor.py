"""Per-kind node execution.

:class:`NodeExecutor` runs one node: it validates the node's resolved
inputs, calls the generation service the node kind needs, and writes the
outcome back to the :class:`~nodebanana.graph.store.WorkflowStore`.

Node state machine
------------------
``idle -> loading -> complete | error``.  A node in ``complete`` or
``error`` goes back through ``loading`` when it runs again.  Pass-through
kinds (image input, prompt, annotation, output) never change status.

Failure contract
----------------
Every failure sets the node's ``status`` to ``error`` with a human-readable
``error`` message and raises an :class:`~nodebanana.engine.errors.EngineError`
subclass.  The run controller treats any such exception as fatal for the
whole run.

Side effects
------------
A node run only writes its own fields, with one exception: a grid split
writes its cells into the image-input nodes it was pre-wired to.  Successful
image generations are additionally recorded in the ledger (carousel entry,
global history, cost) and, when a generations directory is configured,
handed to the artifact store.  Artifact persistence is best-effort.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import NoReturn

from nodebanana.core.session_log import SessionLogger
from nodebanana.engine.errors import (
    ConfigurationError,
    EngineError,
    ExecutionError,
    ServiceError,
    TransportError,
    ValidationError,
)
from nodebanana.engine.grid import split_grid
from nodebanana.engine.inputs import ResolvedInputs
from nodebanana.engine.ledger import Ledger
from nodebanana.graph.models import (
    Dimensions,
    ImageGenerateData,
    Node,
    NodeKind,
    NodeStatus,
    SplitGridData,
    StyleTransferData,
    TextGenerateData,
)
from nodebanana.graph.store import WorkflowStore
from nodebanana.services.artifacts import ArtifactStore
from nodebanana.services.generation import ImageGenerator, TextGenerator
from nodebanana.services.models import ImageGenerateRequest, TextGenerateRequest

logger = logging.getLogger(__name__)

MISSING_IMAGE_OR_TEXT = "Missing image or text input"
MISSING_TEXT = "Missing text input"
MISSING_GRID_IMAGE = "No input image connected"
GRID_NOT_CONFIGURED = "Node not configured - open settings first"

Handler = Callable[[Node, ResolvedInputs], Awaitable[None]]


class NodeExecutor:
    """Execute single nodes against the live workflow store.

    Args:
        store: Live workflow store; all node writes go through it.
        image_service: Image generation backend.
        text_service: Text generation backend.
        ledger: History and cost ledger.
        artifact_store: Optional artifact store for generated images.
        generations_dir: Directory handed to the artifact store.  Artifacts
            are only persisted when both this and *artifact_store* are set.
        session_log: Structured log of the current run.
    """

    def __init__(
        self,
        store: WorkflowStore,
        image_service: ImageGenerator,
        text_service: TextGenerator,
        ledger: Ledger,
        artifact_store: ArtifactStore | None = None,
        generations_dir: Path | None = None,
        session_log: SessionLogger | None = None,
    ) -> None:
        self.store = store
        self.image_service = image_service
        self.text_service = text_service
        self.ledger = ledger
        self.artifact_store = artifact_store
        self.generations_dir = generations_dir
        self.session_log = session_log or SessionLogger()

        self._handlers: dict[NodeKind, Handler] = {
            NodeKind.IMAGE_INPUT: self._pass_through,
            NodeKind.PROMPT: self._pass_through,
            NodeKind.ANNOTATION: self._run_annotation,
            NodeKind.IMAGE_GENERATE: self._run_image_generation,
            NodeKind.STYLE_TRANSFER: self._run_image_generation,
            NodeKind.TEXT_GENERATE: self._run_text_generation,
            NodeKind.SPLIT_GRID: self._run_split_grid,
            NodeKind.OUTPUT: self._run_output,
        }
        missing = set(NodeKind) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No executor registered for node kinds: {sorted(missing)}")

    async def execute(self, node: Node, inputs: ResolvedInputs) -> None:
        """Run *node* with its already-resolved *inputs*.

        The node's settings are read from the live store so that the latest
        payload (history, stored outputs) is merged rather than overwritten.

        Raises:
            EngineError: If the node fails.  The node is already marked
                ``error`` when this is raised.  Unexpected exceptions are
                wrapped in :class:`ExecutionError`.
        """
        live = self.store.node_by_id(node.id) or node
        self.session_log.info(
            "node.execution",
            f"Executing {live.type.value} node",
            {"nodeId": live.id, "nodeType": live.type.value},
        )
        try:
            await self._handlers[live.type](live, inputs)
        except EngineError:
            raise
        except Exception as exc:
            logger.exception("Node '%s' failed unexpectedly.", live.id)
            self._fail(live, ExecutionError(str(exc) or type(exc).__name__))

    # -- Failure handling ---------------------------------------------------

    def _fail(self, node: Node, exc: EngineError) -> NoReturn:
        exc.node_id = node.id
        try:
            self.store.update_node(node.id, status=NodeStatus.ERROR, error=exc.message)
        except KeyError:
            logger.warning("Node '%s' was removed before its failure could be recorded.", node.id)
        self.session_log.error(
            "node.error",
            f"{node.type.value} node execution failed",
            {"nodeId": node.id, "errorMessage": exc.message},
            exc,
        )
        raise exc

    # -- Pass-through kinds -------------------------------------------------

    async def _pass_through(self, node: Node, inputs: ResolvedInputs) -> None:
        """Image inputs and prompts already hold their data."""

    async def _run_annotation(self, node: Node, inputs: ResolvedInputs) -> None:
        image = inputs.images[0] if inputs.images else None
        if not image:
            return
        # Manual drawings already in output_image win over the upstream image.
        if node.data.output_image:
            self.store.update_node(node.id, source_image=image)
        else:
            self.store.update_node(node.id, source_image=image, output_image=image)

    async def _run_output(self, node: Node, inputs: ResolvedInputs) -> None:
        if inputs.images:
            self.store.update_node(node.id, image=inputs.images[0])

    # -- Image generation ---------------------------------------------------

    async def _run_image_generation(self, node: Node, inputs: ResolvedInputs) -> None:
        data = node.data
        assert isinstance(data, (ImageGenerateData, StyleTransferData))

        if not inputs.images or not inputs.text:
            self.session_log.error(
                "node.error",
                f"{node.type.value} node missing inputs",
                {
                    "nodeId": node.id,
                    "hasImages": bool(inputs.images),
                    "hasText": bool(inputs.text),
                },
            )
            self._fail(node, ValidationError(MISSING_IMAGE_OR_TEXT))

        if isinstance(data, ImageGenerateData):
            self.store.update_node(
                node.id,
                input_images=inputs.images,
                input_prompt=inputs.text,
                status=NodeStatus.LOADING,
                error=None,
            )
            request = ImageGenerateRequest(
                images=inputs.images,
                prompt=inputs.text,
                aspect_ratio=data.aspect_ratio,
                resolution=data.resolution,
                model=data.model,
                use_google_search=data.use_google_search,
                seed=data.seed,
            )
        else:
            content_image, style_image, ordered = inputs.style_transfer_images()
            self.store.update_node(
                node.id,
                content_image=content_image,
                style_image=style_image,
                status=NodeStatus.LOADING,
                error=None,
            )
            request = ImageGenerateRequest(
                images=ordered,
                prompt=inputs.text,
                aspect_ratio=data.aspect_ratio,
                resolution=data.resolution,
                model=data.model,
            )

        self.session_log.info(
            "api.gemini",
            "Calling image generation service",
            {
                "nodeId": node.id,
                "model": data.model,
                "aspectRatio": data.aspect_ratio,
                "resolution": data.resolution,
                "imageCount": len(inputs.images),
                "prompt": inputs.text,
            },
        )

        # Costs go to the workflow that was open when the call was made.
        workflow_id = self.ledger.costs.workflow_id
        try:
            response = await self.image_service.generate(request)
        except EngineError as exc:
            self._fail(node, exc)
        except Exception as exc:
            logger.exception("Image service call for node '%s' failed.", node.id)
            self._fail(node, TransportError(str(exc) or "Generation failed", kind="generic"))

        if not response.success or not response.image:
            self.session_log.error(
                "api.error",
                "Image generation failed",
                {"nodeId": node.id, "error": response.error},
            )
            self._fail(node, ServiceError(response.error or "Generation failed"))

        item = self.ledger.record_generation(
            image=response.image,
            prompt=inputs.text,
            aspect_ratio=data.aspect_ratio,
            model=data.model,
            resolution=data.resolution,
            workflow_id=workflow_id,
        )
        current = self.store.node_by_id(node.id)
        if current is None:
            logger.warning("Node '%s' was removed while generating; result dropped.", node.id)
            return
        self.store.update_node(
            node.id,
            output_image=response.image,
            status=NodeStatus.COMPLETE,
            error=None,
            image_history=self.ledger.history.prepend(current.data.image_history, item),
            selected_history_index=0,
        )
        await self._persist_artifact(item.id, response.image, inputs.text)

    async def _persist_artifact(self, artifact_id: str, image: str, prompt: str) -> None:
        if self.artifact_store is None or self.generations_dir is None:
            return
        try:
            await self.artifact_store.save(self.generations_dir, image, prompt, artifact_id)
        except Exception as exc:
            logger.warning("Failed to save generation %s: %s", artifact_id, exc, exc_info=True)
            self.session_log.warn(
                "file.error",
                "Failed to save generation",
                {"artifactId": artifact_id, "errorMessage": str(exc)},
            )

    # -- Text generation ----------------------------------------------------

    async def _run_text_generation(self, node: Node, inputs: ResolvedInputs) -> None:
        data = node.data
        assert isinstance(data, TextGenerateData)

        if not inputs.text:
            self._fail(node, ValidationError(MISSING_TEXT))

        self.store.update_node(
            node.id,
            input_prompt=inputs.text,
            input_images=inputs.images,
            status=NodeStatus.LOADING,
            error=None,
        )
        request = TextGenerateRequest(
            prompt=inputs.text,
            images=inputs.images or None,
            provider=data.provider,
            model=data.model,
            temperature=data.temperature,
            max_tokens=data.max_tokens,
        )
        self.session_log.info(
            "api.llm",
            "Calling text generation service",
            {
                "nodeId": node.id,
                "provider": data.provider,
                "model": data.model,
                "temperature": data.temperature,
                "maxTokens": data.max_tokens,
                "hasImages": bool(inputs.images),
                "prompt": inputs.text,
            },
        )

        try:
            response = await self.text_service.generate(request)
        except EngineError as exc:
            self._fail(node, exc)
        except Exception as exc:
            logger.exception("Text service call for node '%s' failed.", node.id)
            self._fail(node, TransportError(str(exc) or "LLM generation failed", kind="generic"))

        if not response.success or not response.text:
            self.session_log.error(
                "api.error",
                "Text generation failed",
                {"nodeId": node.id, "error": response.error},
            )
            self._fail(node, ServiceError(response.error or "LLM generation failed"))

        self.store.update_node(
            node.id, output_text=response.text, status=NodeStatus.COMPLETE, error=None
        )

    # -- Grid split ---------------------------------------------------------

    async def _run_split_grid(self, node: Node, inputs: ResolvedInputs) -> None:
        data = node.data
        assert isinstance(data, SplitGridData)

        source = inputs.images[0] if inputs.images else None
        if not source:
            self._fail(node, ValidationError(MISSING_GRID_IMAGE))
        if not data.is_configured:
            self._fail(node, ConfigurationError(GRID_NOT_CONFIGURED))

        self.store.update_node(node.id, source_image=source, status=NodeStatus.LOADING, error=None)
        self.session_log.info(
            "node.execution",
            "Splitting grid",
            {
                "nodeId": node.id,
                "gridRows": data.grid_rows,
                "gridCols": data.grid_cols,
                "childCount": len(data.child_node_ids),
            },
        )

        try:
            cells = await asyncio.to_thread(split_grid, source, data.grid_rows, data.grid_cols)
        except ValueError as exc:
            self._fail(node, ValidationError(f"Failed to split image: {exc}"))

        for child, cell in zip(data.child_node_ids, cells):
            try:
                self.store.update_node(
                    child.image_input,
                    image=cell.image,
                    filename=cell.filename,
                    dimensions=Dimensions(width=cell.width, height=cell.height),
                )
            except KeyError:
                logger.warning(
                    "Grid split '%s': child image input '%s' no longer exists.",
                    node.id,
                    child.image_input,
                )
            except ValueError as exc:
                logger.warning(
                    "Grid split '%s': child '%s' is not an image input: %s",
                    node.id,
                    child.image_input,
                    exc,
                )

        self.session_log.info(
            "node.execution",
            "Grid split completed",
            {"nodeId": node.id, "splitCount": len(cells)},
        )
        self.store.update_node(node.id, status=NodeStatus.COMPLETE, error=None)
