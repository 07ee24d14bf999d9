"""Run controller: the state machine driving a workflow run.

States
------
``IDLE -> RUNNING -> COMPLETED | FAILED | PAUSED``; ``PAUSED -> RUNNING``
on resume; ``stop()`` moves any state to ``IDLE``.

A run works on a snapshot of the store taken when it starts and computes the
execution order once.  Nodes then execute strictly one after another.  Before
each node the controller checks, in order:

1. whether the run was stopped (the loop exits, no more nodes run);
2. whether an incoming edge carries a pause marker (the run pauses *before*
   that node, unless it is the exact node being resumed from);
3. whether the node sits in a locked group (the node is skipped).

The first :class:`~nodebanana.engine.errors.EngineError` ends the run as
``FAILED``.  Any other exception also ends it as ``FAILED``; the controller
never stays ``RUNNING`` once a run has returned.

Stopping is cooperative: it takes effect between nodes.  A service call that
is already in flight is not cancelled, and its result is still written to the
node when it arrives.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from nodebanana.core.session_log import SessionLogger
from nodebanana.engine.errors import CycleError, EngineError
from nodebanana.engine.executor import NodeExecutor
from nodebanana.engine.inputs import ResolvedInputs, resolve_inputs
from nodebanana.engine.sorter import topological_sort
from nodebanana.graph.models import (
    ImageGenerateData,
    NodeKind,
    SplitGridData,
    StyleTransferData,
    TextGenerateData,
)
from nodebanana.graph.store import WorkflowStore

logger = logging.getLogger(__name__)

REGENERABLE_KINDS = frozenset(
    {
        NodeKind.IMAGE_GENERATE,
        NodeKind.STYLE_TRANSFER,
        NodeKind.TEXT_GENERATE,
        NodeKind.SPLIT_GRID,
    }
)


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RunReport:
    """Outcome of one call to :meth:`RunController.start` or :meth:`RunController.regenerate`.

    Attributes:
        state: State the run ended in (``IDLE`` when it was stopped).
        executed: Ids of nodes that executed successfully, in order.
        skipped: Ids of nodes skipped because their group is locked.
        paused_at: Node the run paused before, if it paused.
        failed_node_id: Node the failure is attributed to, if it failed.
        error: Failure message, if it failed.
        error_type: Class name of the failure (``"CycleError"``,
            ``"ServiceError"``, ...), if it failed.
        ignored: ``True`` when the call was ignored because a run was
            already in flight.
        session_id: Id of the log session recorded for the run.
    """

    state: RunState
    executed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    paused_at: str | None = None
    failed_node_id: str | None = None
    error: str | None = None
    error_type: str | None = None
    ignored: bool = False
    session_id: str | None = None


class RunController:
    """Sequential, resumable, fail-fast execution of the open workflow.

    Args:
        store: Live workflow store.
        executor: Executor used to run each node.  Its session logger is
            also used for the run-level log entries.
    """

    def __init__(self, store: WorkflowStore, executor: NodeExecutor) -> None:
        self.store = store
        self.executor = executor
        self.state = RunState.IDLE
        self.paused_at_node_id: str | None = None
        self.current_node_id: str | None = None
        self._running = False
        self._run_token = 0

    @property
    def session_log(self) -> SessionLogger:
        return self.executor.session_log

    @property
    def is_running(self) -> bool:
        return self.state is RunState.RUNNING

    def _begin(self) -> int:
        self._run_token += 1
        self._running = True
        self.state = RunState.RUNNING
        return self._run_token

    def _is_current(self, token: int) -> bool:
        return self._running and self._run_token == token

    def _finish(self, token: int, report: RunReport) -> RunReport:
        """Settle controller state for run *token* and flush its log session."""
        if self._run_token == token:
            self._running = False
            self.current_node_id = None
            if self.state is RunState.RUNNING:
                self.state = report.state
            else:
                # stop() already moved the controller to IDLE.
                report.state = self.state
            self.session_log.end_session()
        return report

    def _fail_report(self, report: RunReport, exc: Exception, node_id: str | None) -> None:
        report.state = RunState.FAILED
        report.error_type = type(exc).__name__
        if isinstance(exc, EngineError):
            report.failed_node_id = exc.node_id or node_id
            report.error = exc.message
        else:
            report.failed_node_id = node_id
            report.error = str(exc) or type(exc).__name__
        self.session_log.error(
            "workflow.error",
            "Workflow execution failed",
            {"nodeId": report.failed_node_id, "errorMessage": report.error},
            exc,
        )

    # -- Full runs ----------------------------------------------------------

    async def start(self, entry_node_id: str | None = None) -> RunReport:
        """Run the workflow, or resume it when *entry_node_id* is the paused node.

        Args:
            entry_node_id: Node to start from.  Nodes before it in the
                execution order are not run.  Passing the node the previous
                run paused at resumes past that pause marker.

        Returns:
            A :class:`RunReport` describing the outcome.
        """
        if self.state is RunState.RUNNING:
            logger.info("Run requested while a run is in flight; ignoring.")
            return RunReport(state=self.state, ignored=True)

        is_resuming = entry_node_id is not None and entry_node_id == self.paused_at_node_id
        token = self._begin()
        self.paused_at_node_id = None
        report = RunReport(state=RunState.RUNNING)
        report.session_id = self.session_log.start_session()

        try:
            await self._run(token, report, entry_node_id, is_resuming)
        except Exception as exc:
            logger.exception("Run failed unexpectedly at node '%s'.", self.current_node_id)
            self._fail_report(report, exc, self.current_node_id)
        finally:
            self._finish(token, report)
        return report

    async def _run(
        self, token: int, report: RunReport, entry_node_id: str | None, is_resuming: bool
    ) -> None:
        snapshot = self.store.snapshot()
        self.session_log.info(
            "workflow.start",
            "Workflow execution started",
            {
                "nodeCount": len(snapshot.nodes),
                "edgeCount": len(snapshot.edges),
                "startFromNodeId": entry_node_id,
                "isResuming": is_resuming,
            },
        )

        try:
            order = topological_sort(snapshot.nodes, snapshot.edges)
        except CycleError as exc:
            self._fail_report(report, exc, exc.node_id)
            return

        start_index = 0
        if entry_node_id is not None:
            for index, node in enumerate(order):
                if node.id == entry_node_id:
                    start_index = index
                    break
            else:
                logger.warning("Entry node '%s' not in workflow; starting from the top.", entry_node_id)

        for node in order[start_index:]:
            if not self._is_current(token):
                self.session_log.info(
                    "workflow.end", "Workflow execution stopped", {"executedCount": len(report.executed)}
                )
                report.state = RunState.IDLE
                break

            self.current_node_id = node.id

            if not (is_resuming and node.id == entry_node_id):
                pause_edge = next(
                    (edge for edge in snapshot.edges_into(node.id) if edge.has_pause), None
                )
                if pause_edge is not None:
                    self.paused_at_node_id = node.id
                    self.session_log.info(
                        "workflow.end",
                        "Workflow paused at pause edge",
                        {"pausedAtNodeId": node.id, "edgeId": pause_edge.id},
                    )
                    report.state = RunState.PAUSED
                    report.paused_at = node.id
                    return

            group = snapshot.group_of(node.id)
            if group is not None and group.locked:
                self.session_log.info(
                    "node.execution",
                    "Skipping node in locked group",
                    {"nodeId": node.id, "groupId": group.id, "groupName": group.name},
                )
                report.skipped.append(node.id)
                continue

            if self.store.node_by_id(node.id) is None:
                logger.warning("Node '%s' was removed during the run; skipping.", node.id)
                continue

            inputs = resolve_inputs(node.id, self.store.nodes(), snapshot.edges)
            try:
                await self.executor.execute(node, inputs)
            except EngineError as exc:
                self._fail_report(report, exc, node.id)
                return

            report.executed.append(node.id)
        else:
            self.session_log.info(
                "workflow.end",
                "Workflow execution completed successfully",
                {"executedCount": len(report.executed), "skippedCount": len(report.skipped)},
            )
            report.state = RunState.COMPLETED

    def stop(self) -> None:
        """Stop the current run before its next node.

        The controller is ``IDLE`` immediately.  A node whose service call is
        in flight still receives its result.
        """
        if self._running:
            logger.info("Stopping run at node '%s'.", self.current_node_id)
        self._running = False
        self.state = RunState.IDLE
        self.paused_at_node_id = None
        self.current_node_id = None

    # -- Single-node regeneration -------------------------------------------

    async def regenerate(self, node_id: str) -> RunReport:
        """Re-run one generation or grid-split node outside a full run.

        Inputs connected right now are preferred.  When nothing is connected
        the node's last recorded inputs are used instead.  The controller
        returns to its previous state afterwards, so regenerating while a
        run is paused keeps the pause point.

        Raises:
            KeyError: If *node_id* does not exist.
            ValueError: If the node kind cannot be regenerated.
        """
        node = self.store.node_by_id(node_id)
        if node is None:
            raise KeyError(f"Unknown node '{node_id}'")
        if node.type not in REGENERABLE_KINDS:
            raise ValueError(f"{node.type.value} nodes cannot be regenerated")

        if self.state is RunState.RUNNING:
            logger.info("Regenerate requested while a run is in flight; ignoring.")
            return RunReport(state=self.state, ignored=True)

        previous_state = self.state
        paused_at = self.paused_at_node_id
        token = self._begin()
        self.current_node_id = node_id
        report = RunReport(state=RunState.RUNNING)
        report.session_id = self.session_log.start_session()
        self.session_log.info(
            "workflow.start", "Regenerating node", {"nodeId": node_id, "nodeType": node.type.value}
        )

        try:
            inputs = self._regeneration_inputs(node_id)
            await self.executor.execute(node, inputs)
        except Exception as exc:
            if not isinstance(exc, EngineError):
                logger.exception("Regenerating node '%s' failed unexpectedly.", node_id)
            self._fail_report(report, exc, node_id)
        else:
            report.executed.append(node_id)
            report.state = RunState.COMPLETED
        finally:
            self.session_log.info(
                "workflow.end",
                "Node regeneration finished",
                {"nodeId": node_id, "state": report.state.value},
            )
            self._finish(token, report)
            if self._run_token == token and self.state is not RunState.IDLE:
                self.state = previous_state
                self.paused_at_node_id = paused_at
        return report

    def _regeneration_inputs(self, node_id: str) -> ResolvedInputs:
        inputs = resolve_inputs(node_id, self.store.nodes(), self.store.edges())
        node = self.store.node_by_id(node_id)
        data = node.data if node is not None else None

        if isinstance(data, (ImageGenerateData, TextGenerateData)):
            images = inputs.images or list(data.input_images)
            text = inputs.text if inputs.text is not None else data.input_prompt
        elif isinstance(data, StyleTransferData):
            text = inputs.text if inputs.text is not None else data.prompt
            if inputs.images:
                return ResolvedInputs(
                    images=inputs.images, text=text, image_handles=inputs.image_handles
                )
            images = [image for image in (data.content_image, data.style_image) if image]
        elif isinstance(data, SplitGridData):
            images = inputs.images or ([data.source_image] if data.source_image else [])
            text = inputs.text
        else:
            return inputs
        return ResolvedInputs(images=images, text=text)
