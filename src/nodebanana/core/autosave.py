"""Periodic autosave of the open workflow.

:class:`Autosaver` checks the store every ``interval`` seconds and writes the
workflow document when the store is dirty, the workflow has an id, and a save
directory is configured.  The whole save happens under the store lock, so a
run's node writes and an autosave never interleave and no edit made during a
save is lost from the dirty flag.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from nodebanana.core.workflow_io import save_workflow
from nodebanana.graph.store import WorkflowStore

logger = logging.getLogger(__name__)


class Autosaver:
    """Background task saving *store* to *save_directory* when it is dirty.

    Args:
        store: Workflow store to save.
        save_directory: Directory receiving the workflow file.  Autosave is
            a no-op while this is ``None``.
        interval: Seconds between checks.
    """

    def __init__(
        self,
        store: WorkflowStore,
        save_directory: Path | None = None,
        interval: float = 90.0,
    ) -> None:
        self.store = store
        self.save_directory = Path(save_directory) if save_directory else None
        self.interval = interval
        self.enabled = True
        self.last_saved_path: Path | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def save_now(self) -> Path | None:
        """Save the workflow if there is anything to save.

        Returns:
            Path of the written file, or ``None`` when nothing was saved.
        """
        if self.save_directory is None:
            return None
        with self.store.lock:
            if not self.store.dirty or not self.store.workflow_id:
                return None
            path = save_workflow(self.store.to_document(), self.save_directory)
            self.store.mark_saved()
        self.last_saved_path = path
        return path

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if not self.enabled:
                continue
            try:
                path = await asyncio.to_thread(self.save_now)
            except OSError as exc:
                logger.error("Auto-save failed: %s", exc)
                continue
            if path is not None:
                logger.info("Auto-saved workflow to %s", path)

    def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
