"""History and cost accounting for successful generations.

Three records are updated every time an image generation succeeds:

- the node's **carousel history** (newest first, unbounded), which only
  keeps artifact ids;
- the workflow-wide **global history** (newest first, unbounded), which keeps
  the image itself so it can be reused elsewhere;
- the **cost ledger**, a single running total per workflow id, incremented by
  the injected pricing function and persisted to a JSON file.

Cost persistence follows the same forgiving rules as the other JSON files:
a missing or corrupt ledger file reads as empty, and the file is rewritten in
full on every change.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from pathlib import Path

from nodebanana.graph.models import CarouselImageItem, ImageHistoryItem
from nodebanana.services.pricing import PricingFunction, PricingTable

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class HistoryLedger:
    """Builds carousel entries and holds the global image history."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._global: list[ImageHistoryItem] = []

    @staticmethod
    def new_artifact_id(timestamp: int) -> str:
        return f"{timestamp}-{uuid.uuid4().hex[:8]}"

    @staticmethod
    def prepend(
        history: list[CarouselImageItem], item: CarouselImageItem
    ) -> list[CarouselImageItem]:
        """Return *history* with *item* in front (newest first)."""
        return [item, *history]

    def add_to_global(
        self, image: str, timestamp: int, prompt: str, aspect_ratio: str, model: str
    ) -> ImageHistoryItem:
        item = ImageHistoryItem(
            id=f"{timestamp}-{uuid.uuid4().hex[:9]}",
            image=image,
            timestamp=timestamp,
            prompt=prompt,
            aspect_ratio=aspect_ratio,
            model=model,
        )
        with self._lock:
            self._global.insert(0, item)
        return item

    def global_history(self) -> list[ImageHistoryItem]:
        with self._lock:
            return list(self._global)

    def clear_global_history(self) -> None:
        with self._lock:
            self._global.clear()


class CostLedger:
    """Running generation cost for the open workflow.

    Args:
        path: JSON file holding the totals of every known workflow.
        workflow_id: Workflow whose total is tracked.  While ``None`` the
            total is kept in memory only.
    """

    def __init__(self, path: Path, workflow_id: str | None = None) -> None:
        self.path = Path(path)
        self.workflow_id = workflow_id
        self._lock = threading.Lock()
        self._total = 0.0
        if workflow_id is not None:
            self.load(workflow_id)

    @property
    def total(self) -> float:
        with self._lock:
            return self._total

    def add(self, cost: float, workflow_id: str | None = None) -> float:
        """Add *cost* to the running total, persist it, and return the new total.

        When *workflow_id* names a workflow other than the tracked one, the
        cost is added to that workflow's persisted entry instead and its
        stored total is returned.
        """
        if workflow_id is not None and workflow_id != self.workflow_id:
            stored = _read_costs(self.path).get(workflow_id)
            total = _entry_total(stored) + cost
            _write_entry(self.path, workflow_id, total)
            return total
        with self._lock:
            self._total += cost
            total = self._total
        self.save()
        return total

    def reset(self) -> None:
        with self._lock:
            self._total = 0.0
        self.save()

    def load(self, workflow_id: str | None) -> float:
        """Switch to *workflow_id* and load its persisted total (0 when unknown)."""
        entry = _read_costs(self.path).get(workflow_id) if workflow_id else None
        total = _entry_total(entry)
        with self._lock:
            self.workflow_id = workflow_id
            self._total = total
        return total

    def save(self) -> None:
        with self._lock:
            workflow_id = self.workflow_id
            total = self._total
        if workflow_id is None:
            return
        _write_entry(self.path, workflow_id, total)


def _entry_total(entry) -> float:
    if not isinstance(entry, dict):
        return 0.0
    try:
        return float(entry.get("incurredCost", 0.0))
    except (TypeError, ValueError):
        return 0.0


def _write_entry(path: Path, workflow_id: str, total: float) -> None:
    costs = _read_costs(path)
    costs[workflow_id] = {
        "workflowId": workflow_id,
        "incurredCost": total,
        "lastUpdated": now_ms(),
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(costs, handle, indent=2)


def _read_costs(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError):
        logger.warning("Cost ledger %s is unreadable; starting from empty.", path)
        return {}
    return data if isinstance(data, dict) else {}


class Ledger:
    """Facade the executor calls after a successful image generation.

    Args:
        costs: Cost ledger to accrue into.
        pricing: Pricing function ``(model, resolution) -> cost``.
        history: Global history holder (a fresh one when omitted).
    """

    def __init__(
        self,
        costs: CostLedger,
        pricing: PricingFunction | None = None,
        history: HistoryLedger | None = None,
    ) -> None:
        self.costs = costs
        self.pricing = pricing or PricingTable()
        self.history = history or HistoryLedger()

    def record_generation(
        self,
        *,
        image: str,
        prompt: str,
        aspect_ratio: str,
        model: str,
        resolution: str,
        timestamp: int | None = None,
        workflow_id: str | None = None,
    ) -> CarouselImageItem:
        """Record one successful generation.

        Pushes the image to the global history and accrues its price, then
        returns the carousel entry the caller prepends to the node's history.
        *workflow_id* is the workflow the generation was started for.
        """
        timestamp = timestamp if timestamp is not None else now_ms()
        self.history.add_to_global(image, timestamp, prompt, aspect_ratio, model)
        cost = self.pricing(model, resolution)
        total = self.costs.add(cost, workflow_id=workflow_id)
        logger.info("Generation cost %.3f (%s @ %s); total %.3f", cost, model, resolution, total)
        return CarouselImageItem(
            id=HistoryLedger.new_artifact_id(timestamp),
            timestamp=timestamp,
            prompt=prompt,
            aspect_ratio=aspect_ratio,
            model=model,
            resolution=resolution,
        )
