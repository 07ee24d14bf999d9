"""Tests for nodebanana.engine.ledger and nodebanana.services.pricing."""

from __future__ import annotations

import json

import pytest

from nodebanana.engine.ledger import CostLedger, HistoryLedger, Ledger
from nodebanana.services.pricing import PricingTable


class TestPricingTable:
    def test_default_prices(self):
        pricing = PricingTable()

        assert pricing("nano-banana", "1K") == pytest.approx(0.039)
        assert pricing("nano-banana", "4K") == pytest.approx(0.039)
        assert pricing("nano-banana-pro", "2K") == pytest.approx(0.134)
        assert pricing("nano-banana-pro", "4K") == pytest.approx(0.24)

    def test_unknown_model_costs_nothing(self):
        assert PricingTable()("mystery-model", "1K") == 0.0

    def test_custom_table(self):
        pricing = PricingTable({"nano-banana": {"1K": 1.5}})

        assert pricing("nano-banana", "1K") == 1.5
        assert pricing("nano-banana", "2K") == 0.0


class TestHistoryLedger:
    def test_global_history_newest_first(self):
        history = HistoryLedger()

        history.add_to_global("img-1", 1000, "first", "1:1", "nano-banana")
        history.add_to_global("img-2", 2000, "second", "1:1", "nano-banana")

        items = history.global_history()
        assert [item.image for item in items] == ["img-2", "img-1"]
        assert items[0].id.startswith("2000-")

    def test_clear(self):
        history = HistoryLedger()
        history.add_to_global("img-1", 1000, "first", "1:1", "nano-banana")

        history.clear_global_history()

        assert history.global_history() == []

    def test_prepend_does_not_mutate(self):
        existing: list = []

        result = HistoryLedger.prepend(existing, "item")

        assert result == ["item"]
        assert existing == []


class TestCostLedger:
    """Test cost accrual and persistence."""

    def test_add_persists_per_workflow(self, temp_dir):
        path = temp_dir / "costs.json"
        ledger = CostLedger(path, workflow_id="wf-1")

        ledger.add(0.5)
        total = ledger.add(0.25)

        assert total == pytest.approx(0.75)
        stored = json.loads(path.read_text())
        assert stored["wf-1"]["workflowId"] == "wf-1"
        assert stored["wf-1"]["incurredCost"] == pytest.approx(0.75)
        assert "lastUpdated" in stored["wf-1"]

    def test_load_restores_total(self, temp_dir):
        path = temp_dir / "costs.json"
        CostLedger(path, workflow_id="wf-1").add(1.25)

        assert CostLedger(path, workflow_id="wf-1").total == pytest.approx(1.25)
        assert CostLedger(path, workflow_id="wf-2").total == 0.0

    def test_switching_workflows(self, temp_dir):
        path = temp_dir / "costs.json"
        ledger = CostLedger(path, workflow_id="wf-1")
        ledger.add(1.0)

        ledger.load("wf-2")
        ledger.add(0.5)

        stored = json.loads(path.read_text())
        assert stored["wf-1"]["incurredCost"] == pytest.approx(1.0)
        assert stored["wf-2"]["incurredCost"] == pytest.approx(0.5)

    def test_reset(self, temp_dir):
        path = temp_dir / "costs.json"
        ledger = CostLedger(path, workflow_id="wf-1")
        ledger.add(2.0)

        ledger.reset()

        assert ledger.total == 0.0
        assert json.loads(path.read_text())["wf-1"]["incurredCost"] == 0.0

    def test_add_for_other_workflow(self, temp_dir):
        """Cost incurred for a workflow that is no longer open goes to its own entry."""
        path = temp_dir / "costs.json"
        CostLedger(path, workflow_id="wf-1").add(1.0)
        ledger = CostLedger(path, workflow_id="wf-2")

        total = ledger.add(0.5, workflow_id="wf-1")

        assert total == pytest.approx(1.5)
        assert ledger.total == 0.0
        stored = json.loads(path.read_text())
        assert stored["wf-1"]["incurredCost"] == pytest.approx(1.5)
        assert "wf-2" not in stored

    def test_unsaved_workflow_stays_in_memory(self, temp_dir):
        path = temp_dir / "costs.json"
        ledger = CostLedger(path)

        ledger.add(1.0)

        assert ledger.total == 1.0
        assert not path.exists()

    def test_corrupt_file_reads_as_empty(self, temp_dir):
        path = temp_dir / "costs.json"
        path.write_text("{not json")

        assert CostLedger(path, workflow_id="wf-1").total == 0.0


class TestLedger:
    def test_record_generation(self, temp_dir):
        ledger = Ledger(CostLedger(temp_dir / "costs.json", workflow_id="wf-1"))

        item = ledger.record_generation(
            image="img",
            prompt="a fox",
            aspect_ratio="4:3",
            model="nano-banana-pro",
            resolution="4K",
            timestamp=1234,
        )

        assert item.timestamp == 1234
        assert item.id.startswith("1234-")
        assert item.prompt == "a fox"
        assert item.resolution == "4K"
        assert ledger.costs.total == pytest.approx(0.24)
        assert ledger.history.global_history()[0].image == "img"

    def test_injected_pricing(self, temp_dir):
        ledger = Ledger(
            CostLedger(temp_dir / "costs.json", workflow_id="wf-1"),
            pricing=lambda model, resolution: 2.0,
        )

        ledger.record_generation(
            image="img", prompt="p", aspect_ratio="1:1", model="nano-banana", resolution="1K"
        )

        assert ledger.costs.total == 2.0
