"""
Unit tests for token and cost estimation.
"""

import pytest

from taskmatrix.cost_tracker import (
    MODEL_COSTS,
    CostTracker,
    estimate_call_cost,
    estimate_tokens,
    get_model_costs,
    is_tiktoken_available,
)


class TestModelCosts:
    def test_known_alias(self):
        assert get_model_costs("haiku") == MODEL_COSTS["haiku"]

    def test_partial_match(self):
        """Versioned ids resolve through substring matching."""
        assert get_model_costs("gpt-4o-mini-2024-07-18") == MODEL_COSTS["gpt-4o-mini"]

    def test_unknown_model_uses_default(self):
        assert get_model_costs("mystery-model") == MODEL_COSTS["haiku"]


class TestEstimates:
    def test_call_cost(self):
        """One million input tokens costs the input rate."""
        assert estimate_call_cost(1_000_000, 0, "sonnet") == pytest.approx(3.0)
        assert estimate_call_cost(0, 1_000_000, "sonnet") == pytest.approx(15.0)

    def test_estimate_tokens(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("Classify this task") > 0

    def test_tiktoken_flag(self):
        assert isinstance(is_tiktoken_available(), bool)


class TestCostTracker:
    """Tests for CostTracker totals."""

    def test_record_usage(self):
        tracker = CostTracker()
        cost = tracker.record_usage(1000, 100, "haiku")
        tracker.record_usage(1000, 100, "gpt-4o-mini")

        assert cost == pytest.approx(0.0015)
        assert tracker.calls == 2
        assert tracker.input_tokens == 2000
        assert tracker.total_cost == pytest.approx(0.0015 + 0.00021)

    def test_summary(self):
        tracker = CostTracker()
        tracker.record_usage(500, 50, "haiku")
        summary = tracker.get_summary()
        assert summary["calls"] == 1
        assert set(summary["by_model"]) == {"haiku"}
