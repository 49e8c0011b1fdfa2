"""
Unit tests for the deterministic pattern classifier.
"""

import pytest

from taskmatrix import pattern_classifier
from taskmatrix.pattern_classifier import (
    MAX_CONFIDENCE,
    PatternSignals,
    classify,
    decide,
    extract_signals,
    should_escalate,
)
from taskmatrix.types import ProviderKind, Quadrant


class TestScenarios:
    """End-to-end examples on real task text."""

    def test_server_outage_is_do(self):
        """Outage text carries urgency and importance."""
        result = classify("Server is down, customers can't access the app")
        assert result.quadrant == Quadrant.DO
        assert result.confidence >= 0.75
        assert result.is_urgent and result.is_important

    def test_social_media_is_eliminate(self):
        """Two low-value matches eliminate."""
        result = classify("Browse social media")
        assert result.quadrant == Quadrant.ELIMINATE
        assert result.confidence >= 0.6

    def test_office_supplies_is_delegate(self):
        """Delegable pattern without urgency delegates."""
        result = classify("Order office supplies")
        assert result.quadrant == Quadrant.DELEGATE
        assert result.confidence == pytest.approx(0.75)

    def test_soon_deadline_plus_importance_is_do(self):
        """A near deadline counts as urgency."""
        result = classify("Submit the report tomorrow")
        assert result.quadrant == Quadrant.DO
        assert result.confidence == pytest.approx(0.80)

    def test_important_only_is_schedule(self):
        result = classify("Plan next quarter's marketing strategy")
        assert result.quadrant == Quadrant.SCHEDULE
        assert result.confidence == pytest.approx(0.75)

    def test_urgent_only_is_delegate(self):
        """Urgent but unimportant work is delegated with low confidence."""
        result = classify("Pick up dry cleaning today")
        assert result.quadrant == Quadrant.DELEGATE
        assert result.confidence == pytest.approx(0.65)

    def test_single_low_priority_is_eliminate(self):
        result = classify("Maybe reorganize the bookshelf")
        assert result.quadrant == Quadrant.ELIMINATE
        assert result.confidence == pytest.approx(0.70)

    def test_no_signals_default(self):
        """No signals at all schedules for review at 0.55."""
        result = classify("Water the plants")
        assert result.quadrant == Quadrant.SCHEDULE
        assert result.confidence == pytest.approx(0.55)
        assert result.urgency_signals == []
        assert result.importance_signals == []

    def test_low_priority_beats_urgency(self):
        """Two low-priority hits win over an urgency signal."""
        result = classify("Maybe browse reddit, urgent")
        assert result.quadrant == Quadrant.ELIMINATE
        assert result.confidence == pytest.approx(0.85)


class TestDecide:
    """Tests for the precedence table on synthetic signals."""

    def test_do_confidence_capped(self):
        """Confidence never exceeds the cap."""
        signals = PatternSignals(urgency=5, importance=5)
        quadrant, confidence, _ = decide(signals)
        assert quadrant == Quadrant.DO
        assert confidence == pytest.approx(0.90)
        assert confidence <= MAX_CONFIDENCE

    def test_delegation_blocks_importance(self):
        """Any delegation signal makes a task not important."""
        signals = PatternSignals(importance=2, delegation=1)
        assert not signals.is_important
        quadrant, confidence, _ = decide(signals)
        assert quadrant == Quadrant.DELEGATE
        assert confidence == pytest.approx(0.70)

    def test_urgent_with_delegation(self):
        """Urgent delegable work still goes to DELEGATE."""
        signals = PatternSignals(urgency=1, delegation=2)
        quadrant, confidence, _ = decide(signals)
        assert quadrant == Quadrant.DELEGATE
        assert confidence == pytest.approx(0.75)

    def test_urgency_signal_alone_is_delegate(self):
        """Urgency without importance or delegation signals goes to DELEGATE, not DO."""
        quadrant, confidence, _ = decide(PatternSignals(urgency=1))
        assert quadrant == Quadrant.DELEGATE
        assert confidence == pytest.approx(0.65)

    def test_soon_deadline_alone_is_urgent(self):
        assert PatternSignals(soon_deadline=True).is_urgent


class TestExtractSignals:
    def test_one_count_per_pattern(self):
        """Each pattern counts at most once."""
        signals = extract_signals("urgent urgent urgent")
        assert signals.urgency == 1
        assert signals.urgency_matches == ["urgent"]

    def test_case_insensitive(self):
        signals = extract_signals("URGENT CONTRACT")
        assert signals.urgency == 1
        assert signals.importance == 1


class TestClassifyResult:
    """Tests for the ClassificationResult produced by classify."""

    def test_provenance(self):
        result = classify("Order office supplies", correlation_id="abc")
        assert result.correlation_id == "abc"
        assert result.provenance.provider_id == pattern_classifier.PROVIDER_ID
        assert result.provenance.kind == ProviderKind.DETERMINISTIC
        assert result.provenance.rule_confidence == result.confidence
        assert result.provenance.escalated is False

    def test_explanation_lists_first_signals(self):
        """Explanation names the first urgency and importance match."""
        result = classify("Server is down, customers can't access the app")
        assert "urgency: Server is down" in result.explanation
        assert "importance:" in result.explanation

    def test_deterministic(self):
        """Same text, same answer."""
        first = classify("Review the contract")
        second = classify("Review the contract")
        assert (first.quadrant, first.confidence) == (second.quadrant, second.confidence)


class TestShouldEscalate:
    def test_threshold(self):
        assert should_escalate(classify("Water the plants"))
        assert not should_escalate(classify("Browse social media"))

    def test_custom_threshold(self):
        """Confidence equal to the threshold does not escalate."""
        result = classify("Order office supplies")
        assert not should_escalate(result, threshold=0.75)
        assert should_escalate(result, threshold=0.8)
