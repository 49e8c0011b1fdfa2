"""
Unit tests for the prompt strategy benchmark harness.
"""

import pytest

from taskmatrix import pattern_classifier
from taskmatrix.benchmark import (
    PARSE_FAILURE_LABEL,
    BenchmarkHarness,
    BenchmarkReport,
    CaseOutcome,
    evaluate_classifier,
    measure_latency,
    p95_index,
    rank,
    summarize,
)
from taskmatrix.benchmark_data import CORE_CASES, DATASETS, EDGE_CASES, EXTENDED_CASES, by_quadrant, get_dataset
from taskmatrix.inference_bridge import InferenceBridge, RuntimeBackend
from taskmatrix.prompt_strategies import PromptStrategy
from taskmatrix.types import Quadrant, ResourceLoadFailure


class MuteBackend(RuntimeBackend):
    """A model that never says anything parseable."""

    name = "mute"
    requires_file = False

    def load(self, path, context_size, threads):
        return 0

    def generate(self, prompt, max_tokens, temperature, top_p, stop=None):
        return "I cannot say.", 4

    def unload(self):
        pass


def _outcome(expected, predicted, latency_ms=10.0, confidence=0.8):
    return CaseOutcome(0, expected, predicted, confidence=confidence, latency_ms=latency_ms)


class TestDatasets:
    """Tests for the labeled datasets."""

    def test_sizes(self):
        assert len(CORE_CASES) == 20
        assert len(EXTENDED_CASES) == 50
        assert len(EDGE_CASES) == 5

    def test_core_is_balanced(self):
        grouped = by_quadrant(CORE_CASES)
        assert {q: len(cases) for q, cases in grouped.items()} == {q: 5 for q in Quadrant}

    @pytest.mark.parametrize("name", list(DATASETS))
    def test_unique_ids_and_text(self, name):
        cases = get_dataset(name)
        assert len({c.case_id for c in cases}) == len(cases)
        assert all(c.text.strip() for c in cases)

    def test_unknown_dataset(self):
        with pytest.raises(ValueError, match="Unknown dataset"):
            get_dataset("huge")


class TestSummarize:
    """Tests for per-strategy aggregation."""

    def test_metrics(self):
        result = summarize(
            "s",
            [
                _outcome(Quadrant.DO, Quadrant.DO),
                _outcome(Quadrant.DO, Quadrant.SCHEDULE),
                _outcome(Quadrant.SCHEDULE, Quadrant.SCHEDULE),
                _outcome(Quadrant.ELIMINATE, None, confidence=0.0),
            ],
        )
        assert result.total == 4
        assert result.correct == 2
        assert result.accuracy == 0.5
        assert result.parse_failures == 1
        assert result.mean_confidence == pytest.approx(0.8)

        do = result.metrics_for(Quadrant.DO)
        assert do.precision == 1.0
        assert do.recall == 0.5
        assert do.f1 == pytest.approx(2 / 3)
        assert result.metrics_for(Quadrant.SCHEDULE).precision == 0.5
        assert result.metrics_for(Quadrant.DELEGATE).f1 == 0.0

        assert result.confusion["DO"] == {"DO": 1, "SCHEDULE": 1}
        assert result.confusion["ELIMINATE"] == {PARSE_FAILURE_LABEL: 1}

    def test_generation_errors_are_not_parse_failures(self):
        outcome = CaseOutcome(1, Quadrant.DO, None, error="Generation failed: oom")
        result = summarize("s", [outcome])
        assert result.generation_errors == 1
        assert result.parse_failures == 0
        assert result.correct == 0

    def test_latency_stats(self):
        result = summarize("s", [_outcome(Quadrant.DO, Quadrant.DO, latency_ms=ms) for ms in (10, 20, 30)])
        assert result.mean_latency_ms == pytest.approx(20.0)
        assert result.p95_latency_ms == 30
        assert result.std_latency_ms > 0

    def test_empty(self):
        result = summarize("s", [])
        assert result.accuracy == 0.0
        assert result.mean_latency_ms == 0.0

    def test_p95_index(self):
        assert p95_index(0) == 0
        assert p95_index(1) == 0
        assert p95_index(20) == 19
        assert p95_index(100) == 95

    def test_to_dict(self):
        data = summarize("s", [_outcome(Quadrant.DO, Quadrant.DO)]).to_dict()
        assert data["accuracy"] == 1.0
        assert set(data["per_quadrant"]) == {"DO", "SCHEDULE", "DELEGATE", "ELIMINATE"}


class TestRankAndReport:
    def test_rank_by_accuracy_then_latency(self):
        slow = summarize("slow", [_outcome(Quadrant.DO, Quadrant.DO, latency_ms=50)])
        fast = summarize("fast", [_outcome(Quadrant.DO, Quadrant.DO, latency_ms=5)])
        wrong = summarize("wrong", [_outcome(Quadrant.DO, Quadrant.SCHEDULE, latency_ms=1)])
        assert [r.name for r in rank([wrong, slow, fast])] == ["fast", "slow", "wrong"]

    def test_verdicts(self):
        perfect = summarize("p", [_outcome(Quadrant.DO, Quadrant.DO)])
        report = BenchmarkReport([perfect])
        assert report.best is perfect
        assert report.meets_target and report.meets_excellent

        assert not BenchmarkReport([]).meets_target

    def test_markdown(self):
        result = summarize(
            "few_shot",
            [_outcome(Quadrant.DO, Quadrant.DO), _outcome(Quadrant.SCHEDULE, None)],
        )
        text = BenchmarkReport([result], model="phi3.gguf").to_markdown()
        assert text.startswith("# Prompt Strategy Benchmark")
        assert "`phi3.gguf`" in text
        assert "**few_shot** at 50.0%" in text
        assert "BELOW TARGET" in text
        assert PARSE_FAILURE_LABEL in text


class TestHarness:
    """Tests for BenchmarkHarness against the simulated model."""

    def test_requires_loaded_model(self, stub_bridge):
        with pytest.raises(RuntimeError, match="Model not loaded"):
            BenchmarkHarness(stub_bridge).evaluate()

    def test_run_with_stub(self, stub_bridge):
        """The simulated model reproduces the pattern classifier for every strategy."""
        report = BenchmarkHarness(stub_bridge).run()
        rule = evaluate_classifier(pattern_classifier.classify, CORE_CASES)

        assert len(report.results) == len(PromptStrategy)
        for result in report.results:
            assert result.total == 20
            assert result.parse_failures == 0
            assert result.correct == rule.correct
        assert not stub_bridge.is_loaded

    def test_run_missing_model(self, stub_bridge):
        with pytest.raises(ResourceLoadFailure, match="Model file not found"):
            BenchmarkHarness(stub_bridge).run("/nonexistent/model.gguf")

    def test_progress_callback(self, loaded_stub_bridge):
        calls = []
        BenchmarkHarness(loaded_stub_bridge).evaluate(
            [PromptStrategy.BASELINE_SIMPLE, PromptStrategy.FEW_SHOT],
            EDGE_CASES,
            progress=lambda step, total, strategy, case: calls.append((step, total, strategy)),
        )
        assert len(calls) == 10
        assert calls[0] == (1, 10, "baseline_simple")
        assert calls[-1] == (10, 10, "few_shot")

    def test_all_parse_failures(self):
        """Unparseable output scores zero and is counted per case."""
        bridge = InferenceBridge(backend=MuteBackend())
        bridge.load("mute")
        report = BenchmarkHarness(bridge).evaluate([PromptStrategy.BASELINE_SIMPLE], CORE_CASES)

        result = report.best
        assert result.accuracy == 0.0
        assert result.parse_failures == len(CORE_CASES)
        assert not report.meets_target
        assert sum(row.get(PARSE_FAILURE_LABEL, 0) for row in result.confusion.values()) == 20


class TestEvaluateClassifier:
    def test_rule_based_on_core(self):
        result = evaluate_classifier(pattern_classifier.classify, CORE_CASES)
        assert result.name == "rule-based"
        assert result.total == 20
        assert result.parse_failures == 0
        assert result.correct > 0


class TestMeasureLatency:
    def test_samples(self, loaded_stub_bridge):
        report = measure_latency(loaded_stub_bridge, "hello", warmup_runs=1, runs=3)
        assert report.runs == 3
        assert len(report.samples) == 3
        assert report.min_ms <= report.mean_ms <= report.max_ms
        assert report.tokens_per_second > 0

    def test_unloaded_bridge(self, stub_bridge):
        with pytest.raises(RuntimeError, match="Model not loaded"):
            measure_latency(stub_bridge, "hello", warmup_runs=0, runs=1)
