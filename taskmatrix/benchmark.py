"""
Prompt strategy benchmark harness.

Runs every strategy over a labeled dataset through the inference bridge,
parses each response, and scores the strategies on accuracy and latency.
Parse failures count as wrong answers and are also tallied on their own.
"""

from __future__ import annotations

import logging
import statistics
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from .benchmark_data import CORE_CASES, BenchmarkCase
from .config import BenchmarkConfig
from .inference_bridge import STUB_PATH, InferenceBridge
from .prompt_strategies import (
    PromptStrategy,
    PromptTemplate,
    build_prompt,
    parse_response,
    stop_sequences,
)
from .types import ClassificationResult, Quadrant

logger = logging.getLogger(__name__)

PARSE_FAILURE_LABEL = "PARSE_FAILURE"

ProgressCallback = Callable[[int, int, str, BenchmarkCase], None]


@dataclass(frozen=True)
class CaseOutcome:
    """How one strategy did on one case."""

    case_id: int
    expected: Quadrant
    predicted: Quadrant | None
    confidence: float = 0.0
    latency_ms: float = 0.0
    parse_tier: str | None = None
    error: str | None = None

    @property
    def correct(self) -> bool:
        return self.predicted == self.expected

    @property
    def parse_failed(self) -> bool:
        return self.error is None and self.predicted is None


@dataclass(frozen=True)
class QuadrantMetrics:
    quadrant: Quadrant
    true_positives: int
    false_positives: int
    false_negatives: int

    @property
    def precision(self) -> float:
        predicted = self.true_positives + self.false_positives
        return self.true_positives / predicted if predicted > 0 else 0.0

    @property
    def recall(self) -> float:
        relevant = self.true_positives + self.false_negatives
        return self.true_positives / relevant if relevant > 0 else 0.0

    @property
    def f1(self) -> float:
        p, r = self.precision, self.recall
        return 2 * p * r / (p + r) if p + r > 0 else 0.0


@dataclass(frozen=True)
class StrategyResult:
    """Aggregate score of one strategy (or classifier) over a dataset."""

    name: str
    total: int
    correct: int
    parse_failures: int
    generation_errors: int
    mean_latency_ms: float
    p95_latency_ms: float
    std_latency_ms: float
    mean_confidence: float
    per_quadrant: tuple[QuadrantMetrics, ...]
    confusion: dict[str, dict[str, int]]
    cases: tuple[CaseOutcome, ...] = ()

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total > 0 else 0.0

    def metrics_for(self, quadrant: Quadrant) -> QuadrantMetrics:
        return next(m for m in self.per_quadrant if m.quadrant == quadrant)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "total": self.total,
            "correct": self.correct,
            "accuracy": self.accuracy,
            "parse_failures": self.parse_failures,
            "generation_errors": self.generation_errors,
            "mean_latency_ms": self.mean_latency_ms,
            "p95_latency_ms": self.p95_latency_ms,
            "std_latency_ms": self.std_latency_ms,
            "mean_confidence": self.mean_confidence,
            "per_quadrant": {
                m.quadrant.value: {"precision": m.precision, "recall": m.recall, "f1": m.f1}
                for m in self.per_quadrant
            },
            "confusion": self.confusion,
        }


def p95_index(count: int) -> int:
    return max(0, min(int(count * 0.95), count - 1))


def summarize(name: str, outcomes: Sequence[CaseOutcome]) -> StrategyResult:
    """Fold per-case outcomes into a StrategyResult."""
    latencies = sorted(o.latency_ms for o in outcomes)
    confidences = [o.confidence for o in outcomes if o.predicted is not None]

    confusion: dict[str, dict[str, int]] = {q.value: {} for q in Quadrant}
    for o in outcomes:
        label = o.predicted.value if o.predicted else PARSE_FAILURE_LABEL
        row = confusion[o.expected.value]
        row[label] = row.get(label, 0) + 1

    per_quadrant = tuple(
        QuadrantMetrics(
            quadrant=q,
            true_positives=sum(1 for o in outcomes if o.predicted == q and o.expected == q),
            false_positives=sum(1 for o in outcomes if o.predicted == q and o.expected != q),
            false_negatives=sum(1 for o in outcomes if o.expected == q and o.predicted != q),
        )
        for q in Quadrant
    )

    return StrategyResult(
        name=name,
        total=len(outcomes),
        correct=sum(1 for o in outcomes if o.correct),
        parse_failures=sum(1 for o in outcomes if o.parse_failed),
        generation_errors=sum(1 for o in outcomes if o.error is not None),
        mean_latency_ms=statistics.fmean(latencies) if latencies else 0.0,
        p95_latency_ms=latencies[p95_index(len(latencies))] if latencies else 0.0,
        std_latency_ms=statistics.pstdev(latencies) if len(latencies) > 1 else 0.0,
        mean_confidence=statistics.fmean(confidences) if confidences else 0.0,
        per_quadrant=per_quadrant,
        confusion=confusion,
        cases=tuple(outcomes),
    )


def rank(results: Iterable[StrategyResult]) -> list[StrategyResult]:
    """Accuracy descending; ties go to the lower mean latency."""
    return sorted(results, key=lambda r: (-r.accuracy, r.mean_latency_ms))


@dataclass
class BenchmarkReport:
    """Ranked strategy results plus threshold verdicts."""

    results: list[StrategyResult]
    target_accuracy: float = 0.70
    excellent_accuracy: float = 0.80
    model: str = ""

    @property
    def best(self) -> StrategyResult | None:
        return self.results[0] if self.results else None

    @property
    def meets_target(self) -> bool:
        return self.best is not None and self.best.accuracy >= self.target_accuracy

    @property
    def meets_excellent(self) -> bool:
        return self.best is not None and self.best.accuracy >= self.excellent_accuracy

    def to_markdown(self) -> str:
        lines = ["# Prompt Strategy Benchmark", ""]
        if self.model:
            lines += [f"Model: `{self.model}`", ""]

        lines += [
            "| Rank | Strategy | Accuracy | Parse failures | Mean latency | P95 latency | Mean confidence |",
            "|---|---|---|---|---|---|---|",
        ]
        for i, r in enumerate(self.results, 1):
            lines.append(
                f"| {i} | {r.name} | {r.accuracy:.1%} ({r.correct}/{r.total}) | "
                f"{r.parse_failures} | {r.mean_latency_ms:.0f}ms | {r.p95_latency_ms:.0f}ms | "
                f"{r.mean_confidence:.2f} |"
            )

        best = self.best
        if best is None:
            return "\n".join(lines) + "\n"

        verdict = "EXCELLENT" if self.meets_excellent else "PASS" if self.meets_target else "BELOW TARGET"
        lines += [
            "",
            f"Best: **{best.name}** at {best.accuracy:.1%} "
            f"(target {self.target_accuracy:.0%}, excellent {self.excellent_accuracy:.0%}): {verdict}",
            "",
            "| Quadrant | Precision | Recall | F1 |",
            "|---|---|---|---|",
        ]
        for m in best.per_quadrant:
            lines.append(f"| {m.quadrant.value} | {m.precision:.2f} | {m.recall:.2f} | {m.f1:.2f} |")

        labels = [q.value for q in Quadrant] + [PARSE_FAILURE_LABEL]
        lines += ["", "Confusion (rows: expected, columns: predicted)", ""]
        lines.append("| | " + " | ".join(labels) + " |")
        lines.append("|---" * (len(labels) + 1) + "|")
        for expected, row in best.confusion.items():
            lines.append(f"| {expected} | " + " | ".join(str(row.get(label, 0)) for label in labels) + " |")

        return "\n".join(lines) + "\n"


class BenchmarkHarness:
    """Evaluates prompt strategies against a model held by an InferenceBridge."""

    def __init__(
        self,
        bridge: InferenceBridge,
        config: BenchmarkConfig | None = None,
        template: PromptTemplate | str = PromptTemplate.PHI3,
    ):
        self.bridge = bridge
        self.config = config or BenchmarkConfig()
        self.template = PromptTemplate(template)

    def _run_case(self, strategy: PromptStrategy, case: BenchmarkCase) -> CaseOutcome:
        prompt = build_prompt(strategy, case.text, self.template)
        outcome = self.bridge.generate(
            prompt,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
            top_p=self.config.top_p,
            stop=stop_sequences(self.template),
        )
        if not outcome.ok:
            return CaseOutcome(
                case.case_id, case.expected, None,
                latency_ms=outcome.inference_time_ms, error=outcome.error,
            )

        parsed = parse_response(outcome.text)
        if parsed is None:
            return CaseOutcome(case.case_id, case.expected, None, latency_ms=outcome.inference_time_ms)

        return CaseOutcome(
            case.case_id,
            case.expected,
            parsed.quadrant,
            confidence=parsed.confidence,
            latency_ms=outcome.inference_time_ms,
            parse_tier=parsed.tier.value,
        )

    def evaluate(
        self,
        strategies: Sequence[PromptStrategy] | None = None,
        dataset: Sequence[BenchmarkCase] = CORE_CASES,
        progress: ProgressCallback | None = None,
    ) -> BenchmarkReport:
        """
        Score each strategy on the dataset.

        Raises:
            RuntimeError: if the bridge has no model loaded
        """
        if not self.bridge.is_loaded:
            raise RuntimeError("Model not loaded")

        strategies = list(strategies or PromptStrategy)
        total_steps = len(strategies) * len(dataset)
        step = 0
        results = []

        for strategy in strategies:
            outcomes = []
            for case in dataset:
                outcomes.append(self._run_case(strategy, case))
                step += 1
                if progress is not None:
                    progress(step, total_steps, strategy.strategy_id, case)

            result = summarize(strategy.strategy_id, outcomes)
            logger.info(
                f"{strategy.strategy_id}: {result.accuracy:.1%} accuracy, "
                f"{result.parse_failures} parse failures"
            )
            results.append(result)

        return BenchmarkReport(
            results=rank(results),
            target_accuracy=self.config.target_accuracy,
            excellent_accuracy=self.config.excellent_accuracy,
            model=self.bridge.model_path or "",
        )

    def run(
        self,
        model_path: str | None = None,
        strategies: Sequence[PromptStrategy] | None = None,
        dataset: Sequence[BenchmarkCase] = CORE_CASES,
        progress: ProgressCallback | None = None,
    ) -> BenchmarkReport:
        """
        Load a model (or the simulated runtime), evaluate, then unload.

        Raises:
            ResourceLoadFailure: if the model cannot be loaded
        """
        outcome = self.bridge.load(model_path) if model_path else self.bridge.load_stub()
        outcome.raise_for_error(model_path or STUB_PATH)
        try:
            return self.evaluate(strategies, dataset, progress)
        finally:
            self.bridge.unload()


def evaluate_classifier(
    classify: Callable[[str], ClassificationResult],
    dataset: Sequence[BenchmarkCase] = CORE_CASES,
    name: str = "rule-based",
) -> StrategyResult:
    """Score a plain text-to-result classifier on a dataset."""
    outcomes = []
    for case in dataset:
        start = time.perf_counter()
        result = classify(case.text)
        latency_ms = (time.perf_counter() - start) * 1000
        outcomes.append(
            CaseOutcome(case.case_id, case.expected, result.quadrant, result.confidence, latency_ms)
        )
    return summarize(name, outcomes)


@dataclass
class LatencyReport:
    runs: int
    mean_ms: float
    std_ms: float
    p95_ms: float
    min_ms: float
    max_ms: float
    tokens_per_second: float
    samples: list[float] = field(default_factory=list)


def measure_latency(
    bridge: InferenceBridge,
    prompt: str,
    warmup_runs: int = 2,
    runs: int = 5,
    max_tokens: int = 150,
) -> LatencyReport:
    """
    Time repeated generations of one prompt after warmup.

    Raises:
        RuntimeError: if a generation fails
    """
    for _ in range(warmup_runs):
        bridge.generate(prompt, max_tokens=max_tokens)

    samples: list[float] = []
    tokens = 0
    for _ in range(runs):
        outcome = bridge.generate(prompt, max_tokens=max_tokens)
        if not outcome.ok:
            raise RuntimeError(outcome.error)
        samples.append(outcome.inference_time_ms)
        tokens += outcome.tokens_generated

    ordered = sorted(samples)
    total_seconds = sum(samples) / 1000
    return LatencyReport(
        runs=runs,
        mean_ms=statistics.fmean(samples) if samples else 0.0,
        std_ms=statistics.pstdev(samples) if len(samples) > 1 else 0.0,
        p95_ms=ordered[p95_index(len(ordered))] if ordered else 0.0,
        min_ms=ordered[0] if ordered else 0.0,
        max_ms=ordered[-1] if ordered else 0.0,
        tokens_per_second=tokens / total_seconds if total_seconds > 0 else 0.0,
        samples=samples,
    )


__all__ = [
    "BenchmarkHarness",
    "BenchmarkReport",
    "CaseOutcome",
    "LatencyReport",
    "QuadrantMetrics",
    "StrategyResult",
    "evaluate_classifier",
    "measure_latency",
    "rank",
    "summarize",
]
