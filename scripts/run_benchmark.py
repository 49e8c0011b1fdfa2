#!/usr/bin/env python3
"""
Benchmark prompt strategies and print a markdown report.

Usage:
    run_benchmark.py --stub
    run_benchmark.py --model ~/models/phi-3-mini-q4.gguf --dataset extended
    run_benchmark.py --rule-based --dataset extended
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from taskmatrix import pattern_classifier  # noqa: E402
from taskmatrix.benchmark import (  # noqa: E402
    BenchmarkHarness,
    BenchmarkReport,
    evaluate_classifier,
    measure_latency,
)
from taskmatrix.benchmark_data import DATASETS, get_dataset  # noqa: E402
from taskmatrix.config import TaskMatrixConfig  # noqa: E402
from taskmatrix.inference_bridge import InferenceBridge, SimulatedBackend  # noqa: E402
from taskmatrix.prompt_strategies import PromptStrategy, build_prompt  # noqa: E402
from taskmatrix.types import ResourceLoadFailure  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Benchmark classification prompt strategies")
    parser.add_argument("--model", help="GGUF model path, or an Ollama model name")
    parser.add_argument("--stub", action="store_true", help="Use the simulated runtime")
    parser.add_argument("--backend", choices=["llama.cpp", "ollama"], help="Runtime serving --model")
    parser.add_argument("--dataset", choices=list(DATASETS), default="core")
    parser.add_argument(
        "--strategy",
        action="append",
        choices=[s.strategy_id for s in PromptStrategy],
        help="Strategy to run (repeatable, default all)",
    )
    parser.add_argument("--rule-based", action="store_true", help="Score the pattern classifier only")
    parser.add_argument("--latency", action="store_true", help="Also run the latency benchmark")
    parser.add_argument("--config", type=Path)
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = TaskMatrixConfig.load(args.config)
    if args.backend:
        config.runtime.backend = args.backend
    dataset = get_dataset(args.dataset)

    if args.rule_based:
        result = evaluate_classifier(pattern_classifier.classify, dataset)
        report = BenchmarkReport(
            [result],
            target_accuracy=config.benchmark.target_accuracy,
            excellent_accuracy=config.benchmark.excellent_accuracy,
        )
        print(report.to_markdown())
        return 0 if report.meets_target else 1

    if not args.model and not args.stub:
        parser.error("one of --model, --stub or --rule-based is required")

    backend = SimulatedBackend(config.runtime.simulated_tokens_per_second) if args.stub else None
    bridge = InferenceBridge(backend=backend, config=config.runtime)
    harness = BenchmarkHarness(bridge, config.benchmark, template=config.runtime.template)
    strategies = [PromptStrategy.from_id(s) for s in args.strategy] if args.strategy else None

    def progress(step: int, total: int, strategy: str, case) -> None:
        print(f"\r[{step}/{total}] {strategy}: case {case.case_id}", end="", file=sys.stderr)

    try:
        report = harness.run(args.model, strategies, dataset, progress)
    except ResourceLoadFailure as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    print(file=sys.stderr)
    print(report.to_markdown())

    if args.latency and report.best is not None:
        with bridge:
            if args.model:
                bridge.load(args.model)
            else:
                bridge.load_stub()
            prompt = build_prompt(
                PromptStrategy.from_id(report.best.name), dataset[0].text, config.runtime.template
            )
            latency = measure_latency(
                bridge,
                prompt,
                warmup_runs=config.benchmark.warmup_runs,
                runs=config.benchmark.benchmark_runs,
                max_tokens=config.benchmark.max_tokens,
            )
        print(
            f"Latency ({latency.runs} runs): mean {latency.mean_ms:.0f}ms, "
            f"std {latency.std_ms:.0f}ms, p95 {latency.p95_ms:.0f}ms, "
            f"{latency.tokens_per_second:.1f} tok/s"
        )

    return 0 if report.meets_target else 1


if __name__ == "__main__":
    sys.exit(main())
