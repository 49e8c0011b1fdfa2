#!/usr/bin/env python3
"""
Classify a task description and print the result as JSON.

Usage:
    classify_task.py "Server is down, customers can't access the app"
    echo "Browse social media" | classify_task.py
    classify_task.py --model ~/models/phi-3-mini-q4.gguf "Plan Q3 roadmap"
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from taskmatrix.config import TaskMatrixConfig  # noqa: E402
from taskmatrix.router import ProviderRouter  # noqa: E402
from taskmatrix.types import Capability, InputError  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Classify a task into an Eisenhower quadrant")
    parser.add_argument("text", nargs="?", help="Task text (read from stdin if omitted)")
    parser.add_argument(
        "--capability",
        choices=[c.value for c in Capability],
        default=Capability.CLASSIFY.value,
    )
    parser.add_argument("--mode", choices=["hybrid", "rule_based_only", "neural_preferred"])
    parser.add_argument("--model", help="GGUF model path for escalation, or an Ollama model name")
    parser.add_argument("--stub", action="store_true", help="Escalate to the simulated runtime")
    parser.add_argument("--backend", choices=["llama.cpp", "ollama"], help="Runtime serving --model")
    parser.add_argument("--config", type=Path, help="Config file (default ~/.taskmatrix/config.json)")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    config = TaskMatrixConfig.load(args.config)
    if args.mode:
        config.router.mode = args.mode
    if args.model:
        config.runtime.model_path = args.model
    if args.backend:
        config.runtime.backend = args.backend
    if args.stub:
        config.runtime.allow_degraded = True

    text = args.text if args.text is not None else sys.stdin.read()
    router = ProviderRouter.from_config(config)

    try:
        result = router.route_sync(text.strip(), capability=Capability(args.capability))
    except InputError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    print(json.dumps(result.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
