"""
Token and cost estimation for remote classification calls.

On-device and rule-based providers are free; only the remote fallback
reports a cost estimate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

# tiktoken for accurate token counting
try:
    import tiktoken

    _TIKTOKEN_AVAILABLE = True
except ImportError:
    tiktoken = None  # type: ignore[assignment]
    _TIKTOKEN_AVAILABLE = False


@lru_cache(maxsize=1)
def _get_encoding() -> Any:
    """Get cached tiktoken encoding (cl100k_base)."""
    if not _TIKTOKEN_AVAILABLE:
        return None
    return tiktoken.get_encoding("cl100k_base")


# Token costs per model (per 1M tokens), input / output in dollars
MODEL_COSTS: dict[str, dict[str, float]] = {
    "claude-haiku-4-5-20251001": {"input": 1.0, "output": 5.0},
    "claude-sonnet-4-20250514": {"input": 3.0, "output": 15.0},
    "claude-3-haiku-20240307": {"input": 0.25, "output": 1.25},
    "haiku": {"input": 1.0, "output": 5.0},
    "sonnet": {"input": 3.0, "output": 15.0},
    "gpt-4o": {"input": 2.5, "output": 10.0},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
}

DEFAULT_MODEL_FOR_COSTS = "haiku"

# Classification answers are one short JSON object
EXPECTED_OUTPUT_TOKENS = 60


def get_model_costs(model: str) -> dict[str, float]:
    """
    Get cost rates for a model.

    Args:
        model: Model name or alias

    Returns:
        Dict with 'input' and 'output' costs per 1M tokens
    """
    if model in MODEL_COSTS:
        return MODEL_COSTS[model]

    model_lower = model.lower()
    # Longest key first so "gpt-4o-mini" wins over "gpt-4o"
    for key, costs in sorted(MODEL_COSTS.items(), key=lambda item: -len(item[0])):
        if key in model_lower or model_lower in key:
            return costs

    return MODEL_COSTS[DEFAULT_MODEL_FOR_COSTS]


def estimate_call_cost(input_tokens: int, output_tokens: int, model: str) -> float:
    """Estimated cost in dollars for a single API call."""
    costs = get_model_costs(model)
    input_cost = (input_tokens / 1_000_000) * costs["input"]
    output_cost = (output_tokens / 1_000_000) * costs["output"]
    return input_cost + output_cost


def estimate_tokens(text: str) -> int:
    """
    Estimate token count for text.

    Uses tiktoken if available, otherwise ~4 characters per token.
    """
    enc = _get_encoding()
    if enc is not None:
        return len(enc.encode(text))
    return len(text) // 4


def is_tiktoken_available() -> bool:
    return _TIKTOKEN_AVAILABLE


@dataclass
class CostTracker:
    """Running totals for remote calls made through the router."""

    input_tokens: int = 0
    output_tokens: int = 0
    calls: int = 0
    by_model: dict[str, float] = field(default_factory=dict)

    def record_usage(self, input_tokens: int, output_tokens: int, model: str) -> float:
        cost = estimate_call_cost(input_tokens, output_tokens, model)
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        self.calls += 1
        self.by_model[model] = self.by_model.get(model, 0.0) + cost
        return cost

    @property
    def total_cost(self) -> float:
        return sum(self.by_model.values())

    def get_summary(self) -> dict[str, Any]:
        return {
            "calls": self.calls,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_cost": round(self.total_cost, 6),
            "by_model": dict(self.by_model),
        }


__all__ = [
    "EXPECTED_OUTPUT_TOKENS",
    "MODEL_COSTS",
    "CostTracker",
    "estimate_call_cost",
    "estimate_tokens",
    "get_model_costs",
    "is_tiktoken_available",
]
