"""
taskmatrix: Eisenhower-quadrant task classification with on-device escalation.

A deterministic pattern classifier answers first; low-confidence requests
escalate to a local model through a lock-guarded inference bridge, with
an opt-in remote fallback behind it.
"""

from .benchmark import BenchmarkHarness, BenchmarkReport, evaluate_classifier, measure_latency
from .config import TaskMatrixConfig
from .inference_bridge import InferenceBridge, SimulatedBackend
from .pattern_classifier import classify
from .prompt_strategies import PromptStrategy, build_prompt, parse_response
from .providers import OnDeviceProvider, RemoteProvider, RuleBasedProvider
from .router import ProviderRouter, RoutingMode
from .types import (
    Capability,
    ClassificationRequest,
    ClassificationResult,
    InputError,
    Quadrant,
    TaskMatrixError,
)

__version__ = "0.1.0"

__all__ = [
    "BenchmarkHarness",
    "BenchmarkReport",
    "Capability",
    "ClassificationRequest",
    "ClassificationResult",
    "InferenceBridge",
    "InputError",
    "OnDeviceProvider",
    "PromptStrategy",
    "ProviderRouter",
    "Quadrant",
    "RemoteProvider",
    "RoutingMode",
    "RuleBasedProvider",
    "SimulatedBackend",
    "TaskMatrixConfig",
    "TaskMatrixError",
    "build_prompt",
    "classify",
    "evaluate_classifier",
    "measure_latency",
    "parse_response",
]
