"""
Configuration management for taskmatrix.

Defaults live in code; overrides come from ~/.taskmatrix/config.json.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

DEFAULT_CONFIG_PATH = Path.home() / ".taskmatrix" / "config.json"


@dataclass
class RouterConfig:
    """
    Configuration for provider routing.

    Modes:
    - "hybrid": Pattern classifier first, escalate below threshold (default)
    - "rule_based_only": Never leave the pattern classifier
    - "neural_preferred": On-device model first, pattern classifier as floor
    """

    mode: Literal["hybrid", "rule_based_only", "neural_preferred"] = "hybrid"
    confidence_threshold: float = 0.7
    neural_timeout_s: float = 10.0
    neural_strategy: str = "combined_optimal"
    # Remote fallback is opt-in
    remote_enabled: bool = False
    remote_timeout_s: float = 15.0
    remote_model: str = "haiku"


@dataclass
class RuntimeConfig:
    """Configuration for the on-device inference runtime."""

    model_path: str | None = None
    context_size: int = 2048
    threads: int = 4
    expected_size_bytes: int | None = None
    size_tolerance: float = 0.05  # fraction of expected size
    max_tokens: int = 256
    temperature: float = 0.3
    top_p: float = 0.9
    template: str = "phi3"
    # "ollama" treats model_path as an Ollama model name
    backend: Literal["llama.cpp", "ollama"] = "llama.cpp"
    ollama_url: str = "http://localhost:11434"
    # Use the simulated backend when no real runtime is importable
    allow_degraded: bool = False
    simulated_tokens_per_second: float = 18.0


@dataclass
class BenchmarkConfig:
    """Configuration for strategy benchmarks."""

    target_accuracy: float = 0.70
    excellent_accuracy: float = 0.80
    max_tokens: int = 150
    temperature: float = 0.2
    top_p: float = 0.9
    warmup_runs: int = 2
    benchmark_runs: int = 5


@dataclass
class LoggingConfig:
    """Configuration for routing decision logs."""

    log_decisions: bool = False
    log_path: str = "~/.taskmatrix/routing_decisions.jsonl"
    max_size_mb: float = 50.0
    max_files: int = 5


@dataclass
class TaskMatrixConfig:
    """Complete taskmatrix configuration."""

    router: RouterConfig = field(default_factory=RouterConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    benchmark: BenchmarkConfig = field(default_factory=BenchmarkConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "TaskMatrixConfig":
        """Load configuration from file."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        return cls(
            router=RouterConfig(**data.get("router", {})),
            runtime=RuntimeConfig(**data.get("runtime", {})),
            benchmark=BenchmarkConfig(**data.get("benchmark", {})),
            logging=LoggingConfig(**data.get("logging", {})),
        )

    def save(self, path: Path | None = None) -> None:
        """Save configuration to file."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(
                {
                    "router": self.router.__dict__,
                    "runtime": self.runtime.__dict__,
                    "benchmark": self.benchmark.__dict__,
                    "logging": self.logging.__dict__,
                },
                f,
                indent=2,
            )


# Known GGUF models that fit on a phone-class device
RECOMMENDED_MODELS: dict[str, dict[str, object]] = {
    "phi-3-mini-4k-q4": {
        "file": "Phi-3-mini-4k-instruct-q4.gguf",
        "size_bytes": 2_393_231_072,
        "context": 4096,
        "template": "phi3",
    },
    "mistral-7b-instruct-q4": {
        "file": "mistral-7b-instruct-v0.2.Q4_K_M.gguf",
        "size_bytes": 4_368_439_584,
        "context": 8192,
        "template": "mistral",
    },
    "gemma-2-2b-q4": {
        "file": "gemma-2-2b-it-Q4_K_M.gguf",
        "size_bytes": 1_708_582_752,
        "context": 8192,
        "template": "gemma",
    },
    "tinyllama-1.1b-q4": {
        "file": "tinyllama-1.1b-chat-v1.0.Q4_K_M.gguf",
        "size_bytes": 668_788_096,
        "context": 2048,
        "template": "chatml",
    },
}


def recommended_model(path: str) -> dict[str, object] | None:
    """Entry in RECOMMENDED_MODELS whose file name matches `path`, if any."""
    name = Path(path).name
    return next((entry for entry in RECOMMENDED_MODELS.values() if entry["file"] == name), None)


# Default configuration instance
default_config = TaskMatrixConfig()
