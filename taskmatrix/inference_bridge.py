"""
On-device inference runtime bridge.

Owns at most one loaded model and serializes every operation on it.
Failures never raise out of the bridge: they come back as LoadOutcome /
GenerateOutcome values with an error string.

Backends:
- LlamaCppBackend: GGUF weights through llama-cpp-python
- OllamaBackend: a model served by a local Ollama daemon
- SimulatedBackend: degraded mode, no weights, deterministic output
"""

from __future__ import annotations

import json
import logging
import re
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from . import pattern_classifier
from .config import RuntimeConfig, recommended_model
from .types import ResourceLoadFailure

logger = logging.getLogger(__name__)


def is_llama_cpp_available() -> bool:
    """Check if llama-cpp-python is importable."""
    try:
        import llama_cpp  # noqa: F401

        return True
    except ImportError:
        return False


@dataclass
class LoadOutcome:
    success: bool
    load_time_ms: float = 0.0
    memory_bytes: int = 0
    is_stub: bool = False
    error: str | None = None

    def raise_for_error(self, path: str) -> None:
        """Raise ResourceLoadFailure if the load failed."""
        if not self.success:
            raise ResourceLoadFailure(path, self.error or "unknown error")


@dataclass
class GenerateOutcome:
    text: str = ""
    inference_time_ms: float = 0.0
    tokens_generated: int = 0
    tokens_per_second: float = 0.0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ModelHandle:
    """A loaded model. Lives only inside the bridge."""

    backend: RuntimeBackend
    path: str
    load_time_ms: float
    memory_bytes: int
    is_stub: bool = False


class RuntimeBackend(ABC):
    """Abstract base class for inference runtimes."""

    name: str = "backend"
    requires_file: bool = True

    def __init__(self) -> None:
        self.live_resources = 0

    @abstractmethod
    def load(self, path: str, context_size: int, threads: int) -> int:
        """Load weights and return the memory footprint in bytes. Raises on failure."""
        pass

    @abstractmethod
    def generate(
        self,
        prompt: str,
        max_tokens: int,
        temperature: float,
        top_p: float,
        stop: list[str] | None = None,
    ) -> tuple[str, int]:
        """Generate a completion. Returns (text, tokens_generated)."""
        pass

    @abstractmethod
    def unload(self) -> None:
        """Release the loaded model, if any."""
        pass


class LlamaCppBackend(RuntimeBackend):
    """GGUF inference via llama-cpp-python."""

    name = "llama.cpp"

    def __init__(self) -> None:
        super().__init__()
        self._llama: Any = None

    def load(self, path: str, context_size: int, threads: int) -> int:
        from llama_cpp import Llama

        self._llama = Llama(
            model_path=path,
            n_ctx=context_size,
            n_threads=threads,
            verbose=False,
        )
        self.live_resources += 1
        return Path(path).stat().st_size

    def generate(
        self,
        prompt: str,
        max_tokens: int,
        temperature: float,
        top_p: float,
        stop: list[str] | None = None,
    ) -> tuple[str, int]:
        if self._llama is None:
            raise RuntimeError("No model loaded")
        output = self._llama.create_completion(
            prompt=prompt,
            max_tokens=max_tokens,
            temperature=temperature,
            top_p=top_p,
            stop=stop or [],
        )
        text = output["choices"][0]["text"]
        tokens = output.get("usage", {}).get("completion_tokens", 0)
        return text, tokens

    def unload(self) -> None:
        if self._llama is None:
            return
        close = getattr(self._llama, "close", None)
        if close is not None:
            close()
        self._llama = None
        self.live_resources -= 1


class OllamaBackend(RuntimeBackend):
    """Model served by a local Ollama daemon; `path` is the Ollama model name."""

    name = "ollama"
    requires_file = False

    def __init__(self, base_url: str = "http://localhost:11434", timeout_s: float = 30.0):
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._client: httpx.Client | None = None
        self._model: str | None = None
        self._options: dict[str, Any] = {}

    def load(self, path: str, context_size: int, threads: int) -> int:
        client = httpx.Client(base_url=self.base_url, timeout=self.timeout_s)
        try:
            response = client.get("/api/tags")
            response.raise_for_status()
            models = {m.get("name"): m for m in response.json().get("models", [])}
        except Exception:
            client.close()
            raise
        if path not in models:
            client.close()
            raise FileNotFoundError(f"Ollama model not found: {path}")

        self._client = client
        self._model = path
        self._options = {"num_ctx": context_size, "num_thread": threads}
        self.live_resources += 1
        return int(models[path].get("size", 0))

    def generate(
        self,
        prompt: str,
        max_tokens: int,
        temperature: float,
        top_p: float,
        stop: list[str] | None = None,
    ) -> tuple[str, int]:
        if self._client is None:
            raise RuntimeError("No model loaded")
        payload = {
            "model": self._model,
            "prompt": prompt,
            "raw": True,  # prompt is already chat-templated
            "stream": False,
            "options": {
                **self._options,
                "num_predict": max_tokens,
                "temperature": temperature,
                "top_p": top_p,
                "stop": stop or [],
            },
        }
        response = self._client.post("/api/generate", json=payload)
        response.raise_for_status()
        data = response.json()
        return data.get("response", ""), data.get("eval_count", 0)

    def unload(self) -> None:
        if self._client is None:
            return
        self._client.close()
        self._client = None
        self._model = None
        self.live_resources -= 1


# Degraded mode constants
SIMULATED_MODEL_SIZE = 2_400_000_000
SIMULATED_TOKENS_PER_SECOND = 18.0
STUB_PATH = "<simulated>"

_TASK_MARKER = re.compile(
    r'(?:task(?: to classify)?|classify(?: this task)?)\s*:\s*"(.+)"\s*$',
    re.IGNORECASE | re.MULTILINE,
)


class SimulatedBackend(RuntimeBackend):
    """
    Deterministic stand-in for a real model.

    Classification prompts are answered with JSON produced by the pattern
    classifier; generation time is proportional to the token count.
    """

    name = "simulated"

    def __init__(
        self,
        tokens_per_second: float = SIMULATED_TOKENS_PER_SECOND,
        load_delay_s: float = 0.0,
    ):
        super().__init__()
        self.tokens_per_second = tokens_per_second
        self.load_delay_s = load_delay_s
        self._loaded = False

    def load(self, path: str, context_size: int, threads: int) -> int:
        if self.load_delay_s > 0:
            time.sleep(self.load_delay_s)
        if not self._loaded:
            self.live_resources += 1
        self._loaded = True
        return SIMULATED_MODEL_SIZE

    def respond(self, prompt: str) -> tuple[str, int]:
        """Canned response for a prompt, before truncation and delay."""
        if "eisenhower" not in prompt.lower() and "quadrant" not in prompt.lower():
            return "This is a simulated response; no model weights are loaded.", 20

        # The task under classification is the last quoted marker
        matches = _TASK_MARKER.findall(prompt)
        if not matches:
            payload = {"quadrant": "SCHEDULE", "confidence": 0.5, "reasoning": "Unable to parse task"}
            return json.dumps(payload), 30

        result = pattern_classifier.classify(matches[-1])
        payload = {
            "quadrant": result.quadrant.value,
            "confidence": round(result.confidence, 2),
            "reasoning": result.explanation,
        }
        return json.dumps(payload), 50

    def generate(
        self,
        prompt: str,
        max_tokens: int,
        temperature: float,
        top_p: float,
        stop: list[str] | None = None,
    ) -> tuple[str, int]:
        if not self._loaded:
            raise RuntimeError("No model loaded")
        text, tokens = self.respond(prompt)
        tokens = min(tokens, max_tokens)
        if self.tokens_per_second > 0:
            time.sleep(tokens / self.tokens_per_second)
        return text, tokens

    def unload(self) -> None:
        if self._loaded:
            self.live_resources -= 1
        self._loaded = False


class InferenceBridge:
    """
    Lock-guarded owner of a single model handle.

    load, generate and unload are mutually exclusive; a second caller
    blocks until the first finishes. Safe to call from worker threads.
    """

    def __init__(self, backend: RuntimeBackend | None = None, config: RuntimeConfig | None = None):
        self.config = config or RuntimeConfig()
        self._backend = backend or self._default_backend()
        self._stub_backend: SimulatedBackend | None = None
        self._handle: ModelHandle | None = None
        self._lock = threading.Lock()

        self._stats = {
            "loads": 0,
            "load_failures": 0,
            "generations": 0,
            "generation_errors": 0,
            "tokens_generated": 0,
            "inference_ms": 0.0,
        }

    def _default_backend(self) -> RuntimeBackend:
        if self.config.backend == "ollama":
            return OllamaBackend(base_url=self.config.ollama_url)
        if is_llama_cpp_available() or not self.config.allow_degraded:
            return LlamaCppBackend()
        logger.warning("llama-cpp-python not installed; using simulated runtime")
        return SimulatedBackend(tokens_per_second=self.config.simulated_tokens_per_second)

    @property
    def backend(self) -> RuntimeBackend:
        return self._backend

    @property
    def degraded(self) -> bool:
        """True when the bridge can only produce simulated output."""
        return isinstance(self._backend, SimulatedBackend)

    # Lifecycle

    def load(
        self,
        path: str,
        context_size: int | None = None,
        threads: int | None = None,
        expected_size_bytes: int | None = None,
    ) -> LoadOutcome:
        """
        Load a model, replacing any model already loaded.

        Never raises; a failed load leaves the bridge unloaded.
        """
        context_size = context_size or self.config.context_size
        threads = threads or self.config.threads
        if expected_size_bytes is None:
            expected_size_bytes = self.config.expected_size_bytes
        if expected_size_bytes is None:
            known = recommended_model(path)
            if known is not None:
                expected_size_bytes = int(known["size_bytes"])

        with self._lock:
            self._unload_locked()

            if self._backend.requires_file:
                error = self._validate_file(path, expected_size_bytes)
                if error:
                    self._stats["load_failures"] += 1
                    logger.warning(error)
                    return LoadOutcome(success=False, error=error)

            start = time.perf_counter()
            try:
                memory_bytes = self._backend.load(path, context_size, threads)
            except ImportError:
                self._stats["load_failures"] += 1
                return LoadOutcome(
                    success=False,
                    error="Failed to load model: llama-cpp-python is not installed",
                )
            except Exception as e:
                self._stats["load_failures"] += 1
                logger.warning(f"Failed to load model {path}: {e}")
                return LoadOutcome(success=False, error=f"Failed to load model: {e}")
            load_time_ms = (time.perf_counter() - start) * 1000

            self._handle = ModelHandle(
                backend=self._backend,
                path=path,
                load_time_ms=load_time_ms,
                memory_bytes=memory_bytes,
                is_stub=isinstance(self._backend, SimulatedBackend),
            )
            self._stats["loads"] += 1
            logger.info(f"Loaded model {path} via {self._backend.name} in {load_time_ms:.0f}ms")

            return LoadOutcome(
                success=True,
                load_time_ms=load_time_ms,
                memory_bytes=memory_bytes,
                is_stub=self._handle.is_stub,
            )

    def load_stub(self) -> LoadOutcome:
        """Load the simulated runtime without any weights file."""
        with self._lock:
            self._unload_locked()
            if self._stub_backend is None:
                if isinstance(self._backend, SimulatedBackend):
                    self._stub_backend = self._backend
                else:
                    self._stub_backend = SimulatedBackend(
                        tokens_per_second=self.config.simulated_tokens_per_second
                    )

            start = time.perf_counter()
            memory_bytes = self._stub_backend.load(STUB_PATH, self.config.context_size, self.config.threads)
            load_time_ms = (time.perf_counter() - start) * 1000

            self._handle = ModelHandle(
                backend=self._stub_backend,
                path=STUB_PATH,
                load_time_ms=load_time_ms,
                memory_bytes=memory_bytes,
                is_stub=True,
            )
            self._stats["loads"] += 1
            logger.info("Loaded simulated model")
            return LoadOutcome(
                success=True, load_time_ms=load_time_ms, memory_bytes=memory_bytes, is_stub=True
            )

    def _validate_file(self, path: str, expected_size_bytes: int | None) -> str | None:
        model_file = Path(path).expanduser()
        if not model_file.is_file():
            return f"Model file not found: {path}"
        if expected_size_bytes:
            actual = model_file.stat().st_size
            if abs(actual - expected_size_bytes) > expected_size_bytes * self.config.size_tolerance:
                return (
                    f"Model file size mismatch: expected {expected_size_bytes} bytes, "
                    f"found {actual}"
                )
        return None

    def unload(self) -> None:
        with self._lock:
            self._unload_locked()

    def _unload_locked(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            handle.backend.unload()
        except Exception as e:
            logger.warning(f"Error while unloading {handle.path}: {e}")
        logger.info(f"Unloaded model {handle.path}")

    def close(self) -> None:
        """Release everything the bridge holds."""
        self.unload()

    def __enter__(self) -> InferenceBridge:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # Inference

    def generate(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        top_p: float | None = None,
        stop: list[str] | None = None,
    ) -> GenerateOutcome:
        """Run one completion against the loaded model. Never raises."""
        max_tokens = max_tokens or self.config.max_tokens
        temperature = self.config.temperature if temperature is None else temperature
        top_p = self.config.top_p if top_p is None else top_p

        with self._lock:
            if self._handle is None:
                return GenerateOutcome(error="Model not loaded")

            start = time.perf_counter()
            try:
                text, tokens = self._handle.backend.generate(
                    prompt, max_tokens, temperature, top_p, stop
                )
            except Exception as e:
                self._stats["generation_errors"] += 1
                logger.warning(f"Generation failed: {e}")
                return GenerateOutcome(error=f"Generation failed: {e}")
            elapsed_ms = (time.perf_counter() - start) * 1000

            self._stats["generations"] += 1
            self._stats["tokens_generated"] += tokens
            self._stats["inference_ms"] += elapsed_ms

        return GenerateOutcome(
            text=text,
            inference_time_ms=elapsed_ms,
            tokens_generated=tokens,
            tokens_per_second=tokens / (elapsed_ms / 1000) if elapsed_ms > 0 else 0.0,
        )

    # Introspection

    @property
    def is_loaded(self) -> bool:
        return self._handle is not None

    @property
    def is_stub(self) -> bool:
        return self._handle is not None and self._handle.is_stub

    @property
    def model_path(self) -> str | None:
        return self._handle.path if self._handle else None

    def memory_usage_bytes(self) -> int:
        return self._handle.memory_bytes if self._handle else 0

    @property
    def active_resource_count(self) -> int:
        """Native resources currently held across all backends."""
        backends = {id(b): b for b in (self._backend, self._stub_backend) if b is not None}
        return sum(b.live_resources for b in backends.values())

    def get_statistics(self) -> dict[str, Any]:
        stats = dict(self._stats)
        seconds = stats["inference_ms"] / 1000
        stats["avg_tokens_per_second"] = (
            stats["tokens_generated"] / seconds if seconds > 0 else 0.0
        )
        stats["loaded"] = self.is_loaded
        stats["stub"] = self.is_stub
        stats["backend"] = self._backend.name
        return stats


__all__ = [
    "GenerateOutcome",
    "InferenceBridge",
    "LlamaCppBackend",
    "LoadOutcome",
    "OllamaBackend",
    "RuntimeBackend",
    "SimulatedBackend",
    "is_llama_cpp_available",
]
