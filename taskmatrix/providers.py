"""
Classification providers.

Every provider exposes the same small async surface so the router can
treat them uniformly:

- RuleBasedProvider: pattern classifier, always live, free
- OnDeviceProvider: local model behind the InferenceBridge
- RemoteProvider: hosted LLM, opt-in only
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Protocol, runtime_checkable

from . import action_items, pattern_classifier, task_parser
from .api_client import MultiProviderClient
from .cost_tracker import EXPECTED_OUTPUT_TOKENS, estimate_call_cost, estimate_tokens
from .inference_bridge import InferenceBridge
from .prompt_strategies import (
    ParsedClassification,
    PromptStrategy,
    PromptTemplate,
    build_messages,
    build_prompt,
    parse_or_raise,
    stop_sequences,
)
from .types import (
    Capability,
    ClassificationRequest,
    ClassificationResult,
    Provenance,
    ProviderKind,
    ProviderUnavailable,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class ClassificationProvider(Protocol):
    """Capability interface shared by all providers."""

    provider_id: str
    kind: ProviderKind
    capabilities: frozenset[Capability]

    @property
    def is_live(self) -> bool: ...

    async def initialize(self) -> bool: ...

    async def execute(self, request: ClassificationRequest) -> ClassificationResult: ...

    async def release(self) -> None: ...

    def estimate_cost(self, request: ClassificationRequest) -> float | None: ...


def _with_context(request: ClassificationRequest) -> str:
    """Task text with due-date and goal hints folded in."""
    text = request.text
    context = request.context
    if context is None:
        return text
    if context.due_hint:
        text = f"{text} (due {context.due_hint})"
    for goal in context.goal_references:
        text = f"{text} (goal: {goal})"
    return text


def _extract_artifact(request: ClassificationRequest) -> dict:
    today = request.context.current_date if request.context else None
    return task_parser.parse_task(request.text, today=today).to_dict()


class RuleBasedProvider:
    """Deterministic floor of the routing chain."""

    provider_id = pattern_classifier.PROVIDER_ID
    kind = ProviderKind.DETERMINISTIC
    capabilities = frozenset({Capability.CLASSIFY, Capability.EXTRACT, Capability.GENERATE})

    @property
    def is_live(self) -> bool:
        return True

    async def initialize(self) -> bool:
        return True

    async def execute(self, request: ClassificationRequest) -> ClassificationResult:
        return self.classify(request)

    def classify(self, request: ClassificationRequest) -> ClassificationResult:
        """Synchronous execute; the pattern classifier never blocks."""
        result = pattern_classifier.classify(_with_context(request), request.correlation_id)

        if request.capability == Capability.EXTRACT:
            result = result.model_copy(update={"artifact": _extract_artifact(request)})
        elif request.capability == Capability.GENERATE:
            items = action_items.extract_action_items(request.text)
            briefing = action_items.build_briefing(
                [(item.description, pattern_classifier.classify(item.description)) for item in items],
                today=request.context.current_date if request.context else None,
            )
            result = result.model_copy(
                update={
                    "artifact": {
                        "action_items": [item.to_dict() for item in items],
                        "briefing": briefing.to_dict(),
                    }
                }
            )
        return result

    async def release(self) -> None:
        return None

    def estimate_cost(self, request: ClassificationRequest) -> float | None:
        return 0.0


def _neural_result(
    request: ClassificationRequest,
    parsed: ParsedClassification,
    provenance: Provenance,
) -> ClassificationResult:
    artifact = None
    if request.capability == Capability.EXTRACT:
        artifact = _extract_artifact(request)
        artifact["suggested_quadrant"] = parsed.quadrant.value
        artifact["confidence"] = parsed.confidence

    return ClassificationResult(
        correlation_id=request.correlation_id,
        quadrant=parsed.quadrant,
        confidence=parsed.confidence,
        explanation=parsed.reasoning or f"Model classification ({parsed.tier.value} parse)",
        is_urgent=parsed.quadrant.is_urgent,
        is_important=parsed.quadrant.is_important,
        provenance=provenance,
        artifact=artifact,
    )


class OnDeviceProvider:
    """
    Local model classification through the inference bridge.

    The bridge call runs in a worker thread so the event loop stays free
    while the model generates.
    """

    provider_id = "on-device"
    kind = ProviderKind.NEURAL
    capabilities = frozenset({Capability.CLASSIFY, Capability.EXTRACT})

    def __init__(
        self,
        bridge: InferenceBridge,
        model_path: str | None = None,
        strategy: PromptStrategy = PromptStrategy.COMBINED_OPTIMAL,
        template: PromptTemplate | str = PromptTemplate.PHI3,
        allow_stub: bool = False,
    ):
        self.bridge = bridge
        self.model_path = model_path
        self.strategy = strategy
        self.template = PromptTemplate(template)
        self.allow_stub = allow_stub

    @property
    def is_live(self) -> bool:
        return self.bridge.is_loaded

    @property
    def model_name(self) -> str:
        if self.bridge.is_stub:
            return "simulated"
        path = self.bridge.model_path or self.model_path
        return Path(path).name if path else "unknown"

    async def initialize(self) -> bool:
        if self.bridge.is_loaded:
            return True

        if self.model_path:
            outcome = await asyncio.to_thread(self.bridge.load, self.model_path)
            if outcome.success:
                return True
            logger.warning(f"On-device model unavailable: {outcome.error}")

        if self.allow_stub:
            outcome = await asyncio.to_thread(self.bridge.load_stub)
            return outcome.success
        return False

    async def execute(self, request: ClassificationRequest) -> ClassificationResult:
        if not self.bridge.is_loaded:
            raise ProviderUnavailable(self.provider_id, "model not loaded")

        prompt = build_prompt(self.strategy, _with_context(request), self.template)
        outcome = await asyncio.to_thread(
            self.bridge.generate,
            prompt,
            request.options.max_tokens,
            request.options.temperature,
            None,
            stop_sequences(self.template),
        )
        if not outcome.ok:
            raise ProviderUnavailable(self.provider_id, outcome.error or "generation failed")

        parsed = parse_or_raise(outcome.text)
        return _neural_result(
            request,
            parsed,
            Provenance(
                provider_id=self.provider_id,
                kind=self.kind,
                model=self.model_name,
                latency_ms=outcome.inference_time_ms,
                tokens_used=outcome.tokens_generated,
            ),
        )

    async def release(self) -> None:
        await asyncio.to_thread(self.bridge.unload)

    def estimate_cost(self, request: ClassificationRequest) -> float | None:
        return 0.0


class RemoteProvider:
    """Hosted LLM fallback. Does nothing unless explicitly enabled."""

    provider_id = "remote"
    kind = ProviderKind.REMOTE
    capabilities = frozenset({Capability.CLASSIFY, Capability.EXTRACT})

    def __init__(
        self,
        client: MultiProviderClient | None = None,
        model: str = "haiku",
        enabled: bool = False,
        strategy: PromptStrategy = PromptStrategy.COMBINED_OPTIMAL,
    ):
        self.client = client
        self.model = model
        self.enabled = enabled
        self.strategy = strategy
        self._live = False

    @property
    def is_live(self) -> bool:
        return self._live

    async def initialize(self) -> bool:
        if not self.enabled:
            return False
        if self.client is None:
            self.client = MultiProviderClient(default_model=self.model)
        self._live = self.client.has_credentials(self.model)
        if not self._live:
            logger.warning(f"No API key available for remote model {self.model}")
        return self._live

    async def execute(self, request: ClassificationRequest) -> ClassificationResult:
        if not self._live or self.client is None:
            raise ProviderUnavailable(self.provider_id, "remote fallback disabled")

        system, user = build_messages(self.strategy, _with_context(request))
        start = time.perf_counter()
        response = await self.client.complete(
            [{"role": "user", "content": user}],
            system=system,
            model=self.model,
            max_tokens=request.options.max_tokens,
            temperature=0.0,
        )
        latency_ms = (time.perf_counter() - start) * 1000

        parsed = parse_or_raise(response.content)
        return _neural_result(
            request,
            parsed,
            Provenance(
                provider_id=self.provider_id,
                kind=self.kind,
                model=response.model,
                latency_ms=latency_ms,
                tokens_used=response.input_tokens + response.output_tokens,
            ),
        )

    async def release(self) -> None:
        self._live = False

    def estimate_cost(self, request: ClassificationRequest) -> float | None:
        system, user = build_messages(self.strategy, _with_context(request))
        input_tokens = estimate_tokens(f"{system or ''}\n{user}")
        return estimate_call_cost(input_tokens, EXPECTED_OUTPUT_TOKENS, self.model)


__all__ = [
    "ClassificationProvider",
    "OnDeviceProvider",
    "RemoteProvider",
    "RuleBasedProvider",
]
