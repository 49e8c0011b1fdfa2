"""
Provider router with confidence-based escalation.

The pattern classifier answers first. Only when its confidence is below
the threshold does the router try heavier providers, strictly one at a
time and each under a timeout. Provider failures of any kind fall
through to the next option; the deterministic result is the floor, so a
well-formed request always gets an answer.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .config import RouterConfig, TaskMatrixConfig
from .decision_log import DecisionLogger
from .inference_bridge import InferenceBridge
from .prompt_strategies import PromptStrategy, PromptTemplate
from .providers import ClassificationProvider, OnDeviceProvider, RemoteProvider, RuleBasedProvider
from .types import (
    Capability,
    ClassificationRequest,
    ClassificationResult,
    InputError,
    ParseFailure,
    ProviderDescriptor,
    ProviderKind,
    ProviderTimeout,
    ProviderUnavailable,
    Quadrant,
    RequestContext,
    RequestOptions,
)

logger = logging.getLogger(__name__)


class RoutingMode(str, Enum):
    HYBRID = "hybrid"
    RULE_BASED_ONLY = "rule_based_only"
    NEURAL_PREFERRED = "neural_preferred"


ESCALATION_CAPABILITIES = frozenset({Capability.CLASSIFY, Capability.EXTRACT})

MAX_OVERRIDE_HISTORY = 1000


@dataclass
class OverrideRecord:
    """A user correction of a routed classification."""

    correlation_id: str
    original: Quadrant
    override: Quadrant
    provider_id: str = ""
    timestamp: float = field(default_factory=time.time)


class _ProviderSlot:
    """Wraps a provider so initialization is attempted at most once."""

    def __init__(self, provider: ClassificationProvider):
        self.provider = provider
        self.live = False
        self.init_timed_out = False
        self._init_attempted = False
        self._init_lock = asyncio.Lock()

    @property
    def provider_id(self) -> str:
        return self.provider.provider_id

    async def ensure_initialized(self, timeout: float | None = None) -> bool:
        """
        Initialize the provider once; later calls reuse the outcome.

        An initialize that exceeds `timeout` leaves the slot permanently
        not live, with `init_timed_out` set.
        """
        if self._init_attempted:
            return self.live and self.provider.is_live

        async with self._init_lock:
            if not self._init_attempted:
                try:
                    self.live = bool(
                        await asyncio.wait_for(self.provider.initialize(), timeout=timeout)
                    )
                except asyncio.TimeoutError:
                    logger.warning(f"{ProviderTimeout(self.provider_id, timeout or 0.0)} during initialize")
                    self.live = False
                    self.init_timed_out = True
                except Exception as e:
                    logger.warning(f"Provider {self.provider_id} failed to initialize: {e}")
                    self.live = False
                self._init_attempted = True
                logger.info(f"Provider {self.provider_id} live={self.live}")

        return self.live and self.provider.is_live

    def descriptor(self) -> ProviderDescriptor:
        return ProviderDescriptor(
            provider_id=self.provider_id,
            kind=self.provider.kind,
            capabilities=frozenset(self.provider.capabilities),
            live=self.live,
        )


class ProviderRouter:
    """
    Single entry point for classification requests.

    Providers are registered as an ordered list. The first deterministic
    provider is the floor; neural and remote providers form the
    escalation chain in registration order. Remote providers are only
    consulted when the configuration enables them.
    """

    def __init__(
        self,
        providers: Sequence[ClassificationProvider] | None = None,
        config: RouterConfig | None = None,
        decision_logger: DecisionLogger | None = None,
    ):
        self.config = config or RouterConfig()
        self.mode = RoutingMode(self.config.mode)
        self.decision_logger = decision_logger

        providers = list(providers or [])
        floor = next((p for p in providers if p.kind == ProviderKind.DETERMINISTIC), None)
        self._floor = floor or RuleBasedProvider()
        self._slots = [_ProviderSlot(p) for p in providers if p.kind != ProviderKind.DETERMINISTIC]

        self._override_history: list[OverrideRecord] = []
        self._stats = self._empty_stats()

    @classmethod
    def from_config(
        cls,
        config: TaskMatrixConfig | None = None,
        bridge: InferenceBridge | None = None,
    ) -> ProviderRouter:
        """Build a router with the providers a configuration asks for."""
        config = config or TaskMatrixConfig.load()
        providers: list[ClassificationProvider] = [RuleBasedProvider()]

        runtime = config.runtime
        if bridge is not None or runtime.model_path or runtime.allow_degraded:
            providers.append(
                OnDeviceProvider(
                    bridge or InferenceBridge(config=runtime),
                    model_path=runtime.model_path,
                    strategy=PromptStrategy.from_id(config.router.neural_strategy),
                    template=PromptTemplate(runtime.template),
                    allow_stub=runtime.allow_degraded,
                )
            )
        if config.router.remote_enabled:
            providers.append(RemoteProvider(model=config.router.remote_model, enabled=True))

        decision_logger = DecisionLogger(config.logging) if config.logging.log_decisions else None
        return cls(providers, config=config.router, decision_logger=decision_logger)

    @staticmethod
    def _empty_stats() -> dict[str, Any]:
        return {
            "total_requests": 0,
            "rule_based_only": 0,
            "neural_escalated": 0,
            "neural_failed": 0,
            "neural_timeouts": 0,
            "remote_escalated": 0,
            "remote_failed": 0,
            "parse_failures": 0,
            "overrides": 0,
            "total_latency_ms": 0.0,
        }

    # Routing

    async def route(self, request: ClassificationRequest) -> ClassificationResult:
        """
        Classify a request through the escalation chain.

        Raises:
            InputError: if the request text is blank
        """
        if not request.text.strip():
            raise InputError("Task text must not be empty")

        start = time.perf_counter()
        self._stats["total_requests"] += 1

        threshold = request.options.min_confidence
        if threshold is None:
            threshold = self.config.confidence_threshold

        if self.mode == RoutingMode.NEURAL_PREFERRED:
            result = await self._route_neural_preferred(request)
        else:
            result = await self._route_hybrid(request, threshold)

        latency_ms = (time.perf_counter() - start) * 1000
        self._stats["total_latency_ms"] += latency_ms
        logger.debug(
            f"Routed {request.correlation_id} -> {result.quadrant.value} "
            f"({result.confidence:.2f}) via {result.provenance.provider_id}"
        )

        if self.decision_logger is not None:
            self.decision_logger.log_decision(request, result, latency_ms)
        return result

    def _escalation_eligible(self, request: ClassificationRequest) -> bool:
        return (
            self.mode != RoutingMode.RULE_BASED_ONLY
            and request.capability in ESCALATION_CAPABILITIES
            and request.options.use_neural
        )

    def _chain(self) -> list[_ProviderSlot]:
        return [
            slot
            for slot in self._slots
            if slot.provider.kind != ProviderKind.REMOTE or self.config.remote_enabled
        ]

    def _timeout_for(self, slot: _ProviderSlot) -> float:
        if slot.provider.kind == ProviderKind.REMOTE:
            return self.config.remote_timeout_s
        return self.config.neural_timeout_s

    async def _route_hybrid(
        self, request: ClassificationRequest, threshold: float
    ) -> ClassificationResult:
        floor = await self._floor.execute(request)

        if floor.confidence >= threshold or not self._escalation_eligible(request):
            self._stats["rule_based_only"] += 1
            return floor

        logger.debug(
            f"Pattern confidence {floor.confidence:.2f} below {threshold:.2f}, escalating"
        )
        candidates: list[ClassificationResult] = []
        fallback_reason = "unavailable"

        for slot in self._chain():
            result, reason = await self._try_provider(slot, request)
            if result is None:
                fallback_reason = reason or fallback_reason
                continue
            if result.confidence >= threshold:
                return self._escalated(result, floor, None)
            candidates.append(result)
            fallback_reason = "low_confidence"

        if candidates:
            # No provider cleared the threshold; keep the best escalated answer
            best = max(candidates, key=lambda r: r.confidence)
            return self._escalated(best, floor, "low_confidence")

        self._stats["rule_based_only"] += 1
        return floor.with_provenance(fallback_reason=fallback_reason)

    async def _route_neural_preferred(self, request: ClassificationRequest) -> ClassificationResult:
        fallback_reason = "unavailable"
        if request.capability in ESCALATION_CAPABILITIES and request.options.use_neural:
            for slot in self._chain():
                if slot.provider.kind != ProviderKind.NEURAL:
                    continue
                result, reason = await self._try_provider(slot, request)
                if result is not None:
                    return result.with_provenance(escalated=False)
                fallback_reason = reason or fallback_reason

        self._stats["rule_based_only"] += 1
        floor = await self._floor.execute(request)
        return floor.with_provenance(fallback_reason=fallback_reason)

    def _escalated(
        self,
        result: ClassificationResult,
        floor: ClassificationResult,
        reason: str | None,
    ) -> ClassificationResult:
        return result.with_provenance(
            escalated=True,
            rule_confidence=floor.confidence,
            fallback_reason=reason,
        )

    async def _try_provider(
        self, slot: _ProviderSlot, request: ClassificationRequest
    ) -> tuple[ClassificationResult | None, str | None]:
        """
        Run one provider under its timeout.

        Returns:
            (result, None) on success, (None, reason) on any failure
        """
        prefix = "remote" if slot.provider.kind == ProviderKind.REMOTE else "neural"

        if request.capability not in slot.provider.capabilities:
            return None, "unsupported"
        timeout = self._timeout_for(slot)
        if not await slot.ensure_initialized(timeout):
            if slot.init_timed_out:
                self._stats[f"{prefix}_failed"] += 1
                if prefix == "neural":
                    self._stats["neural_timeouts"] += 1
                return None, "timeout"
            return None, "unavailable"

        self._stats[f"{prefix}_escalated"] += 1
        try:
            result = await asyncio.wait_for(slot.provider.execute(request), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(str(ProviderTimeout(slot.provider_id, timeout)))
            self._stats[f"{prefix}_failed"] += 1
            if prefix == "neural":
                self._stats["neural_timeouts"] += 1
            return None, "timeout"
        except ParseFailure as e:
            logger.warning(f"Provider {slot.provider_id}: {e}")
            self._stats[f"{prefix}_failed"] += 1
            self._stats["parse_failures"] += 1
            return None, "parse_failure"
        except ProviderUnavailable as e:
            logger.warning(str(e))
            self._stats[f"{prefix}_failed"] += 1
            return None, "unavailable"
        except Exception as e:
            logger.warning(f"Provider {slot.provider_id} failed: {e}")
            self._stats[f"{prefix}_failed"] += 1
            return None, "provider_error"

        return result.model_copy(update={"correlation_id": request.correlation_id}), None

    # Convenience entry points

    async def route_text(
        self,
        text: str,
        capability: Capability = Capability.CLASSIFY,
        context: RequestContext | None = None,
        options: RequestOptions | None = None,
        correlation_id: str | None = None,
    ) -> ClassificationResult:
        kwargs: dict[str, Any] = {"text": text, "capability": capability, "context": context}
        if options is not None:
            kwargs["options"] = options
        if correlation_id:
            kwargs["correlation_id"] = correlation_id
        return await self.route(ClassificationRequest(**kwargs))

    def route_sync(self, text: str, **kwargs: Any) -> ClassificationResult:
        """Blocking wrapper for callers without an event loop."""
        return asyncio.run(self.route_text(text, **kwargs))

    # Introspection and feedback

    def descriptors(self) -> list[ProviderDescriptor]:
        floor = ProviderDescriptor(
            provider_id=self._floor.provider_id,
            kind=self._floor.kind,
            capabilities=frozenset(self._floor.capabilities),
            live=True,
        )
        return [floor] + [slot.descriptor() for slot in self._slots]

    def record_override(
        self,
        correlation_id: str,
        original: Quadrant,
        override: Quadrant,
        provider_id: str = "",
    ) -> OverrideRecord:
        """Record that the user corrected a routed classification."""
        record = OverrideRecord(correlation_id, original, override, provider_id)
        self._override_history.append(record)
        if len(self._override_history) > MAX_OVERRIDE_HISTORY:
            self._override_history.pop(0)
        self._stats["overrides"] += 1

        if self.decision_logger is not None:
            self.decision_logger.log_override(correlation_id, original.value, override.value)
        return record

    def get_override_history(self) -> list[OverrideRecord]:
        return list(self._override_history)

    def calculate_accuracy(self) -> float:
        """Share of routed requests the user did not override."""
        total = self._stats["total_requests"]
        return 1.0 - self._stats["overrides"] / total if total > 0 else 0.0

    def get_statistics(self) -> dict[str, Any]:
        stats = dict(self._stats)
        total = stats["total_requests"]
        escalated = stats["neural_escalated"] + stats["remote_escalated"]
        stats["escalation_rate"] = escalated / total if total > 0 else 0.0
        stats["avg_latency_ms"] = stats["total_latency_ms"] / total if total > 0 else 0.0
        stats["mode"] = self.mode.value
        return stats

    def reset_stats(self) -> None:
        self._stats = self._empty_stats()
        self._override_history.clear()

    async def release(self) -> None:
        """Release every escalation provider."""
        for slot in self._slots:
            try:
                await slot.provider.release()
            except Exception as e:
                logger.warning(f"Error releasing provider {slot.provider_id}: {e}")
        await self._floor.release()


__all__ = [
    "ESCALATION_CAPABILITIES",
    "OverrideRecord",
    "ProviderRouter",
    "RoutingMode",
]
