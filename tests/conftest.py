"""
Pytest configuration and fixtures for taskmatrix tests.
"""

import asyncio
import sys
from pathlib import Path

import pytest

# Add project root to path so we can import the taskmatrix package
sys.path.insert(0, str(Path(__file__).parent.parent))

from taskmatrix.config import RouterConfig
from taskmatrix.inference_bridge import InferenceBridge, SimulatedBackend
from taskmatrix.providers import RuleBasedProvider
from taskmatrix.types import (
    Capability,
    ClassificationRequest,
    ClassificationResult,
    Provenance,
    ProviderKind,
    Quadrant,
)


class FakeProvider:
    """
    Scriptable escalation provider.

    Returns a fixed quadrant/confidence, or raises `error`, optionally after
    a delay (`delay_s` for execute, `init_delay_s` for initialize). Counts
    initialize and execute calls.
    """

    def __init__(
        self,
        provider_id: str = "fake-neural",
        kind: ProviderKind = ProviderKind.NEURAL,
        quadrant: Quadrant = Quadrant.DO,
        confidence: float = 0.9,
        delay_s: float = 0.0,
        init_delay_s: float = 0.0,
        error: Exception | None = None,
        live: bool = True,
        capabilities: frozenset = frozenset({Capability.CLASSIFY, Capability.EXTRACT}),
    ):
        self.provider_id = provider_id
        self.kind = kind
        self.capabilities = capabilities
        self.quadrant = quadrant
        self.confidence = confidence
        self.delay_s = delay_s
        self.init_delay_s = init_delay_s
        self.error = error
        self._live = live
        self.init_calls = 0
        self.execute_calls = 0
        self.released = False

    @property
    def is_live(self) -> bool:
        return self._live

    async def initialize(self) -> bool:
        self.init_calls += 1
        await asyncio.sleep(self.init_delay_s or 0.01)
        return self._live

    async def execute(self, request: ClassificationRequest) -> ClassificationResult:
        self.execute_calls += 1
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return ClassificationResult(
            quadrant=self.quadrant,
            confidence=self.confidence,
            explanation="scripted",
            is_urgent=self.quadrant.is_urgent,
            is_important=self.quadrant.is_important,
            provenance=Provenance(provider_id=self.provider_id, kind=self.kind, model="fake"),
        )

    async def release(self) -> None:
        self.released = True

    def estimate_cost(self, request: ClassificationRequest) -> float | None:
        return 0.0


@pytest.fixture
def fast_backend():
    """Simulated backend with no generation delay."""
    return SimulatedBackend(tokens_per_second=0)


@pytest.fixture
def stub_bridge(fast_backend):
    """Bridge over the simulated backend, not yet loaded."""
    bridge = InferenceBridge(backend=fast_backend)
    yield bridge
    bridge.close()


@pytest.fixture
def loaded_stub_bridge(stub_bridge):
    """Bridge with the simulated model loaded."""
    assert stub_bridge.load_stub().success
    return stub_bridge


@pytest.fixture
def rule_provider():
    return RuleBasedProvider()


@pytest.fixture
def router_config():
    """Router config with short timeouts for tests."""
    return RouterConfig(neural_timeout_s=0.5, remote_timeout_s=0.5)


@pytest.fixture
def fake_provider_factory():
    return FakeProvider


# Markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "hypothesis: property-based tests"
    )
    config.addinivalue_line(
        "markers", "slow: tests that take >1s"
    )
