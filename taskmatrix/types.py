"""
Shared type definitions for taskmatrix.

Requests and results flowing through the router, provider descriptors,
and the error hierarchy used across the package.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Quadrant(str, Enum):
    """Eisenhower priority category."""

    DO = "DO"  # urgent + important
    SCHEDULE = "SCHEDULE"  # important, not urgent
    DELEGATE = "DELEGATE"  # urgent, not important
    ELIMINATE = "ELIMINATE"  # neither

    @property
    def is_urgent(self) -> bool:
        return self in (Quadrant.DO, Quadrant.DELEGATE)

    @property
    def is_important(self) -> bool:
        return self in (Quadrant.DO, Quadrant.SCHEDULE)

    @classmethod
    def from_flags(cls, is_urgent: bool, is_important: bool) -> Quadrant:
        """Map urgency/importance flags onto a quadrant."""
        if is_urgent and is_important:
            return cls.DO
        if is_important:
            return cls.SCHEDULE
        if is_urgent:
            return cls.DELEGATE
        return cls.ELIMINATE

    @classmethod
    def parse(cls, value: str) -> Quadrant | None:
        """Case-insensitive lookup, None for unknown names."""
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class Capability(str, Enum):
    """What a provider can be asked to do."""

    CLASSIFY = "classify"
    EXTRACT = "extract"  # structured task parsing
    GENERATE = "generate"  # action items, briefings


class ProviderKind(str, Enum):
    """Provider tier, ordered from cheapest to most expensive."""

    DETERMINISTIC = "deterministic"
    NEURAL = "neural"
    REMOTE = "remote"


@dataclass(frozen=True)
class RequestContext:
    """Optional hints accompanying a request."""

    due_hint: str | None = None
    goal_references: tuple[str, ...] = ()
    current_date: date | None = None
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RequestOptions:
    """Per-request knobs."""

    use_neural: bool = True
    max_tokens: int = 256
    temperature: float = 0.3
    min_confidence: float | None = None  # overrides the router threshold


@dataclass(frozen=True)
class ClassificationRequest:
    """
    A single unit of work for the router.

    Raises:
        InputError: if the text is empty or whitespace only
    """

    text: str
    context: RequestContext | None = None
    capability: Capability = Capability.CLASSIFY
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    options: RequestOptions = field(default_factory=RequestOptions)

    def __post_init__(self) -> None:
        if not isinstance(self.text, str) or not self.text.strip():
            raise InputError("Task text must not be empty")


class Provenance(BaseModel):
    """Where a result came from and how it was produced."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    kind: ProviderKind
    model: str = ""
    latency_ms: float = 0.0
    tokens_used: int = 0
    escalated: bool = False
    rule_confidence: float | None = None
    fallback_reason: str | None = None


class ClassificationResult(BaseModel):
    """Quadrant decision plus its supporting evidence."""

    model_config = ConfigDict(frozen=True)

    correlation_id: str = ""
    quadrant: Quadrant
    confidence: float = Field(ge=0.0, le=1.0)
    explanation: str = ""
    is_urgent: bool = False
    is_important: bool = False
    urgency_signals: list[str] = Field(default_factory=list)
    importance_signals: list[str] = Field(default_factory=list)
    provenance: Provenance
    artifact: dict[str, Any] | None = None

    def with_provenance(self, **updates: Any) -> ClassificationResult:
        """Copy with selected provenance fields replaced."""
        return self.model_copy(
            update={"provenance": self.provenance.model_copy(update=updates)}
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-ready dictionary."""
        return self.model_dump(mode="json")


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static description of a registered provider."""

    provider_id: str
    kind: ProviderKind
    capabilities: frozenset[Capability]
    live: bool = False

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities


# Error classes


class TaskMatrixError(Exception):
    """Base class for taskmatrix errors."""

    pass


class InputError(TaskMatrixError, ValueError):
    """Request text is missing or blank."""

    pass


class ProviderUnavailable(TaskMatrixError):
    """Provider failed to initialize or is not live."""

    def __init__(self, provider_id: str, reason: str = ""):
        self.provider_id = provider_id
        self.reason = reason
        message = f"Provider {provider_id} unavailable"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ProviderTimeout(TaskMatrixError):
    """Provider call exceeded its time bound."""

    def __init__(self, provider_id: str, timeout_s: float):
        self.provider_id = provider_id
        self.timeout_s = timeout_s
        super().__init__(f"Provider {provider_id} timed out after {timeout_s:.1f}s")


class ParseFailure(TaskMatrixError):
    """No parser tier could extract a classification."""

    def __init__(self, raw_output: str):
        self.raw_output = raw_output
        preview = raw_output[:80].replace("\n", " ")
        super().__init__(f"Could not parse classification from output: {preview!r}")


class ResourceLoadFailure(TaskMatrixError):
    """Model weights could not be loaded."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load {path}: {reason}")


__all__ = [
    "Capability",
    "ClassificationRequest",
    "ClassificationResult",
    "InputError",
    "ParseFailure",
    "Provenance",
    "ProviderDescriptor",
    "ProviderKind",
    "ProviderTimeout",
    "ProviderUnavailable",
    "Quadrant",
    "RequestContext",
    "RequestOptions",
    "ResourceLoadFailure",
    "TaskMatrixError",
]
