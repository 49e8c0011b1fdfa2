"""
Deterministic pattern-based quadrant classifier.

Scores a task description against five groups of keyword patterns and
maps the counts to a quadrant through a fixed precedence table. Total
and side-effect free; fast enough to run on every request.
"""

from __future__ import annotations

import re
import time

from pydantic import BaseModel, Field

from .types import ClassificationResult, Provenance, ProviderKind, Quadrant

PROVIDER_ID = "rule-based"
MODEL_NAME = "rule-based-v1"

MAX_CONFIDENCE = 0.95


def _compile(patterns: list[str]) -> list[re.Pattern[str]]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


URGENCY_PATTERNS = _compile([
    r"\b(urgent|asap|immediately|emergency|deadline today|due today)\b",
    r"\b(before|by)\s+(today|tonight|end of day|EOD)\b",
    r"\bend of day\b",
    r"\b(overdue|late|behind|critical)\b",
    r"\b(crisis|must|outage)\b",
    r"server.*(down|crash|issue|error)",
    r"(down|crash).*(server|system|app)",
    r"\bfix\s+(immediately|now|asap|urgent)\b",
    r"\b(in \d+ (hour|minute|min))\b",
    r"\bclient (waiting|call|meeting)\b",
])

IMPORTANCE_PATTERNS = _compile([
    r"\b(important|crucial|vital|essential|key|strategic)\b",
    r"\b(goal|objective|career|health|family|relationship)\b",
    r"\b(project|client|customer|boss|board)\b",
    r"\b(review|decision|plan|strategy|quarter)\b",
    r"\b(learn|study|improve|develop)\b",
    r"\b(tax|legal|compliance|contract)\b",
    r"\breport\b",
    r"\b(submit|deadline|due)\b",
    r"server.*(down|crash|issue)",
    r"\bfix\b",
])

DELEGATION_PATTERNS = _compile([
    r"\b(delegate|assign|ask .+ to|have .+ do)\b",
    r"\b(routine|regular|recurring|standard)\b",
    r"\b(anyone can|someone else|team can)\b",
    r"\border\s+(office\s+)?supplies\b",
    r"\boffice\s+supplies\b",
    r"\b(survey|form|update)\b",
    r"\bstatus\s+report\b",
    r"\bweekly\s+.*report\b",
    r"\bcompile\s+.*report\b",
])

LOW_PRIORITY_PATTERNS = _compile([
    r"\b(maybe|someday|eventually|when I have time)\b",
    r"\b(nice to have|would be good|could|might)\b",
    r"\b(browse|scroll|watch|entertainment)\b",
    r"\b(social media|youtube|netflix|reddit)\b",
    r"\b(optional|if time|low priority)\b",
])

SOON_DEADLINE_PATTERNS = _compile([
    r"\b(today|tonight|tomorrow|this morning|this afternoon)\b",
    r"\bby (monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b",
    r"\bin (1|2|3) days?\b",
    r"\bdue (today|tomorrow|soon)\b",
])


class PatternSignals(BaseModel):
    """Raw pattern counts and the text each pattern matched."""

    urgency: int = 0
    importance: int = 0
    delegation: int = 0
    low_priority: int = 0
    soon_deadline: bool = False

    urgency_matches: list[str] = Field(default_factory=list)
    importance_matches: list[str] = Field(default_factory=list)
    delegation_matches: list[str] = Field(default_factory=list)
    low_priority_matches: list[str] = Field(default_factory=list)

    @property
    def is_urgent(self) -> bool:
        return self.urgency >= 1 or self.soon_deadline

    @property
    def is_important(self) -> bool:
        return self.importance >= 1 and self.low_priority == 0 and self.delegation == 0


def _matches(patterns: list[re.Pattern[str]], text: str) -> list[str]:
    found = []
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            found.append(match.group())
    return found


def extract_signals(text: str) -> PatternSignals:
    """Count pattern hits per group."""
    urgency = _matches(URGENCY_PATTERNS, text)
    importance = _matches(IMPORTANCE_PATTERNS, text)
    delegation = _matches(DELEGATION_PATTERNS, text)
    low = _matches(LOW_PRIORITY_PATTERNS, text)

    return PatternSignals(
        urgency=len(urgency),
        importance=len(importance),
        delegation=len(delegation),
        low_priority=len(low),
        soon_deadline=any(p.search(text) for p in SOON_DEADLINE_PATTERNS),
        urgency_matches=urgency,
        importance_matches=importance,
        delegation_matches=delegation,
        low_priority_matches=low,
    )


def decide(signals: PatternSignals) -> tuple[Quadrant, float, str]:
    """
    Apply the precedence table to a set of signals.

    Returns:
        (quadrant, confidence, explanation) tuple
    """
    urgent = signals.is_urgent
    important = signals.is_important
    delegation_confidence = 0.65 + min(signals.delegation, 3) * 0.05

    if signals.low_priority >= 2:
        quadrant, confidence = Quadrant.ELIMINATE, 0.85
        reason = "Multiple low-priority indicators detected"
    elif signals.delegation >= 1 and not urgent:
        quadrant, confidence = Quadrant.DELEGATE, delegation_confidence
        reason = "Routine/administrative task suitable for delegation"
    elif urgent and important:
        quadrant = Quadrant.DO
        confidence = 0.70 + min(signals.urgency + signals.importance, 4) * 0.05
        reason = "Task shows both urgency and importance signals"
    elif important:
        quadrant = Quadrant.SCHEDULE
        confidence = 0.70 + min(signals.importance, 3) * 0.05
        reason = "Important task without immediate deadline"
    elif urgent:
        quadrant = Quadrant.DELEGATE
        confidence = 0.60 + min(signals.delegation + 1, 3) * 0.05
        reason = "Urgent but could potentially be delegated"
    elif signals.delegation >= 1:
        quadrant, confidence = Quadrant.DELEGATE, delegation_confidence
        reason = "Routine/administrative task suitable for delegation"
    elif signals.low_priority >= 1:
        quadrant = Quadrant.ELIMINATE
        confidence = 0.60 + min(signals.low_priority, 2) * 0.10
        reason = "Low-priority or optional activity"
    else:
        quadrant, confidence = Quadrant.SCHEDULE, 0.55
        reason = "No clear urgency indicators - scheduling for review"

    return quadrant, round(min(confidence, MAX_CONFIDENCE), 4), reason


def _explain(reason: str, signals: PatternSignals) -> str:
    details = []
    if signals.urgency_matches:
        details.append(f"urgency: {signals.urgency_matches[0]}")
    if signals.importance_matches:
        details.append(f"importance: {signals.importance_matches[0]}")
    if not details:
        return reason
    return f"{reason} ({', '.join(details)})"


def classify(text: str, correlation_id: str = "") -> ClassificationResult:
    """
    Classify a task description into a quadrant.

    Never raises for string input and always returns a label; callers
    decide whether the confidence is good enough.
    """
    start = time.perf_counter()
    signals = extract_signals(text)
    quadrant, confidence, reason = decide(signals)
    latency_ms = (time.perf_counter() - start) * 1000

    return ClassificationResult(
        correlation_id=correlation_id,
        quadrant=quadrant,
        confidence=confidence,
        explanation=_explain(reason, signals),
        is_urgent=signals.is_urgent,
        is_important=signals.is_important,
        urgency_signals=signals.urgency_matches,
        importance_signals=signals.importance_matches,
        provenance=Provenance(
            provider_id=PROVIDER_ID,
            kind=ProviderKind.DETERMINISTIC,
            model=MODEL_NAME,
            latency_ms=latency_ms,
            rule_confidence=confidence,
        ),
    )


def should_escalate(result: ClassificationResult, threshold: float = 0.7) -> bool:
    """True when the result is below the confidence threshold."""
    return result.confidence < threshold


__all__ = [
    "PatternSignals",
    "classify",
    "decide",
    "extract_signals",
    "should_escalate",
]
