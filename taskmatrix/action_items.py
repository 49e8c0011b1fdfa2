"""
Action item extraction and daily briefings.

Both are rule-based: notes are scanned line by line for explicit action
prefixes or bulleted action verbs, and each item is classified with the
pattern classifier.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from . import pattern_classifier
from .types import ClassificationResult, Quadrant

ACTION_PREFIXES = (
    "action item:",
    "action:",
    "todo:",
    "to-do:",
    "to do:",
    "follow up:",
    "follow-up:",
    "followup:",
    "task:",
    "assigned:",
    "assign:",
)

ACTION_VERBS = (
    "call", "email", "send", "create", "update", "review", "schedule",
    "prepare", "write", "draft", "complete", "finish", "submit", "fix",
    "contact", "notify", "remind", "follow up", "investigate", "research",
    "set up", "organize", "book", "arrange", "confirm", "check",
)

BULLETS = ("-", "*", "•")
MAX_TOP_PRIORITIES = 3

_ASSIGNEE = re.compile(r"@(\w+)")


@dataclass
class ActionItem:
    description: str
    assignee: str | None = None
    quadrant: Quadrant = Quadrant.SCHEDULE
    confidence: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "assignee": self.assignee,
            "quadrant": self.quadrant.value,
            "confidence": self.confidence,
        }


def _assignee(text: str) -> str | None:
    match = _ASSIGNEE.search(text)
    return match.group(1) if match else None


def _starts_with_verb(text: str) -> bool:
    lower = text.lower()
    return any(re.match(rf"{re.escape(verb)}\b", lower) for verb in ACTION_VERBS)


def _classified(description: str, source_line: str) -> ActionItem:
    result = pattern_classifier.classify(description)
    return ActionItem(
        description=description,
        assignee=_assignee(source_line),
        quadrant=result.quadrant,
        confidence=result.confidence,
    )


def extract_action_items(text: str) -> list[ActionItem]:
    """
    Extract action items from free-form notes.

    A line becomes an item when it starts with an action prefix
    ("todo:", "follow up:", ...) or is a bullet starting with an
    action verb.
    """
    items: list[ActionItem] = []

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        lower = line.lower()
        prefix = next((p for p in ACTION_PREFIXES if lower.startswith(p)), None)
        if prefix is not None:
            description = line[len(prefix):].strip()
            if description:
                items.append(_classified(description, line))
            continue

        if line.startswith(BULLETS):
            stripped = line.lstrip("".join(BULLETS)).strip()
            if stripped and _starts_with_verb(stripped):
                items.append(_classified(stripped, stripped))

    return items


@dataclass
class Briefing:
    """Summary of a set of classified tasks for one day."""

    day: date
    counts: dict[str, int] = field(default_factory=dict)
    top_priorities: list[str] = field(default_factory=list)
    insight: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "day": self.day.isoformat(),
            "counts": dict(self.counts),
            "top_priorities": list(self.top_priorities),
            "insight": self.insight,
        }


def _insight(counts: dict[str, int], overdue: int, day: date) -> str:
    urgent = counts.get(Quadrant.DO.value, 0)
    if overdue >= 5:
        return f"You have {overdue} overdue tasks. Consider rescheduling or breaking them into smaller steps."
    if overdue >= 3:
        return f"You have {overdue} overdue tasks. Review and reschedule what you can."
    if urgent == 0 and counts.get(Quadrant.SCHEDULE.value, 0) > 0:
        return "No urgent tasks today! Focus on important work that moves your goals forward."
    if urgent == 0:
        return "Clear schedule today! Great time to work on your goals."
    if day.weekday() == 0:
        return "Fresh week! Start strong by focusing on your top 3 priorities."
    if day.weekday() == 4:
        return "Wrap up open items before the weekend. Review your week's progress."
    return f"You have {urgent} urgent tasks. Start with the most important one."


def build_briefing(
    items: list[tuple[str, ClassificationResult]],
    overdue_count: int = 0,
    today: date | None = None,
) -> Briefing:
    """
    Assemble a briefing from (title, result) pairs.

    Top priorities are DO items first, then SCHEDULE items, each ordered
    by descending confidence.
    """
    day = today or date.today()
    counts = {q.value: 0 for q in Quadrant}
    for _, result in items:
        counts[result.quadrant.value] += 1

    ranked = sorted(
        (pair for pair in items if pair[1].quadrant in (Quadrant.DO, Quadrant.SCHEDULE)),
        key=lambda pair: (pair[1].quadrant != Quadrant.DO, -pair[1].confidence),
    )

    return Briefing(
        day=day,
        counts=counts,
        top_priorities=[title for title, _ in ranked[:MAX_TOP_PRIORITIES]],
        insight=_insight(counts, overdue_count, day),
    )


__all__ = [
    "ActionItem",
    "Briefing",
    "build_briefing",
    "extract_action_items",
]
