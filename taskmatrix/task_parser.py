"""
Rule-based task parsing.

Pulls a due date, a due time and a clean title out of free-form input
such as "remind me to call the dentist tomorrow at 3pm".
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import Any

from . import pattern_classifier
from .types import Quadrant

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
NUMBER_WORDS = {"one": 1, "two": 2, "three": 3, "four": 4, "five": 5}

_TODAY = re.compile(r"\btoday\b", re.IGNORECASE)
_TOMORROW = re.compile(r"\btomorrow\b", re.IGNORECASE)
_WEEKDAY = re.compile(r"\b(on\s+)?(" + "|".join(WEEKDAYS) + r")\b", re.IGNORECASE)
_IN_DAYS = re.compile(r"\bin\s+(\d+|one|two|three|four|five)\s+days?\b", re.IGNORECASE)
_NEXT_WEEK = re.compile(r"\bnext week\b", re.IGNORECASE)

_CLOCK_TIME = re.compile(r"\b(\d{1,2}):(\d{2})\s*(am|pm)?\b", re.IGNORECASE)
_AT_HOUR = re.compile(r"\bat\s+(\d{1,2})\s*(am|pm)\b", re.IGNORECASE)

_COMMAND_PREFIX = re.compile(
    r"^(remind me to|remind me|add task|create task|todo:?)\s+", re.IGNORECASE
)


@dataclass
class ParsedTask:
    """Structured task extracted from free text."""

    title: str
    due_date: date | None = None
    due_time: str | None = None  # "HH:MM", 24h
    suggested_quadrant: Quadrant = Quadrant.SCHEDULE
    confidence: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["due_date"] = self.due_date.isoformat() if self.due_date else None
        data["suggested_quadrant"] = self.suggested_quadrant.value
        return data


def extract_due_date(text: str, today: date | None = None) -> tuple[date, str] | None:
    """
    Find the first recognizable due date.

    Returns:
        (date, matched_text) tuple, or None
    """
    today = today or date.today()

    match = _TODAY.search(text)
    if match:
        return today, match.group()

    match = _TOMORROW.search(text)
    if match:
        return today + timedelta(days=1), match.group()

    match = _WEEKDAY.search(text)
    if match:
        target = WEEKDAYS.index(match.group(2).lower())
        # Today counts when it is already the named weekday
        offset = (target - today.weekday()) % 7
        return today + timedelta(days=offset), match.group()

    match = _IN_DAYS.search(text)
    if match:
        amount = match.group(1).lower()
        days = NUMBER_WORDS.get(amount) or int(amount)
        return today + timedelta(days=days), match.group()

    match = _NEXT_WEEK.search(text)
    if match:
        return today + timedelta(weeks=1), match.group()

    return None


def _to_24h(hour: int, meridiem: str | None) -> int:
    meridiem = (meridiem or "").lower()
    if meridiem == "pm" and hour < 12:
        return hour + 12
    if meridiem == "am" and hour == 12:
        return 0
    return hour


def extract_due_time(text: str) -> tuple[str, str] | None:
    """
    Find the first clock time ("3:30pm", "at 9am").

    Returns:
        ("HH:MM", matched_text) tuple, or None
    """
    match = _CLOCK_TIME.search(text)
    if match:
        hour = _to_24h(int(match.group(1)), match.group(3))
        return f"{hour:02d}:{match.group(2)}", match.group()

    match = _AT_HOUR.search(text)
    if match:
        hour = _to_24h(int(match.group(1)), match.group(2))
        return f"{hour:02d}:00", match.group()

    return None


def clean_title(text: str, *fragments: str) -> str:
    """Drop date/time fragments and command prefixes, tidy whitespace."""
    title = text
    for fragment in fragments:
        title = title.replace(fragment, "").strip()
    title = _COMMAND_PREFIX.sub("", title)
    title = re.sub(r"\s+", " ", title).strip()
    return title[:1].upper() + title[1:]


def parse_task(text: str, today: date | None = None) -> ParsedTask:
    """Parse free text into a ParsedTask with a suggested quadrant."""
    due_date = extract_due_date(text, today)
    due_time = extract_due_time(text)

    fragments = [m[1] for m in (due_date, due_time) if m is not None]
    classification = pattern_classifier.classify(text)

    return ParsedTask(
        title=clean_title(text, *fragments) or text.strip(),
        due_date=due_date[0] if due_date else None,
        due_time=due_time[0] if due_time else None,
        suggested_quadrant=classification.quadrant,
        confidence=classification.confidence,
    )


__all__ = [
    "ParsedTask",
    "clean_title",
    "extract_due_date",
    "extract_due_time",
    "parse_task",
]
