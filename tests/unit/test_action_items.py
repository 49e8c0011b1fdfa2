"""
Unit tests for action item extraction and daily briefings.
"""

from datetime import date

from taskmatrix.action_items import build_briefing, extract_action_items
from taskmatrix.pattern_classifier import classify
from taskmatrix.types import Quadrant

NOTES = """Weekly sync notes

Action item: Send the contract to legal @alice
- Review the quarterly budget
- Lunch was great
TODO: Book flights
* update the wiki page
Follow-up:
"""

MONDAY = date(2024, 1, 1)
FRIDAY = date(2024, 1, 5)
TUESDAY = date(2024, 1, 2)


class TestExtractActionItems:
    """Tests for extract_action_items."""

    def test_finds_prefixed_and_bulleted_items(self):
        """Prefixed lines and verb bullets become items; other lines do not."""
        items = extract_action_items(NOTES)
        descriptions = [item.description for item in items]
        assert descriptions == [
            "Send the contract to legal @alice",
            "Review the quarterly budget",
            "Book flights",
            "update the wiki page",
        ]

    def test_assignee(self):
        items = extract_action_items(NOTES)
        assert items[0].assignee == "alice"
        assert items[1].assignee is None

    def test_items_are_classified(self):
        """Each item carries a quadrant from the pattern classifier."""
        for item in extract_action_items(NOTES):
            expected = classify(item.description)
            assert item.quadrant == expected.quadrant
            assert item.confidence == expected.confidence

    def test_empty_prefix_skipped(self):
        """A prefix with nothing after it is not an item."""
        assert extract_action_items("Follow-up:\nTODO:") == []

    def test_multiword_verb(self):
        items = extract_action_items("- follow up with the vendor")
        assert len(items) == 1

    def test_to_dict(self):
        data = extract_action_items("todo: call the bank")[0].to_dict()
        assert data["description"] == "call the bank"
        assert data["quadrant"] in {q.value for q in Quadrant}


def _items(*titles):
    return [(title, classify(title)) for title in titles]


class TestBuildBriefing:
    """Tests for build_briefing."""

    def test_counts_and_top_priorities(self):
        """DO items come first, then SCHEDULE, by descending confidence."""
        briefing = build_briefing(
            _items(
                "Water the plants",
                "Plan next quarter's marketing strategy",
                "Submit the report tomorrow",
                "Browse social media",
                "Server is down, customers can't access the app",
            ),
            today=TUESDAY,
        )
        assert briefing.counts == {"DO": 2, "SCHEDULE": 2, "DELEGATE": 0, "ELIMINATE": 1}
        assert briefing.top_priorities == [
            "Server is down, customers can't access the app",
            "Submit the report tomorrow",
            "Plan next quarter's marketing strategy",
        ]
        assert briefing.insight == "You have 2 urgent tasks. Start with the most important one."

    def test_overdue_insight_wins(self):
        briefing = build_briefing(_items("Submit the report tomorrow"), overdue_count=5, today=MONDAY)
        assert "5 overdue tasks" in briefing.insight
        briefing = build_briefing(_items("Submit the report tomorrow"), overdue_count=3, today=MONDAY)
        assert "3 overdue tasks" in briefing.insight

    def test_no_urgent_with_scheduled(self):
        briefing = build_briefing(_items("Water the plants"), today=TUESDAY)
        assert briefing.insight.startswith("No urgent tasks today")

    def test_empty(self):
        briefing = build_briefing([], today=TUESDAY)
        assert briefing.top_priorities == []
        assert briefing.insight.startswith("Clear schedule today")

    def test_weekday_insights(self):
        items = _items("Submit the report tomorrow")
        assert build_briefing(items, today=MONDAY).insight.startswith("Fresh week")
        assert build_briefing(items, today=FRIDAY).insight.startswith("Wrap up")

    def test_to_dict(self):
        data = build_briefing([], today=MONDAY).to_dict()
        assert data["day"] == "2024-01-01"
        assert set(data["counts"]) == {"DO", "SCHEDULE", "DELEGATE", "ELIMINATE"}
