"""
Labeled benchmark datasets.

- CORE_CASES: 20 cases, five per quadrant
- EXTENDED_CASES: 50 cases covering work, personal, health and admin tasks
- EDGE_CASES: 5 cases with deliberately mixed signals
"""

from __future__ import annotations

from dataclasses import dataclass

from .types import Quadrant

DO, SCHEDULE, DELEGATE, ELIMINATE = Quadrant.DO, Quadrant.SCHEDULE, Quadrant.DELEGATE, Quadrant.ELIMINATE


@dataclass(frozen=True)
class BenchmarkCase:
    """One task with its ground-truth quadrant."""

    case_id: int
    text: str
    expected: Quadrant
    rationale: str = ""


def _cases(rows: list[tuple[int, Quadrant, str, str]]) -> tuple[BenchmarkCase, ...]:
    return tuple(BenchmarkCase(case_id, text, expected, rationale) for case_id, expected, text, rationale in rows)


CORE_CASES = _cases([
    (1, DO, "Respond to client email about project deadline tomorrow", "Client deadline is urgent and important"),
    (2, DO, "Server is down, customers can't access the app", "Production outage"),
    (3, DO, "Complete tax filing before April 15 deadline (today is April 10)", "Legal deadline approaching"),
    (4, DO, "Prepare presentation for board meeting in 2 hours", "Imminent important meeting"),
    (5, DO, "Handle urgent support ticket from VIP customer", "VIP customer issue"),
    (6, SCHEDULE, "Plan next quarter's marketing strategy", "Strategic planning, not time-bound"),
    (7, SCHEDULE, "Read professional development book for career growth", "Personal development"),
    (8, SCHEDULE, "Schedule annual health checkup", "Health, no immediate urgency"),
    (9, SCHEDULE, "Research new project management tools for team", "Improvement initiative"),
    (10, SCHEDULE, "Write documentation for the new feature", "Quality work, no stated deadline"),
    (11, DELEGATE, "Respond to routine HR policy survey by end of day", "Deadline but low personal value"),
    (12, DELEGATE, "Order office supplies that are running low", "Administrative task"),
    (13, DELEGATE, "Schedule team's vacation calendar for next month", "Coordination for an admin"),
    (14, DELEGATE, "Answer phone call about lunch meeting location", "Interruption"),
    (15, DELEGATE, "Compile weekly status report from team updates", "Routine aggregation"),
    (16, ELIMINATE, "Browse social media during lunch break", "Time waster"),
    (17, ELIMINATE, "Reorganize email folders for the third time this month", "Busy work"),
    (18, ELIMINATE, "Watch YouTube video about productivity hacks", "Procrastination"),
    (19, ELIMINATE, "Attend optional company picnic planning meeting", "Optional social activity"),
    (20, ELIMINATE, "Clean up old files on desktop (no deadline)", "Nice-to-have"),
])

EXTENDED_CASES = _cases([
    (1, DO, "Server is down, customers cannot access the app", "Active crisis affecting customers"),
    (2, DO, "Critical production bug causing data loss", "Data loss needs an immediate fix"),
    (3, DO, "Tax filing deadline is tomorrow", "Legal deadline within 24 hours"),
    (4, DO, "Board presentation starts in 2 hours", "Imminent executive meeting"),
    (5, DO, "VIP customer support ticket marked urgent", "VIP customer issue"),
    (6, DO, "Child's school called - needs to be picked up sick", "Family emergency"),
    (7, DO, "Contract expires in 24 hours, needs signature", "Legal deadline with business impact"),
    (8, DO, "Major investor meeting in 30 minutes, deck not ready", "Imminent high-stakes meeting"),
    (9, DO, "Security breach detected - unauthorized access", "Security incident"),
    (10, DO, "Payment processing failing, customers can't checkout", "Revenue-affecting failure"),
    (11, DO, "Flight leaves in 3 hours, haven't packed", "Imminent travel deadline"),
    (12, DO, "Quarterly report due by end of day to the CEO", "Executive deadline today"),
    (13, DO, "Website SSL certificate expires in 2 hours", "Imminent outage for all users"),
    (14, SCHEDULE, "Plan next quarter's marketing strategy", "Strategic planning"),
    (15, SCHEDULE, "Read leadership book for career growth", "Personal development"),
    (16, SCHEDULE, "Schedule annual health checkup", "Health maintenance"),
    (17, SCHEDULE, "Research new project management tools for team", "Team improvement"),
    (18, SCHEDULE, "Write documentation for the new feature", "Quality improvement"),
    (19, SCHEDULE, "Set up retirement savings account", "Financial planning"),
    (20, SCHEDULE, "Learn a new programming language for career advancement", "Skill development"),
    (21, SCHEDULE, "Create a personal budget spreadsheet", "Financial planning"),
    (22, SCHEDULE, "Review and update the team's coding standards", "Process improvement"),
    (23, SCHEDULE, "Build relationships with new team members", "Relationship building"),
    (24, SCHEDULE, "Create a 5-year career development plan", "Long-term planning"),
    (25, SCHEDULE, "Refactor legacy code to improve maintainability", "Technical debt"),
    (26, SCHEDULE, "Start an exercise routine for better health", "Health improvement"),
    (27, DELEGATE, "Respond to routine HR survey by end of day", "Deadline, low personal value"),
    (28, DELEGATE, "Order office supplies that are running low", "Administrative task"),
    (29, DELEGATE, "Schedule team's vacation calendar for next month", "Coordination task"),
    (30, DELEGATE, "Answer phone call about meeting room booking", "Interruption"),
    (31, DELEGATE, "Compile weekly status report from team updates", "Routine aggregation"),
    (32, DELEGATE, "Book travel arrangements for upcoming conference", "Logistics"),
    (33, DELEGATE, "Update team contact list in company directory", "Administrative update"),
    (34, DELEGATE, "Print and distribute meeting agenda for tomorrow", "Routine prep with deadline"),
    (35, DELEGATE, "Respond to sales cold call asking for decision maker", "Interruption"),
    (36, DELEGATE, "Fill out expense report for last month's travel", "Routine admin"),
    (37, DELEGATE, "Fix broken link on internal wiki page", "Minor fix anyone can do"),
    (38, DELEGATE, "Schedule recurring team sync meetings", "Calendar coordination"),
    (39, ELIMINATE, "Browse social media during lunch break", "Time waster"),
    (40, ELIMINATE, "Reorganize email folders for the third time this month", "Busy work"),
    (41, ELIMINATE, "Watch YouTube videos about productivity tips", "Procrastination"),
    (42, ELIMINATE, "Attend optional company picnic planning meeting", "Optional social activity"),
    (43, ELIMINATE, "Clean up old desktop files (no deadline)", "Nice-to-have"),
    (44, ELIMINATE, "Read random news articles about celebrities", "Entertainment"),
    (45, ELIMINATE, "Check email for the fifth time this hour", "Compulsive checking"),
    (46, ELIMINATE, "Customize IDE theme colors again", "Procrastination"),
    (47, ELIMINATE, "Debate endlessly in Slack about code formatting", "Bikeshedding"),
    (48, ELIMINATE, "Watch competitor's marketing video out of curiosity", "No actionable intent"),
    (49, ELIMINATE, "Rearrange apps on phone home screen", "Trivial"),
    (50, ELIMINATE, "Join optional virtual happy hour", "Optional social activity"),
])

EDGE_CASES = _cases([
    (101, SCHEDULE, "Attend optional but useful training session tomorrow", "'optional' vs useful training"),
    (102, DO, "Reply to team lead's email about project update", "Team lead implies priority"),
    (103, DELEGATE, "Review pull request from junior developer", "Blocking someone, but delegable"),
    (104, ELIMINATE, "Update LinkedIn profile when you have time", "'when you have time' is low priority"),
    (105, SCHEDULE, "Prepare for next week's performance review", "Important, not due yet"),
])

DATASETS: dict[str, tuple[BenchmarkCase, ...]] = {
    "core": CORE_CASES,
    "extended": EXTENDED_CASES,
    "edge": EDGE_CASES,
}


def get_dataset(name: str) -> tuple[BenchmarkCase, ...]:
    if name not in DATASETS:
        raise ValueError(f"Unknown dataset: {name} (choose from {', '.join(DATASETS)})")
    return DATASETS[name]


def by_quadrant(cases: tuple[BenchmarkCase, ...]) -> dict[Quadrant, list[BenchmarkCase]]:
    grouped: dict[Quadrant, list[BenchmarkCase]] = {q: [] for q in Quadrant}
    for case in cases:
        grouped[case.expected].append(case)
    return grouped


__all__ = [
    "BenchmarkCase",
    "CORE_CASES",
    "DATASETS",
    "EDGE_CASES",
    "EXTENDED_CASES",
    "by_quadrant",
    "get_dataset",
]
