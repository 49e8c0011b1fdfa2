"""
Prompt strategies for on-device quadrant classification.

Each strategy renders a system/user pair that is wrapped in a chat
template for the loaded model. Model output is decoded by a three-tier
parser: embedded JSON, then chain-of-thought step answers, then bare
quadrant keyword counts.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from .types import ParseFailure, Quadrant

logger = logging.getLogger(__name__)


class PromptStrategy(Enum):
    """Fixed set of classification prompt strategies."""

    BASELINE_SIMPLE = ("baseline_simple", "Baseline (Simple)", "Direct classification request with minimal context")
    JSON_STRUCTURED = ("json_structured", "JSON Structured", "Strict JSON output format with schema enforcement")
    CHAIN_OF_THOUGHT = ("chain_of_thought", "Chain-of-Thought", "Step-by-step reasoning: urgency, importance, quadrant")
    FEW_SHOT = ("few_shot", "Few-Shot", "In-context learning with three examples per quadrant")
    EXPERT_PERSONA = ("expert_persona", "Expert Persona", "Time management expert system prompt")
    COMBINED_OPTIMAL = ("combined_optimal", "Combined Optimal", "Expert persona + few-shot + CoT + JSON output")

    def __init__(self, strategy_id: str, display_name: str, description: str):
        self.strategy_id = strategy_id
        self.display_name = display_name
        self.description = description

    @classmethod
    def from_id(cls, strategy_id: str) -> PromptStrategy:
        for strategy in cls:
            if strategy.strategy_id == strategy_id:
                return strategy
        raise ValueError(f"Unknown prompt strategy: {strategy_id}")


class PromptTemplate(str, Enum):
    """Chat templates understood by common GGUF models."""

    PHI3 = "phi3"
    CHATML = "chatml"
    MISTRAL = "mistral"
    LLAMA2 = "llama2"
    LLAMA3 = "llama3"
    GEMMA = "gemma"
    RAW = "raw"


STOP_SEQUENCES: dict[PromptTemplate, list[str]] = {
    PromptTemplate.PHI3: ["<|end|>", "<|user|>", "<|endoftext|>"],
    PromptTemplate.CHATML: ["<|im_end|>", "<|im_start|>"],
    PromptTemplate.MISTRAL: ["</s>", "[INST]"],
    PromptTemplate.LLAMA2: ["</s>", "[INST]"],
    PromptTemplate.LLAMA3: ["<|eot_id|>", "<|start_header_id|>"],
    PromptTemplate.GEMMA: ["<end_of_turn>", "<start_of_turn>"],
    PromptTemplate.RAW: [],
}


def format_prompt(template: PromptTemplate | str, system: str | None, user: str) -> str:
    """Wrap a system/user pair in a chat template, ending at the assistant turn."""
    template = PromptTemplate(template)

    if template == PromptTemplate.PHI3:
        head = f"<|system|>\n{system}<|end|>\n" if system else ""
        return f"{head}<|user|>\n{user}<|end|>\n<|assistant|>\n"

    if template == PromptTemplate.CHATML:
        head = f"<|im_start|>system\n{system}<|im_end|>\n" if system else ""
        return f"{head}<|im_start|>user\n{user}<|im_end|>\n<|im_start|>assistant\n"

    if template == PromptTemplate.MISTRAL:
        # No system role; prepend to the instruction
        content = f"{system}\n\n{user}" if system else user
        return f"<s>[INST] {content} [/INST]"

    if template == PromptTemplate.LLAMA2:
        head = f"<<SYS>>\n{system}\n<</SYS>>\n\n" if system else ""
        return f"<s>[INST] {head}{user} [/INST]"

    if template == PromptTemplate.LLAMA3:
        head = (
            f"<|start_header_id|>system<|end_header_id|>\n\n{system}<|eot_id|>"
            if system
            else ""
        )
        return (
            f"<|begin_of_text|>{head}"
            f"<|start_header_id|>user<|end_header_id|>\n\n{user}<|eot_id|>"
            f"<|start_header_id|>assistant<|end_header_id|>\n\n"
        )

    if template == PromptTemplate.GEMMA:
        content = f"{system}\n\n{user}" if system else user
        return f"<start_of_turn>user\n{content}<end_of_turn>\n<start_of_turn>model\n"

    return f"{system}\n\n{user}" if system else user


def stop_sequences(template: PromptTemplate | str) -> list[str]:
    return list(STOP_SEQUENCES[PromptTemplate(template)])


# Prompt text

JSON_LINE = '{"quadrant": "DO|SCHEDULE|DELEGATE|ELIMINATE", "confidence": 0.0-1.0, "reasoning": "brief explanation"}'

QUADRANT_LIST = """Quadrants:
- DO: Urgent and Important
- SCHEDULE: Important but Not Urgent
- DELEGATE: Urgent but Not Important
- ELIMINATE: Not Urgent and Not Important"""


def _baseline(task: str) -> tuple[str | None, str]:
    user = (
        "Classify this task into an Eisenhower Matrix quadrant.\n\n"
        f"{QUADRANT_LIST}\n\n"
        f'Task: "{task}"\n\n'
        f"Respond with JSON only:\n{JSON_LINE}"
    )
    return None, user


def _json_structured(task: str) -> tuple[str | None, str]:
    user = (
        "Reply with ONLY valid JSON in exactly this shape:\n"
        "{\n"
        '  "quadrant": "<one of DO, SCHEDULE, DELEGATE, ELIMINATE>",\n'
        '  "confidence": <number from 0.0 to 1.0>,\n'
        '  "reasoning": "<one sentence>"\n'
        "}\n\n"
        "How to decide:\n"
        "- DO = due within 24-48 hours AND affects goals, customers or revenue\n"
        "- SCHEDULE = matters for long-term success, no near deadline\n"
        "- DELEGATE = has a deadline but little personal value, someone else could do it\n"
        "- ELIMINATE = no deadline and no real value\n\n"
        f'Task to classify: "{task}"\n\n'
        "JSON response:"
    )
    return None, user


def _chain_of_thought(task: str) -> tuple[str | None, str]:
    user = (
        "Classify this task with the Eisenhower Matrix, reasoning step by step.\n\n"
        f'Task: "{task}"\n\n'
        "Step 1 - URGENCY: is there a deadline within 24-48 hours, someone waiting, "
        "or a crisis? Answer URGENT or NOT_URGENT.\n"
        "Step 2 - IMPORTANCE: does it serve long-term goals, or affect customers, "
        "revenue, health or relationships? Answer IMPORTANT or NOT_IMPORTANT.\n"
        "Step 3 - QUADRANT:\n"
        "- URGENT + IMPORTANT = DO\n"
        "- NOT_URGENT + IMPORTANT = SCHEDULE\n"
        "- URGENT + NOT_IMPORTANT = DELEGATE\n"
        "- NOT_URGENT + NOT_IMPORTANT = ELIMINATE\n\n"
        "Answer in exactly this format:\n"
        "Step 1: [URGENT/NOT_URGENT] - reason\n"
        "Step 2: [IMPORTANT/NOT_IMPORTANT] - reason\n"
        'Step 3: {"quadrant": "...", "confidence": 0.X, "reasoning": "..."}'
    )
    return None, user


FEW_SHOT_EXAMPLES = """DO (urgent + important):
- "Server is down, customers cannot access" -> DO (crisis hitting customers)
- "Tax filing deadline is tomorrow" -> DO (legal deadline imminent)
- "Client presentation in 2 hours" -> DO (important meeting imminent)

SCHEDULE (important, not urgent):
- "Plan next quarter strategy" -> SCHEDULE (planning, no deadline)
- "Schedule annual health checkup" -> SCHEDULE (health, not pressing)
- "Learn new programming language" -> SCHEDULE (career growth)

DELEGATE (urgent, not important):
- "Order office supplies by EOD" -> DELEGATE (deadline, not strategic)
- "Respond to routine HR survey today" -> DELEGATE (deadline, low value)
- "Book team lunch reservation" -> DELEGATE (coordination)

ELIMINATE (neither):
- "Browse social media" -> ELIMINATE (time waster)
- "Reorganize desktop icons" -> ELIMINATE (busy work)
- "Watch random YouTube videos" -> ELIMINATE (procrastination)"""


def _few_shot(task: str) -> tuple[str | None, str]:
    user = (
        "Classify tasks into Eisenhower Matrix quadrants. Examples:\n\n"
        f"{FEW_SHOT_EXAMPLES}\n\n"
        f'Now classify this task:\n"{task}"\n\n'
        f"Respond with JSON only:\n{JSON_LINE}"
    )
    return None, user


def _expert_persona(task: str) -> tuple[str | None, str]:
    system = (
        "You are a time management consultant who has coached hundreds of executives "
        "on the Eisenhower Matrix. You apply three rules.\n\n"
        "URGENCY: a task is URGENT only if it has a hard deadline within 48 hours, "
        "someone is blocked on it, or there is an active crisis.\n"
        "IMPORTANCE: a task is IMPORTANT only if it advances career, business or "
        "health goals, affects customers, revenue or relationships, or failing it "
        "has serious consequences.\n"
        "MAPPING:\n"
        "- DO: urgent and important (crises, deadlines with consequences)\n"
        "- SCHEDULE: important, not urgent (planning, growth, prevention)\n"
        "- DELEGATE: urgent, not important (interruptions, admin)\n"
        "- ELIMINATE: neither (distractions)\n\n"
        "You always answer with valid JSON only."
    )
    user = f'Classify this task: "{task}"\n\n{{"quadrant": "?", "confidence": ?, "reasoning": "?"}}'
    return system, user


def _combined_optimal(task: str) -> tuple[str | None, str]:
    system = (
        "You are an Eisenhower Matrix classification expert. You analyze tasks "
        "methodically and answer with JSON only.\n\n"
        "URGENT = deadline within 48h, a crisis, or someone waiting.\n"
        "IMPORTANT = affects goals, customers, health or relationships.\n\n"
        "- DO: urgent AND important (handle now)\n"
        "- SCHEDULE: important, NOT urgent (plan it)\n"
        "- DELEGATE: urgent, NOT important (hand it off)\n"
        "- ELIMINATE: neither (drop it)"
    )
    user = (
        "Examples:\n"
        '1. "Server down affecting customers" -> {"quadrant":"DO","confidence":0.95,"reasoning":"Active crisis affecting customers"}\n'
        '2. "Plan Q2 marketing strategy" -> {"quadrant":"SCHEDULE","confidence":0.85,"reasoning":"Strategic planning without deadline"}\n'
        '3. "Order supplies by EOD" -> {"quadrant":"DELEGATE","confidence":0.75,"reasoning":"Deadline but routine admin"}\n'
        '4. "Browse social media" -> {"quadrant":"ELIMINATE","confidence":0.90,"reasoning":"No value"}\n\n'
        f'Now classify: "{task}"\n'
        "JSON only:"
    )
    return system, user


_BUILDERS = {
    PromptStrategy.BASELINE_SIMPLE: _baseline,
    PromptStrategy.JSON_STRUCTURED: _json_structured,
    PromptStrategy.CHAIN_OF_THOUGHT: _chain_of_thought,
    PromptStrategy.FEW_SHOT: _few_shot,
    PromptStrategy.EXPERT_PERSONA: _expert_persona,
    PromptStrategy.COMBINED_OPTIMAL: _combined_optimal,
}


def build_messages(strategy: PromptStrategy, task_text: str) -> tuple[str | None, str]:
    """Return the (system, user) pair for a strategy, before templating."""
    return _BUILDERS[strategy](task_text)


def build_prompt(
    strategy: PromptStrategy,
    task_text: str,
    template: PromptTemplate | str = PromptTemplate.PHI3,
) -> str:
    """Render the full model prompt for a strategy."""
    system, user = build_messages(strategy, task_text)
    return format_prompt(template, system, user)


# Response parsing


class ParseTier(str, Enum):
    JSON = "json"
    CHAIN_OF_THOUGHT = "chain_of_thought"
    KEYWORD = "keyword"


@dataclass(frozen=True)
class ParsedClassification:
    quadrant: Quadrant
    confidence: float
    reasoning: str
    tier: ParseTier


_QUADRANT_FIELD = re.compile(r'"quadrant"\s*:\s*"(\w+)"')
_CONFIDENCE_FIELD = re.compile(r'"confidence"\s*:\s*([\d.]+)')
_REASONING_FIELD = re.compile(r'"reasoning"\s*:\s*"([^"]+)"')

_STEP3_JSON = re.compile(r"Step 3[:\s]*(\{[^}]+\})", re.IGNORECASE)
_STEP1 = re.compile(r"Step 1[:\s\[]*(NOT_URGENT|URGENT)", re.IGNORECASE)
_STEP2 = re.compile(r"Step 2[:\s\[]*(NOT_IMPORTANT|IMPORTANT)", re.IGNORECASE)

# Order doubles as the tie-break priority
_KEYWORDS = [(q, re.compile(rf"\b{q.value}\b")) for q in Quadrant]


def _parse_json(text: str) -> ParsedClassification | None:
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return None

    blob = text[start:end + 1]
    quadrant_match = _QUADRANT_FIELD.search(blob)
    if not quadrant_match:
        return None
    quadrant = Quadrant.parse(quadrant_match.group(1))
    if quadrant is None:
        return None

    confidence = 0.5
    confidence_match = _CONFIDENCE_FIELD.search(blob)
    if confidence_match:
        try:
            confidence = float(confidence_match.group(1))
        except ValueError:
            pass
    reasoning_match = _REASONING_FIELD.search(blob)

    return ParsedClassification(
        quadrant=quadrant,
        confidence=min(max(confidence, 0.0), 1.0),
        reasoning=reasoning_match.group(1) if reasoning_match else "",
        tier=ParseTier.JSON,
    )


def _parse_chain_of_thought(text: str) -> ParsedClassification | None:
    step3 = _STEP3_JSON.search(text)
    if step3:
        parsed = _parse_json(step3.group(1))
        if parsed is None:
            return None
        return ParsedClassification(
            parsed.quadrant, parsed.confidence, parsed.reasoning, ParseTier.CHAIN_OF_THOUGHT
        )

    urgency = _STEP1.search(text)
    importance = _STEP2.search(text)
    if not (urgency and importance):
        return None

    is_urgent = urgency.group(1).upper() == "URGENT"
    is_important = importance.group(1).upper() == "IMPORTANT"
    return ParsedClassification(
        quadrant=Quadrant.from_flags(is_urgent, is_important),
        confidence=0.7,
        reasoning=f"Derived from CoT: urgent={is_urgent}, important={is_important}",
        tier=ParseTier.CHAIN_OF_THOUGHT,
    )


def _parse_keywords(text: str) -> ParsedClassification | None:
    upper = text.upper()
    counts = [(quadrant, len(pattern.findall(upper))) for quadrant, pattern in _KEYWORDS]
    best = max(count for _, count in counts)
    if best == 0:
        return None

    quadrant = next(q for q, count in counts if count == best)
    return ParsedClassification(
        quadrant=quadrant,
        confidence=0.5,
        reasoning="Extracted from keyword frequency",
        tier=ParseTier.KEYWORD,
    )


def parse_response(text: str) -> ParsedClassification | None:
    """
    Decode a model response into a classification.

    Tiers are tried in order (JSON, chain-of-thought, keyword) and the
    first success wins. Returns None when every tier fails.
    """
    for tier in (_parse_json, _parse_chain_of_thought, _parse_keywords):
        parsed = tier(text)
        if parsed is not None:
            return parsed
    logger.debug(f"Unparseable model output: {text[:80]!r}")
    return None


def parse_or_raise(text: str) -> ParsedClassification:
    """Like parse_response, but raises ParseFailure instead of returning None."""
    parsed = parse_response(text)
    if parsed is None:
        raise ParseFailure(text)
    return parsed


__all__ = [
    "ParseTier",
    "ParsedClassification",
    "PromptStrategy",
    "PromptTemplate",
    "build_messages",
    "build_prompt",
    "format_prompt",
    "parse_or_raise",
    "parse_response",
    "stop_sequences",
]
