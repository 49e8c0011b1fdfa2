"""
Unit tests for prompt strategies and the three-tier response parser.
"""

import pytest

from taskmatrix.prompt_strategies import (
    ParseTier,
    PromptStrategy,
    PromptTemplate,
    build_messages,
    build_prompt,
    format_prompt,
    parse_or_raise,
    parse_response,
    stop_sequences,
)
from taskmatrix.types import ParseFailure, Quadrant

TASK = "Renew the office lease"


class TestPromptStrategy:
    """Tests for the strategy enum."""

    def test_six_strategies(self):
        assert len(PromptStrategy) == 6

    def test_from_id(self):
        for strategy in PromptStrategy:
            assert PromptStrategy.from_id(strategy.strategy_id) is strategy

    def test_unknown_id(self):
        with pytest.raises(ValueError, match="Unknown prompt strategy"):
            PromptStrategy.from_id("telepathy")

    def test_display_names(self):
        assert PromptStrategy.CHAIN_OF_THOUGHT.display_name == "Chain-of-Thought"


class TestBuildMessages:
    """Tests for per-strategy prompt text."""

    @pytest.mark.parametrize("strategy", list(PromptStrategy))
    def test_contains_task_and_quadrants(self, strategy):
        """Every prompt quotes the task and names the quadrants."""
        system, user = build_messages(strategy, TASK)
        full = f"{system or ''}\n{user}"
        assert f'"{TASK}"' in user
        for quadrant in Quadrant:
            assert quadrant.value in full
        assert "eisenhower" in full.lower() or "quadrant" in full.lower()

    def test_system_prompts(self):
        """Only the persona and combined strategies use a system prompt."""
        with_system = {s for s in PromptStrategy if build_messages(s, TASK)[0] is not None}
        assert with_system == {PromptStrategy.EXPERT_PERSONA, PromptStrategy.COMBINED_OPTIMAL}

    def test_chain_of_thought_asks_for_steps(self):
        _, user = build_messages(PromptStrategy.CHAIN_OF_THOUGHT, TASK)
        assert "Step 1" in user and "Step 2" in user and "Step 3" in user


class TestFormatPrompt:
    """Tests for chat template rendering."""

    def test_phi3_with_system(self):
        prompt = format_prompt(PromptTemplate.PHI3, "sys", "hello")
        assert prompt == "<|system|>\nsys<|end|>\n<|user|>\nhello<|end|>\n<|assistant|>\n"

    def test_phi3_without_system(self):
        prompt = format_prompt("phi3", None, "hello")
        assert prompt == "<|user|>\nhello<|end|>\n<|assistant|>\n"

    def test_chatml(self):
        prompt = format_prompt(PromptTemplate.CHATML, "sys", "hello")
        assert prompt.startswith("<|im_start|>system\nsys<|im_end|>\n")
        assert prompt.endswith("<|im_start|>assistant\n")

    def test_mistral_folds_system_into_instruction(self):
        prompt = format_prompt(PromptTemplate.MISTRAL, "sys", "hello")
        assert prompt == "<s>[INST] sys\n\nhello [/INST]"

    def test_raw(self):
        assert format_prompt(PromptTemplate.RAW, None, "hello") == "hello"

    @pytest.mark.parametrize("template", list(PromptTemplate))
    def test_every_template_keeps_user_text(self, template):
        assert "hello" in format_prompt(template, "sys", "hello")

    def test_unknown_template(self):
        with pytest.raises(ValueError):
            format_prompt("klingon", None, "hello")

    def test_build_prompt_uses_template(self):
        prompt = build_prompt(PromptStrategy.BASELINE_SIMPLE, TASK, PromptTemplate.CHATML)
        assert prompt.startswith("<|im_start|>user\n")

    def test_stop_sequences_copy(self):
        """Callers get a copy they can modify."""
        stops = stop_sequences(PromptTemplate.PHI3)
        assert "<|end|>" in stops
        stops.append("x")
        assert "x" not in stop_sequences(PromptTemplate.PHI3)


class TestJsonTier:
    """Tests for the JSON parser tier."""

    def test_embedded_json(self):
        """JSON inside surrounding chatter is found."""
        parsed = parse_response(
            'Sure! {"quadrant": "do", "confidence": 0.92, "reasoning": "deadline tomorrow"} Hope that helps.'
        )
        assert parsed.quadrant == Quadrant.DO
        assert parsed.confidence == pytest.approx(0.92)
        assert parsed.reasoning == "deadline tomorrow"
        assert parsed.tier == ParseTier.JSON

    def test_missing_confidence_defaults(self):
        parsed = parse_response('{"quadrant": "SCHEDULE"}')
        assert parsed.confidence == 0.5
        assert parsed.reasoning == ""

    def test_confidence_clamped(self):
        parsed = parse_response('{"quadrant": "DELEGATE", "confidence": 1.7}')
        assert parsed.confidence == 1.0

    def test_malformed_confidence(self):
        """An unparseable number keeps the default."""
        parsed = parse_response('{"quadrant": "ELIMINATE", "confidence": 0.4.2}')
        assert parsed.confidence == 0.5


class TestChainOfThoughtTier:
    """Tests for the chain-of-thought parser tier."""

    def test_step_answers(self):
        """Step 1/2 answers derive the quadrant at 0.7."""
        parsed = parse_response(
            "Step 1: NOT_URGENT - no deadline\nStep 2: IMPORTANT - career growth"
        )
        assert parsed.quadrant == Quadrant.SCHEDULE
        assert parsed.confidence == 0.7
        assert parsed.tier == ParseTier.CHAIN_OF_THOUGHT
        assert parsed.reasoning == "Derived from CoT: urgent=False, important=True"

    def test_bracketed_step_answers(self):
        parsed = parse_response("Step 1: [URGENT] - due today\nStep 2: [NOT_IMPORTANT] - admin")
        assert parsed.quadrant == Quadrant.DELEGATE

    def test_step3_json(self):
        """A valid Step 3 object is used when the outer JSON is unusable."""
        parsed = parse_response(
            'Draft {"quadrant": "MAYBE"}\nStep 3: {"quadrant": "DO", "confidence": 0.8}'
        )
        assert parsed.quadrant == Quadrant.DO
        assert parsed.confidence == pytest.approx(0.8)
        assert parsed.tier == ParseTier.CHAIN_OF_THOUGHT

    def test_invalid_step3_fails_tier(self):
        """A bad Step 3 object fails the tier rather than using step answers."""
        assert parse_response('Step 3: {"quadrant": "NOPE"}') is None


class TestKeywordTier:
    """Tests for the keyword frequency tier."""

    def test_most_frequent_wins(self):
        parsed = parse_response("I'd say DELEGATE. Maybe DO? No, DELEGATE.")
        assert parsed.quadrant == Quadrant.DELEGATE
        assert parsed.confidence == 0.5
        assert parsed.tier == ParseTier.KEYWORD
        assert parsed.reasoning == "Extracted from keyword frequency"

    def test_tie_break_order(self):
        """Ties resolve in DO, SCHEDULE, DELEGATE, ELIMINATE order."""
        assert parse_response("ELIMINATE or SCHEDULE").quadrant == Quadrant.SCHEDULE
        assert parse_response("DELEGATE or DO").quadrant == Quadrant.DO

    def test_whole_words_only(self):
        """Substrings like DOING do not count."""
        assert parse_response("DOING SCHEDULED things") is None


class TestParseFailure:
    def test_none_when_all_tiers_fail(self):
        assert parse_response("I cannot help with that.") is None
        assert parse_response("") is None

    def test_parse_or_raise(self):
        with pytest.raises(ParseFailure) as exc_info:
            parse_or_raise("no idea")
        assert exc_info.value.raw_output == "no idea"

    def test_parse_or_raise_success(self):
        assert parse_or_raise('{"quadrant": "DO"}').quadrant == Quadrant.DO
