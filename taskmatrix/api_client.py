"""
Remote LLM clients for the opt-in classification fallback.

Supports:
- Anthropic (Claude Haiku, Sonnet)
- OpenAI (GPT-4o, GPT-4o-mini)
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import anthropic
import openai
from dotenv import load_dotenv

from .cost_tracker import CostTracker

# Auto-load .env from project root
_project_root = Path(__file__).parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


class Provider(Enum):
    """LLM provider."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"


@dataclass
class APIResponse:
    """Response from LLM API."""

    content: str
    input_tokens: int
    output_tokens: int
    model: str
    provider: Provider
    stop_reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


MODEL_REGISTRY: dict[str, tuple[Provider, str]] = {
    "haiku": (Provider.ANTHROPIC, "claude-haiku-4-5-20251001"),
    "sonnet": (Provider.ANTHROPIC, "claude-sonnet-4-20250514"),
    "claude-haiku-4-5-20251001": (Provider.ANTHROPIC, "claude-haiku-4-5-20251001"),
    "claude-sonnet-4-20250514": (Provider.ANTHROPIC, "claude-sonnet-4-20250514"),
    "gpt-4o": (Provider.OPENAI, "gpt-4o"),
    "gpt-4o-mini": (Provider.OPENAI, "gpt-4o-mini"),
}


def resolve_model(model: str) -> tuple[Provider, str]:
    """Resolve model shorthand to (provider, full_model_id)."""
    if model in MODEL_REGISTRY:
        return MODEL_REGISTRY[model]
    if model.startswith("claude"):
        return (Provider.ANTHROPIC, model)
    if model.startswith(("gpt-", "o1", "o3")):
        return (Provider.OPENAI, model)
    return (Provider.ANTHROPIC, model)


class BaseLLMClient(ABC):
    """Abstract base class for LLM clients."""

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 256,
        temperature: float = 0.0,
    ) -> APIResponse:
        """Get completion from LLM."""
        pass


class AnthropicClient(BaseLLMClient):
    """Anthropic Claude API client."""

    def __init__(self, api_key: str | None = None, cost_tracker: CostTracker | None = None):
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise ValueError(
                "Anthropic API key required. Set ANTHROPIC_API_KEY environment variable."
            )
        self.client = anthropic.AsyncAnthropic(api_key=self.api_key)
        self.cost_tracker = cost_tracker or CostTracker()

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 256,
        temperature: float = 0.0,
    ) -> APIResponse:
        model = model or "claude-haiku-4-5-20251001"

        request_params: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": messages,
        }
        if system:
            request_params["system"] = system

        response = await self.client.messages.create(**request_params)

        content = ""
        for block in response.content:
            if block.type == "text":
                content += block.text

        self.cost_tracker.record_usage(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=model,
        )

        return APIResponse(
            content=content,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=model,
            provider=Provider.ANTHROPIC,
            stop_reason=response.stop_reason,
        )


class OpenAIClient(BaseLLMClient):
    """OpenAI GPT API client."""

    def __init__(self, api_key: str | None = None, cost_tracker: CostTracker | None = None):
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            raise ValueError(
                "OpenAI API key required. Set OPENAI_API_KEY environment variable."
            )
        self.client = openai.AsyncOpenAI(api_key=self.api_key)
        self.cost_tracker = cost_tracker or CostTracker()

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 256,
        temperature: float = 0.0,
    ) -> APIResponse:
        model = model or "gpt-4o-mini"

        full_messages = []
        if system:
            full_messages.append({"role": "system", "content": system})
        full_messages.extend(messages)

        response = await self.client.chat.completions.create(
            model=model,
            messages=full_messages,
            max_tokens=max_tokens,
            temperature=temperature,
        )

        content = response.choices[0].message.content or ""
        input_tokens = response.usage.prompt_tokens if response.usage else 0
        output_tokens = response.usage.completion_tokens if response.usage else 0

        self.cost_tracker.record_usage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=model,
        )

        return APIResponse(
            content=content,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=model,
            provider=Provider.OPENAI,
            stop_reason=response.choices[0].finish_reason,
        )


class MultiProviderClient:
    """
    Routes completions to the right provider based on model name.

    Clients are created on first use, so only the keys for providers
    actually called need to be set.
    """

    def __init__(
        self,
        default_model: str = "haiku",
        anthropic_key: str | None = None,
        openai_key: str | None = None,
    ):
        self.default_model = default_model
        self.cost_tracker = CostTracker()
        self._keys = {Provider.ANTHROPIC: anthropic_key, Provider.OPENAI: openai_key}
        self._clients: dict[Provider, BaseLLMClient] = {}

    def _get_client(self, model: str) -> tuple[BaseLLMClient, str]:
        provider, model_id = resolve_model(model)
        if provider not in self._clients:
            if provider == Provider.ANTHROPIC:
                self._clients[provider] = AnthropicClient(
                    self._keys[provider], cost_tracker=self.cost_tracker
                )
            else:
                self._clients[provider] = OpenAIClient(
                    self._keys[provider], cost_tracker=self.cost_tracker
                )
        return self._clients[provider], model_id

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 256,
        temperature: float = 0.0,
    ) -> APIResponse:
        client, model_id = self._get_client(model or self.default_model)
        return await client.complete(
            messages,
            system=system,
            model=model_id,
            max_tokens=max_tokens,
            temperature=temperature,
        )

    def has_credentials(self, model: str | None = None) -> bool:
        """True when an API key is available for the model's provider."""
        provider, _ = resolve_model(model or self.default_model)
        env_var = "ANTHROPIC_API_KEY" if provider == Provider.ANTHROPIC else "OPENAI_API_KEY"
        return bool(self._keys[provider] or os.environ.get(env_var))


__all__ = [
    "APIResponse",
    "AnthropicClient",
    "BaseLLMClient",
    "MODEL_REGISTRY",
    "MultiProviderClient",
    "OpenAIClient",
    "Provider",
    "resolve_model",
]
