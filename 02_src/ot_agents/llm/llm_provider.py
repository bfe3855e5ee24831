"""Reasoning provider backed by the Anthropic Claude API."""

import os
from dataclasses import dataclass
from typing import Protocol

import anthropic

DEFAULT_MODEL = "claude-3-5-sonnet-20241022"


@dataclass(frozen=True)
class ChatResponse:
    content: str


class IReasoningProvider(Protocol):
    """Chat-style access to a language model."""

    async def chat(
        self,
        messages: list[dict],  # [{"role": "system"|"user"|"assistant", "content": "..."}]
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ) -> ChatResponse:
        """Return the model's reply to the conversation."""
        ...


class LLMProvider:
    """Anthropic Claude API provider."""

    def __init__(self, api_key: str | None = None, model: str | None = None):
        self._api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self._api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable not set")

        self._model = model or os.getenv("ANTHROPIC_MODEL") or DEFAULT_MODEL
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)

    @property
    def model(self) -> str:
        return self._model

    async def chat(
        self,
        messages: list[dict],
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ) -> ChatResponse:
        """Send the conversation to Claude; system-role turns become the system prompt."""
        system_parts = [m["content"] for m in messages if m.get("role") == "system"]
        turns = [
            {"role": m["role"], "content": m["content"]}
            for m in messages
            if m.get("role") != "system"
        ]

        request = {
            "model": self._model,
            "messages": turns,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if system_parts:
            request["system"] = "\n\n".join(system_parts)

        try:
            response = await self._client.messages.create(**request)
            return ChatResponse(content=response.content[0].text)
        except Exception as e:
            raise RuntimeError(f"LLM API error: {e}") from e
