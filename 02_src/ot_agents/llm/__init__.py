"""LLM module."""

from .llm_provider import ChatResponse, IReasoningProvider, LLMProvider

__all__ = ["ChatResponse", "IReasoningProvider", "LLMProvider"]
