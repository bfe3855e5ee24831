"""Tests for LLMProvider."""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from ot_agents.llm import ChatResponse, LLMProvider

CLIENT = "ot_agents.llm.llm_provider.anthropic.AsyncAnthropic"


def mock_client(text="Test response"):
    client = Mock()
    response = Mock()
    response.content = [Mock(text=text)]
    client.messages.create = AsyncMock(return_value=response)
    return client


class TestLLMProviderInit:
    """Tests for LLMProvider initialization."""

    def test_init_with_api_key(self, monkeypatch):
        """Test initialization with API key from the environment."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test_key")
        monkeypatch.delenv("ANTHROPIC_MODEL", raising=False)

        with patch(CLIENT) as client_class:
            provider = LLMProvider()

        client_class.assert_called_once_with(api_key="test_key")
        assert provider.model == "claude-3-5-sonnet-20241022"

    def test_init_without_api_key(self, monkeypatch):
        """Test initialization without API key raises error."""
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        with patch(CLIENT):
            with pytest.raises(ValueError):
                LLMProvider()

    def test_model_override(self, monkeypatch):
        """Test model selection from the environment and the argument."""
        monkeypatch.setenv("ANTHROPIC_MODEL", "env-model")

        with patch(CLIENT):
            assert LLMProvider(api_key="k").model == "env-model"
            assert LLMProvider(api_key="k", model="arg-model").model == "arg-model"


class TestLLMProviderChat:
    """Tests for LLMProvider.chat()."""

    @pytest.mark.asyncio
    async def test_chat_returns_response(self):
        """Test that chat() wraps the reply text."""
        with patch(CLIENT, return_value=mock_client()):
            provider = LLMProvider(api_key="test_key")
            response = await provider.chat([{"role": "user", "content": "Hello"}])

        assert response == ChatResponse(content="Test response")

    @pytest.mark.asyncio
    async def test_system_messages_lifted(self):
        """Test that system turns become the system prompt."""
        client = mock_client()

        with patch(CLIENT, return_value=client):
            provider = LLMProvider(api_key="test_key", model="test-model")
            await provider.chat(
                [
                    {"role": "system", "content": "You are a security analyst"},
                    {"role": "user", "content": "Hello"},
                    {"role": "assistant", "content": "Hi"},
                    {"role": "user", "content": "Status?"},
                ],
                temperature=0.1,
                max_tokens=200,
            )

        call_args = client.messages.create.call_args
        assert call_args.kwargs["model"] == "test-model"
        assert call_args.kwargs["system"] == "You are a security analyst"
        assert call_args.kwargs["temperature"] == 0.1
        assert call_args.kwargs["max_tokens"] == 200
        assert [m["role"] for m in call_args.kwargs["messages"]] == ["user", "assistant", "user"]

    @pytest.mark.asyncio
    async def test_no_system_prompt(self):
        """Test that no system key is sent without system turns."""
        client = mock_client()

        with patch(CLIENT, return_value=client):
            provider = LLMProvider(api_key="test_key")
            await provider.chat([{"role": "user", "content": "Hello"}])

        call_args = client.messages.create.call_args
        assert "system" not in call_args.kwargs
        assert call_args.kwargs["max_tokens"] == 1000

    @pytest.mark.asyncio
    async def test_chat_wraps_errors(self):
        """Test that API errors surface as RuntimeError."""
        client = Mock()
        client.messages.create = AsyncMock(side_effect=Exception("API Error"))

        with patch(CLIENT, return_value=client):
            provider = LLMProvider(api_key="test_key")

            with pytest.raises(RuntimeError, match="LLM API error: API Error"):
                await provider.chat([{"role": "user", "content": "Test"}])
