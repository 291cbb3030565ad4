"""Unit tests for LLMClient with LangChain integration.

ChatOpenAI is patched at the module path; no request leaves the process.
"""

from unittest.mock import AsyncMock, patch

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from kitchen_assistant.config import settings
from kitchen_assistant.core.errors import GenerationServiceError
from kitchen_assistant.rag.utils.llm_client import LLMClient


class TestLLMClient:
    """Unit tests for LLMClient class with LangChain ChatOpenAI."""

    def test_llm_client_initialization(self):
        """Model defaults to settings.LLM_MODEL."""
        assert LLMClient().model == settings.LLM_MODEL
        assert LLMClient(model="test/model").model == "test/model"

    @patch("kitchen_assistant.rag.utils.llm_client.ChatOpenAI")
    def test_create_llm_disables_provider_retries(self, mock_chat):
        LLMClient(model="test/model")._create_llm(temperature=0.5, max_tokens=800)

        kwargs = mock_chat.call_args.kwargs
        assert kwargs["model"] == "test/model"
        assert kwargs["temperature"] == 0.5
        assert kwargs["max_tokens"] == 800
        assert kwargs["max_retries"] == 0
        assert kwargs["openai_api_base"] == settings.LLM_BASE_URL

    @pytest.mark.asyncio
    @patch("kitchen_assistant.rag.utils.llm_client.ChatOpenAI")
    async def test_generate_returns_raw_text(self, mock_chat):
        mock_chat.return_value.ainvoke = AsyncMock(return_value=AIMessage(content='{"name": "Bibimbap"}'))
        client = LLMClient(model="test/model")

        text = await client.generate("Create a recipe", temperature=0.5, system_prompt="You are a chef")

        assert text == '{"name": "Bibimbap"}'
        messages = mock_chat.return_value.ainvoke.call_args.args[0]
        assert isinstance(messages[0], SystemMessage)
        assert isinstance(messages[1], HumanMessage)
        assert messages[1].content == "Create a recipe"
        assert mock_chat.call_args.kwargs["max_tokens"] == settings.LLM_MAX_TOKENS

    @pytest.mark.asyncio
    @patch("kitchen_assistant.rag.utils.llm_client.ChatOpenAI")
    async def test_generate_without_system_prompt(self, mock_chat):
        mock_chat.return_value.ainvoke = AsyncMock(return_value=AIMessage(content="ok"))

        await LLMClient().generate("hello")

        messages = mock_chat.return_value.ainvoke.call_args.args[0]
        assert len(messages) == 1

    @pytest.mark.asyncio
    @patch("kitchen_assistant.rag.utils.llm_client.ChatOpenAI")
    async def test_api_failure_raises_generation_error(self, mock_chat):
        """Provider errors surface as GenerationServiceError."""
        mock_chat.return_value.ainvoke = AsyncMock(side_effect=TimeoutError("read timeout"))

        with pytest.raises(GenerationServiceError) as exc_info:
            await LLMClient(model="test/model").generate("Create a recipe")

        assert "test/model" in str(exc_info.value)
