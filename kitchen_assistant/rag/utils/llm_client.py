"""
OpenRouter LLM Client (LangChain Integration)

Single-shot completion client for recipe generation via OpenRouter API
using LangChain ChatOpenAI. Streaming to the user is composed above this
boundary by the workflow, never by the client.
"""

from typing import Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from loguru import logger

from kitchen_assistant.config import settings
from kitchen_assistant.core.errors import GenerationServiceError


class LLMClient:
    """
    OpenRouter LLM client.

    Model instances are created on demand per call so temperature and
    max_tokens can vary between calls.

    Usage:
        client = LLMClient()
        text = await client.generate(
            prompt="Create a tofu-free stir-fry recipe...",
            temperature=0.7,
            max_tokens=1500,
        )
    """

    def __init__(self, model: Optional[str] = None):
        """
        Configuration is loaded from kitchen_assistant.config.settings:
            - OPENROUTER_API_KEY
            - LLM_BASE_URL
            - LLM_MODEL
            - LLM_TIMEOUT_SECONDS
            - OPENROUTER_SITE_URL / OPENROUTER_SITE_NAME (optional, for rankings)
        """
        self.model = model or settings.LLM_MODEL

    def _create_llm(self, temperature: float = 0.7, max_tokens: int = 1500) -> ChatOpenAI:
        """
        Factory method to create ChatOpenAI instances on-demand.

        Provider-side retries are disabled: generation is single-shot and a
        failure goes straight to the workflow fallback.
        """
        return ChatOpenAI(
            model=self.model,
            openai_api_key=settings.OPENROUTER_API_KEY,
            openai_api_base=settings.LLM_BASE_URL,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=settings.LLM_TIMEOUT_SECONDS,
            max_retries=0,
            default_headers={
                "HTTP-Referer": settings.OPENROUTER_SITE_URL,
                "X-Title": settings.OPENROUTER_SITE_NAME,
            },
        )

    async def generate(
        self,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        """
        Invoke the LLM once and return the raw completion text.

        Args:
            prompt: User prompt
            temperature: Sampling temperature 0.0-1.0
            max_tokens: Maximum tokens in response (default settings.LLM_MAX_TOKENS)
            system_prompt: Optional system prompt

        Returns:
            Raw completion text (may contain prose or fences around JSON)

        Raises:
            GenerationServiceError: If the API call fails or times out
        """
        messages = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=prompt))

        logger.debug(f"Calling {self.model} with prompt length: {len(prompt)} (temperature={temperature})")

        try:
            llm = self._create_llm(temperature=temperature, max_tokens=max_tokens or settings.LLM_MAX_TOKENS)
            response = await llm.ainvoke(messages)
        except Exception as e:
            logger.error(f"{self.model} API call failed: {e}")
            raise GenerationServiceError(f"{self.model} API call failed: {e}") from e

        content = response.content if isinstance(response.content, str) else str(response.content)

        if getattr(response, "usage_metadata", None):
            logger.debug(
                f"{self.model} usage: input={response.usage_metadata.get('input_tokens', 0)} "
                f"output={response.usage_metadata.get('output_tokens', 0)} tokens"
            )
        logger.debug(f"{self.model} response length: {len(content)}")
        return content
