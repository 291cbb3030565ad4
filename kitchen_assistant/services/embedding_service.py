"""Embedding service for generating query and recipe embeddings via OpenAI API."""

from typing import List, Optional

from langchain_openai import OpenAIEmbeddings
from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from kitchen_assistant.config import settings
from kitchen_assistant.core.errors import EmbeddingServiceError


class EmbeddingService:
    """
    OpenAI embeddings API client with bounded retries.

    Retries are owned here (tenacity), not by the LangChain client, so the
    attempt count and backoff are explicit. Exhausted retries raise
    EmbeddingServiceError; a partial vector is never returned.
    """

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        backoff_multiplier: float = 0.5,
        backoff_max: float = 4.0,
    ):
        """Initialize with OpenAI credentials from settings; the client itself is created lazily."""
        self.model = settings.EMBEDDING_MODEL
        self.dimensions = settings.EMBEDDING_DIMENSIONS
        self.max_attempts = max_attempts or settings.EMBEDDING_MAX_ATTEMPTS
        self.backoff_multiplier = backoff_multiplier
        self.backoff_max = backoff_max
        self.batch_size = 100  # Max texts per API request
        self._embeddings: Optional[OpenAIEmbeddings] = None

    @property
    def embeddings(self) -> OpenAIEmbeddings:
        if self._embeddings is None:
            self._embeddings = OpenAIEmbeddings(
                model=self.model,
                openai_api_key=settings.OPENAI_API_KEY,
                request_timeout=settings.EMBEDDING_TIMEOUT_SECONDS,
                max_retries=0,
            )
        return self._embeddings

    async def embed_text(self, text: str) -> List[float]:
        """
        Embed a single text.

        Args:
            text: Query or recipe text

        Returns:
            Embedding vector of settings.EMBEDDING_DIMENSIONS floats

        Raises:
            EmbeddingServiceError: If all attempts fail or the vector is malformed
        """
        vectors = await self.generate_embeddings([text])
        return vectors[0]

    async def generate_embeddings(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts with batching.

        Retry Strategy:
            - Max attempts: settings.EMBEDDING_MAX_ATTEMPTS
            - Wait: exponential backoff, capped at backoff_max seconds
            - Retry on: any exception raised by the provider call

        Raises:
            EmbeddingServiceError: If a batch still fails after the last attempt
        """
        if not texts:
            return []

        all_embeddings: List[List[float]] = []
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            all_embeddings.extend(await self._embed_batch_with_retry(batch))

        logger.debug(f"Generated {len(all_embeddings)} embeddings")
        return all_embeddings

    async def _embed_batch_with_retry(self, texts: List[str]) -> List[List[float]]:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self.backoff_multiplier, max=self.backoff_max),
                retry=retry_if_exception_type(Exception),
                reraise=False,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            f"Retrying embedding batch (attempt {attempt.retry_state.attempt_number}/{self.max_attempts})"
                        )
                    vectors = await self.embeddings.aembed_documents(texts)
                    self._validate(texts, vectors)
                    return vectors
        except RetryError as e:
            cause = e.last_attempt.exception()
            logger.error(f"Embedding failed after {self.max_attempts} attempts: {cause}")
            raise EmbeddingServiceError(f"Embedding failed after {self.max_attempts} attempts: {cause}") from cause

    @staticmethod
    def _validate(texts: List[str], vectors: List[List[float]]) -> None:
        if len(vectors) != len(texts) or any(not vector for vector in vectors):
            raise ValueError(f"Expected {len(texts)} non-empty vectors, got {len(vectors)}")
