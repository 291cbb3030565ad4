"""Unit tests for EmbeddingService."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from kitchen_assistant.core.errors import EmbeddingServiceError
from kitchen_assistant.services.embedding_service import EmbeddingService


def _service(aembed_documents, max_attempts=3):
    """EmbeddingService with the LangChain client replaced and no backoff delay."""
    service = EmbeddingService(max_attempts=max_attempts, backoff_multiplier=0, backoff_max=0)
    service._embeddings = MagicMock()
    service._embeddings.aembed_documents = aembed_documents
    return service


class TestEmbeddingService:
    """Unit tests for EmbeddingService."""

    @pytest.mark.asyncio
    async def test_generate_embeddings_empty_list(self):
        """Empty list returns empty list."""
        service = EmbeddingService()
        embeddings = await service.generate_embeddings([])
        assert embeddings == []

    @pytest.mark.asyncio
    async def test_embed_text_returns_single_vector(self):
        mock_embed = AsyncMock(return_value=[[0.1] * 1536])
        service = _service(mock_embed)

        vector = await service.embed_text("tofu-free stir-fry")

        assert len(vector) == 1536
        mock_embed.assert_awaited_once_with(["tofu-free stir-fry"])

    @pytest.mark.asyncio
    async def test_generate_embeddings_multiple_batches(self):
        """Test batching for > 100 texts (should make multiple API calls)."""
        mock_embed = AsyncMock(side_effect=lambda texts: [[0.1] * 8 for _ in texts])
        service = _service(mock_embed)

        embeddings = await service.generate_embeddings([f"text {i}" for i in range(250)])

        assert len(embeddings) == 250
        assert mock_embed.await_count == 3
        assert [len(call.args[0]) for call in mock_embed.await_args_list] == [100, 100, 50]

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self):
        mock_embed = AsyncMock(side_effect=[RuntimeError("503"), [[0.2] * 8]])
        service = _service(mock_embed)

        vector = await service.embed_text("kimchi")

        assert vector == [0.2] * 8
        assert mock_embed.await_count == 2

    @pytest.mark.asyncio
    async def test_retry_exhaustion_raises(self):
        """After the last attempt the error surfaces as EmbeddingServiceError."""
        mock_embed = AsyncMock(side_effect=RuntimeError("connection reset"))
        service = _service(mock_embed, max_attempts=3)

        with pytest.raises(EmbeddingServiceError) as exc_info:
            await service.embed_text("kimchi")

        assert mock_embed.await_count == 3
        assert "connection reset" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_malformed_vectors_are_never_returned(self):
        mock_embed = AsyncMock(return_value=[])
        service = _service(mock_embed, max_attempts=2)

        with pytest.raises(EmbeddingServiceError):
            await service.embed_text("kimchi")

        assert mock_embed.await_count == 2
