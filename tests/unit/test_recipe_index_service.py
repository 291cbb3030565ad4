"""Unit tests for the Qdrant recipe index adapter."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from qdrant_client import models

from kitchen_assistant.config import settings
from kitchen_assistant.core.errors import SearchBackendError
from kitchen_assistant.rag.retrieval.backend import QuerySpec, RangeFilter, TermFilter, TextClause
from kitchen_assistant.rag.retrieval.query_builder import FIELD_WEIGHTS
from kitchen_assistant.schemas.recipe import RecipeCandidate
from kitchen_assistant.services.recipe_index_service import (
    RecipeIndexService,
    point_id_for,
    recipe_embedding_text,
    recipe_payload,
)


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.query_points = AsyncMock()
    client.scroll = AsyncMock()
    client.upsert = AsyncMock()
    client.get_collections = AsyncMock(return_value=SimpleNamespace(collections=[]))
    client.create_collection = AsyncMock()
    client.create_payload_index = AsyncMock()
    return client


@pytest.fixture
def service(mock_client):
    return RecipeIndexService(client=mock_client, collection_name="test_recipes")


def _point(payload, score=0.0):
    return SimpleNamespace(id=point_id_for(payload["recipe_id"]), payload=payload, score=score)


def _payload(recipe_docs, index):
    doc = dict(recipe_docs[index])
    doc["recipe_id"] = doc["id"]
    return doc


class TestBuildFilter:
    """Unit tests for RecipeIndexService.build_filter()."""

    def test_no_clauses(self):
        assert RecipeIndexService.build_filter(QuerySpec()) is None

    def test_filters_and_exclusions(self):
        spec = QuerySpec(
            filters=[
                RangeFilter(field="minutes", lte=30),
                TermFilter(field="difficulty", values=["easy"]),
            ],
            must_not=["Soy", "tofu"],
        )

        query_filter = RecipeIndexService.build_filter(spec)

        assert len(query_filter.must) == 2
        assert query_filter.must[0].key == "minutes"
        assert query_filter.must[0].range.lte == 30
        assert query_filter.must[1].match.any == ["easy"]
        assert [c.match.text for c in query_filter.must_not] == ["soy", "tofu"]
        assert all(c.key == "ingredient_text" for c in query_filter.must_not)


class TestSearch:
    """Unit tests for RecipeIndexService.search()."""

    @pytest.mark.asyncio
    async def test_vector_search_adds_text_relevance(self, service, mock_client, recipe_docs):
        mock_client.query_points.return_value = SimpleNamespace(
            points=[_point(_payload(recipe_docs, 1), score=0.82), _point(_payload(recipe_docs, 4), score=0.4)]
        )
        spec = QuerySpec(must=TextClause(terms=["stir", "fry"], fields=FIELD_WEIGHTS), vector=[0.1] * 8)

        response = await service.search(spec)

        assert [hit.id for hit in response.hits] == ["r-veg", "r-pasta"]
        assert response.hits[0].vector_score == 0.82
        assert response.hits[0].text_score > 0
        assert response.hits[1].text_score == 0.0
        kwargs = mock_client.query_points.call_args.kwargs
        assert kwargs["collection_name"] == "test_recipes"
        assert kwargs["limit"] == spec.candidate_pool

    @pytest.mark.asyncio
    async def test_lexical_search_enforces_text_clause(self, service, mock_client, recipe_docs):
        mock_client.scroll.return_value = ([_point(_payload(recipe_docs, 1)), _point(_payload(recipe_docs, 4))], None)
        spec = QuerySpec(must=TextClause(terms=["stir", "fry"], fields=FIELD_WEIGHTS))

        response = await service.search(spec)

        assert [hit.id for hit in response.hits] == ["r-veg"]
        mock_client.query_points.assert_not_called()

    @pytest.mark.asyncio
    async def test_lexical_search_pages_past_the_candidate_pool(self, service, mock_client, recipe_docs):
        filler = [_point({"recipe_id": f"r-{n}", "name": "Plain Rice", "ingredients": ["rice"]}) for n in range(50)]
        mock_client.scroll.side_effect = [
            (filler, "page-2"),
            ([_point(_payload(recipe_docs, 1))] + filler[:9], None),
        ]
        spec = QuerySpec(must=TextClause(terms=["stir", "fry"], fields=FIELD_WEIGHTS), candidate_pool=50)

        response = await service.search(spec)

        assert [hit.id for hit in response.hits] == ["r-veg"]
        assert mock_client.scroll.await_count == 2
        assert mock_client.scroll.await_args_list[1].kwargs["offset"] == "page-2"

    @pytest.mark.asyncio
    async def test_lexical_scan_is_bounded(self, service, mock_client, monkeypatch):
        monkeypatch.setattr(settings, "LEXICAL_SCAN_LIMIT", 20)
        filler = [_point({"recipe_id": f"r-{n}", "name": "Plain Rice"}) for n in range(10)]
        mock_client.scroll.return_value = (filler, "next")
        spec = QuerySpec(must=TextClause(terms=["stir"], fields=FIELD_WEIGHTS), candidate_pool=10)

        response = await service.search(spec)

        assert response.hits == []
        assert mock_client.scroll.await_count == 2

    @pytest.mark.asyncio
    async def test_lexical_match_all_keeps_everything(self, service, mock_client, recipe_docs):
        mock_client.scroll.return_value = ([_point(_payload(recipe_docs, 1)), _point(_payload(recipe_docs, 4))], None)

        response = await service.search(QuerySpec())

        assert response.total == 2

    @pytest.mark.asyncio
    async def test_client_error_raises_search_backend_error(self, service, mock_client):
        mock_client.query_points.side_effect = ConnectionError("refused")

        with pytest.raises(SearchBackendError):
            await service.search(QuerySpec(vector=[0.1] * 8))


class TestPersistence:
    @pytest.mark.asyncio
    async def test_upsert_recipe(self, service, mock_client):
        recipe = RecipeCandidate(id="generated_abc", name="Rice Bowl", ingredients=["Rice", "Egg"])

        stored_id = await service.upsert_recipe(recipe, [0.1] * 8)

        assert stored_id == "generated_abc"
        point = mock_client.upsert.call_args.kwargs["points"][0]
        assert point.id == point_id_for("generated_abc")
        assert point.payload["recipe_id"] == "generated_abc"
        assert point.payload["ingredient_text"] == "rice | egg"
        assert "combined_score" not in point.payload

    @pytest.mark.asyncio
    async def test_upsert_recipes_length_mismatch(self, service):
        recipe = RecipeCandidate(id="r-1", name="One")

        with pytest.raises(ValueError):
            await service.upsert_recipes([recipe], [])

    @pytest.mark.asyncio
    async def test_create_collection_with_payload_indexes(self, service, mock_client):
        await service.create_collection(vector_size=8)

        mock_client.create_collection.assert_awaited_once()
        indexed = [call.kwargs["field_name"] for call in mock_client.create_payload_index.await_args_list]
        assert indexed == ["difficulty", "tags", "minutes", "servings", "safety_score"]

    @pytest.mark.asyncio
    async def test_create_collection_is_idempotent(self, service, mock_client):
        mock_client.get_collections.return_value = SimpleNamespace(collections=[SimpleNamespace(name="test_recipes")])

        await service.create_collection()

        mock_client.create_collection.assert_not_called()


class TestPayloadHelpers:
    def test_point_id_is_stable_uuid(self):
        assert point_id_for("r-1") == point_id_for("r-1")
        assert point_id_for("r-1") != point_id_for("r-2")

    def test_embedding_text_covers_both_languages(self):
        recipe = RecipeCandidate(id="r-1", name="Tofu Stew", name_ko="두부찌개", ingredients=["tofu"])

        text = recipe_embedding_text(recipe)

        assert "Tofu Stew" in text
        assert "두부찌개" in text
        assert "tofu" in text

    def test_payload_has_allergen_fields(self):
        payload = recipe_payload(RecipeCandidate(id="r-1", name="X", allergen_risk_score=20))

        assert payload["allergen_risk_score"] == 20
        assert isinstance(payload, dict)
        assert models.PointStruct(id=point_id_for("r-1"), vector=[0.1], payload=payload).payload["recipe_id"] == "r-1"
