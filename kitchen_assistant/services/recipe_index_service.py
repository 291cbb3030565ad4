"""Qdrant-backed recipe index: the production SearchBackend and recipe persistence."""

import time
from typing import Any, Dict, List, Optional
from uuid import NAMESPACE_URL, uuid5

from loguru import logger
from qdrant_client import AsyncQdrantClient, models
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from kitchen_assistant.config import settings
from kitchen_assistant.core.errors import SearchBackendError
from kitchen_assistant.rag.retrieval.backend import (
    QuerySpec,
    RangeFilter,
    SearchHit,
    SearchResponse,
    TermFilter,
)
from kitchen_assistant.rag.retrieval.lexical import text_score
from kitchen_assistant.schemas.recipe import RecipeCandidate


def point_id_for(recipe_id: str) -> str:
    """Qdrant point ids must be UUIDs or integers; derive a stable UUID from the recipe id."""
    return str(uuid5(NAMESPACE_URL, f"recipe:{recipe_id}"))


def recipe_payload(recipe: RecipeCandidate) -> Dict[str, Any]:
    """Payload stored with each point. ingredient_text backs the MUST_NOT substring match."""
    payload = recipe.model_dump(
        exclude={"relevance_score", "vector_score", "combined_score"}
    )
    payload["recipe_id"] = recipe.id
    payload["ingredient_text"] = recipe.ingredient_text()
    return payload


def recipe_embedding_text(recipe: RecipeCandidate) -> str:
    """Text embedded for a recipe: names, description and ingredients in both languages."""
    parts = [
        recipe.name,
        recipe.name_ko,
        recipe.description,
        recipe.description_ko,
        ", ".join(recipe.ingredients),
        ", ".join(recipe.ingredients_ko),
        " ".join(recipe.tags),
    ]
    return "\n".join(part for part in parts if part)


class RecipeIndexService:
    """Qdrant vector database client for recipe storage and hybrid search."""

    VECTOR_SIZE = 1536  # OpenAI text-embedding-3-small dimension

    def __init__(self, client: Optional[AsyncQdrantClient] = None, collection_name: Optional[str] = None):
        """Initialize async Qdrant client."""
        self.client = client or AsyncQdrantClient(
            url=settings.QDRANT_URL,
            api_key=settings.QDRANT_API_KEY if settings.QDRANT_API_KEY else None,
            timeout=int(settings.SEARCH_TIMEOUT_SECONDS),
        )
        self.collection_name = collection_name or settings.RECIPE_COLLECTION

    async def create_collection(self, vector_size: Optional[int] = None) -> None:
        """
        Create the recipe collection with payload indexes.

        Idempotent: No-op if collection already exists.

        Collection Config:
            - Vectors: EMBEDDING_DIMENSIONS, cosine distance
            - Payload indexes: difficulty, tags (keyword); minutes, servings, safety_score (integer)

        ingredient_text is deliberately left without a full-text index so
        MatchText behaves as a plain substring match.
        """
        collections = await self.client.get_collections()
        if self.collection_name in [c.name for c in collections.collections]:
            return

        await self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=models.VectorParams(
                size=vector_size or settings.EMBEDDING_DIMENSIONS or self.VECTOR_SIZE,
                distance=models.Distance.COSINE,
            ),
        )

        for field_name in ("difficulty", "tags"):
            await self.client.create_payload_index(
                collection_name=self.collection_name,
                field_name=field_name,
                field_schema=models.PayloadSchemaType.KEYWORD,
            )
        for field_name in ("minutes", "servings", "safety_score"):
            await self.client.create_payload_index(
                collection_name=self.collection_name,
                field_name=field_name,
                field_schema=models.PayloadSchemaType.INTEGER,
            )

    @staticmethod
    def build_filter(spec: QuerySpec) -> Optional[models.Filter]:
        """Translate FILTER and MUST_NOT clauses into a Qdrant filter."""
        must: List[models.FieldCondition] = []
        for clause in spec.filters:
            if isinstance(clause, RangeFilter):
                must.append(
                    models.FieldCondition(key=clause.field, range=models.Range(gte=clause.gte, lte=clause.lte))
                )
            elif isinstance(clause, TermFilter):
                must.append(models.FieldCondition(key=clause.field, match=models.MatchAny(any=clause.values)))

        must_not = [
            models.FieldCondition(key="ingredient_text", match=models.MatchText(text=token.lower()))
            for token in spec.must_not
        ]

        if not must and not must_not:
            return None
        return models.Filter(must=must or None, must_not=must_not or None)

    async def search(self, spec: QuerySpec) -> SearchResponse:
        """
        Execute a compound query.

        With a vector, Qdrant ranks by similarity and the text clause only
        adds relevance. Without one, points are scrolled page by page (up to
        LEXICAL_SCAN_LIMIT) and the text clause is enforced: hits with no
        text match are dropped unless the query is match-all, and the best
        ``candidate_pool`` matches by text score are kept.

        Raises:
            SearchBackendError: If Qdrant is unreachable or rejects the query
        """
        started = time.perf_counter()
        query_filter = self.build_filter(spec)

        try:
            if spec.vector is not None:
                hits = await self._vector_hits(spec, query_filter)
            else:
                hits = await self._lexical_hits(spec, query_filter)
        except Exception as e:
            logger.error(f"Recipe index search failed: {e}")
            raise SearchBackendError(f"Recipe index search failed: {e}") from e

        took_ms = (time.perf_counter() - started) * 1000
        logger.debug(f"Recipe index returned {len(hits)} hits in {took_ms:.1f}ms")
        return SearchResponse(hits=hits, total=len(hits), took_ms=round(took_ms, 2))

    async def _vector_hits(self, spec: QuerySpec, query_filter: Optional[models.Filter]) -> List[SearchHit]:
        result = await self.client.query_points(
            collection_name=self.collection_name,
            query=spec.vector,
            query_filter=query_filter,
            limit=spec.candidate_pool,
            with_payload=True,
        )
        return [
            self._to_hit(spec, p.id, p.payload or {}, float(p.score))
            for p in result.points
        ]

    async def _lexical_hits(self, spec: QuerySpec, query_filter: Optional[models.Filter]) -> List[SearchHit]:
        hits: List[SearchHit] = []
        scanned = 0
        offset = None
        while True:
            records, offset = await self.client.scroll(
                collection_name=self.collection_name,
                scroll_filter=query_filter,
                limit=spec.candidate_pool,
                offset=offset,
                with_payload=True,
                with_vectors=False,
            )
            scanned += len(records)
            for record in records:
                hit = self._to_hit(spec, record.id, record.payload or {}, 0.0)
                if spec.must.match_all or hit.text_score > 0.0:
                    hits.append(hit)

            if spec.must.match_all and len(hits) >= spec.candidate_pool:
                break
            if offset is None or not records:
                break
            if scanned >= settings.LEXICAL_SCAN_LIMIT:
                logger.warning(f"Lexical scan stopped at {scanned} points; later recipes were not scored")
                break

        if not spec.must.match_all:
            hits.sort(key=lambda h: h.text_score, reverse=True)
        return hits[: spec.candidate_pool]

    @staticmethod
    def _to_hit(spec: QuerySpec, point_id: Any, payload: Dict[str, Any], vector_score: float) -> SearchHit:
        relevance = text_score(spec.must.terms, payload, spec.must.fields)
        return SearchHit(
            id=str(payload.get("recipe_id") or point_id),
            source=payload,
            score=vector_score or relevance,
            vector_score=vector_score,
            text_score=relevance,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(Exception),
        reraise=True,
    )
    async def upsert_recipe(self, recipe: RecipeCandidate, vector: List[float]) -> str:
        """
        Store one recipe with its embedding.

        Retry Logic:
            - Max attempts: 3
            - Wait: Exponential backoff (1s, 2s, 4s, up to 10s)

        Returns:
            The recipe id (not the derived point id)
        """
        await self.client.upsert(
            collection_name=self.collection_name,
            points=[
                models.PointStruct(
                    id=point_id_for(recipe.id),
                    vector=vector,
                    payload=recipe_payload(recipe),
                )
            ],
        )
        return recipe.id

    async def upsert_recipes(self, recipes: List[RecipeCandidate], vectors: List[List[float]]) -> int:
        """Batch variant used by the seeding script."""
        if len(recipes) != len(vectors):
            raise ValueError(f"Length mismatch: {len(recipes)} recipes vs {len(vectors)} vectors")
        points = [
            models.PointStruct(id=point_id_for(recipe.id), vector=vector, payload=recipe_payload(recipe))
            for recipe, vector in zip(recipes, vectors)
        ]
        await self.client.upsert(collection_name=self.collection_name, points=points)
        return len(points)

    async def health_check(self) -> bool:
        """Check Qdrant connectivity."""
        try:
            await self.client.get_collections()
            return True
        except Exception:
            return False
