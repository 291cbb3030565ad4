"""
Retrieval Engine

Hybrid recipe retrieval with allergen safety:

1. Embed the search text (hybrid mode); on embedding failure fall back to lexical only
2. Build the compound query (MUST text / FILTER / MUST_NOT allergens)
3. Ask the backend for hits (bounded by SEARCH_TIMEOUT_SECONDS)
4. Combine vector and text scores, drop results under min_score, sort
5. Re-check every candidate's ingredients against the allergy tokens

A backend failure never raises: the result is empty with fallback=True,
and the workflow treats empty as "attempt generation".
"""

import asyncio
import time
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from kitchen_assistant.config import settings
from kitchen_assistant.rag.nlp.allergen_detector import AllergenDetector
from kitchen_assistant.rag.reference.loader import ReferenceData, load_reference_data
from kitchen_assistant.rag.retrieval.backend import SearchBackend, SearchHit
from kitchen_assistant.rag.retrieval.query_builder import allergy_exclusion_tokens, build_query_spec
from kitchen_assistant.rag.retrieval.ranking import (
    HybridWeights,
    apply_hybrid_scores,
    drop_below,
    post_filter_allergens,
    sort_candidates,
)
from kitchen_assistant.schemas.recipe import RecipeCandidate, SearchFilters
from kitchen_assistant.services.embedding_service import EmbeddingService
from kitchen_assistant.services.recipe_index_service import RecipeIndexService

MAX_REFERENCES = 3


class RetrievalResult(BaseModel):
    """Outcome of one retrieval call."""

    candidates: List[RecipeCandidate] = Field(default_factory=list)
    total_hits: int = 0
    took_ms: float = 0.0
    fallback: bool = False
    fallback_reason: Optional[str] = None
    embedding_fallback: bool = False
    safety_filtered: int = 0


class RetrievalEngine:
    """
    Hybrid (vector + lexical) recipe search.

    Dependencies default to the production services and can be injected
    for tests.
    """

    def __init__(
        self,
        backend: Optional[SearchBackend] = None,
        embedding_service: Optional[Any] = None,
        reference: Optional[ReferenceData] = None,
        weights: Optional[HybridWeights] = None,
        min_score: Optional[float] = None,
        top_k: Optional[int] = None,
        safety_first: Optional[bool] = None,
        hybrid: Optional[bool] = None,
        min_safety_score: Optional[int] = None,
    ):
        self.backend = backend or RecipeIndexService()
        self.embedding_service = embedding_service or EmbeddingService()
        self.reference = reference or load_reference_data()
        self.detector = AllergenDetector(reference=self.reference)
        self.weights = weights or HybridWeights(
            vector_weight=settings.VECTOR_WEIGHT, text_weight=settings.TEXT_WEIGHT
        )
        self.min_score = settings.MIN_SCORE if min_score is None else min_score
        self.top_k = top_k or settings.SEARCH_TOP_K
        self.safety_first = settings.SAFETY_FIRST if safety_first is None else safety_first
        self.hybrid = settings.HYBRID_SEARCH if hybrid is None else hybrid
        self.min_safety_score = settings.MIN_SAFETY_SCORE if min_safety_score is None else min_safety_score

    def to_candidate(self, hit: SearchHit) -> RecipeCandidate:
        """
        Build a RecipeCandidate from a backend hit.

        Allergen metadata missing from the stored document is computed from
        the ingredients.
        """
        source: Dict[str, Any] = dict(hit.source)
        fields = {k: v for k, v in source.items() if k in RecipeCandidate.model_fields}
        fields["id"] = hit.id
        fields.setdefault("name", source.get("name_ko") or hit.id)
        candidate = RecipeCandidate.model_validate(fields)

        if "allergen_risk_score" not in source:
            profile = self.detector.assess_ingredients(candidate.ingredients + candidate.ingredients_ko)
            candidate.contains_allergens = profile.contains_allergens
            candidate.allergen_count = profile.total_allergen_count
            candidate.allergen_risk_score = profile.risk_score
            candidate.safety_score = profile.safety_score

        candidate.vector_score = hit.vector_score
        candidate.relevance_score = hit.text_score
        return candidate

    def _effective_filters(self, filters: Optional[SearchFilters]) -> Optional[SearchFilters]:
        if self.min_safety_score is None or (filters is not None and filters.min_safety_score is not None):
            return filters
        return (filters or SearchFilters()).model_copy(update={"min_safety_score": self.min_safety_score})

    async def _embed(self, text: str) -> Optional[List[float]]:
        try:
            return await self.embedding_service.embed_text(text)
        except Exception as e:
            logger.warning(f"Embedding unavailable, falling back to lexical search: {e}")
            return None

    async def search(
        self,
        query: str,
        keywords: List[str],
        allergies: Iterable[str],
        filters: Optional[SearchFilters] = None,
        use_filters: bool = True,
        apply_min_score: bool = True,
        limit: Optional[int] = None,
    ) -> RetrievalResult:
        """
        Retrieve safe recipe candidates.

        Args:
            query: Raw user query (embedding fallback text)
            keywords: Search keywords (allergen tokens already removed)
            allergies: Allergy names to exclude
            filters: Structured constraints
            use_filters: Apply FILTER clauses (False for relaxed reference lookups)
            apply_min_score: Drop results under min_score
            limit: Max candidates returned (default top_k)

        Returns:
            RetrievalResult; empty with fallback=True if the backend failed
        """
        started = time.perf_counter()
        allergies = list(allergies)
        size = limit or self.top_k

        vector = None
        embedding_fallback = False
        if self.hybrid:
            vector = await self._embed(" ".join(keywords) or query)
            embedding_fallback = vector is None

        spec = build_query_spec(
            keywords=keywords,
            filters=self._effective_filters(filters) if use_filters else None,
            allergies=allergies,
            reference=self.reference,
            vector=vector,
            size=size,
            safety_first=self.safety_first,
        )

        try:
            response = await asyncio.wait_for(self.backend.search(spec), timeout=settings.SEARCH_TIMEOUT_SECONDS)
        except Exception as e:
            reason = "timeout" if isinstance(e, asyncio.TimeoutError) else type(e).__name__
            logger.error(f"Recipe search unavailable ({reason}): {e}")
            return RetrievalResult(
                fallback=True,
                fallback_reason=reason,
                embedding_fallback=embedding_fallback,
                took_ms=round((time.perf_counter() - started) * 1000, 2),
            )

        candidates = []
        for hit in response.hits:
            try:
                candidates.append(self.to_candidate(hit))
            except ValidationError as e:
                logger.warning(f"Skipping malformed recipe document {hit.id}: {e.error_count()} error(s)")
        apply_hybrid_scores(candidates, self.weights, lexical_only=spec.vector is None)
        if apply_min_score:
            candidates = drop_below(candidates, self.min_score)
        candidates = sort_candidates(candidates, self.safety_first)

        candidates, removed = post_filter_allergens(
            candidates, allergy_exclusion_tokens(allergies, self.reference)
        )
        for candidate in candidates:
            candidate.safe_for = list(allergies)

        took_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            f"Retrieved {len(candidates[:size])} candidate(s) from {response.total} hit(s) "
            f"in {took_ms}ms (hybrid={vector is not None}, safety_filtered={len(removed)})"
        )
        return RetrievalResult(
            candidates=candidates[:size],
            total_hits=response.total,
            took_ms=took_ms,
            embedding_fallback=embedding_fallback,
            safety_filtered=len(removed),
        )

    async def find_references(
        self, query: str, keywords: List[str], allergies: Iterable[str], limit: int = MAX_REFERENCES
    ) -> List[RecipeCandidate]:
        """
        Relaxed lookup for generation references.

        Keeps the allergen exclusion and post-filter but drops FILTER
        constraints and the score threshold. Returns an empty list on failure.
        """
        result = await self.search(
            query,
            keywords,
            allergies,
            use_filters=False,
            apply_min_score=False,
            limit=limit,
        )
        return result.candidates[:limit]
