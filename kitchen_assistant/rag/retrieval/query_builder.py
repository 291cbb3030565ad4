"""
Query Builder

Turns analysis output (keywords, filters, allergies) into a QuerySpec.
"""

from typing import Dict, Iterable, List, Optional

from kitchen_assistant.rag.reference.loader import ReferenceData
from kitchen_assistant.rag.retrieval.backend import QuerySpec, RangeFilter, TermFilter, TextClause
from kitchen_assistant.schemas.recipe import SearchFilters

# Localized name carries the highest weight
FIELD_WEIGHTS: Dict[str, float] = {
    "name_ko": 4.0,
    "description_ko": 3.0,
    "ingredients_ko": 2.5,
    "name": 2.0,
    "tags_ko": 2.0,
    "description": 1.5,
    "ingredients": 1.2,
    "tags": 1.0,
}

SERVINGS_TOLERANCE = 2
CANDIDATE_POOL_FACTOR = 5


def build_filters(filters: Optional[SearchFilters]) -> List:
    """Map SearchFilters onto FILTER clauses."""
    if filters is None:
        return []
    clauses: List = []
    if filters.difficulty:
        clauses.append(TermFilter(field="difficulty", values=[filters.difficulty]))
    if filters.max_minutes:
        clauses.append(RangeFilter(field="minutes", lte=filters.max_minutes))
    if filters.servings:
        clauses.append(
            RangeFilter(
                field="servings",
                gte=max(1, filters.servings - SERVINGS_TOLERANCE),
                lte=filters.servings + SERVINGS_TOLERANCE,
            )
        )
    if filters.min_safety_score is not None:
        clauses.append(RangeFilter(field="safety_score", gte=filters.min_safety_score))
    if filters.tags:
        clauses.append(TermFilter(field="tags", values=list(filters.tags)))
    return clauses


def allergy_exclusion_tokens(allergies: Iterable[str], reference: ReferenceData) -> List[str]:
    """All lexical tokens for the given allergies, deduplicated, in stable order."""
    tokens: List[str] = []
    for allergy in allergies:
        for token in reference.allergen_tokens(allergy):
            if token not in tokens:
                tokens.append(token)
    return tokens


def build_query_spec(
    keywords: List[str],
    filters: Optional[SearchFilters],
    allergies: Iterable[str],
    reference: ReferenceData,
    vector: Optional[List[float]] = None,
    size: int = 10,
    safety_first: bool = True,
) -> QuerySpec:
    """
    Build the compound query.

    MUST degrades to match-all when there are no keywords; MUST_NOT holds
    every allergen token for the user's allergies.
    """
    return QuerySpec(
        must=TextClause(terms=list(keywords), fields=dict(FIELD_WEIGHTS)),
        filters=build_filters(filters),
        must_not=allergy_exclusion_tokens(allergies, reference),
        vector=vector,
        size=size,
        candidate_pool=size * CANDIDATE_POOL_FACTOR,
        safety_first=safety_first,
    )
