"""
Query Analysis

Combines entity extraction, allergy resolution and intent classification
into one QueryAnalysis, and adds the derived signals used downstream:
search filters, keywords, semantic tags, follow-up detection, overall
confidence, complexity and refinement suggestions.
"""

import re
from typing import Any, Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel, Field

from kitchen_assistant.rag.nlp.allergen_detector import AllergenDetector
from kitchen_assistant.rag.nlp.entity_extractor import EntityExtractor
from kitchen_assistant.rag.nlp.intent_classifier import classify_intent
from kitchen_assistant.rag.nlp.matching import normalize
from kitchen_assistant.schemas.recipe import Entity, IntentResult, SearchFilters

QueryType = Literal["follow_up", "recipe_detail", "new_recipe", "general"]

FOLLOW_UP_PATTERN = re.compile(
    r"\b(more (tips?|details?|info)|tell me more|what about (it|that)|that (recipe|dish|one)|"
    r"this (recipe|dish)|the (first|second|third|last) one|how about it|any other tips?)\b"
    r"|(더 알려|자세히|그거|그 요리|그 레시피|팁 더)"
)

COMPLETENESS_TYPES = ("ingredient", "cooking_method", "cuisine", "dietary")
MAX_SUGGESTIONS = 3


class QueryAnalysis(BaseModel):
    """Everything the workflow knows about a query after the analysis step."""

    entities: List[Entity] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    allergen_advisories: List[str] = Field(default_factory=list)
    intent: IntentResult
    filters: SearchFilters = Field(default_factory=SearchFilters)
    keywords: List[str] = Field(default_factory=list)
    semantic_tags: List[str] = Field(default_factory=list)
    is_follow_up: bool = False
    query_type: QueryType = "general"
    overall_confidence: float = 0.0
    complexity: Literal["simple", "medium", "complex"] = "simple"
    suggestions: List[str] = Field(default_factory=list)


def detect_follow_up(query: str, history: Optional[List[Dict[str, Any]]]) -> bool:
    """
    A follow-up refers back to a recipe shown in the previous turn.

    Requires both a follow-up phrase and a previous turn that showed at least
    one recipe.
    """
    if not history:
        return False
    last_turn = history[-1]
    if not last_turn.get("recipes"):
        return False
    return FOLLOW_UP_PATTERN.search(normalize(query)) is not None


def build_semantic_tags(intent: IntentResult, entities: List[Entity]) -> List[str]:
    tags = [f"intent:{intent.primary}"]
    tags.extend(f"{entity.type}:{entity.value}" for entity in entities)
    ingredients = [e.value for e in entities if e.type == "ingredient"]
    methods = [e.value for e in entities if e.type == "cooking_method"]
    tags.extend(f"combo:{ingredient}+{method}" for ingredient in ingredients[:2] for method in methods[:1])
    return tags


def overall_confidence(intent: IntentResult, entities: List[Entity]) -> float:
    """50% intent confidence, 30% mean entity confidence, 20% category completeness."""
    entity_score = sum(e.confidence for e in entities) / len(entities) if entities else 0.0
    present = {e.type for e in entities}
    completeness = sum(1 for t in COMPLETENESS_TYPES if t in present) / len(COMPLETENESS_TYPES)
    return round(min(1.0, 0.5 * intent.confidence + 0.3 * entity_score + 0.2 * completeness), 3)


def query_complexity(intent: IntentResult, entities: List[Entity]) -> str:
    points = len(entities) + 2 * len(intent.secondary)
    if points >= 6:
        return "complex"
    if points >= 3:
        return "medium"
    return "simple"


def refinement_suggestions(entities: List[Entity], filters: SearchFilters, intent: IntentResult) -> List[str]:
    """Up to three hints that would make the query more specific."""
    if intent.primary not in ("recipe_search", "recipe_detail"):
        return []
    present = {e.type for e in entities}
    suggestions = []
    if "ingredient" not in present:
        suggestions.append("Mention a main ingredient you'd like to use")
    if "cooking_method" not in present:
        suggestions.append("Add a cooking method such as stir-fry, grill or steam")
    if filters.max_minutes is None:
        suggestions.append("Say how much time you have (e.g. 'under 20 minutes')")
    if "cuisine" not in present:
        suggestions.append("Pick a cuisine such as Korean or Italian")
    return suggestions[:MAX_SUGGESTIONS]


def classify_query_type(intent: IntentResult, is_follow_up: bool) -> QueryType:
    if is_follow_up:
        return "follow_up"
    if intent.primary == "recipe_detail":
        return "recipe_detail"
    if intent.primary in ("recipe_search", "nutritional_info"):
        return "new_recipe"
    return "general"


def analyze_query(
    query: str,
    declared_allergies: Optional[Iterable[str]] = None,
    history: Optional[List[Dict[str, Any]]] = None,
    extractor: Optional[EntityExtractor] = None,
    detector: Optional[AllergenDetector] = None,
) -> QueryAnalysis:
    """
    Run the full analysis for one query.

    Args:
        query: Raw user query (may be empty)
        declared_allergies: Allergies supplied by the caller
        history: Recent conversation turns as dicts (oldest first)
        extractor: EntityExtractor to use (default: shared reference data)
        detector: AllergenDetector to use (default: settings trigger phrases)

    Returns:
        QueryAnalysis
    """
    extractor = extractor or EntityExtractor()
    detector = detector or AllergenDetector(reference=extractor.reference)

    entities = extractor.extract(query)
    allergies = detector.resolve(query, declared_allergies)
    intent = classify_intent(query, entities)

    excluded_tokens = [token for allergy in allergies for token in extractor.reference.allergen_tokens(allergy)]
    filters = extractor.extract_filters(query, entities)
    is_follow_up = detect_follow_up(query, history)

    return QueryAnalysis(
        entities=entities,
        allergies=allergies,
        allergen_advisories=detector.advisories(allergies),
        intent=intent,
        filters=filters,
        keywords=extractor.search_keywords(query, entities, excluded_tokens),
        semantic_tags=build_semantic_tags(intent, entities),
        is_follow_up=is_follow_up,
        query_type=classify_query_type(intent, is_follow_up),
        overall_confidence=overall_confidence(intent, entities),
        complexity=query_complexity(intent, entities),
        suggestions=refinement_suggestions(entities, filters, intent),
    )
