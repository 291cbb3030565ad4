"""
Entity Extractor

Dictionary-based entity recognition for cooking queries, plus the
structured search filters and keywords derived from the entities.

Each hit is scored as:
    base (0.7) + length bonus (+0.1 over 3 chars, +0.1 more over 6)
    + context bonus (+0.1 when a cooking word co-occurs), capped at 1.0
"""

import re
from typing import Dict, Iterable, List, Optional, Tuple

from kitchen_assistant.rag.nlp.matching import contains_term, normalize, tokenize
from kitchen_assistant.rag.reference.loader import ReferenceData, load_reference_data
from kitchen_assistant.schemas.recipe import Entity, SearchFilters

BASE_CONFIDENCE = 0.7
LENGTH_BONUS = 0.1
CONTEXT_BONUS = 0.1
MAX_KEYWORDS = 15

MINUTES_PATTERN = re.compile(r"(\d+)\s*(minutes?|mins?|분)")
HOURS_PATTERN = re.compile(r"(\d+)\s*(hours?|hrs?|시간)")
SERVINGS_PATTERN = re.compile(r"(\d+)\s*(?:servings?|people|persons?|인분|명)")

QUICK_MAX_MINUTES = 30


def entity_confidence(matched: str, has_context: bool) -> float:
    """Confidence for a single dictionary hit."""
    score = BASE_CONFIDENCE
    if len(matched) > 3:
        score += LENGTH_BONUS
    if len(matched) > 6:
        score += LENGTH_BONUS
    if has_context:
        score += CONTEXT_BONUS
    return round(min(score, 1.0), 2)


def _mentions(term: str, token: str) -> bool:
    if term == token:
        return True
    if token.isascii():
        return contains_term(term, token)
    return token in term


def deduplicate_entities(entities: Iterable[Entity]) -> List[Entity]:
    """
    Keep one entity per (type, value), the one with the highest confidence.

    Returns entities sorted by confidence, highest first. Order among equal
    confidences follows first appearance.
    """
    best: Dict[Tuple[str, str], Entity] = {}
    for entity in entities:
        key = (entity.type, entity.value)
        if key not in best or entity.confidence > best[key].confidence:
            best[key] = entity
    return sorted(best.values(), key=lambda e: -e.confidence)


class EntityExtractor:
    """Extracts entities, search filters and keywords from a query."""

    def __init__(self, reference: Optional[ReferenceData] = None):
        self.reference = reference or load_reference_data()

    def has_cooking_context(self, text: str) -> bool:
        return any(contains_term(text, word) for word in self.reference.context_words)

    def extract(self, query: str) -> List[Entity]:
        """
        Look up every dictionary synonym in the query.

        Hyphens are treated as word characters here, so "tofu-free" does not
        register tofu as a wanted ingredient.

        Args:
            query: Raw user query

        Returns:
            Deduplicated entities sorted by confidence (descending)
        """
        text = normalize(query)
        if not text:
            return []

        has_context = self.has_cooking_context(text)
        hits: List[Entity] = []
        for entity_type, values in self.reference.entities.items():
            for canonical, synonyms in values.items():
                for synonym in synonyms:
                    if contains_term(text, synonym.lower(), hyphen_is_boundary=False):
                        hits.append(
                            Entity(
                                type=entity_type,
                                value=canonical,
                                confidence=entity_confidence(synonym, has_context),
                                synonyms=list(synonyms),
                                matched_text=synonym,
                            )
                        )
        return deduplicate_entities(hits)

    def extract_filters(self, query: str, entities: List[Entity]) -> SearchFilters:
        """
        Derive structured search constraints.

        - difficulty from difficulty entities
        - max_minutes from "N minutes" / "N hours", or 30 for "quick"
        - servings from "N servings" / "N people"
        - tags from dietary and cuisine entities
        """
        text = normalize(query)
        filters = SearchFilters()

        difficulty = next((e.value for e in entities if e.type == "difficulty"), None)
        if difficulty in ("easy", "medium", "hard"):
            filters.difficulty = difficulty

        minutes = MINUTES_PATTERN.search(text)
        hours = HOURS_PATTERN.search(text)
        if minutes:
            filters.max_minutes = int(minutes.group(1))
        elif hours:
            filters.max_minutes = int(hours.group(1)) * 60
        elif any(e.type == "time" and e.value == "quick" for e in entities):
            filters.max_minutes = QUICK_MAX_MINUTES

        servings = SERVINGS_PATTERN.search(text)
        if servings:
            filters.servings = int(servings.group(1))

        filters.tags = [e.value for e in entities if e.type in ("dietary", "cuisine")]
        return filters

    def search_keywords(
        self, query: str, entities: List[Entity], excluded_tokens: Iterable[str] = ()
    ) -> List[str]:
        """
        Keywords for lexical matching.

        Non-stopword query tokens first, then entity values and synonyms (which
        carry the localized spellings). Allergen tokens are removed so an
        exclusion never boosts the recipes it excludes. Capped at 15.
        """
        excluded = {token.lower() for token in excluded_tokens}
        keywords: List[str] = []

        def add(term: str) -> None:
            term = term.lower().strip()
            if (
                term
                and term not in keywords
                and term not in self.reference.stopwords
                and not any(_mentions(term, ex) for ex in excluded)
            ):
                keywords.append(term)

        for token in tokenize(query):
            if not token.isdigit():
                add(token)
        for entity in entities:
            if entity.type in ("difficulty", "time"):
                continue
            add(entity.value.replace("_", " "))
            for synonym in entity.synonyms:
                add(synonym)

        return keywords[:MAX_KEYWORDS]
