"""
Hybrid Ranking

Score combination, thresholding, safety-aware ordering and the
client-side allergen post-filter.
"""

from typing import Iterable, List, Tuple

from loguru import logger
from pydantic import BaseModel, model_validator

from kitchen_assistant.schemas.recipe import RecipeCandidate


class HybridWeights(BaseModel):
    """
    Weights for combined = vector_weight * vector_sim + text_weight * text_score.

    Both weights must be non-negative and sum to at most 1.
    """

    vector_weight: float = 0.6
    text_weight: float = 0.4

    @model_validator(mode="after")
    def check_weights(self) -> "HybridWeights":
        if self.vector_weight < 0 or self.text_weight < 0:
            raise ValueError("Hybrid weights must be non-negative")
        if self.vector_weight + self.text_weight > 1.0 + 1e-9:
            raise ValueError(
                f"Hybrid weights must sum to at most 1 (got {self.vector_weight + self.text_weight:.3f})"
            )
        return self


def combine_scores(vector_sim: float, text: float, weights: HybridWeights) -> float:
    return weights.vector_weight * vector_sim + weights.text_weight * text


def apply_hybrid_scores(
    candidates: List[RecipeCandidate], weights: HybridWeights, lexical_only: bool = False
) -> List[RecipeCandidate]:
    """
    Fill combined_score on each candidate from its vector and text scores.

    With lexical_only (no query vector was sent) the text score is used
    as is, so the min-score threshold stays on the same scale as in
    hybrid mode.
    """
    for candidate in candidates:
        if lexical_only:
            combined = candidate.relevance_score
        else:
            combined = combine_scores(candidate.vector_score, candidate.relevance_score, weights)
        candidate.combined_score = round(combined, 6)
    return candidates


def drop_below(candidates: List[RecipeCandidate], min_score: float) -> List[RecipeCandidate]:
    return [c for c in candidates if c.combined_score >= min_score]


def sort_candidates(candidates: List[RecipeCandidate], safety_first: bool) -> List[RecipeCandidate]:
    """
    Order candidates.

    safety_first: ascending risk, ascending allergen count, descending relevance.
    Otherwise: descending relevance, ascending risk, ascending allergen count.
    Python's sort is stable, so equal keys keep backend order.
    """
    if safety_first:
        key = lambda c: (c.allergen_risk_score, c.allergen_count, -c.combined_score)  # noqa: E731
    else:
        key = lambda c: (-c.combined_score, c.allergen_risk_score, c.allergen_count)  # noqa: E731
    return sorted(candidates, key=key)


def post_filter_allergens(
    candidates: List[RecipeCandidate], allergy_tokens: Iterable[str]
) -> Tuple[List[RecipeCandidate], List[str]]:
    """
    Remove every candidate whose ingredient text contains an allergy token.

    Case-insensitive substring match, applied after the backend's own
    exclusion as a second line of defense.

    Returns:
        (kept candidates, ids of removed candidates)
    """
    tokens = [t.lower() for t in allergy_tokens if t]
    if not tokens:
        return list(candidates), []

    kept, removed = [], []
    for candidate in candidates:
        text = candidate.ingredient_text()
        if any(token in text for token in tokens):
            removed.append(candidate.id)
        else:
            kept.append(candidate)

    if removed:
        logger.warning(f"Allergen post-filter removed {len(removed)} candidate(s) missed by the backend: {removed}")
    return kept, removed
