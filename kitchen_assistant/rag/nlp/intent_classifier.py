"""
Intent Classifier

Deterministic, pattern-weighted intent scoring. Each intent owns a list of
regex patterns; every matching pattern adds that intent's weight once.
Entity presence adds secondary boosts. The highest non-zero score wins,
with ties going to recipe_search and then to declaration order.

A query that matches nothing is classified as general_chat with a low
confidence floor instead of raising.
"""

import re
from typing import Dict, List, Optional, Tuple

from loguru import logger

from kitchen_assistant.rag.nlp.matching import normalize
from kitchen_assistant.schemas.recipe import Entity, IntentName, IntentResult

GENERAL_CHAT_CONFIDENCE = 0.2

# intent -> (weight per pattern hit, patterns); order is the tie-break order
INTENT_PATTERNS: Dict[str, Tuple[float, Tuple[str, ...]]] = {
    "recipe_search": (
        0.3,
        (
            r"\b(recommend|suggest|find|search|looking for|show me|ideas?)\b",
            r"\b(recipes?|dish(es)?|meals?|dinner|lunch|breakfast|snack|side dish)\b",
            r"\bwhat (should|can) i (cook|make|eat)\b",
            r"(추천|레시피|뭐 먹|메뉴)",
        ),
    ),
    "recipe_detail": (
        0.4,
        (
            r"\bhow (do|to|can|should) (i|you)? ?(make|cook|prepare)\b",
            r"\b(steps?|instructions?|method for|walk me through)\b",
            r"(만드는 법|만드는 방법|조리법|어떻게 만들)",
        ),
    ),
    "ingredient_substitute": (
        0.5,
        (
            r"\b(instead of|substitutes?|substitution|replace|replacement|swap|alternative to)\b",
            r"\b(out of|ran out|don't have|do not have)\b",
            r"(대신|대체|없으면)",
        ),
    ),
    "cooking_advice": (
        0.4,
        (
            r"\b(tips?|advice|tricks?|secrets?|technique)\b",
            r"\b(how long|what temperature|why does|why is|keep .* from)\b",
            r"(팁|요령|비법|노하우)",
        ),
    ),
    "nutritional_info": (
        0.4,
        (
            r"\b(calories?|nutrition(al)?|macros?|carbs?|protein content|fat content|sodium)\b",
            r"(칼로리|영양|열량)",
        ),
    ),
}

# entity type -> (intent, boost)
ENTITY_BOOSTS: Dict[str, Tuple[str, float]] = {
    "dietary": ("nutritional_info", 0.2),
    "ingredient": ("recipe_search", 0.1),
    "cooking_method": ("recipe_detail", 0.1),
}

_COMPILED = {
    intent: (weight, tuple(re.compile(p) for p in patterns))
    for intent, (weight, patterns) in INTENT_PATTERNS.items()
}
_TIE_ORDER = list(INTENT_PATTERNS)


def score_intents(query: str, entities: Optional[List[Entity]] = None) -> Dict[str, float]:
    """
    Raw intent scores before selection.

    Args:
        query: User query
        entities: Extracted entities (boost sources)

    Returns:
        intent -> score (unbounded, rounded to 4 places)
    """
    text = normalize(query)
    scores = {intent: 0.0 for intent in _COMPILED}

    for intent, (weight, patterns) in _COMPILED.items():
        for pattern in patterns:
            if pattern.search(text):
                scores[intent] += weight

    boosted = set()
    for entity in entities or []:
        boost = ENTITY_BOOSTS.get(entity.type)
        # one boost per entity type
        if boost and entity.type not in boosted:
            boosted.add(entity.type)
            scores[boost[0]] += boost[1]

    return {intent: round(score, 4) for intent, score in scores.items()}


def classify_intent(query: str, entities: Optional[List[Entity]] = None) -> IntentResult:
    """
    Classify a query into a primary intent with up to two secondary intents.

    Confidence is min(top score, 1.0). No positive score yields general_chat
    with confidence 0.2.
    """
    scores = score_intents(query, entities)
    ranked = sorted(
        (intent for intent, score in scores.items() if score > 0),
        key=lambda intent: (-scores[intent], intent != "recipe_search", _TIE_ORDER.index(intent)),
    )

    if not ranked:
        logger.debug("No intent pattern matched, falling back to general_chat")
        return IntentResult(primary="general_chat", confidence=GENERAL_CHAT_CONFIDENCE, scores=scores)

    primary: IntentName = ranked[0]
    result = IntentResult(
        primary=primary,
        secondary=ranked[1:3],
        confidence=min(scores[primary], 1.0),
        scores=scores,
    )
    logger.debug(f"Intent scores: {scores} -> {result.primary} ({result.confidence:.2f})")
    return result
