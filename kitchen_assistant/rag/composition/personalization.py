"""
Personalization Rules

Deterministic tips keyed on profile flags, plus intent-based follow-up
suggestions. No model output is involved, so the same state always
produces the same extras.
"""

from typing import Any, Dict, Iterable, List, Optional, Set

from kitchen_assistant.rag.nlp.matching import contains_term, normalize
from kitchen_assistant.schemas.recipe import Entity, SearchFilters

MAX_TIPS = 2
MAX_SUGGESTIONS = 3

QUICK_MINUTES = 30

# flag -> tip; dict order is the output order
PERSONALIZATION_TIPS: Dict[str, str] = {
    "allergy": "Allergy check: read labels on sauces, stocks and spice blends; {allergies} can hide in them.",
    "beginner": "Beginner tip: read the whole recipe once and prep every ingredient before the heat goes on.",
    "time_constrained": "Short on time? Chop everything first and cook the quickest ingredients last.",
    "health_conscious": "Lighter option: steam or grill instead of frying and season with herbs instead of extra salt.",
    "likes_spicy": "Like it hot? Add chili flakes or gochujang at the end so you control the heat.",
}

SPICY_WORDS = ("spicy", "hot", "chili", "매운", "매콤")
BEGINNER_WORDS = ("beginner", "first time", "never cooked", "초보")
HEALTH_VALUES = ("low_calorie", "healthy", "low_carb", "high_protein")

CONTEXTUAL_SUGGESTIONS: Dict[str, List[str]] = {
    "recipe_search": [
        "Ask for the full steps of any recipe above",
        "Ask what you can substitute for an ingredient",
        "Narrow it down, e.g. 'under 20 minutes' or 'for 4 people'",
    ],
    "recipe_detail": [
        "Ask for tips to get the texture right",
        "Ask how to scale the recipe for more people",
    ],
    "ingredient_substitute": [
        "Ask for a recipe that avoids the ingredient entirely",
        "Ask how the substitute changes cooking time",
    ],
    "cooking_advice": [
        "Ask for a recipe that uses this technique",
        "Ask about common mistakes to avoid",
    ],
    "nutritional_info": [
        "Ask for a lighter version of a dish",
        "Ask for high-protein meal ideas",
    ],
    "general_chat": [
        "Try 'recommend a quick dinner'",
        "Tell me your allergies, e.g. 'I'm allergic to peanuts'",
    ],
}


def profile_flags(
    profile: Optional[Dict[str, Any]],
    query: str,
    entities: Iterable[Entity],
    filters: Optional[SearchFilters],
    allergies: Iterable[str],
) -> Set[str]:
    """
    Collect personalization flags from the caller profile and the query.

    Flags: allergy, beginner, time_constrained, health_conscious, likes_spicy.
    """
    profile = profile or {}
    entities = list(entities)
    text = normalize(query)
    flags: Set[str] = set()

    if list(allergies) or profile.get("allergies"):
        flags.add("allergy")
    if (
        profile.get("cooking_level") == "beginner"
        or any(e.type == "difficulty" and e.value == "easy" for e in entities)
        or any(word in text for word in BEGINNER_WORDS)
    ):
        flags.add("beginner")
    if (
        profile.get("time_constrained")
        or any(e.type == "time" and e.value == "quick" for e in entities)
        or (filters is not None and filters.max_minutes is not None and filters.max_minutes <= QUICK_MINUTES)
    ):
        flags.add("time_constrained")
    if profile.get("health_conscious") or any(e.type == "dietary" and e.value in HEALTH_VALUES for e in entities):
        flags.add("health_conscious")
    if profile.get("likes_spicy") or any(contains_term(text, word) for word in SPICY_WORDS):
        flags.add("likes_spicy")
    return flags


def personalization_tips(flags: Set[str], allergies: Iterable[str]) -> List[str]:
    """At most two tips, in rule order."""
    allergy_text = ", ".join(allergies) or "allergens"
    tips = [
        template.format(allergies=allergy_text)
        for flag, template in PERSONALIZATION_TIPS.items()
        if flag in flags
    ]
    return tips[:MAX_TIPS]


def contextual_suggestions(intent: Optional[str]) -> List[str]:
    return CONTEXTUAL_SUGGESTIONS.get(intent or "general_chat", CONTEXTUAL_SUGGESTIONS["general_chat"])[
        :MAX_SUGGESTIONS
    ]
