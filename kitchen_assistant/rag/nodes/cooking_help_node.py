"""
Cooking Help Node

Answers ingredient-substitution and technique questions from the shipped
reference data. Follow-up queries pass through untouched; the composer
answers them from conversation context.
"""

from typing import Any, Dict, List, Sequence

from loguru import logger

from kitchen_assistant.rag.nlp.allergen_detector import AllergenDetector
from kitchen_assistant.rag.nlp.matching import contains_term, normalize
from kitchen_assistant.rag.reference.loader import ReferenceData, load_reference_data
from kitchen_assistant.rag.utils.node_wrapper import with_node_error_handling
from kitchen_assistant.rag.utils.state import GraphState

MAX_TIPS = 3

FALLBACK_HELP = (
    "Tell me which ingredient you want to replace or which technique you're working on "
    "(for example 'what can I use instead of butter?' or 'tips for stir-frying') and I'll help."
)


def _safe(options: Sequence[str], allergy_tokens: Sequence[str]) -> List[str]:
    return [o for o in options if not any(token in o.lower() for token in allergy_tokens)]


def substitution_lines(
    query: str, allergies: Sequence[str], reference: ReferenceData, detector: AllergenDetector
) -> List[str]:
    """Substitutes for ingredients named in the query, minus anything the user is allergic to."""
    text = normalize(query)
    tokens = [t for allergy in allergies for t in reference.allergen_tokens(allergy)]
    lines = []

    for ingredient, options in reference.substitutions.items():
        if contains_term(text, ingredient):
            safe = _safe(options, tokens)
            if safe:
                lines.append(f"Instead of {ingredient}, try: {', '.join(safe)}.")

    # allergen names in the query ("replace peanuts") get allergen-free swaps
    for name, record in reference.allergens.items():
        if any(contains_term(text, pattern) for pattern in (name,) + record.patterns):
            safe = _safe(detector.alternatives(name), tokens)
            if safe:
                lines.append(f"{name.replace('_', ' ').capitalize()}-free alternatives: {', '.join(safe)}.")
    return list(dict.fromkeys(lines))


def technique_lines(methods: Sequence[str], reference: ReferenceData) -> List[str]:
    tips: List[str] = []
    for method in methods:
        tips += list(reference.technique_tips.get(method, ()))[:MAX_TIPS]
    return tips


@with_node_error_handling(
    "cooking_help",
    "I couldn't look up cooking help right now. Please try again in a moment.",
)
async def provide_cooking_help(state: GraphState) -> Dict[str, Any]:
    """
    Build a substitution / technique answer.

    Returns:
        Patch with the branch response and which help sections were used
    """
    if state.get("is_follow_up"):
        return {"metadata": {"help_sections": ["follow_up"]}}

    reference = load_reference_data()
    detector = AllergenDetector(reference=reference)
    user_query = state.get("user_query", "")
    allergies = state.get("user_allergies") or []
    entities = state.get("entities") or []

    substitutions = substitution_lines(user_query, allergies, reference, detector)
    methods = [e.value for e in entities if e.type == "cooking_method"]
    tips = technique_lines(methods, reference)

    sections = []
    if substitutions:
        sections.append("Substitutions:\n" + "\n".join(f"- {line}" for line in substitutions))
    if tips:
        sections.append("Technique tips:\n" + "\n".join(f"- {tip}" for tip in tips))
    if not sections:
        general = list(reference.technique_tips.get("general", ()))[:MAX_TIPS]
        if general:
            sections.append("A few general tips:\n" + "\n".join(f"- {tip}" for tip in general))
        sections.append(FALLBACK_HELP)

    used = [name for name, present in (("substitutions", substitutions), ("technique", tips)) if present]
    logger.info(f"Cooking help built from {used or ['general']}")
    return {
        "response": "\n\n".join(sections),
        "metadata": {"help_sections": used or ["general"]},
    }
