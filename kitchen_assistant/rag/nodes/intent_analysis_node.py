"""
Intent Analysis Node

First node of the cooking workflow. Runs the deterministic query analysis
(entities, allergies, intent, filters, keywords) and picks the branch node.
"""

from typing import Any, Dict

from loguru import logger

from kitchen_assistant.rag.graphs.routing import next_node_for_intent
from kitchen_assistant.rag.nlp.query_analysis import analyze_query
from kitchen_assistant.rag.utils.node_wrapper import with_node_error_handling
from kitchen_assistant.rag.utils.state import GraphState
from kitchen_assistant.schemas.recipe import IntentResult

GENERAL_CHAT_INTENT = IntentResult(primary="general_chat", confidence=0.2)


@with_node_error_handling(
    "intent_analysis",
    "I had trouble understanding that request. Could you rephrase it?",
    fallback_patch={"intent": GENERAL_CHAT_INTENT, "route": "general_chat"},
)
async def analyze_intent(state: GraphState) -> Dict[str, Any]:
    """
    Analyze the user query and choose the next node.

    Args:
        state: Current graph state containing:
            - user_query: The user's input text
            - user_allergies: Allergies declared by the caller
            - conversation_history: Recent turns (follow-up detection)

    Returns:
        Patch with entities, intent, route, filters, keywords, the resolved
        allergy list and analysis metadata
    """
    user_query = (state.get("user_query") or "").strip()

    if not user_query:
        logger.info("Empty query, routing to general_chat for clarification")
        return {
            "entities": [],
            "intent": GENERAL_CHAT_INTENT,
            "route": "general_chat",
            "query_type": "general",
            "is_follow_up": False,
            "metadata": {"intent": "general_chat", "intent_confidence": 0.2, "clarification_needed": True},
        }

    analysis = analyze_query(
        user_query,
        declared_allergies=state.get("user_allergies"),
        history=state.get("conversation_history"),
    )
    route = next_node_for_intent(analysis.intent.primary, analysis.is_follow_up)

    logger.info(
        f"Intent '{analysis.intent.primary}' ({analysis.intent.confidence:.2f}) -> {route}; "
        f"entities={len(analysis.entities)}, allergies={analysis.allergies}, follow_up={analysis.is_follow_up}"
    )

    return {
        "entities": analysis.entities,
        "intent": analysis.intent,
        "route": route,
        "query_type": analysis.query_type,
        "is_follow_up": analysis.is_follow_up,
        "user_allergies": analysis.allergies,
        "allergen_advisories": analysis.allergen_advisories,
        "search_filters": analysis.filters,
        "search_keywords": analysis.keywords,
        "semantic_tags": analysis.semantic_tags,
        "metadata": {
            "intent": analysis.intent.primary,
            "intent_confidence": analysis.intent.confidence,
            "secondary_intents": list(analysis.intent.secondary),
            "overall_confidence": analysis.overall_confidence,
            "complexity": analysis.complexity,
            "refinement_suggestions": analysis.suggestions,
        },
    }
