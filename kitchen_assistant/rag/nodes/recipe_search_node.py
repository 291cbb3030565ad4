"""
Recipe Search Node

Runs hybrid retrieval for the recipe_search route. Allergy exclusion is
applied in the query and again on the returned candidates.
"""

from typing import Any, Dict

from loguru import logger

from kitchen_assistant.rag.retrieval.engine import RetrievalEngine
from kitchen_assistant.rag.utils.node_wrapper import with_node_error_handling
from kitchen_assistant.rag.utils.state import GraphState


@with_node_error_handling(
    "recipe_search",
    "Recipe search is temporarily unavailable.",
    fallback_patch={"candidates": []},
)
async def search_recipes(state: GraphState) -> Dict[str, Any]:
    """
    Retrieve safe recipe candidates for the query.

    Returns:
        Patch with candidates and search metadata (total hits, fallback
        flags, number of candidates removed by the allergen post-filter)
    """
    user_query = state.get("user_query", "")
    allergies = state.get("user_allergies") or []

    engine = RetrievalEngine()
    result = await engine.search(
        user_query,
        keywords=state.get("search_keywords") or [],
        allergies=allergies,
        filters=state.get("search_filters"),
    )

    logger.info(f"Recipe search returned {len(result.candidates)} candidate(s) (fallback={result.fallback})")

    return {
        "candidates": result.candidates,
        "metadata": {
            "total_hits": result.total_hits,
            "search_took_ms": result.took_ms,
            "search_fallback": result.fallback,
            "search_fallback_reason": result.fallback_reason,
            "embedding_fallback": result.embedding_fallback,
            "safety_filtered": result.safety_filtered,
        },
    }
