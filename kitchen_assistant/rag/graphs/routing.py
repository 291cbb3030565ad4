"""
Workflow Routing

Pure routing functions for the cooking workflow graph. The intent table
covers every IntentName; anything else falls back to general_chat.
"""

from typing import Dict, Literal, Optional, get_args

from kitchen_assistant.core.errors import ConfigurationError
from kitchen_assistant.rag.utils.state import GraphState
from kitchen_assistant.schemas.recipe import IntentName

NodeName = Literal[
    "intent_analysis",
    "recipe_search",
    "recipe_generation",
    "cooking_help",
    "general_chat",
    "response_integration",
]

BranchNode = Literal["recipe_search", "cooking_help", "general_chat"]

INTENT_ROUTES: Dict[str, BranchNode] = {
    "recipe_search": "recipe_search",
    "recipe_detail": "recipe_search",
    "nutritional_info": "recipe_search",
    "ingredient_substitute": "cooking_help",
    "cooking_advice": "cooking_help",
    "general_chat": "general_chat",
}

BRANCH_NODES = tuple(get_args(BranchNode))


def check_intent_routes(routes: Dict[str, str]) -> None:
    """Raise if an intent has no route or a route targets an unknown node."""
    missing = set(get_args(IntentName)) - set(routes)
    unknown = set(routes.values()) - set(BRANCH_NODES)
    if missing or unknown:
        raise ConfigurationError(
            f"Invalid intent routing table (missing intents: {sorted(missing)}, unknown nodes: {sorted(unknown)})"
        )


check_intent_routes(INTENT_ROUTES)


def next_node_for_intent(intent: Optional[str], is_follow_up: bool = False) -> BranchNode:
    """
    Branch node for a classified intent.

    Follow-ups go to cooking_help (the composer answers them from
    conversation context). Unknown or missing intents go to general_chat.
    """
    if is_follow_up:
        return "cooking_help"
    return INTENT_ROUTES.get(intent or "", "general_chat")


def route_after_intent(state: GraphState) -> BranchNode:
    """Conditional edge out of intent_analysis."""
    route = state.get("route")
    if route in BRANCH_NODES:
        return route
    intent = state.get("intent")
    return next_node_for_intent(intent.primary if intent else None, state.get("is_follow_up", False))


def route_after_search(state: GraphState) -> Literal["recipe_generation", "response_integration"]:
    """Generation from scratch runs only when retrieval produced zero candidates."""
    if state.get("candidates"):
        return "response_integration"
    return "recipe_generation"
