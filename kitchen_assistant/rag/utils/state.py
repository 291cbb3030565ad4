"""
LangGraph State Definition

Defines the state schema threaded through the cooking workflow graph.
Nodes return partial patches; LangGraph merges them into the state.
"""

from typing import Annotated, Any, Dict, List, Optional, TypedDict

from kitchen_assistant.schemas.recipe import Entity, IntentResult, RecipeCandidate, SearchFilters


def merge_metadata(current: Optional[Dict[str, Any]], update: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Shallow merge: keys in ``update`` replace keys in ``current``; other keys are kept."""
    return {**(current or {}), **(update or {})}


def merge_state(state: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply a node patch to a state outside the graph (streaming, tests).

    Same rules the graph uses: last-write-wins for every channel except
    metadata, which is shallow-merged. Neither input is mutated.
    """
    merged = {**state, **{k: v for k, v in patch.items() if k != "metadata"}}
    if "metadata" in patch:
        merged["metadata"] = merge_metadata(state.get("metadata"), patch["metadata"])
    return merged


class GraphState(TypedDict, total=False):
    """
    State schema for the cooking workflow.

    Attributes:
        user_query: The original user query
        user_id: Optional caller id (logging only)
        session_id: Conversation session id (history lookup)
        conversation_history: Recent ConversationTurn dicts, oldest first
        user_allergies: Resolved allergy set (declared + detected, canonical names)
        user_profile: Personalization flags (UserProfile dict)
        entities: Extracted entities
        intent: Classified intent
        route: Node chosen after intent analysis
        query_type: follow_up | recipe_detail | new_recipe | general
        is_follow_up: Query refers back to the previous turn's recipe
        search_filters: Structured constraints for retrieval
        search_keywords: Lexical keywords (allergen tokens removed)
        semantic_tags: intent:/type:/combo: tags
        allergen_advisories: Cross-contamination notes (advisory text)
        candidates: Retrieved, safety-filtered recipes
        reference_recipes: Safe references handed to generation
        generated_recipe: Recipe produced by the LLM (only when candidates is empty)
        response: Branch response from cooking_help / general_chat or a node fallback
        final_response: Response composed by response_integration
        current_step: Last node that ran
        metadata: Timings (<node>_ms), error flags (<node>_error), branch, safety flags

    Notes:
        - total=False allows partial state updates (not all fields required)
        - metadata is merged with merge_metadata; all other channels are last-write-wins
    """

    # Input fields (set before graph execution)
    user_query: str
    user_id: Optional[str]
    session_id: Optional[str]
    conversation_history: List[Dict[str, Any]]
    user_allergies: List[str]
    user_profile: Dict[str, Any]

    # Intermediate fields (set during graph execution)
    entities: List[Entity]
    intent: Optional[IntentResult]
    route: Optional[str]
    query_type: Optional[str]
    is_follow_up: bool
    search_filters: Optional[SearchFilters]
    search_keywords: List[str]
    semantic_tags: List[str]
    allergen_advisories: List[str]
    candidates: List[RecipeCandidate]
    reference_recipes: List[RecipeCandidate]
    generated_recipe: Optional[RecipeCandidate]
    response: Optional[str]
    current_step: Optional[str]

    # Output fields (set at graph completion)
    final_response: Optional[str]
    metadata: Annotated[Dict[str, Any], merge_metadata]
