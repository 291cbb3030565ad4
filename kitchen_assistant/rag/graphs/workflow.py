"""
Cooking Workflow for LangGraph

Single graph for every request:

    START → intent_analysis → {recipe_search | cooking_help | general_chat}
    recipe_search → {recipe_generation (zero candidates) | response_integration}
    recipe_generation, cooking_help, general_chat → response_integration → END

Nodes run sequentially. Each node is wrapped with with_node_error_handling
and never raises, so the graph always reaches END.
"""

from typing import Any, Dict

from langgraph.graph import END, StateGraph
from loguru import logger

from kitchen_assistant.rag.graphs.routing import BRANCH_NODES, route_after_intent, route_after_search
from kitchen_assistant.rag.nodes.cooking_help_node import provide_cooking_help
from kitchen_assistant.rag.nodes.general_chat_node import handle_general_chat
from kitchen_assistant.rag.nodes.intent_analysis_node import analyze_intent
from kitchen_assistant.rag.nodes.recipe_generation_node import generate_recipe
from kitchen_assistant.rag.nodes.recipe_search_node import search_recipes
from kitchen_assistant.rag.nodes.response_integration_node import integrate_response
from kitchen_assistant.rag.utils.state import GraphState


def build_cooking_workflow():
    """
    Build and compile the cooking workflow graph.

    The conditional edge out of intent_analysis uses the same routing table
    as next_node_for_intent, so every branch node is reachable and no
    intent can dead-end.

    Returns:
        Compiled StateGraph

    Example:
        workflow = build_cooking_workflow()
        result = await workflow.ainvoke({
            "user_query": "soy allergy, recommend a tofu-free stir-fry",
            "user_allergies": [],
            "conversation_history": [],
        })
        print(result["final_response"])
    """
    workflow = StateGraph(GraphState)

    workflow.add_node("intent_analysis", analyze_intent)
    workflow.add_node("recipe_search", search_recipes)
    workflow.add_node("recipe_generation", generate_recipe)
    workflow.add_node("cooking_help", provide_cooking_help)
    workflow.add_node("general_chat", handle_general_chat)
    workflow.add_node("response_integration", integrate_response)

    workflow.set_entry_point("intent_analysis")

    workflow.add_conditional_edges(
        "intent_analysis",
        route_after_intent,
        {node: node for node in BRANCH_NODES},
    )
    workflow.add_conditional_edges(
        "recipe_search",
        route_after_search,
        {"recipe_generation": "recipe_generation", "response_integration": "response_integration"},
    )

    workflow.add_edge("recipe_generation", "response_integration")
    workflow.add_edge("cooking_help", "response_integration")
    workflow.add_edge("general_chat", "response_integration")
    workflow.add_edge("response_integration", END)

    return workflow.compile()


# Export compiled graph for easy import
compiled_cooking_workflow = build_cooking_workflow()


async def run_cooking_workflow(state: GraphState) -> Dict[str, Any]:
    """Invoke the compiled workflow with a prepared initial state."""
    logger.info(f"Running cooking workflow for query: {state.get('user_query', '')[:50]}...")
    result = await compiled_cooking_workflow.ainvoke(state)
    logger.info(f"Cooking workflow completed - branch: {result.get('metadata', {}).get('branch', 'unknown')}")
    return result
