"""
Response Integration Node

Final node: composes the user-facing response from whatever the branch
nodes produced.
"""

from typing import Any, Dict

from loguru import logger

from kitchen_assistant.rag.composition.response_composer import compose_response
from kitchen_assistant.rag.utils.node_wrapper import with_node_error_handling
from kitchen_assistant.rag.utils.state import GraphState

INTEGRATION_FALLBACK = "Sorry, something went wrong while preparing your answer. Please try again."


@with_node_error_handling("response_integration", INTEGRATION_FALLBACK, response_key="final_response")
async def integrate_response(state: GraphState) -> Dict[str, Any]:
    response, metadata = compose_response(state)
    logger.info(f"Composed '{metadata['branch']}' response ({len(response)} chars)")
    return {"final_response": response, "metadata": metadata}
