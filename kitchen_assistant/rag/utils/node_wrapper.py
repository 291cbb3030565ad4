"""
Uniform node error handling.

Every graph node is wrapped by ``with_node_error_handling``. The wrapper
times the node and records ``<node>_ms`` in metadata. It also turns any
exception into a safe fallback patch, so an internal error never ends a
request.
"""

import functools
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from loguru import logger

from kitchen_assistant.rag.utils.state import GraphState

NodeFn = Callable[[GraphState], Awaitable[Dict[str, Any]]]


def with_node_error_handling(
    node_name: str,
    fallback_message: str,
    fallback_patch: Optional[Dict[str, Any]] = None,
    response_key: str = "response",
) -> Callable[[NodeFn], NodeFn]:
    """
    Decorator factory for graph nodes.

    Args:
        node_name: Node id, used for metadata keys and logs
        fallback_message: User-facing text written to ``response_key`` on failure
        fallback_patch: Extra state to apply on failure (e.g. a safe route)
        response_key: State key that receives the fallback text

    Returns:
        Decorator producing a node that never raises

    On failure the patch contains:
        - response_key: fallback_message
        - metadata.error: True
        - metadata.<node>_error: exception text
        - metadata.<node>_ms: elapsed time
    """

    def decorator(fn: NodeFn) -> NodeFn:
        @functools.wraps(fn)
        async def wrapped(state: GraphState) -> Dict[str, Any]:
            started = time.perf_counter()
            try:
                patch = await fn(state) or {}
            except Exception as e:
                elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
                logger.exception(f"Node '{node_name}' failed after {elapsed_ms}ms: {e}")
                return {
                    **(fallback_patch or {}),
                    response_key: fallback_message,
                    "current_step": node_name,
                    "metadata": {
                        "error": True,
                        f"{node_name}_error": f"{type(e).__name__}: {e}",
                        f"{node_name}_ms": elapsed_ms,
                    },
                }

            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            logger.debug(f"Node '{node_name}' completed in {elapsed_ms}ms")
            return {
                **patch,
                "current_step": node_name,
                "metadata": {**patch.get("metadata", {}), f"{node_name}_ms": elapsed_ms},
            }

        return wrapped

    return decorator
