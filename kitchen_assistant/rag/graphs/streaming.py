"""
Streaming Entry Point

Runs the cooking workflow as a producer task that pushes per-node updates
onto an asyncio.Queue; the consumer turns them into StreamChunks.

Chunk order: one ``status`` chunk per finished node, ``content`` chunks
for the composed response, then a terminal ``complete`` chunk. A producer
that exceeds STREAM_TIMEOUT_SECONDS gets a terminal ``error`` chunk
instead. If ``is_connected`` reports a disconnect, the stream stops
without a terminal chunk; state already computed is not rolled back.
"""

import asyncio
import inspect
import time
import uuid
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional, Union

from loguru import logger

from kitchen_assistant.config import settings
from kitchen_assistant.core.errors import InvalidQueryError
from kitchen_assistant.rag.graphs import workflow
from kitchen_assistant.rag.graphs.router import (
    FALLBACK_RESPONSE,
    INVALID_INPUT_RESPONSE,
    build_initial_state,
    execution_stats,
    finalize_metadata,
    load_history,
    record_turn,
)
from kitchen_assistant.rag.utils.state import merge_state
from kitchen_assistant.schemas.conversation import UserProfile
from kitchen_assistant.schemas.stream import (
    StreamChunk,
    complete_chunk,
    content_chunk,
    error_chunk,
    status_chunk,
)

STATUS_MESSAGES = {
    "intent_analysis": "Understanding your request...",
    "recipe_search": "Searching recipes...",
    "recipe_generation": "Creating a new recipe...",
    "cooking_help": "Looking up cooking help...",
    "general_chat": "Thinking...",
    "response_integration": "Putting the answer together...",
}

ConnectionCheck = Callable[[], Any]


async def _still_connected(is_connected: Optional[ConnectionCheck]) -> bool:
    if is_connected is None:
        return True
    result = is_connected()
    if inspect.isawaitable(result):
        result = await result
    return bool(result)


def split_content(response: str) -> List[str]:
    """Paragraph-sized pieces of the response, in order."""
    return [part for part in response.split("\n\n") if part.strip()] or [response]


async def _produce(state: Dict[str, Any], queue: "asyncio.Queue[tuple]") -> None:
    merged = dict(state)
    try:
        async for update in workflow.compiled_cooking_workflow.astream(state, stream_mode="updates"):
            for node, patch in update.items():
                patch = patch or {}
                merged = merge_state(merged, patch)
                await queue.put(("node", node, patch))
        await queue.put(("done", merged, None))
    except Exception as e:
        logger.exception(f"Streaming workflow failed: {e}")
        await queue.put(("failed", merged, e))


async def stream(
    query: str,
    session_id: Optional[str] = None,
    allergies: Union[None, str, Iterable[str]] = None,
    user_id: Optional[str] = None,
    profile: Union[None, Dict[str, Any], UserProfile] = None,
    is_connected: Optional[ConnectionCheck] = None,
    timeout: Optional[float] = None,
) -> AsyncIterator[StreamChunk]:
    """
    Stream progress and the final response for one query.

    Args:
        query, session_id, allergies, user_id, profile: As for run()
        is_connected: Sync or async callable checked before every chunk
        timeout: Seconds before a terminal timeout error (default STREAM_TIMEOUT_SECONDS)

    Yields:
        StreamChunk events; the last one has ``final=True`` unless the
        client disconnected

    Example:
        async for chunk in stream("quick kimchi fried rice", allergies=["egg"]):
            if chunk.type == "content":
                print(chunk.payload["text"])
    """
    request_id = str(uuid.uuid4())
    started = time.perf_counter()
    timeout = settings.STREAM_TIMEOUT_SECONDS if timeout is None else timeout

    with logger.contextualize(request_id=request_id):
        try:
            state = build_initial_state(query, session_id, allergies, user_id, profile)
        except (InvalidQueryError, ValueError) as e:
            logger.warning(f"Rejected malformed input: {e}")
            if await _still_connected(is_connected):
                yield error_chunk(INVALID_INPUT_RESPONSE, "invalid_input")
            return

        state["conversation_history"] = await load_history(session_id)

        queue: "asyncio.Queue[tuple]" = asyncio.Queue()
        producer = asyncio.create_task(_produce(state, queue))
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        try:
            while True:
                remaining = deadline - loop.time()
                try:
                    if remaining <= 0:
                        raise asyncio.TimeoutError()
                    kind, value, extra = await asyncio.wait_for(queue.get(), timeout=remaining)
                except asyncio.TimeoutError:
                    logger.error(f"Stream timed out after {timeout}s")
                    await execution_stats.record({"error": True, "branch": "timeout", "total_ms": timeout * 1000})
                    if await _still_connected(is_connected):
                        yield error_chunk(
                            "The request took too long. Please try again.", "timeout"
                        )
                    return

                if not await _still_connected(is_connected):
                    logger.info("Client disconnected, stopping stream")
                    return

                if kind == "node":
                    elapsed_ms = (extra.get("metadata") or {}).get(f"{value}_ms", 0.0)
                    yield status_chunk(value, STATUS_MESSAGES.get(value, value), elapsed_ms)
                    continue

                if kind == "failed":
                    metadata = {**finalize_metadata(value, request_id, started), "error": True}
                    await execution_stats.record(metadata)
                    yield error_chunk(FALLBACK_RESPONSE, type(extra).__name__)
                    return

                response = value.get("final_response") or value.get("response") or FALLBACK_RESPONSE
                metadata = finalize_metadata(value, request_id, started)
                for index, part in enumerate(split_content(response)):
                    if not await _still_connected(is_connected):
                        logger.info("Client disconnected during content delivery")
                        return
                    yield content_chunk(part, index)

                await record_turn(value, response)
                await execution_stats.record(metadata)
                if await _still_connected(is_connected):
                    yield complete_chunk(response, metadata)
                return
        finally:
            if not producer.done():
                producer.cancel()
