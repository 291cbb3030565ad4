"""
Main Entry Point for the Cooking Workflow

``run()`` prepares the initial state, loads recent conversation history,
invokes the compiled graph and records the turn. It never raises: every
failure becomes a safe response with ``metadata.error`` set.
"""

import asyncio
import time
import uuid
from typing import Any, Dict, Iterable, List, Optional, Union

from loguru import logger

from kitchen_assistant.config import settings
from kitchen_assistant.core.errors import InvalidQueryError
from kitchen_assistant.rag.composition.response_composer import recipes_for_history
from kitchen_assistant.rag.graphs import workflow
from kitchen_assistant.rag.utils.response_cache import ResponseCache, cache_key
from kitchen_assistant.rag.utils.state import GraphState
from kitchen_assistant.schemas.conversation import ConversationTurn, UserProfile
from kitchen_assistant.services.session_store import get_conversation_store

FALLBACK_RESPONSE = "Sorry, something went wrong while handling your request. Please try again."
INVALID_INPUT_RESPONSE = (
    "I couldn't read your allergy list. Please send allergies as a list of names, "
    "for example ['soy', 'peanut']."
)

response_cache = ResponseCache(settings.RESPONSE_CACHE_TTL_SECONDS, settings.RESPONSE_CACHE_SIZE)


class ExecutionStats:
    """Per-process counters for completed requests."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self.reset()

    def reset(self) -> None:
        self.total = 0
        self.errors = 0
        self.cache_hits = 0
        self.total_ms = 0.0
        self.branches: Dict[str, int] = {}

    async def record(self, metadata: Dict[str, Any]) -> None:
        async with self._lock:
            self.total += 1
            self.errors += 1 if metadata.get("error") else 0
            self.cache_hits += 1 if metadata.get("cached") else 0
            self.total_ms += float(metadata.get("total_ms", 0.0))
            branch = metadata.get("branch", "unknown")
            self.branches[branch] = self.branches.get(branch, 0) + 1

    def snapshot(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total,
            "errors": self.errors,
            "cache_hits": self.cache_hits,
            "mean_latency_ms": round(self.total_ms / self.total, 2) if self.total else 0.0,
            "branches": dict(self.branches),
        }


execution_stats = ExecutionStats()


def get_execution_stats() -> Dict[str, Any]:
    """Counts, error total, cache hits, mean latency and branch distribution for this process."""
    return execution_stats.snapshot()


def normalize_allergies(allergies: Union[None, str, Iterable[Any]]) -> List[str]:
    """
    Coerce caller-supplied allergies into a list of non-empty strings.

    A comma-separated string is split. Anything that is not a string or
    an iterable raises InvalidQueryError.
    """
    if allergies is None:
        return []
    if isinstance(allergies, str):
        items: List[Any] = allergies.split(",")
    else:
        try:
            items = list(allergies)
        except TypeError as e:
            raise InvalidQueryError(f"allergies must be a list of names, got {type(allergies).__name__}") from e
    cleaned = []
    for item in items:
        if item is None:
            continue
        name = str(item).strip().lower()
        if name and name not in cleaned:
            cleaned.append(name)
    return cleaned


def build_initial_state(
    query: Any,
    session_id: Optional[str] = None,
    allergies: Union[None, str, Iterable[Any]] = None,
    user_id: Optional[str] = None,
    profile: Union[None, Dict[str, Any], UserProfile] = None,
    history: Optional[List[Dict[str, Any]]] = None,
) -> GraphState:
    """
    Validate and normalise the caller's input into a GraphState.

    Raises:
        InvalidQueryError: allergies or profile cannot be interpreted
    """
    if isinstance(profile, UserProfile):
        profile_data = profile.model_dump()
    elif profile is None:
        profile_data = {}
    elif isinstance(profile, dict):
        profile_data = UserProfile.model_validate(profile).model_dump()
    else:
        raise InvalidQueryError(f"profile must be a dict, got {type(profile).__name__}")

    declared = normalize_allergies(allergies)
    for allergy in normalize_allergies(profile_data.get("allergies")):
        if allergy not in declared:
            declared.append(allergy)

    return {
        "user_query": query if isinstance(query, str) else ("" if query is None else str(query)),
        "user_id": user_id,
        "session_id": session_id,
        "conversation_history": list(history or []),
        "user_allergies": declared,
        "user_profile": profile_data,
        "metadata": {},
    }


async def load_history(session_id: Optional[str]) -> List[Dict[str, Any]]:
    """Recent turns for the session as dicts, oldest first. Empty on failure."""
    if not session_id:
        return []
    try:
        turns = await get_conversation_store().recent(session_id, settings.CONVERSATION_CONTEXT_TURNS)
    except Exception as e:
        logger.warning(f"Could not load conversation history for {session_id}: {e}")
        return []
    return [turn.model_dump(mode="json") for turn in turns]


async def record_turn(state: Dict[str, Any], response: str) -> None:
    """Append the completed turn to the session log (best-effort)."""
    session_id = state.get("session_id")
    if not session_id:
        return
    intent = state.get("intent")
    try:
        turn = ConversationTurn(
            session_id=session_id,
            query=state.get("user_query", ""),
            response=response,
            intent=intent.primary if intent else None,
            entities=[entity.model_dump() for entity in state.get("entities") or []],
            recipes=recipes_for_history(state),
        )
        await get_conversation_store().append(turn)
    except Exception as e:
        logger.warning(f"Could not record conversation turn for {session_id}: {e}")


def finalize_metadata(
    state: Dict[str, Any], request_id: str, started: float, cached: bool = False
) -> Dict[str, Any]:
    metadata = dict(state.get("metadata") or {})
    intent = state.get("intent")
    metadata.setdefault("error", False)
    metadata.setdefault("branch", "unknown")
    metadata.setdefault("allergies", list(state.get("user_allergies") or []))
    metadata.setdefault("safety_filtered", 0)
    metadata.update(
        {
            "request_id": request_id,
            "session_id": state.get("session_id"),
            "intent": intent.primary if intent else metadata.get("intent"),
            "route": state.get("route"),
            "cached": cached,
            "total_ms": round((time.perf_counter() - started) * 1000, 2),
        }
    )
    return metadata


def error_result(message: str, request_id: str, started: float, reason: str) -> Dict[str, Any]:
    return {
        "response": message,
        "metadata": {
            "error": True,
            "error_reason": reason,
            "branch": "error",
            "request_id": request_id,
            "cached": False,
            "total_ms": round((time.perf_counter() - started) * 1000, 2),
        },
    }


async def run(
    query: str,
    session_id: Optional[str] = None,
    allergies: Union[None, str, Iterable[str]] = None,
    user_id: Optional[str] = None,
    profile: Union[None, Dict[str, Any], UserProfile] = None,
) -> Dict[str, Any]:
    """
    Handle one user query end to end.

    Args:
        query: User text (empty gives a clarification prompt)
        session_id: Conversation id; enables follow-ups and turn logging
        allergies: Declared allergies, merged with any stated in the query
        user_id: Caller id, for logs only
        profile: Optional UserProfile (or dict) for personalization tips

    Returns:
        {"response": str, "metadata": dict}. Never raises.

    Example:
        result = await run("soy allergy, recommend a tofu-free stir-fry")
        print(result["response"])
        print(result["metadata"]["allergies"])  # ["soy"]
    """
    request_id = str(uuid.uuid4())
    started = time.perf_counter()

    with logger.contextualize(request_id=request_id):
        try:
            state = build_initial_state(query, session_id, allergies, user_id, profile)
        except (InvalidQueryError, ValueError) as e:
            logger.warning(f"Rejected malformed input: {e}")
            result = error_result(INVALID_INPUT_RESPONSE, request_id, started, "invalid_input")
            await execution_stats.record(result["metadata"])
            return result

        logger.info(
            f"Handling query for session={session_id}, user={user_id}: {state['user_query'][:50]}..."
        )

        state["conversation_history"] = await load_history(session_id)
        key = cache_key(state["user_query"], state["user_allergies"], session_id, state.get("user_profile"))
        use_cache = not state["conversation_history"]

        if use_cache:
            cached = await response_cache.get(key)
            if cached is not None:
                logger.info("Serving cached response")
                cached["metadata"].update(
                    {"cached": True, "request_id": request_id, "total_ms": round((time.perf_counter() - started) * 1000, 2)}
                )
                await record_turn(
                    {**state, **cached.get("state", {}), "metadata": cached["metadata"]}, cached["response"]
                )
                result = {"response": cached["response"], "metadata": cached["metadata"]}
                await execution_stats.record(result["metadata"])
                return result

        try:
            final_state = await workflow.compiled_cooking_workflow.ainvoke(state)
        except Exception as e:
            logger.exception(f"Cooking workflow failed: {e}")
            result = error_result(FALLBACK_RESPONSE, request_id, started, type(e).__name__)
            await execution_stats.record(result["metadata"])
            return result

        response = final_state.get("final_response") or final_state.get("response") or FALLBACK_RESPONSE
        metadata = finalize_metadata(final_state, request_id, started)
        await record_turn(final_state, response)

        if use_cache and not metadata["error"]:
            await response_cache.set(
                key,
                {
                    "response": response,
                    "metadata": metadata,
                    "state": {
                        "intent": final_state.get("intent"),
                        "entities": final_state.get("entities") or [],
                        "candidates": final_state.get("candidates") or [],
                        "generated_recipe": final_state.get("generated_recipe"),
                    },
                },
            )

        await execution_stats.record(metadata)
        logger.info(f"Request completed in {metadata['total_ms']}ms (branch={metadata['branch']}, error={metadata['error']})")
        return {"response": response, "metadata": metadata}
