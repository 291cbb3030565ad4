"""
Conversation Store

Append-only session log used for follow-up detection. Two implementations
share the ConversationStore protocol:

- InMemoryConversationStore: default, bounded per session
- SqlConversationStore: SQLAlchemy async, used when DATABASE_URL is set
"""

import asyncio
from collections import OrderedDict, deque
from typing import Deque, List, Optional, Protocol

from loguru import logger

from kitchen_assistant.config import settings
from kitchen_assistant.db.repositories.conversation_turn_repo import ConversationTurnRepository
from kitchen_assistant.db.session import create_engine_for, create_session_factory, create_tables, session_scope
from kitchen_assistant.schemas.conversation import ConversationTurn

MAX_SESSIONS = 1000


class ConversationStore(Protocol):
    async def append(self, turn: ConversationTurn) -> None: ...

    async def recent(self, session_id: str, n: int) -> List[ConversationTurn]: ...


class InMemoryConversationStore:
    """
    Process-local store.

    Each session keeps at most ``max_turns`` turns; the least recently used
    sessions are evicted beyond ``max_sessions``.
    """

    def __init__(self, max_turns: Optional[int] = None, max_sessions: int = MAX_SESSIONS):
        self.max_turns = max_turns or settings.CONVERSATION_MAX_TURNS
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, Deque[ConversationTurn]]" = OrderedDict()
        self._lock = asyncio.Lock()

    async def append(self, turn: ConversationTurn) -> None:
        async with self._lock:
            turns = self._sessions.get(turn.session_id)
            if turns is None:
                turns = deque(maxlen=self.max_turns)
                self._sessions[turn.session_id] = turns
            turns.append(turn)
            self._sessions.move_to_end(turn.session_id)
            while len(self._sessions) > self.max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                logger.debug(f"Evicted conversation session {evicted}")

    async def recent(self, session_id: str, n: int) -> List[ConversationTurn]:
        async with self._lock:
            turns = self._sessions.get(session_id)
            if not turns or n <= 0:
                return []
            return list(turns)[-n:]


class SqlConversationStore:
    """
    SQLAlchemy-backed store. Tables are created on first use.

    Usage:
        store = SqlConversationStore("sqlite+aiosqlite:///./conversations.db")
        await store.append(turn)
        history = await store.recent("session-1", 6)
    """

    def __init__(self, database_url: str, max_turns: Optional[int] = None):
        self.engine = create_engine_for(database_url)
        self.session_factory = create_session_factory(self.engine)
        self.max_turns = max_turns or settings.CONVERSATION_MAX_TURNS
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def _ensure_tables(self) -> None:
        if self._initialized:
            return
        async with self._init_lock:
            if not self._initialized:
                await create_tables(self.engine)
                self._initialized = True

    async def append(self, turn: ConversationTurn) -> None:
        await self._ensure_tables()
        async with session_scope(self.session_factory) as session:
            repo = ConversationTurnRepository(session)
            await repo.create(
                session_id=turn.session_id,
                query=turn.query,
                response=turn.response,
                intent=turn.intent,
                entities=turn.entities,
                recipes=turn.recipes,
            )
            pruned = await repo.prune(turn.session_id, keep=self.max_turns)
            if pruned:
                logger.debug(f"Pruned {pruned} old turn(s) from session {turn.session_id}")

    async def recent(self, session_id: str, n: int) -> List[ConversationTurn]:
        if n <= 0:
            return []
        await self._ensure_tables()
        async with session_scope(self.session_factory) as session:
            records = await ConversationTurnRepository(session).list_recent(session_id, n)
            return [
                ConversationTurn(
                    session_id=record.session_id,
                    query=record.query,
                    response=record.response,
                    timestamp=record.created_at,
                    intent=record.intent,
                    entities=record.entities or [],
                    recipes=record.recipes or [],
                )
                for record in records
            ]

    async def close(self) -> None:
        await self.engine.dispose()


_store: Optional[ConversationStore] = None


def get_conversation_store() -> ConversationStore:
    """Process-wide store: SQL when DATABASE_URL is set, in-memory otherwise."""
    global _store
    if _store is None:
        if settings.DATABASE_URL:
            logger.info("Using SQL conversation store")
            _store = SqlConversationStore(settings.DATABASE_URL)
        else:
            _store = InMemoryConversationStore()
    return _store


def set_conversation_store(store: Optional[ConversationStore]) -> None:
    """Replace the process-wide store (None resets to the configured default)."""
    global _store
    _store = store
