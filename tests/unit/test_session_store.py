"""Unit tests for the conversation stores."""

import pytest
import pytest_asyncio

from kitchen_assistant.db.repositories.conversation_turn_repo import ConversationTurnRepository
from kitchen_assistant.db.session import session_scope
from kitchen_assistant.schemas.conversation import ConversationTurn
from kitchen_assistant.services import session_store
from kitchen_assistant.services.session_store import (
    InMemoryConversationStore,
    SqlConversationStore,
    get_conversation_store,
    set_conversation_store,
)


def _turn(session_id, index, recipes=None):
    return ConversationTurn(
        session_id=session_id,
        query=f"query {index}",
        response=f"response {index}",
        intent="recipe_search",
        recipes=recipes or [],
    )


class TestInMemoryConversationStore:
    """Unit tests for InMemoryConversationStore."""

    @pytest.mark.asyncio
    async def test_recent_is_oldest_first(self):
        store = InMemoryConversationStore(max_turns=10)
        for i in range(4):
            await store.append(_turn("s1", i))

        recent = await store.recent("s1", 2)

        assert [t.query for t in recent] == ["query 2", "query 3"]

    @pytest.mark.asyncio
    async def test_per_session_bound(self):
        store = InMemoryConversationStore(max_turns=3)
        for i in range(5):
            await store.append(_turn("s1", i))

        assert [t.query for t in await store.recent("s1", 10)] == ["query 2", "query 3", "query 4"]

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self):
        store = InMemoryConversationStore()
        await store.append(_turn("s1", 1))

        assert await store.recent("s2", 5) == []
        assert await store.recent("s1", 0) == []

    @pytest.mark.asyncio
    async def test_least_recently_used_session_evicted(self):
        store = InMemoryConversationStore(max_sessions=2)
        await store.append(_turn("a", 1))
        await store.append(_turn("b", 1))
        await store.append(_turn("a", 2))
        await store.append(_turn("c", 1))

        assert await store.recent("b", 5) == []
        assert len(await store.recent("a", 5)) == 2
        assert len(await store.recent("c", 5)) == 1


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    store = SqlConversationStore(f"sqlite+aiosqlite:///{tmp_path}/turns.db", max_turns=3)
    yield store
    await store.close()


class TestSqlConversationStore:
    """Unit tests for SqlConversationStore on a file-backed SQLite database."""

    @pytest.mark.asyncio
    async def test_append_and_recent(self, sql_store):
        recipes = [{"id": "r-veg", "name": "Vegetable Stir-fry", "steps": ["Heat the pan."]}]
        await sql_store.append(_turn("s1", 1, recipes=recipes))
        await sql_store.append(_turn("s1", 2))

        recent = await sql_store.recent("s1", 5)

        assert [t.query for t in recent] == ["query 1", "query 2"]
        assert recent[0].recipes == recipes
        assert recent[0].intent == "recipe_search"
        assert recent[0].timestamp is not None

    @pytest.mark.asyncio
    async def test_prunes_to_max_turns(self, sql_store):
        for i in range(5):
            await sql_store.append(_turn("s1", i))
        await sql_store.append(_turn("s2", 0))

        assert [t.query for t in await sql_store.recent("s1", 10)] == ["query 2", "query 3", "query 4"]
        async with session_scope(sql_store.session_factory) as session:
            repo = ConversationTurnRepository(session)
            assert await repo.count(repo.model.session_id == "s1") == 3
            assert await repo.count(repo.model.session_id == "s2") == 1

    @pytest.mark.asyncio
    async def test_recent_limit(self, sql_store):
        for i in range(3):
            await sql_store.append(_turn("s1", i))

        assert [t.query for t in await sql_store.recent("s1", 1)] == ["query 2"]
        assert await sql_store.recent("s1", 0) == []


class TestStoreSelection:
    def test_default_is_in_memory(self, monkeypatch):
        monkeypatch.setattr(session_store.settings, "DATABASE_URL", "")
        set_conversation_store(None)

        assert isinstance(get_conversation_store(), InMemoryConversationStore)
        assert get_conversation_store() is get_conversation_store()

    def test_set_conversation_store(self):
        store = InMemoryConversationStore()
        set_conversation_store(store)

        assert get_conversation_store() is store
