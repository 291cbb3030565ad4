"""
Conversation Turn Repository

Database operations for ConversationTurnRecord.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from kitchen_assistant.db.models import ConversationTurnRecord
from kitchen_assistant.db.repositories.base import BaseRepository


class ConversationTurnRepository(BaseRepository[ConversationTurnRecord]):
    """Repository for ConversationTurnRecord operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(ConversationTurnRecord, session)

    async def create(
        self,
        session_id: str,
        query: str,
        response: str,
        intent: Optional[str] = None,
        entities: Optional[List[Dict[str, Any]]] = None,
        recipes: Optional[List[Dict[str, Any]]] = None,
    ) -> ConversationTurnRecord:
        return await super().create(
            session_id=session_id,
            query=query,
            response=response,
            intent=intent,
            entities=entities or [],
            recipes=recipes or [],
        )

    async def list_recent(self, session_id: str, limit: int) -> List[ConversationTurnRecord]:
        """
        Most recent turns for a session, returned oldest first.

        Args:
            session_id: Session identifier
            limit: Maximum number of turns

        Returns:
            List of ConversationTurnRecord in chronological order
        """
        result = await self.session.execute(
            select(ConversationTurnRecord)
            .where(ConversationTurnRecord.session_id == session_id)
            .order_by(ConversationTurnRecord.id.desc())
            .limit(limit)
        )
        return list(reversed(result.scalars().all()))

    async def prune(self, session_id: str, keep: int) -> int:
        """
        Delete all but the newest ``keep`` turns of a session.

        Returns:
            Number of deleted rows
        """
        keep_ids = (
            select(ConversationTurnRecord.id)
            .where(ConversationTurnRecord.session_id == session_id)
            .order_by(ConversationTurnRecord.id.desc())
            .limit(keep)
        )
        result = await self.session.execute(
            delete(ConversationTurnRecord)
            .where(ConversationTurnRecord.session_id == session_id)
            .where(ConversationTurnRecord.id.not_in(keep_ids))
        )
        return result.rowcount or 0
