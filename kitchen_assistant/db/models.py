"""
Database Models

SQLAlchemy ORM models for the optional SQL conversation store.
Uses SQLAlchemy 2.0 declarative mapping style with Mapped and mapped_column.
Column types are portable so the same models run on PostgreSQL and SQLite.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Base class for all database models.

    Tables are created with ``Base.metadata.create_all`` when the SQL
    store is first used.
    """

    pass


class ConversationTurnRecord(Base):
    """
    One request/response exchange in a session.

    Append-only; the store prunes each session to the configured number of
    most recent turns.
    """

    __tablename__ = "conversation_turns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    query: Mapped[str] = mapped_column(Text, nullable=False)
    response: Mapped[str] = mapped_column(Text, nullable=False)
    intent: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    entities: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    recipes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (Index("idx_conversation_turns_session_created", "session_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<ConversationTurnRecord(id={self.id}, session_id={self.session_id}, intent={self.intent})>"
