"""
Conversation Schemas

Pydantic models for the session log consulted by follow-up handling and
for the optional personalization profile.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationTurn(BaseModel):
    """
    One completed request/response exchange.

    Turns are append-only. ``recipes`` keeps lightweight summaries of the
    recipes shown in this turn so the next turn can refer back to them.
    """

    session_id: str
    query: str
    response: str
    timestamp: datetime = Field(default_factory=_utcnow)
    entities: List[Dict[str, Any]] = Field(default_factory=list)
    intent: Optional[str] = None
    recipes: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "session_id": "session-123",
                "query": "recommend a quick mushroom stir-fry",
                "response": "Here are 3 recipes I found...",
                "timestamp": "2025-01-01T12:00:00Z",
                "entities": [{"type": "cooking_method", "value": "stir_fry", "confidence": 0.9}],
                "intent": "recipe_search",
                "recipes": [{"id": "r-1", "name": "Mushroom Stir-fry", "name_ko": "버섯 볶음"}],
            }
        }
    )


class UserProfile(BaseModel):
    """Optional caller-supplied profile driving personalization tips."""

    cooking_level: Optional[str] = Field(None, description="beginner | intermediate | advanced")
    time_constrained: bool = False
    health_conscious: bool = False
    likes_spicy: bool = False
    allergies: List[str] = Field(default_factory=list)

