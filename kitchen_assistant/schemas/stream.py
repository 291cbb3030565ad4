"""
Streaming Chunk Schemas

Pydantic models for progress events yielded by the streaming workflow
entry point. A stream always ends with one chunk whose ``final`` flag is
set: a ``complete`` chunk on success or an ``error`` chunk on timeout.
"""

import time
from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field

ChunkType = Literal["status", "content", "error", "complete"]


class StreamChunk(BaseModel):
    """Single event in a workflow stream."""

    type: ChunkType
    payload: Dict[str, Any] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=time.time)
    final: bool = False

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "type": "status",
                "payload": {"node": "recipe_search", "message": "Searching recipes...", "elapsed_ms": 182.4},
                "timestamp": 1735732800.0,
                "final": False,
            }
        }
    )


def status_chunk(node: str, message: str, elapsed_ms: float) -> StreamChunk:
    return StreamChunk(
        type="status",
        payload={"node": node, "message": message, "elapsed_ms": round(elapsed_ms, 1)},
    )


def content_chunk(text: str, index: int) -> StreamChunk:
    return StreamChunk(type="content", payload={"text": text, "index": index})


def complete_chunk(response: str, metadata: Dict[str, Any]) -> StreamChunk:
    return StreamChunk(
        type="complete",
        payload={"response": response, "metadata": metadata},
        final=True,
    )


def error_chunk(message: str, code: str, final: bool = True) -> StreamChunk:
    return StreamChunk(type="error", payload={"message": message, "code": code}, final=final)
