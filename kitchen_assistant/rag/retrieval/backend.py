"""
Search Backend Contract

The retrieval engine talks to the recipe index only through this
protocol. ``RecipeIndexService`` (Qdrant) is the production adapter;
tests substitute in-memory fakes.
"""

from typing import Any, Dict, List, Optional, Protocol, Union

from pydantic import BaseModel, Field


class TextClause(BaseModel):
    """MUST clause: weighted multi-field fuzzy match. No terms means match-all."""

    terms: List[str] = Field(default_factory=list)
    fields: Dict[str, float] = Field(default_factory=dict)
    fuzzy: bool = True

    @property
    def match_all(self) -> bool:
        return not self.terms


class RangeFilter(BaseModel):
    field: str
    gte: Optional[float] = None
    lte: Optional[float] = None


class TermFilter(BaseModel):
    """Any-of match on a keyword field."""

    field: str
    values: List[str]


class QuerySpec(BaseModel):
    """
    Compound recipe query.

    Attributes:
        must: Text relevance clause
        filters: FILTER constraints (range / term), all must hold
        must_not: Allergen tokens; any hit in the ingredient text excludes a recipe
        vector: Query embedding for hybrid mode (None means lexical only)
        size: Number of hits wanted after ranking
        candidate_pool: Number of raw hits to fetch before ranking
        safety_first: Sort precedence requested by the caller
    """

    must: TextClause = Field(default_factory=TextClause)
    filters: List[Union[RangeFilter, TermFilter]] = Field(default_factory=list)
    must_not: List[str] = Field(default_factory=list)
    vector: Optional[List[float]] = None
    size: int = 10
    candidate_pool: int = 50
    safety_first: bool = True


class SearchHit(BaseModel):
    """A raw hit with its source document and per-part scores."""

    id: str
    source: Dict[str, Any]
    score: float = 0.0
    vector_score: float = 0.0
    text_score: float = 0.0


class SearchResponse(BaseModel):
    hits: List[SearchHit] = Field(default_factory=list)
    total: int = 0
    took_ms: float = 0.0


class SearchBackend(Protocol):
    """Capability interface for the recipe index."""

    async def search(self, spec: QuerySpec) -> SearchResponse:
        ...
