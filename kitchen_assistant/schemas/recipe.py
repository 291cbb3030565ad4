"""
Recipe Domain Schemas

Pydantic models shared by the extraction, retrieval, generation and
composition stages. Reference data models are frozen so a single loaded
instance can be shared by every request.
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

EntityType = Literal["ingredient", "cooking_method", "cuisine", "dietary", "difficulty", "time"]

IntentName = Literal[
    "recipe_search",
    "recipe_detail",
    "ingredient_substitute",
    "cooking_advice",
    "nutritional_info",
    "general_chat",
]

Difficulty = Literal["easy", "medium", "hard"]

Provenance = Literal["index", "ai_generated"]


class Entity(BaseModel):
    """A dictionary hit in the user query, resolved to its canonical value."""

    type: EntityType
    value: str = Field(..., description="Canonical value (e.g. 'stir_fry')")
    confidence: float = Field(..., ge=0.0, le=1.0)
    synonyms: List[str] = Field(default_factory=list)
    matched_text: str = Field("", description="Synonym that actually matched the query")


class AllergenRecord(BaseModel):
    """
    Immutable allergen reference entry.

    patterns are lexical triggers (lower-case) for both query detection and
    ingredient filtering. cross_contamination is advisory text only.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    patterns: tuple
    cross_contamination: tuple = ()
    substitutes: tuple = ()
    risk_weight: int = 20


class AllergenProfile(BaseModel):
    """Allergen assessment of an ingredient list."""

    contains_allergens: List[str] = Field(default_factory=list)
    total_allergen_count: int = 0
    risk_score: int = Field(0, ge=0, le=100)

    @property
    def safety_score(self) -> int:
        return 100 - self.risk_score


class IntentResult(BaseModel):
    """Outcome of intent classification."""

    primary: IntentName
    secondary: List[IntentName] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)
    scores: Dict[str, float] = Field(default_factory=dict)


class SearchFilters(BaseModel):
    """Structured constraints pulled out of the query."""

    difficulty: Optional[Difficulty] = None
    max_minutes: Optional[int] = None
    servings: Optional[int] = None
    tags: List[str] = Field(default_factory=list)
    min_safety_score: Optional[int] = None

    def is_empty(self) -> bool:
        return not (self.difficulty or self.max_minutes or self.servings or self.tags or self.min_safety_score)


class RecipeCandidate(BaseModel):
    """
    A recipe as seen by ranking and composition.

    Text fields come in pairs: the default (English) field and a localized
    ``_ko`` field. Scores are filled in by the retrieval engine; generated
    recipes leave them at zero.
    """

    id: str
    name: str
    name_ko: str = ""
    description: str = ""
    description_ko: str = ""
    ingredients: List[str] = Field(default_factory=list)
    ingredients_ko: List[str] = Field(default_factory=list)
    steps: List[str] = Field(default_factory=list)
    steps_ko: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    tags_ko: List[str] = Field(default_factory=list)
    minutes: int = 30
    servings: int = 2
    difficulty: Difficulty = "medium"

    safety_score: int = 100
    allergen_risk_score: int = 0
    allergen_count: int = 0
    contains_allergens: List[str] = Field(default_factory=list)
    safe_for: List[str] = Field(default_factory=list)

    relevance_score: float = 0.0
    vector_score: float = 0.0
    combined_score: float = 0.0

    provenance: Provenance = "index"
    is_ai_generated: bool = False

    @property
    def display_name(self) -> str:
        """Localized name first, with the default name alongside when both exist."""
        if self.name_ko and self.name_ko != self.name:
            return f"{self.name_ko} ({self.name})"
        return self.name_ko or self.name

    def ingredient_text(self) -> str:
        """All ingredient text, lower-cased, for lexical allergen checks."""
        return " | ".join(self.ingredients + self.ingredients_ko).lower()

    def summary(self) -> Dict:
        """Lightweight form kept in conversation history for follow-ups."""
        return {
            "id": self.id,
            "name": self.name,
            "name_ko": self.name_ko,
            "ingredients": self.ingredients[:10],
            "steps": self.steps,
            "minutes": self.minutes,
            "difficulty": self.difficulty,
        }
