"""
Pydantic Schemas for LLM Structured Outputs

Defines the schema the recipe generator must return. Validation is strict
on the required fields so a half-formed object is rejected instead of
being patched up.
"""

import math
import re
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator


class GeneratedRecipeDraft(BaseModel):
    """
    Schema for a recipe produced by the generation prompt.

    Required: name, name_ko, description, ingredients[], steps[].
    Optional numeric/enum fields are defaulted later by the generation engine.
    """

    name: StrictStr = Field(..., min_length=1)
    name_ko: StrictStr = Field(..., alias="nameKo", min_length=1)
    description: StrictStr
    ingredients: List[StrictStr] = Field(..., min_length=1)
    steps: List[StrictStr] = Field(..., min_length=1)
    minutes: Optional[int] = Field(None, gt=0)
    difficulty: Optional[str] = None
    servings: Optional[int] = Field(None, gt=0)
    tags: List[str] = Field(default_factory=list)

    @field_validator("minutes", "servings", mode="before")
    @classmethod
    def coerce_optional_int(cls, value: Any) -> Optional[int]:
        """Accept '25 minutes' style values; anything unparseable becomes None."""
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, float) and not math.isfinite(value):
            return None
        if isinstance(value, (int, float)):
            return int(value) if value > 0 else None
        match = re.search(r"\d+", str(value))
        return int(match.group()) if match else None

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        return [str(tag) for tag in value if tag]

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "name": "Mushroom Stir-fry",
                "nameKo": "버섯 볶음",
                "description": "Quick savory mushroom stir-fry with garlic.",
                "ingredients": ["300g mixed mushrooms", "2 cloves garlic", "1 tbsp sesame oil"],
                "steps": ["Slice the mushrooms.", "Stir-fry garlic in oil.", "Add mushrooms and cook 5 minutes."],
                "minutes": 15,
                "difficulty": "easy",
                "servings": 2,
                "tags": ["quick", "vegetarian"],
            }
        },
    )
