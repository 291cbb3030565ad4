"""
Generation Engine

Creates a new recipe with the LLM when retrieval finds nothing:

1. Render the generation prompt (forbidden ingredients, up to 3 truncated references)
2. Call the LLM once
3. Recover and validate the JSON object
4. Default missing fields, tag provenance, re-check allergens
5. Persist best-effort

Every failure ends in ``None``; there is no automatic re-prompt.
"""

import uuid
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from kitchen_assistant.rag.generation.json_recovery import parse_recipe_output
from kitchen_assistant.rag.nlp.allergen_detector import AllergenDetector
from kitchen_assistant.rag.reference.loader import ReferenceData, load_reference_data
from kitchen_assistant.rag.retrieval.query_builder import allergy_exclusion_tokens
from kitchen_assistant.rag.retrieval.ranking import post_filter_allergens
from kitchen_assistant.rag.utils.llm_client import LLMClient
from kitchen_assistant.rag.utils.prompt_loader import render_prompt
from kitchen_assistant.schemas.llm_responses import GeneratedRecipeDraft
from kitchen_assistant.schemas.recipe import RecipeCandidate
from kitchen_assistant.services.recipe_index_service import recipe_embedding_text

MAX_REFERENCES = 3
MAX_REFERENCE_INGREDIENTS = 5

DEFAULT_MINUTES = 30
DEFAULT_DIFFICULTY = "medium"
DEFAULT_SERVINGS = 2

TEMPERATURE_WITH_REFERENCES = 0.5
TEMPERATURE_FROM_SCRATCH = 0.7

DIFFICULTY_ALIASES = {
    "easy": "easy",
    "simple": "easy",
    "beginner": "easy",
    "쉬움": "easy",
    "medium": "medium",
    "moderate": "medium",
    "intermediate": "medium",
    "보통": "medium",
    "hard": "hard",
    "difficult": "hard",
    "advanced": "hard",
    "어려움": "hard",
}


def new_recipe_id() -> str:
    return f"generated_{uuid.uuid4().hex}"


def reference_context(references: Sequence[RecipeCandidate]) -> List[Dict[str, Any]]:
    """At most 3 references, each cut to its first 5 ingredients."""
    return [
        {
            "name": recipe.name,
            "name_ko": recipe.name_ko,
            "ingredients": list(recipe.ingredients[:MAX_REFERENCE_INGREDIENTS]),
        }
        for recipe in list(references)[:MAX_REFERENCES]
    ]


def build_generation_prompt(
    query: str,
    allergies: Sequence[str],
    references: Sequence[RecipeCandidate],
    reference: ReferenceData,
) -> str:
    allergy_tokens = {allergy: list(reference.allergen_tokens(allergy)) for allergy in allergies}
    return render_prompt(
        "recipe_generation.jinja2",
        user_query=query,
        allergies=list(allergies),
        allergy_tokens=allergy_tokens,
        references=reference_context(references),
    )


def draft_to_recipe(draft: GeneratedRecipeDraft, allergies: Sequence[str]) -> RecipeCandidate:
    """
    Turn a validated draft into a RecipeCandidate with defaults and provenance.

    Missing or invalid minutes/servings/difficulty fall back to 30 / 2 / medium.
    """
    difficulty = DIFFICULTY_ALIASES.get((draft.difficulty or "").strip().lower(), DEFAULT_DIFFICULTY)
    return RecipeCandidate(
        id=new_recipe_id(),
        name=draft.name,
        name_ko=draft.name_ko,
        description=draft.description,
        ingredients=list(draft.ingredients),
        steps=list(draft.steps),
        tags=list(draft.tags),
        minutes=draft.minutes or DEFAULT_MINUTES,
        servings=draft.servings or DEFAULT_SERVINGS,
        difficulty=difficulty,
        safe_for=list(allergies),
        provenance="ai_generated",
        is_ai_generated=True,
    )


class GenerationEngine:
    """LLM recipe generation with output recovery and best-effort persistence."""

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        index_service: Optional[Any] = None,
        embedding_service: Optional[Any] = None,
        reference: Optional[ReferenceData] = None,
    ):
        self.llm_client = llm_client or LLMClient()
        self.index_service = index_service
        self.embedding_service = embedding_service
        self.reference = reference or load_reference_data()
        self.detector = AllergenDetector(reference=self.reference)

    async def generate(
        self,
        query: str,
        allergies: Sequence[str],
        references: Optional[Sequence[RecipeCandidate]] = None,
    ) -> Optional[RecipeCandidate]:
        """
        Generate one recipe for the query.

        Args:
            query: User query
            allergies: Allergies that must not appear in the recipe
            references: Safe reference recipes (only the first 3 are used)

        Returns:
            RecipeCandidate, or None when the LLM failed, the output was
            malformed, or the recipe contains a forbidden ingredient
        """
        references = list(references or [])
        prompt = build_generation_prompt(query, allergies, references, self.reference)
        temperature = TEMPERATURE_WITH_REFERENCES if references else TEMPERATURE_FROM_SCRATCH

        try:
            raw = await self.llm_client.generate(prompt=prompt, temperature=temperature)
        except Exception as e:
            logger.error(f"Recipe generation call failed: {e}")
            return None

        draft = parse_recipe_output(raw)
        if draft is None:
            return None

        recipe = draft_to_recipe(draft, allergies)

        safe, _ = post_filter_allergens([recipe], allergy_exclusion_tokens(allergies, self.reference))
        if not safe:
            logger.warning(f"Generated recipe '{recipe.name}' contains a forbidden ingredient; discarding")
            return None

        profile = self.detector.assess_ingredients(recipe.ingredients)
        recipe.contains_allergens = profile.contains_allergens
        recipe.allergen_count = profile.total_allergen_count
        recipe.allergen_risk_score = profile.risk_score
        recipe.safety_score = profile.safety_score

        logger.info(f"Generated recipe '{recipe.name}' ({recipe.id}) with {len(references)} reference(s)")
        await self.persist(recipe)
        return recipe

    async def persist(self, recipe: RecipeCandidate) -> Optional[str]:
        """
        Store a generated recipe in the index. Failures are logged and swallowed.

        Returns:
            The stored recipe id, or None when persistence is not configured or failed
        """
        if self.index_service is None or self.embedding_service is None:
            return None
        try:
            vector = await self.embedding_service.embed_text(recipe_embedding_text(recipe))
            return await self.index_service.upsert_recipe(recipe, vector)
        except Exception as e:
            logger.warning(f"Failed to persist generated recipe {recipe.id}: {e}")
            return None
