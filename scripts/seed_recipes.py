"""
Seed the recipe index from a JSON file.

Usage:
    python scripts/seed_recipes.py                      # scripts/sample_recipes.json
    python scripts/seed_recipes.py path/to/recipes.json
"""

import asyncio
import json
import sys
from pathlib import Path

# Add parent directory to path to import kitchen_assistant modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from kitchen_assistant.rag.nlp.allergen_detector import AllergenDetector
from kitchen_assistant.schemas.recipe import RecipeCandidate
from kitchen_assistant.services.embedding_service import EmbeddingService
from kitchen_assistant.services.recipe_index_service import RecipeIndexService, recipe_embedding_text

DEFAULT_DATA = Path(__file__).parent / "sample_recipes.json"


def load_recipes(path: Path) -> list:
    """Read recipes and fill in their allergen metadata."""
    detector = AllergenDetector()
    with open(path, encoding="utf-8") as fh:
        rows = json.load(fh)

    recipes = []
    for row in rows:
        recipe = RecipeCandidate.model_validate(row)
        profile = detector.assess_ingredients(recipe.ingredients + recipe.ingredients_ko)
        recipe.contains_allergens = profile.contains_allergens
        recipe.allergen_count = profile.total_allergen_count
        recipe.allergen_risk_score = profile.risk_score
        recipe.safety_score = profile.safety_score
        recipes.append(recipe)
    return recipes


async def main(path: Path):
    recipes = load_recipes(path)
    print(f"Loaded {len(recipes)} recipes from {path}")

    index = RecipeIndexService()
    embeddings = EmbeddingService()

    try:
        await index.create_collection()
        vectors = await embeddings.generate_embeddings([recipe_embedding_text(r) for r in recipes])
        count = await index.upsert_recipes(recipes, vectors)
        print(f"✓ Indexed {count} recipes into '{index.collection_name}'")
    except Exception as e:
        print(f"✗ Error seeding recipes: {e}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main(Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_DATA))
