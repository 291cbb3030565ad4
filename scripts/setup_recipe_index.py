"""Setup script to create the Qdrant recipe collection."""

import asyncio
import sys
from pathlib import Path

# Add parent directory to path to import kitchen_assistant modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from kitchen_assistant.config import settings
from kitchen_assistant.services.recipe_index_service import RecipeIndexService


async def main():
    """Create the recipe collection if it doesn't exist."""
    print("Setting up Qdrant recipe collection...")

    service = RecipeIndexService()

    try:
        await service.create_collection()

        print(f"✓ Qdrant collection '{service.collection_name}' ready")
        print(f"  - Vector size: {settings.EMBEDDING_DIMENSIONS}")
        print("  - Distance: Cosine")
        print("  - Indexes: difficulty, tags, minutes, servings, safety_score")

        healthy = await service.health_check()
        if healthy:
            print("✓ Qdrant connection verified")
        else:
            print("⚠ Qdrant health check failed")

    except Exception as e:
        print(f"✗ Error setting up Qdrant: {e}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
