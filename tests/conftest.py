"""
Test Configuration and Fixtures

Shared fixtures for all tests. No external services are needed: the
recipe index, embeddings and LLM are replaced by in-memory fakes.
"""

import json
from typing import Dict, List, Optional

import pytest
import pytest_asyncio

from kitchen_assistant.core.errors import EmbeddingServiceError
from kitchen_assistant.rag.graphs import router
from kitchen_assistant.rag.reference.loader import load_reference_data
from kitchen_assistant.rag.retrieval.backend import (
    QuerySpec,
    RangeFilter,
    SearchHit,
    SearchResponse,
    TermFilter,
)
from kitchen_assistant.rag.retrieval.lexical import text_score
from kitchen_assistant.services import session_store
from kitchen_assistant.services.session_store import InMemoryConversationStore

RECIPE_DOCS: List[Dict] = [
    {
        "id": "r-tofu",
        "name": "Tofu Stir-fry",
        "name_ko": "두부 볶음",
        "description": "Crispy tofu tossed with garlic and soy sauce.",
        "ingredients": ["firm tofu", "soy sauce", "garlic", "green onion"],
        "steps": ["Press the tofu.", "Fry until golden.", "Toss with sauce."],
        "tags": ["stir-fry", "vegetarian"],
        "minutes": 20,
        "servings": 2,
        "difficulty": "easy",
    },
    {
        "id": "r-veg",
        "name": "Vegetable Stir-fry",
        "name_ko": "채소 볶음",
        "description": "Crisp vegetables in a very hot pan with garlic.",
        "ingredients": ["broccoli", "carrot", "zucchini", "garlic", "olive oil", "salt"],
        "steps": ["Cut everything evenly.", "Heat the pan.", "Stir-fry for 4 minutes."],
        "tags": ["stir-fry", "vegan", "quick"],
        "minutes": 15,
        "servings": 2,
        "difficulty": "easy",
    },
    {
        "id": "r-chicken",
        "name": "Soy Glazed Chicken Stir-fry",
        "name_ko": "간장 닭볶음",
        "description": "Chicken thigh stir-fried in a sweet glaze.",
        "ingredients": ["chicken thigh", "Soy Sauce", "honey", "ginger"],
        "steps": ["Sear the chicken.", "Add the glaze and reduce."],
        "tags": ["stir-fry", "korean"],
        "minutes": 25,
        "servings": 3,
        "difficulty": "medium",
    },
    {
        "id": "r-miso",
        "name": "Seaweed Stir-fry",
        "name_ko": "미역 볶음",
        "description": "Seaweed stir-fried with a spoon of paste.",
        "ingredients": ["dried seaweed", "white miso paste", "sesame seeds"],
        "steps": ["Soak the seaweed.", "Stir-fry with the paste."],
        "tags": ["stir-fry", "korean"],
        "minutes": 15,
        "servings": 2,
        "difficulty": "easy",
    },
    {
        "id": "r-pasta",
        "name": "Tomato Pasta",
        "name_ko": "토마토 파스타",
        "description": "Simple spaghetti with tomato sauce.",
        "ingredients": ["spaghetti", "tomato", "olive oil", "basil"],
        "steps": ["Boil the pasta.", "Simmer the sauce.", "Toss together."],
        "tags": ["italian"],
        "minutes": 25,
        "servings": 2,
        "difficulty": "easy",
    },
]


def _payload(doc: Dict) -> Dict:
    payload = dict(doc)
    payload["recipe_id"] = doc["id"]
    payload["ingredient_text"] = " | ".join(doc.get("ingredients", []) + doc.get("ingredients_ko", [])).lower()
    return payload


class FakeRecipeBackend:
    """
    In-memory SearchBackend.

    Honors MUST_NOT (substring on ingredient_text) and FILTER clauses unless
    ``leaky`` is set, in which case exclusions are ignored so the engine's
    own post-filter has to catch them. Vector similarity is 0.9 for text
    matches and 0.05 otherwise.
    """

    def __init__(self, docs: Optional[List[Dict]] = None, leaky: bool = False, error: Optional[Exception] = None):
        self.docs = [_payload(doc) for doc in (docs if docs is not None else RECIPE_DOCS)]
        self.leaky = leaky
        self.error = error
        self.calls: List[QuerySpec] = []

    def _passes_filters(self, doc: Dict, spec: QuerySpec) -> bool:
        for clause in spec.filters:
            if isinstance(clause, RangeFilter):
                value = doc.get(clause.field)
                if value is None:
                    return False
                if clause.gte is not None and value < clause.gte:
                    return False
                if clause.lte is not None and value > clause.lte:
                    return False
            elif isinstance(clause, TermFilter):
                value = doc.get(clause.field)
                values = value if isinstance(value, list) else [value]
                if not set(values) & set(clause.values):
                    return False
        return True

    async def search(self, spec: QuerySpec) -> SearchResponse:
        self.calls.append(spec)
        if self.error is not None:
            raise self.error

        hits = []
        for doc in self.docs:
            if not self.leaky:
                if any(token.lower() in doc["ingredient_text"] for token in spec.must_not):
                    continue
                if not self._passes_filters(doc, spec):
                    continue
            relevance = text_score(spec.must.terms, doc, spec.must.fields)
            if spec.vector is None and not spec.must.match_all and relevance == 0.0:
                continue
            vector_score = (0.9 if relevance > 0 or spec.must.match_all else 0.05) if spec.vector else 0.0
            hits.append(
                SearchHit(
                    id=doc["id"],
                    source=doc,
                    score=vector_score or relevance,
                    vector_score=vector_score,
                    text_score=relevance,
                )
            )
        hits = hits[: spec.candidate_pool]
        return SearchResponse(hits=hits, total=len(hits), took_ms=1.0)


class FakeEmbeddingService:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[str] = []

    async def embed_text(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail:
            raise EmbeddingServiceError("embedding backend down")
        return [0.1] * 8


class FakeLLMClient:
    def __init__(self, output: str = "", error: Optional[Exception] = None):
        self.output = output
        self.error = error
        self.prompts: List[str] = []
        self.temperatures: List[float] = []

    async def generate(self, prompt: str, temperature: float = 0.7, max_tokens=None, system_prompt=None) -> str:
        self.prompts.append(prompt)
        self.temperatures.append(temperature)
        if self.error is not None:
            raise self.error
        return self.output


GENERATED_RECIPE = {
    "name": "Zorblax Rice Bowl",
    "nameKo": "조르블락스 덮밥",
    "description": "A quick rice bowl with sautéed vegetables.",
    "ingredients": ["cooked rice", "zucchini", "carrot", "olive oil"],
    "steps": ["Sauté the vegetables.", "Serve over rice."],
    "minutes": "20 minutes",
    "difficulty": "Easy",
    "servings": 2,
    "tags": ["quick"],
}


@pytest.fixture
def reference():
    return load_reference_data()


@pytest.fixture
def recipe_docs() -> List[Dict]:
    return [dict(doc) for doc in RECIPE_DOCS]


@pytest.fixture
def fake_backend() -> FakeRecipeBackend:
    return FakeRecipeBackend()


@pytest.fixture
def leaky_backend() -> FakeRecipeBackend:
    return FakeRecipeBackend(leaky=True)


@pytest.fixture
def fake_embeddings() -> FakeEmbeddingService:
    return FakeEmbeddingService()


@pytest.fixture
def generated_recipe() -> Dict:
    return dict(GENERATED_RECIPE)


@pytest.fixture
def generated_recipe_json() -> str:
    return "Here is your recipe:\n```json\n" + json.dumps(GENERATED_RECIPE, ensure_ascii=False) + "\n```\nEnjoy!"


@pytest.fixture
def make_backend():
    return FakeRecipeBackend


@pytest.fixture
def make_embeddings():
    return FakeEmbeddingService


@pytest.fixture
def make_llm():
    return FakeLLMClient


@pytest_asyncio.fixture(autouse=True)
async def isolated_runtime():
    """Fresh conversation store, response cache and stats for every test."""
    session_store.set_conversation_store(InMemoryConversationStore())
    await router.response_cache.clear()
    router.execution_stats.reset()
    yield
    session_store.set_conversation_store(None)
    await router.response_cache.clear()
