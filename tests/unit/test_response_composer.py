"""Unit tests for response composition and personalization."""

import pytest

from kitchen_assistant.rag.composition.personalization import (
    contextual_suggestions,
    personalization_tips,
    profile_flags,
)
from kitchen_assistant.rag.composition.response_composer import (
    NO_RESULTS_MESSAGE,
    SEARCH_UNAVAILABLE_NOTICE,
    alternative_queries,
    compose_response,
    recipes_for_history,
    select_branch,
    service_notice,
)
from kitchen_assistant.schemas.recipe import Entity, IntentResult, RecipeCandidate, SearchFilters


def _recipe(recipe_id, name, **kwargs):
    return RecipeCandidate(id=recipe_id, name=name, **kwargs)


@pytest.fixture
def candidates():
    return [
        _recipe("r-veg", "Vegetable Stir-fry", name_ko="채소 볶음", description="Crisp vegetables.", minutes=15),
        _recipe("r-pasta", "Tomato Pasta", description="x" * 150, minutes=25),
        _recipe("r-rice", "Fried Rice"),
        _recipe("r-soup", "Mushroom Soup"),
    ]


@pytest.fixture
def veg_history():
    return [
        {
            "query": "recommend a vegetable stir-fry",
            "response": "...",
            "recipes": [
                {
                    "id": "r-veg",
                    "name": "Vegetable Stir-fry",
                    "name_ko": "채소 볶음",
                    "ingredients": ["broccoli", "carrot"],
                    "steps": ["Cut everything evenly.", "Heat the pan."],
                }
            ],
        }
    ]


class TestSelectBranch:
    def test_priority_order(self, candidates, veg_history):
        generated = _recipe("generated_1", "New")

        assert select_branch({"is_follow_up": True, "conversation_history": veg_history, "candidates": candidates}) == "follow_up"
        assert select_branch({"route": "cooking_help", "candidates": candidates}) == "cooking_help"
        assert select_branch({"generated_recipe": generated, "candidates": candidates}) == "generated"
        assert select_branch({"candidates": candidates}) == "search_results"
        assert select_branch({}) == "no_results"

    def test_follow_up_without_history(self):
        assert select_branch({"is_follow_up": True, "conversation_history": []}) == "no_results"


class TestComposeResponse:
    """Unit tests for compose_response()."""

    def test_search_results_show_top_three(self, candidates, reference):
        state = {
            "user_query": "stir-fry",
            "candidates": candidates,
            "intent": IntentResult(primary="recipe_search", confidence=0.6),
        }

        text, meta = compose_response(state, reference)

        assert text.startswith("I found 4 recipe(s) for you. Here are the top 3:")
        assert "1. **채소 볶음 (Vegetable Stir-fry)** (15 min, medium, serves 2)" in text
        assert "Mushroom Soup" not in text
        assert ("x" * 97 + "...") in text
        assert "Ask for the full steps of any recipe above" in text
        assert meta["branch"] == "search_results"
        assert meta["recipe_ids"] == ["r-veg", "r-pasta", "r-rice"]

    def test_allergy_line_and_advisories(self, candidates, reference):
        state = {
            "user_query": "stir-fry",
            "candidates": candidates,
            "user_allergies": ["soy"],
            "allergen_advisories": ["Soy sauce is often brewed with wheat."],
        }

        text, meta = compose_response(state, reference)

        assert "All recipes shown exclude: soy." in text
        assert "Cross-contamination notes:\n- Soy sauce is often brewed with wheat." in text
        assert "Allergy check:" in text
        assert meta["personalization_flags"] == ["allergy"]

    def test_generated_recipe_card(self, reference):
        recipe = _recipe(
            "generated_abc",
            "Zorblax Rice Bowl",
            name_ko="조르블락스 덮밥",
            ingredients=["cooked rice", "zucchini"],
            steps=["Sauté.", "Serve."],
            minutes=20,
            difficulty="easy",
        )
        state = {
            "user_query": "zorblax",
            "generated_recipe": recipe,
            "reference_recipes": [_recipe("r-1", "One"), _recipe("r-2", "Two")],
        }

        text, meta = compose_response(state, reference)

        assert "**조르블락스 덮밥 (Zorblax Rice Bowl)**" in text
        assert "Time: 20 min | Serves: 2 | Difficulty: easy" in text
        assert "- cooked rice" in text
        assert "2. Serve." in text
        assert "AI-generated and referenced 2 existing recipe(s)" in text
        assert meta["recipe_ids"] == ["generated_abc"]

    def test_generated_from_scratch(self, reference):
        text, _ = compose_response({"generated_recipe": _recipe("generated_x", "X")}, reference)

        assert "This recipe is AI-generated from scratch." in text

    def test_no_results_suggests_safe_alternatives(self, reference):
        state = {
            "user_query": "peanut stir-fry",
            "user_allergies": ["peanut"],
            "entities": [
                Entity(type="ingredient", value="peanut", confidence=0.8),
                Entity(type="cooking_method", value="stir_fry", confidence=0.8, matched_text="stir-fry"),
            ],
            "metadata": {"refinement_suggestions": ["Add a cooking method"]},
        }

        text, meta = compose_response(state, reference)

        assert text.startswith(NO_RESULTS_MESSAGE)
        assert '- "stir-fry recipes"' in text
        assert "peanut stir-fry\"" not in text
        assert "Or make your request more specific:\n- Add a cooking method" in text
        assert "You can also:" not in text
        assert meta["branch"] == "no_results"

    def test_no_results_shows_failed_node_message(self, reference):
        state = {
            "user_query": "recommend a stir-fry",
            "route": "recipe_search",
            "response": "Recipe search is temporarily unavailable.",
            "metadata": {"recipe_search_error": "RuntimeError: index client broken"},
        }

        text, meta = compose_response(state, reference)

        assert text.startswith("Recipe search is temporarily unavailable.\n\n" + NO_RESULTS_MESSAGE)
        assert meta["branch"] == "no_results"

    def test_generated_recipe_notes_search_backend_outage(self, reference):
        recipe = _recipe("generated_1", "Rice Bowl", ingredients=["rice"], steps=["Cook."])
        state = {
            "user_query": "rice bowl",
            "route": "recipe_search",
            "generated_recipe": recipe,
            "metadata": {"search_fallback": True},
        }

        text, meta = compose_response(state, reference)

        assert text.startswith(SEARCH_UNAVAILABLE_NOTICE)
        assert meta["branch"] == "generated"

    def test_no_notice_without_failures(self):
        assert service_notice({"metadata": {}, "response": "stale"}) is None
        assert meta["recipe_ids"] == []

    def test_route_response_is_used(self, reference):
        state = {"route": "general_chat", "response": "Hello there!", "metadata": {"clarification_needed": True}}

        text, meta = compose_response(state, reference)

        assert text == "Hello there!"
        assert meta["branch"] == "general_chat"

    def test_follow_up_tips(self, veg_history, reference):
        state = {"user_query": "give me more tips", "is_follow_up": True, "conversation_history": veg_history}

        text, meta = compose_response(state, reference)

        assert text.startswith("More tips for **채소 볶음 (Vegetable Stir-fry)**")
        assert "- Heat the pan until it is almost smoking before the oil goes in." in text
        assert meta["branch"] == "follow_up"

    def test_follow_up_steps(self, veg_history, reference):
        state = {"user_query": "show me the steps", "is_follow_up": True, "conversation_history": veg_history}

        text, _ = compose_response(state, reference)

        assert text.startswith("Here are the steps for **채소 볶음 (Vegetable Stir-fry)**:")
        assert "2. Heat the pan." in text

    def test_deterministic(self, candidates, reference):
        state = {"user_query": "quick spicy stir-fry", "candidates": candidates, "user_allergies": ["egg"]}

        assert compose_response(state, reference) == compose_response(state, reference)


class TestAlternativeQueries:
    def test_defaults_without_entities(self, reference):
        assert alternative_queries({}, reference) == [
            "easy vegetable stir-fry",
            "quick kimchi fried rice",
            "simple mushroom soup",
        ]


class TestRecipesForHistory:
    def test_search_results(self, candidates):
        state = {"candidates": candidates, "metadata": {"branch": "search_results"}}

        assert [r["id"] for r in recipes_for_history(state)] == ["r-veg", "r-pasta", "r-rice"]

    def test_follow_up_keeps_dish_in_focus(self, veg_history):
        state = {"conversation_history": veg_history, "metadata": {"branch": "follow_up"}}

        assert recipes_for_history(state)[0]["id"] == "r-veg"

    def test_chat_branch_keeps_nothing(self):
        assert recipes_for_history({"metadata": {"branch": "general_chat"}}) == []


class TestPersonalization:
    def test_profile_flags_from_profile_and_query(self):
        flags = profile_flags(
            {"cooking_level": "beginner"},
            "something spicy",
            [],
            SearchFilters(max_minutes=20),
            [],
        )

        assert flags == {"beginner", "time_constrained", "likes_spicy"}

    def test_health_flag_from_entities(self):
        entities = [Entity(type="dietary", value="low_calorie", confidence=0.8)]

        assert profile_flags(None, "light dinner", entities, None, []) == {"health_conscious"}

    def test_hot_does_not_match_inside_words(self):
        assert "likes_spicy" not in profile_flags(None, "a photo of shotgun eggs", [], None, [])

    def test_tips_capped_in_rule_order(self):
        tips = personalization_tips({"likes_spicy", "beginner", "allergy"}, ["soy", "egg"])

        assert len(tips) == 2
        assert tips[0].startswith("Allergy check:")
        assert "soy, egg can hide in them" in tips[0]
        assert tips[1].startswith("Beginner tip:")

    def test_contextual_suggestions_fallback(self):
        assert contextual_suggestions(None) == contextual_suggestions("general_chat")
        assert contextual_suggestions("unknown") == contextual_suggestions("general_chat")
        assert len(contextual_suggestions("recipe_search")) == 3
