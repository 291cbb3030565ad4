"""Unit tests for the combined query analysis."""

from kitchen_assistant.rag.nlp.query_analysis import analyze_query, detect_follow_up


def _history(recipes):
    return [
        {
            "session_id": "s1",
            "query": "recommend a vegetable stir-fry",
            "response": "I found 1 recipe(s)...",
            "recipes": recipes,
        }
    ]


class TestDetectFollowUp:
    """Follow-ups need a follow-up phrase and a previous turn with recipes."""

    def test_no_history(self):
        assert detect_follow_up("give me more tips", None) is False
        assert detect_follow_up("give me more tips", []) is False

    def test_previous_turn_with_recipes(self):
        history = _history([{"id": "r-veg", "name": "Vegetable Stir-fry"}])

        assert detect_follow_up("give me more tips", history) is True
        assert detect_follow_up("tell me more about that recipe", history) is True
        assert detect_follow_up("그 레시피 더 알려줘", history) is True

    def test_previous_turn_without_recipes(self):
        assert detect_follow_up("give me more tips", _history([])) is False

    def test_new_request_is_not_a_follow_up(self):
        history = _history([{"id": "r-veg", "name": "Vegetable Stir-fry"}])

        assert detect_follow_up("recommend a pasta dinner", history) is False


class TestAnalyzeQuery:
    """Unit tests for analyze_query()."""

    def test_soy_allergy_stir_fry(self):
        analysis = analyze_query("soy allergy, recommend a tofu-free stir-fry")

        assert analysis.allergies == ["soy"]
        assert analysis.intent.primary == "recipe_search"
        assert analysis.query_type == "new_recipe"
        assert "soy" not in analysis.keywords
        assert "tofu" not in analysis.keywords
        assert "stir" in analysis.keywords
        assert len(analysis.allergen_advisories) == 1
        assert "intent:recipe_search" in analysis.semantic_tags
        assert "cooking_method:stir_fry" in analysis.semantic_tags

    def test_overall_confidence_and_complexity(self):
        analysis = analyze_query("soy allergy, recommend a tofu-free stir-fry")

        # 0.5 * 0.3 intent + 0.3 * 0.9 entity + 0.2 * 1/4 completeness
        assert analysis.overall_confidence == 0.47
        assert analysis.complexity == "medium"

    def test_refinement_suggestions_for_vague_search(self):
        analysis = analyze_query("recommend a stir-fry")

        assert analysis.suggestions == [
            "Mention a main ingredient you'd like to use",
            "Say how much time you have (e.g. 'under 20 minutes')",
            "Pick a cuisine such as Korean or Italian",
        ]

    def test_no_suggestions_outside_recipe_intents(self):
        analysis = analyze_query("what can I use instead of butter?")

        assert analysis.suggestions == []
        assert analysis.query_type == "general"

    def test_combo_tags(self):
        analysis = analyze_query("chicken stir-fry")

        assert "combo:chicken+stir_fry" in analysis.semantic_tags

    def test_declared_allergies_are_merged(self):
        analysis = analyze_query("recommend a pasta dinner", declared_allergies=["Milk"])

        assert analysis.allergies == ["milk"]

    def test_follow_up_query_type(self):
        history = _history([{"id": "r-veg", "name": "Vegetable Stir-fry"}])

        analysis = analyze_query("give me more tips", history=history)

        assert analysis.is_follow_up is True
        assert analysis.query_type == "follow_up"

    def test_empty_query(self):
        analysis = analyze_query("")

        assert analysis.entities == []
        assert analysis.allergies == []
        assert analysis.intent.primary == "general_chat"
        assert analysis.complexity == "simple"
