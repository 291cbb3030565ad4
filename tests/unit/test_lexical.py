"""Unit tests for client-side lexical relevance scoring."""

import pytest

from kitchen_assistant.rag.retrieval.lexical import field_score, fuzzy_term_match, text_score
from kitchen_assistant.rag.retrieval.query_builder import FIELD_WEIGHTS


class TestFuzzyTermMatch:
    def test_exact_token(self):
        assert fuzzy_term_match("tofu", "firm tofu", {"firm", "tofu"})

    def test_short_terms_need_exact_tokens(self):
        assert not fuzzy_term_match("egg", "eggplant", {"eggplant"})

    def test_prefix_and_typo(self):
        assert fuzzy_term_match("mushroom", "mushrooms", {"mushrooms"})
        assert fuzzy_term_match("spagetti", "spaghetti", {"spaghetti"})

    def test_multi_word_terms_match_across_hyphens(self):
        assert fuzzy_term_match("stir fry", "vegetable stir-fry", {"vegetable", "stir", "fry"})
        assert fuzzy_term_match("stir-fry", "vegetable stir fry", {"vegetable", "stir", "fry"})

    def test_korean_substring(self):
        assert fuzzy_term_match("볶음", "채소 볶음", {"채소", "볶음"})

    def test_unrelated(self):
        assert not fuzzy_term_match("zorblax", "tomato pasta", {"tomato", "pasta"})


class TestFieldScore:
    def test_fraction_of_terms(self):
        assert field_score(["tomato", "basil", "zorblax", "flumquat"], ["tomato", "basil"]) == 0.5

    def test_empty_inputs(self):
        assert field_score([], "tomato") == 0.0
        assert field_score(["tomato"], None) == 0.0


class TestTextScore:
    """Unit tests for weighted best_fields text_score()."""

    def test_no_terms_scores_zero(self, recipe_docs):
        assert text_score([], recipe_docs[0], FIELD_WEIGHTS) == 0.0

    def test_localized_name_outweighs_tags(self):
        in_name = {"name_ko": "두부 볶음", "tags": []}
        in_tags = {"name_ko": "", "tags": ["두부"]}

        assert text_score(["두부"], in_name, FIELD_WEIGHTS) > text_score(["두부"], in_tags, FIELD_WEIGHTS)

    def test_score_is_bounded(self, recipe_docs):
        doc = recipe_docs[1]
        terms = ["vegetable", "stir", "fry", "garlic", "채소", "볶음"]

        score = text_score(terms, doc, FIELD_WEIGHTS)

        assert 0.0 < score <= 1.0

    def test_more_matching_terms_score_higher(self, recipe_docs):
        doc = recipe_docs[1]

        one = text_score(["stir", "zorblax"], doc, FIELD_WEIGHTS)
        two = text_score(["stir", "vegetable"], doc, FIELD_WEIGHTS)

        assert two > one > 0.0

    @pytest.mark.parametrize("terms", [["zorblax"], ["flumquat", "qwzx"]])
    def test_nonsense_terms_score_zero(self, recipe_docs, terms):
        for doc in recipe_docs:
            assert text_score(terms, doc, FIELD_WEIGHTS) == 0.0
