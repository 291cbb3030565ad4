"""
Response Composer

Builds the final user-facing text from the workflow state. Branches are
checked in strict priority:

1. follow_up       - the query refers to the previous turn's recipe
2. generated       - a recipe was generated from scratch
3. search_results  - retrieval returned candidates (top 3 shown)
4. no_results      - recipe route with nothing to show

The cooking_help and general_chat routes use their node's response. Every
branch then gets the deterministic personalization extras. When a recipe node
failed, its fallback text leads the generated and no_results replies.
"""

from typing import Any, Dict, List, Optional, Tuple

from kitchen_assistant.rag.composition.personalization import (
    contextual_suggestions,
    personalization_tips,
    profile_flags,
)
from kitchen_assistant.rag.nlp.entity_extractor import EntityExtractor
from kitchen_assistant.rag.nlp.matching import contains_term, normalize
from kitchen_assistant.rag.reference.loader import ReferenceData, load_reference_data
from kitchen_assistant.rag.utils.state import GraphState
from kitchen_assistant.schemas.recipe import RecipeCandidate

TOP_RESULTS = 3
MAX_DESCRIPTION = 100
MAX_FOLLOW_UP_TIPS = 4

NO_RESULTS_MESSAGE = (
    "Sorry, I couldn't find any recipes matching your request, "
    "and I wasn't able to generate a new one this time."
)
DEFAULT_ALTERNATIVES = (
    "easy vegetable stir-fry",
    "quick kimchi fried rice",
    "simple mushroom soup",
    "grilled chicken salad",
)
DETAIL_WORDS = ("detail", "details", "steps", "instructions", "how do i", "how to", "자세히", "순서")
SEARCH_UNAVAILABLE_NOTICE = "Recipe search is temporarily unavailable."


def _truncate(text: str, limit: int = MAX_DESCRIPTION) -> str:
    text = (text or "").strip()
    return text if len(text) <= limit else text[: limit - 3].rstrip() + "..."


def select_branch(state: GraphState) -> str:
    """Pick the response branch for a state (pure, priority ordered)."""
    if state.get("is_follow_up") and state.get("conversation_history"):
        return "follow_up"
    route = state.get("route")
    if route in ("cooking_help", "general_chat"):
        return route
    if state.get("generated_recipe") is not None:
        return "generated"
    if state.get("candidates"):
        return "search_results"
    return "no_results"


def service_notice(state: GraphState) -> Optional[str]:
    """Fallback text from a failed recipe node, or a note that the search backend was down."""
    metadata = state.get("metadata") or {}
    if metadata.get("recipe_search_error") or metadata.get("recipe_generation_error"):
        return state.get("response") or None
    if metadata.get("search_fallback"):
        return SEARCH_UNAVAILABLE_NOTICE
    return None


def render_recipe_card(recipe: RecipeCandidate, reference_count: int) -> str:
    lines = [
        "I couldn't find a matching recipe, so I created a new one for you.",
        "",
        f"**{recipe.display_name}**",
    ]
    if recipe.description:
        lines.append(recipe.description)
    lines += [
        "",
        f"Time: {recipe.minutes} min | Serves: {recipe.servings} | Difficulty: {recipe.difficulty}",
        "",
        "Ingredients:",
    ]
    lines += [f"- {ingredient}" for ingredient in recipe.ingredients]
    lines += ["", "Steps:"]
    lines += [f"{index}. {step}" for index, step in enumerate(recipe.steps, start=1)]
    lines.append("")
    if reference_count:
        lines.append(f"This recipe is AI-generated and referenced {reference_count} existing recipe(s).")
    else:
        lines.append("This recipe is AI-generated from scratch.")
    return "\n".join(lines)


def render_search_results(candidates: List[RecipeCandidate]) -> str:
    top = candidates[:TOP_RESULTS]
    lines = [f"I found {len(candidates)} recipe(s) for you. Here are the top {len(top)}:", ""]
    for index, recipe in enumerate(top, start=1):
        lines.append(
            f"{index}. **{recipe.display_name}** ({recipe.minutes} min, {recipe.difficulty}, serves {recipe.servings})"
        )
        description = recipe.description_ko or recipe.description
        if description:
            lines.append(f"   {_truncate(description)}")
    lines += ["", "Ask me for the full steps of any of these."]
    return "\n".join(lines)


def alternative_queries(state: GraphState, reference: ReferenceData) -> List[str]:
    """
    Suggest simpler searches built from the query's entities.

    Suggestions that mention one of the user's allergens are dropped.
    """
    entities = state.get("entities") or []
    ingredients = [e.value.replace("_", " ") for e in entities if e.type == "ingredient"]
    methods = [e.matched_text or e.value for e in entities if e.type == "cooking_method"]

    options: List[str] = []
    if ingredients and methods:
        options.append(f"{ingredients[0]} {methods[0]}")
    options += [f"easy {ingredient} recipes" for ingredient in ingredients[:1]]
    options += [f"{method} recipes" for method in methods[:1]]
    options += list(DEFAULT_ALTERNATIVES)

    tokens = [t for allergy in state.get("user_allergies") or [] for t in reference.allergen_tokens(allergy)]
    safe = [o for o in options if not any(token in o.lower() for token in tokens)]
    return list(dict.fromkeys(safe))[:3]


def render_no_results(state: GraphState, reference: ReferenceData) -> str:
    lines = [NO_RESULTS_MESSAGE, "", "You could try:"]
    lines += [f"- \"{query}\"" for query in alternative_queries(state, reference)]
    suggestions = (state.get("metadata") or {}).get("refinement_suggestions") or []
    if suggestions:
        lines += ["", "Or make your request more specific:"]
        lines += [f"- {s}" for s in suggestions]
    return "\n".join(lines)


def _last_recipe(history: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    for turn in reversed(history):
        if turn.get("recipes"):
            return turn["recipes"][0]
    return None


def render_follow_up(state: GraphState, reference: ReferenceData) -> str:
    """Tips or details about the dish from the previous turn."""
    recipe = _last_recipe(state.get("conversation_history") or [])
    if recipe is None:
        return "Could you tell me which dish you mean? I don't have a previous recipe to refer to."

    name = recipe.get("name_ko") or recipe.get("name") or "that dish"
    if recipe.get("name") and recipe.get("name_ko") and recipe["name"] != recipe["name_ko"]:
        name = f"{recipe['name_ko']} ({recipe['name']})"

    text = normalize(state.get("user_query", ""))
    wants_detail = any(contains_term(text, word) if word.isascii() else word in text for word in DETAIL_WORDS)
    steps = recipe.get("steps") or []
    if wants_detail and steps:
        lines = [f"Here are the steps for **{name}**:", ""]
        lines += [f"{index}. {step}" for index, step in enumerate(steps, start=1)]
        return "\n".join(lines)

    dish_text = " ".join([recipe.get("name", ""), recipe.get("name_ko", "")] + list(recipe.get("ingredients") or []))
    methods = [e.value for e in EntityExtractor(reference).extract(dish_text) if e.type == "cooking_method"]
    tips: List[str] = []
    for method in methods:
        tips += list(reference.technique_tips.get(method, ()))
    tips += list(reference.technique_tips.get("general", ()))
    tips = list(dict.fromkeys(tips))[:MAX_FOLLOW_UP_TIPS]

    lines = [f"More tips for **{name}**:", ""]
    lines += [f"- {tip}" for tip in tips]
    return "\n".join(lines)


def compose_response(
    state: GraphState, reference: Optional[ReferenceData] = None
) -> Tuple[str, Dict[str, Any]]:
    """
    Compose the final response.

    Returns:
        (response text, metadata patch)
    """
    reference = reference or load_reference_data()
    branch = select_branch(state)
    allergies = list(state.get("user_allergies") or [])
    candidates = state.get("candidates") or []
    generated = state.get("generated_recipe")
    metadata = state.get("metadata") or {}

    if branch == "follow_up":
        body = render_follow_up(state, reference)
    elif branch == "generated":
        body = render_recipe_card(generated, len(state.get("reference_recipes") or []))
    elif branch == "search_results":
        body = render_search_results(candidates)
    elif branch == "no_results":
        body = render_no_results(state, reference)
    else:
        body = state.get("response") or "How can I help you in the kitchen today?"

    sections = [body]
    if branch in ("generated", "no_results"):
        notice = service_notice(state)
        if notice:
            sections.insert(0, notice)
    if branch in ("generated", "search_results") and allergies:
        sections.append(f"All recipes shown exclude: {', '.join(allergies)}.")
    advisories = state.get("allergen_advisories") or []
    if advisories and branch in ("generated", "search_results", "follow_up"):
        sections.append("Cross-contamination notes:\n" + "\n".join(f"- {note}" for note in advisories))

    flags = set()
    if not metadata.get("clarification_needed"):
        intent = state.get("intent")
        flags = profile_flags(
            state.get("user_profile"),
            state.get("user_query", ""),
            state.get("entities") or [],
            state.get("search_filters"),
            allergies,
        )
        tips = personalization_tips(flags, allergies)
        if tips:
            sections.append("\n".join(tips))
        suggestions = contextual_suggestions(intent.primary if intent else None)
        if suggestions and branch != "no_results":
            sections.append("You can also:\n" + "\n".join(f"- {s}" for s in suggestions))

    shown = [generated] if branch == "generated" else candidates[:TOP_RESULTS] if branch == "search_results" else []
    return "\n\n".join(sections), {
        "branch": branch,
        "allergies": allergies,
        "allergen_advisories": advisories,
        "personalization_flags": sorted(flags),
        "recipe_ids": [recipe.id for recipe in shown],
    }


def recipes_for_history(state: GraphState) -> List[Dict[str, Any]]:
    """Recipe summaries to keep in the conversation turn for later follow-ups."""
    branch = (state.get("metadata") or {}).get("branch")
    if branch == "generated" and state.get("generated_recipe") is not None:
        return [state["generated_recipe"].summary()]
    if branch == "search_results":
        return [recipe.summary() for recipe in (state.get("candidates") or [])[:TOP_RESULTS]]
    if branch == "follow_up":
        # keep the dish in focus for the next follow-up
        recipe = _last_recipe(state.get("conversation_history") or [])
        return [recipe] if recipe else []
    return []
