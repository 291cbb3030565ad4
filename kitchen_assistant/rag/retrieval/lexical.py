"""
Lexical Relevance Scoring

Weighted multi-field fuzzy matching used by the recipe index adapter.
The vector store has no BM25, so text relevance is computed client-side
over the fetched payloads.

Scoring follows best_fields semantics with a tie breaker: the strongest
weighted field dominates and the other fields add a fraction of their
score. The result is normalized to [0, 1].
"""

from difflib import SequenceMatcher
from typing import Any, Dict, Iterable, List

from kitchen_assistant.rag.nlp.matching import normalize, tokenize

FUZZY_RATIO = 0.8
TIE_BREAKER = 0.3


def _field_text(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return normalize(" ".join(str(v) for v in value))
    return normalize(str(value or ""))


def fuzzy_term_match(term: str, text: str, tokens: Iterable[str]) -> bool:
    """
    Whether ``term`` matches the field.

    - multi-word or non-ASCII terms: substring of the field text
    - short terms (3 chars or less): exact token
    - longer terms: exact, prefix containment, or SequenceMatcher ratio >= 0.8
    """
    term = normalize(term).replace("-", " ")
    if not term:
        return False
    if " " in term or not term.isascii():
        return term in text.replace("-", " ")

    for token in tokens:
        if token == term:
            return True
        if len(term) <= 3:
            continue
        if token.startswith(term) or (len(token) > 3 and term.startswith(token)):
            return True
        if SequenceMatcher(None, term, token).ratio() >= FUZZY_RATIO:
            return True
    return False


def field_score(terms: List[str], value: Any) -> float:
    """Fraction of terms matched in one field."""
    if not terms:
        return 0.0
    text = _field_text(value)
    if not text:
        return 0.0
    tokens = set(tokenize(text))
    matched = sum(1 for term in terms if fuzzy_term_match(term, text, tokens))
    return matched / len(terms)


def text_score(terms: List[str], document: Dict[str, Any], field_weights: Dict[str, float]) -> float:
    """
    Weighted best_fields relevance of a document for the given terms.

    Args:
        terms: Search keywords
        document: Recipe payload
        field_weights: field -> weight

    Returns:
        Score in [0, 1]; 0.0 when there are no terms
    """
    if not terms or not field_weights:
        return 0.0

    weighted = sorted(
        (weight * field_score(terms, document.get(field)) for field, weight in field_weights.items()),
        reverse=True,
    )
    weights = sorted(field_weights.values(), reverse=True)

    best, rest = weighted[0], sum(weighted[1:])
    ceiling = weights[0] + TIE_BREAKER * sum(weights[1:])
    return round(min(1.0, (best + TIE_BREAKER * rest) / ceiling), 4)
