"""
Lexical matching helpers shared by the extractors and the query builder.
"""

import re
from functools import lru_cache
from typing import List

TOKEN_PATTERN = re.compile(r"[a-z0-9가-힣']+")
CLAUSE_SPLIT_PATTERN = re.compile(r"[,.;!?\n]+|\bbut\b")


def normalize(text: str) -> str:
    """Lower-case and collapse whitespace."""
    return " ".join((text or "").lower().split())


def tokenize(text: str) -> List[str]:
    """Split normalized text into word tokens (hyphenated words become separate tokens)."""
    return TOKEN_PATTERN.findall(normalize(text))


def split_clauses(text: str) -> List[str]:
    return [clause.strip() for clause in CLAUSE_SPLIT_PATTERN.split(normalize(text)) if clause.strip()]


@lru_cache(maxsize=4096)
def _term_regex(term: str, hyphen_is_boundary: bool) -> "re.Pattern[str]":
    if not term.isascii():
        return re.compile(rf"(?<![가-힣]){re.escape(term)}")
    word_chars = "a-z0-9" if hyphen_is_boundary else "a-z0-9\\-"
    return re.compile(rf"(?<![{word_chars}]){re.escape(term)}(?![{word_chars}])")


def contains_term(text: str, term: str, hyphen_is_boundary: bool = True) -> bool:
    """
    Check whether ``term`` occurs in already-normalized ``text``.

    ASCII terms must sit on word boundaries so "egg" does not match
    "eggplant". Non-ASCII (Korean) terms only need a boundary on the left:
    particles attach directly after the noun, but "콩" must not match
    inside "땅콩".

    Args:
        text: Normalized (lower-case) text
        term: Lower-case term
        hyphen_is_boundary: When False, "tofu" does not match inside "tofu-free"
    """
    if not term:
        return False
    return _term_regex(term, hyphen_is_boundary).search(text) is not None
