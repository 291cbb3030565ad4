"""
Reference Data Loader

Loads the keyword dictionaries and allergen records shipped next to this
module. Data is read once per process and handed out as read-only
mappings; every request shares the same instance.
"""

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import FrozenSet, Mapping, Tuple

from loguru import logger

from kitchen_assistant.schemas.recipe import AllergenRecord

REFERENCE_DIR = Path(__file__).parent


@dataclass(frozen=True)
class ReferenceData:
    """
    Immutable bundle of dictionaries used by extraction and composition.

    Attributes:
        entities: entity type -> canonical value -> synonyms
        context_words: Words that signal a cooking context
        stopwords: Tokens ignored when building search text
        allergens: allergen name -> AllergenRecord
        technique_tips: cooking method (or "general") -> tips
        substitutions: ingredient -> substitute suggestions
    """

    entities: Mapping[str, Mapping[str, Tuple[str, ...]]]
    context_words: Tuple[str, ...]
    stopwords: FrozenSet[str]
    allergens: Mapping[str, AllergenRecord]
    technique_tips: Mapping[str, Tuple[str, ...]]
    substitutions: Mapping[str, Tuple[str, ...]]

    def allergen_tokens(self, allergy: str) -> Tuple[str, ...]:
        """
        Lexical tokens that identify an allergen in ingredient text.

        Unknown allergy names fall back to the name itself, so a caller can
        declare allergies outside the reference list and still get filtering.
        """
        name = allergy.strip().lower()
        record = self.allergens.get(name)
        if record is None:
            return (name,) if name else ()
        return tuple(dict.fromkeys((record.name,) + record.patterns))


def _freeze_mapping(raw: dict) -> Mapping[str, Tuple[str, ...]]:
    return MappingProxyType({key: tuple(value) for key, value in raw.items()})


@lru_cache(maxsize=1)
def load_reference_data() -> ReferenceData:
    """
    Load and freeze reference data from the JSON files in this package.

    Returns:
        ReferenceData shared by all callers (cached)
    """
    with open(REFERENCE_DIR / "keywords.json", encoding="utf-8") as fh:
        keywords = json.load(fh)
    with open(REFERENCE_DIR / "allergens.json", encoding="utf-8") as fh:
        allergen_rows = json.load(fh)

    entities = MappingProxyType(
        {entity_type: _freeze_mapping(values) for entity_type, values in keywords["entities"].items()}
    )

    allergens = MappingProxyType(
        {
            row["name"]: AllergenRecord(
                name=row["name"],
                patterns=tuple(p.lower() for p in row["patterns"]),
                cross_contamination=tuple(row.get("cross_contamination", [])),
                substitutes=tuple(row.get("substitutes", [])),
                risk_weight=row.get("risk_weight", 20),
            )
            for row in allergen_rows
        }
    )

    data = ReferenceData(
        entities=entities,
        context_words=tuple(keywords["context_words"]),
        stopwords=frozenset(keywords["stopwords"]),
        allergens=allergens,
        technique_tips=_freeze_mapping(keywords["technique_tips"]),
        substitutions=_freeze_mapping(keywords["substitutions"]),
    )

    logger.debug(
        f"Loaded reference data: {sum(len(v) for v in entities.values())} entity values, "
        f"{len(allergens)} allergens"
    )
    return data
