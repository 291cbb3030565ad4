"""
Allergen Detector

Finds allergy exclusions in a user query and assesses ingredient lists
against the allergen reference data.

Detection is deliberately conservative: an allergen pattern only counts
when a trigger phrase ("allergic to", "without", "-free", ...) appears in
the same clause. "tofu stir-fry" never adds soy to the allergy set;
"tofu-free stir-fry" does. Trigger phrases come from
settings.ALLERGY_TRIGGER_PHRASES so the policy can be tuned without a
code change.
"""

from typing import Iterable, List, Optional, Sequence

from loguru import logger

from kitchen_assistant.config import settings
from kitchen_assistant.rag.nlp.matching import contains_term, normalize, split_clauses
from kitchen_assistant.rag.reference.loader import ReferenceData, load_reference_data
from kitchen_assistant.schemas.recipe import AllergenProfile


class AllergenDetector:
    """
    Allergy extraction and ingredient risk assessment.

    Usage:
        detector = AllergenDetector()
        allergies = detector.resolve("soy allergy, recommend a tofu-free stir-fry", declared=[])
        # ["soy"]
    """

    def __init__(
        self,
        reference: Optional[ReferenceData] = None,
        trigger_phrases: Optional[Sequence[str]] = None,
    ):
        self.reference = reference or load_reference_data()
        phrases = trigger_phrases if trigger_phrases is not None else settings.allergy_trigger_phrases_list
        self.trigger_phrases = tuple(p.lower() for p in phrases if p)

    def _has_trigger(self, clause: str) -> bool:
        for phrase in self.trigger_phrases:
            # "-free" and non-ASCII phrases attach to neighbouring words
            if phrase.startswith("-") or not phrase.isascii() or not phrase[0].isalnum():
                if phrase in clause:
                    return True
            elif contains_term(clause, phrase):
                return True
        return False

    def detect(self, query: str) -> List[str]:
        """
        Extract allergen names stated as exclusions in the query.

        Args:
            query: Raw user query

        Returns:
            Canonical allergen names in order of first appearance
        """
        found: List[str] = []
        for clause in split_clauses(query):
            if not self._has_trigger(clause):
                continue
            for record in self.reference.allergens.values():
                if record.name in found:
                    continue
                if any(contains_term(clause, pattern) for pattern in record.patterns):
                    found.append(record.name)

        if found:
            logger.debug(f"Detected allergy exclusions: {found}")
        return found

    def canonicalize(self, allergy: str) -> str:
        """Map a declared allergy ("tofu", "Peanuts") to its canonical allergen name when known."""
        name = normalize(allergy)
        if name in self.reference.allergens:
            return name
        for record in self.reference.allergens.values():
            if name in record.patterns:
                return record.name
        return name

    def resolve(self, query: str, declared: Optional[Iterable[str]] = None) -> List[str]:
        """
        Merge caller-declared allergies with those detected in the query.

        Declared allergies come first; duplicates are dropped.
        """
        merged: List[str] = []
        for allergy in list(declared or []) + self.detect(query):
            if not isinstance(allergy, str) or not allergy.strip():
                continue
            name = self.canonicalize(allergy)
            if name not in merged:
                merged.append(name)
        return merged

    def advisories(self, allergies: Iterable[str]) -> List[str]:
        """
        Cross-contamination notes for the given allergies.

        Advisory text only. These sources are never used to filter recipes.
        """
        notes = []
        for allergy in allergies:
            record = self.reference.allergens.get(allergy)
            if record and record.cross_contamination:
                notes.append(
                    f"{record.name}: watch for hidden sources in {', '.join(record.cross_contamination)}"
                )
        return notes

    def alternatives(self, allergy: str) -> List[str]:
        """Allergen-free substitutes for a named allergen (empty when unknown)."""
        record = self.reference.allergens.get(self.canonicalize(allergy))
        return list(record.substitutes) if record else []

    def assess_ingredients(self, ingredients: Iterable[str]) -> AllergenProfile:
        """
        Compute the allergen profile of an ingredient list.

        Risk score is the sum of the matched allergens' risk weights, capped at 100.
        """
        text = normalize(" | ".join(ingredients))
        contained = [
            record
            for record in self.reference.allergens.values()
            if any(contains_term(text, pattern) for pattern in record.patterns)
        ]
        return AllergenProfile(
            contains_allergens=[record.name for record in contained],
            total_allergen_count=len(contained),
            risk_score=min(100, sum(record.risk_weight for record in contained)),
        )
