"""
JSON Recovery for Model Output

LLMs wrap JSON in prose and markdown fences, or cut it off mid-object.
These helpers pull the first balanced, parseable ``{...}`` object out of
raw text and validate it as a recipe draft. Every failure mode ends in
``None`` for the caller; nothing here raises past ``parse_recipe_output``.
"""

import json
import re
from typing import Any, Dict, Iterator, Optional

from loguru import logger
from pydantic import ValidationError

from kitchen_assistant.core.errors import MalformedOutputError
from kitchen_assistant.schemas.llm_responses import GeneratedRecipeDraft

FENCE_PATTERN = re.compile(r"```[a-zA-Z0-9_-]*")
RAW_EXCERPT_LENGTH = 200


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers (```json, ```)."""
    return FENCE_PATTERN.sub("", text)


def _balanced_end(text: str, start: int) -> Optional[int]:
    """
    Index just past the brace that closes ``text[start]``.

    Braces inside JSON strings are ignored. Returns None when the object
    never closes (truncated output).
    """
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index + 1
    return None


def iter_balanced_objects(text: str) -> Iterator[str]:
    """Yield every balanced ``{...}`` span, in order of its opening brace."""
    start = text.find("{")
    while start != -1:
        end = _balanced_end(text, start)
        if end is not None:
            yield text[start:end]
        start = text.find("{", start + 1)


def extract_json_object(raw: str) -> Dict[str, Any]:
    """
    Recover the first JSON object embedded in raw model output.

    Args:
        raw: Model output, possibly with prose and code fences

    Returns:
        The deserialized object

    Raises:
        MalformedOutputError: If no balanced block deserializes to an object
    """
    raw = raw or ""
    # Fence markers rarely sit inside the object; only strip them if the raw scan fails
    for text in (raw, strip_code_fences(raw)):
        for block in iter_balanced_objects(text):
            try:
                value = json.loads(block)
            except json.JSONDecodeError:
                continue
            if isinstance(value, dict):
                return value
    raise MalformedOutputError("No parseable JSON object in model output", raw_output=raw or "")


def parse_recipe_output(raw: str) -> Optional[GeneratedRecipeDraft]:
    """
    Parse and validate a generated recipe.

    Required fields: name, nameKo, description, ingredients[], steps[];
    ingredients and steps must be arrays of strings.

    Returns:
        GeneratedRecipeDraft, or None when the output is malformed
    """
    try:
        payload = extract_json_object(raw)
        return GeneratedRecipeDraft.model_validate(payload)
    except MalformedOutputError as e:
        logger.warning(f"Malformed recipe output: {e} | raw={e.raw_excerpt!r}")
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        logger.warning(
            f"Recipe output failed validation on {fields} | raw={(raw or '')[:RAW_EXCERPT_LENGTH]!r}"
        )
    return None
