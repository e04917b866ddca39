"""
Recover structured data from free-form model output.

Models are asked for bare JSON but regularly wrap it in markdown fences,
leave trailing commas, or add prose around it. ``extract_json_array`` runs
an ordered fallback chain and gives up with ``InvalidModelOutput``; it is a
best-effort cleanup, not a JSON parser.
"""
import json
import logging
import re
from typing import Any, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import InvalidModelOutput
from .schemas import Question, Suggestion

logger = logging.getLogger(__name__)

FENCE_RX = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.I)
TRAILING_COMMA_RX = re.compile(r",\s*([}\]])")
ARRAY_RX = re.compile(r"\[[\s\S]*\]")

M = TypeVar("M", bound=BaseModel)


def extract_json_array(raw: str) -> List[Any]:
    """Return the JSON array contained in ``raw``.

    A valid JSON value that is not an array yields ``[]``. Raises
    InvalidModelOutput when no strategy produces parseable JSON.
    """
    text = (raw or "").strip()

    fenced = FENCE_RX.search(text)
    if fenced:
        text = fenced.group(1).strip()

    text = TRAILING_COMMA_RX.sub(r"\1", text)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        first_error = e
    else:
        if not isinstance(data, list):
            logger.warning("Model returned JSON %s instead of an array", type(data).__name__)
            return []
        return data

    logger.info("Direct JSON parse failed (%s); trying embedded array", first_error)
    embedded = ARRAY_RX.search(text)
    if embedded:
        try:
            data = json.loads(embedded.group(0))
        except json.JSONDecodeError as e:
            logger.warning("Failed to parse extracted array: %s", e)
        else:
            if isinstance(data, list):
                return data

    logger.error("Unrecoverable model output: %r", text[:500])
    raise InvalidModelOutput(str(first_error))


def _unique_ids(items: List[dict], id_prefix: str) -> None:
    """Give every item an id that no other item in the batch uses.

    Missing ids are filled as ``{prefix}{n}`` avoiding ids the model did
    supply; repeated ids become ``id-2``, ``id-3``, ...
    """
    supplied = {str(item["id"]) for item in items if item.get("id") not in (None, "")}
    taken = set()
    for index, item in enumerate(items):
        if item.get("id") in (None, ""):
            n = index + 1
            new_id = f"{id_prefix}{n}"
            while new_id in supplied or new_id in taken:
                n += 1
                new_id = f"{id_prefix}{n}"
        else:
            base = str(item["id"])
            new_id, n = base, 2
            while new_id in taken:
                new_id = f"{base}-{n}"
                n += 1
            if new_id != base:
                logger.info("Renaming duplicate id %s -> %s", base, new_id)
        taken.add(new_id)
        item["id"] = new_id


def _coerce(items: List[Any], model: Type[M], id_prefix: str) -> List[M]:
    objects = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning("Dropping non-object %s item at %d", model.__name__, index)
            continue
        objects.append(dict(item))
    _unique_ids(objects, id_prefix)

    out: List[M] = []
    for item in objects:
        try:
            out.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning("Dropping malformed %s item %s: %s", model.__name__, item.get("id"), e.errors()[0].get("msg"))
    return out


def parse_questions(raw: str, *, strict: bool = True) -> List[Question]:
    """Normalize model output into questions.

    With ``strict=False`` (optional follow-up path) unrecoverable output
    degrades to an empty list instead of raising.
    """
    try:
        items = extract_json_array(raw)
    except InvalidModelOutput:
        if strict:
            raise
        logger.warning("Ignoring unparseable follow-up questions")
        return []
    return _coerce(items, Question, "q")


def parse_suggestions(raw: str) -> List[Suggestion]:
    return _coerce(extract_json_array(raw), Suggestion, "s")
