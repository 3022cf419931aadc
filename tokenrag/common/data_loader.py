"""
Entity record loading from JSON files and raw payloads.
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Sequence, Union

from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .schemas.entity_record import EntityRecord

logger = logging.getLogger("tokenrag.common.data_loader")


def parse_entities(payload: Any) -> List[EntityRecord]:
    """
    Validate a collection of raw entity dicts.

    Accepts a list of records or an object with a "tokens" list.
    Raises ValidationError naming the offending index.
    """
    if isinstance(payload, dict) and isinstance(payload.get("tokens"), list):
        payload = payload["tokens"]
    if not isinstance(payload, list):
        raise ValidationError('Payload must be a list or contain a "tokens" list')

    return [_coerce_entity(item, i) for i, item in enumerate(payload)]


def coerce_entities(records: Sequence[Union[EntityRecord, dict]]) -> List[EntityRecord]:
    """Accept already-built EntityRecords mixed with raw dicts"""
    return [_coerce_entity(item, i) for i, item in enumerate(records)]


def _coerce_entity(item: Any, index: int) -> EntityRecord:
    if isinstance(item, EntityRecord):
        return item
    if not isinstance(item, dict):
        raise ValidationError(f"Entity at index {index} is not an object")
    try:
        return EntityRecord.model_validate(item)
    except PydanticValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ValidationError(f"Entity at index {index} is invalid: {fields}") from e


def load_entities_from_file(path: Union[str, Path]) -> List[EntityRecord]:
    """
    Load entity records from a JSON file.

    Args:
        path: JSON file holding an array of records or {"tokens": [...]}

    Returns:
        Validated EntityRecords in file order
    """
    full_path = Path(path).expanduser().resolve()
    if not full_path.exists():
        raise FileNotFoundError(f"File not found: {full_path}")

    try:
        with open(full_path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in {full_path}: {e}") from e

    entities = parse_entities(data)
    logger.info("Loaded %d entities from %s", len(entities), full_path)
    return entities
