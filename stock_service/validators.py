"""
Validation utilities for the Stock service.

Checks untyped input (decoded JSON, parsed CSV rows, URL paths) against the
stock item schemas before anything reaches the database.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple
from pydantic import ValidationError
from . import schemas


class MalformedItemPath(ValueError):
    """Raised when an item path does not carry exactly one store and one SKU."""


def flatten_errors(exc: ValidationError) -> Dict[str, Any]:
    """
    Collapse a Pydantic ValidationError into form-level and field-level messages.

    Args:
        exc: The error raised by ``model_validate``

    Returns:
        dict: ``{"formErrors": [...], "fieldErrors": {field: [...]}}``. Errors
        that concern the record as a whole (e.g. it is not an object) land in
        ``formErrors``.
    """
    form_errors: List[str] = []
    field_errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        loc = error.get("loc") or ()
        if loc:
            field_errors.setdefault(str(loc[0]), []).append(error["msg"])
        else:
            form_errors.append(error["msg"])
    return {"formErrors": form_errors, "fieldErrors": field_errors}


def validate_many(records: Sequence[Any]) -> Tuple[List[schemas.StockItemCreate], List[schemas.RecordError]]:
    """
    Validate a batch of untyped records as full stock items.

    The batch is all-or-nothing: every record is checked so that all problems
    are reported at once, but if any record fails no validated data is returned.

    Args:
        records: Non-empty sequence of untyped records

    Returns:
        Tuple of (validated, errors). Exactly one of them is non-empty;
        ``validated`` keeps the input order.
    """
    validated: List[schemas.StockItemCreate] = []
    errors: List[schemas.RecordError] = []

    for record in records:
        try:
            validated.append(schemas.StockItemCreate.model_validate(record))
        except ValidationError as exc:
            errors.append(schemas.RecordError(input=record, issues=flatten_errors(exc)))

    if errors:
        return [], errors
    return validated, []


def validate_update(record: Any) -> Tuple[Optional[schemas.StockItemUpdate], Optional[Dict[str, Any]]]:
    """
    Validate an untyped record as a partial stock item update.

    Args:
        record: Decoded request body

    Returns:
        Tuple of (patch, issues). On success ``issues`` is None; on failure
        ``patch`` is None and ``issues`` holds the flattened errors.
    """
    try:
        return schemas.StockItemUpdate.model_validate(record), None
    except ValidationError as exc:
        return None, flatten_errors(exc)


def parse_item_path(item_path: str) -> Tuple[str, str]:
    """
    Split the part of an item URL after ``/items/`` into store and SKU.

    Raises:
        MalformedItemPath: if there are not exactly two segments or one is empty
    """
    parts = item_path.split("/")
    if len(parts) != 2:
        raise MalformedItemPath("Invalid URL format. Expected /items/{store}/{sku}")

    store, sku = parts
    if not store or not sku:
        raise MalformedItemPath("Missing store or SKU in URL parameters")
    return store, sku
