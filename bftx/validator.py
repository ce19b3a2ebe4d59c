"""
BFTX Content Validation

Checks shipment content against the BF_TX schema before anything is
hashed or persisted.
"""

import json
from pathlib import Path
from typing import Any, Dict, Union

import pydantic

from .errors import ValidationError
from .models import ShipmentProperties


def validate_properties(content: Union[ShipmentProperties, Dict[str, Any]]) -> ShipmentProperties:
    """
    Validate shipment content.

    Raises:
        ValidationError: with one entry per failing field
    """
    if isinstance(content, ShipmentProperties):
        return content
    if not isinstance(content, dict):
        raise ValidationError(
            f"Shipment content must be an object, got {type(content).__name__}"
        )
    try:
        return ShipmentProperties.model_validate(content)
    except pydantic.ValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        summary = "; ".join(f"{err['field']}: {err['message']}" for err in errors)
        raise ValidationError(f"Invalid shipment content: {summary}", errors=errors) from e


def load_document(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a JSON shipment document from disk."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        raise ValidationError(f"Cannot read {path}: {e.strerror or e}") from e
    except ValueError as e:
        raise ValidationError(f"{path} is not valid JSON: {e}") from e
