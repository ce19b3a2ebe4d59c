"""
BFTX Canonical JSON Encoding

Produces the stable byte representation of a BF_TX used for hashing,
persistence and network submission. Two records with field-for-field
identical content always canonicalize to the same bytes.
"""

import json
import math
from typing import Any, Dict, List, Union

from .errors import EncodingError


def canonicalize(obj: Any) -> bytes:
    """
    Convert an object to canonical JSON bytes.

    Rules:
    - Object keys sorted lexicographically (Unicode code point order)
    - No whitespace between tokens
    - UTF-8 encoding, non-ASCII characters kept as-is
    - Arrays preserve order
    - Only JSON-native types; anything else raises EncodingError

    Returns:
        UTF-8 encoded bytes of canonical JSON
    """
    canonical = _canonicalize_value(obj)
    return json.dumps(canonical, separators=(',', ':'), ensure_ascii=False).encode('utf-8')


def canonicalize_str(obj: Any) -> str:
    """Return canonical JSON as string."""
    return canonicalize(obj).decode('utf-8')


def parse_canonical(data: Union[bytes, str]) -> Any:
    """Parse canonical JSON back into Python values."""
    try:
        if isinstance(data, bytes):
            data = data.decode('utf-8')
        return json.loads(data)
    except ValueError as e:
        raise EncodingError(f"Invalid canonical content: {e}") from e


def _canonicalize_value(value: Any) -> Any:
    """Recursively canonicalize a value."""
    if value is None:
        return None
    elif isinstance(value, bool):
        return value
    elif isinstance(value, int):
        return value
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise EncodingError(f"Cannot canonicalize non-finite number: {value}")
        return value
    elif isinstance(value, str):
        return value
    elif isinstance(value, dict):
        return _canonicalize_object(value)
    elif isinstance(value, (list, tuple)):
        return _canonicalize_array(value)
    else:
        raise EncodingError(f"Cannot canonicalize type: {type(value).__name__}")


def _canonicalize_object(obj: Dict[str, Any]) -> Dict[str, Any]:
    for k in obj:
        if not isinstance(k, str):
            raise EncodingError(f"Object keys must be strings, got {type(k).__name__}")
    return {k: _canonicalize_value(obj[k]) for k in sorted(obj.keys())}


def _canonicalize_array(arr: Union[List, tuple]) -> List:
    return [_canonicalize_value(item) for item in arr]
