"""
BFTX Hashing

SHA-256 helpers and the BF_TX identifier construction:

    digest = SHA-256(CJE(properties))
    id     = hex(SHA-256(digest || app_hash))
"""

import hashlib
import hmac
from typing import Any, Optional, Union

from .canonicalization import canonicalize


def sha256_bytes(data: Union[bytes, str]) -> bytes:
    """Compute SHA-256 hash and return the raw digest."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).digest()


def sha256_hex(data: Union[bytes, str]) -> str:
    """Compute SHA-256 hash and return lowercase hex."""
    return sha256_bytes(data).hex()


def content_digest(content: Any) -> bytes:
    """Digest of the canonical form of a shipment payload."""
    return sha256_bytes(canonicalize(content))


def derive_bftx_id(digest: bytes, salt: bytes) -> str:
    """
    Combine a content digest with the chain salt.

    Deterministic for a fixed (digest, salt) pair. The same content under a
    different salt yields a different identifier.
    """
    return hashlib.sha256(digest + salt).hexdigest()


def constant_time_compare(a: Union[str, bytes], b: Union[str, bytes]) -> bool:
    if isinstance(a, str):
        a = a.encode('utf-8')
    if isinstance(b, str):
        b = b.encode('utf-8')
    return hmac.compare_digest(a, b)


def validate_hex_string(s: str, expected_length: Optional[int] = None) -> bool:
    """Validate that a string is valid hexadecimal."""
    try:
        if expected_length and len(s) != expected_length:
            return False
        bytes.fromhex(s)
        return True
    except (ValueError, TypeError):
        return False
