"""
BFTX Cryptographic Signing

Ed25519 (RFC 8032) signing of BF_TX shipment content via PyNaCl.

The signature covers the canonical JSON of the record's properties, so any
change to the shipment after signing is detectable.
"""

import base64
import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from nacl.exceptions import BadSignatureError, CryptoError
from nacl.signing import SigningKey, VerifyKey

from .canonicalization import canonicalize
from .errors import SigningError
from .models import BFTX

logger = logging.getLogger(__name__)


def b64e(b: bytes) -> str:
    """Base64 encode bytes to string."""
    return base64.b64encode(b).decode('ascii')


def b64d(s: str) -> bytes:
    """Base64 decode string to bytes."""
    return base64.b64decode(s.encode('ascii'))


def signing_payload(record: BFTX) -> bytes:
    """Bytes covered by a record signature."""
    return canonicalize(record.properties_content())


class Signer(ABC):
    """Abstract interface to the signing collaborator."""

    @abstractmethod
    def sign(self, record: BFTX) -> BFTX:
        """
        Return a signed copy of ``record`` with ``verified=True``.

        Raises:
            SigningError: if the signature cannot be produced
        """
        pass

    @abstractmethod
    def get_kid(self) -> str:
        pass


class Ed25519Signer(Signer):
    """Signs records with a single Ed25519 key."""

    def __init__(self, signing_key: Union[SigningKey, bytes], kid: str):
        if isinstance(signing_key, bytes):
            try:
                signing_key = SigningKey(signing_key)
            except (CryptoError, TypeError, ValueError) as e:
                raise SigningError(f"Invalid Ed25519 signing key for {kid}: {e}") from e
        self._sk = signing_key
        self._kid = kid

    @classmethod
    def generate(cls, kid: Optional[str] = None) -> "Ed25519Signer":
        kid = kid or f"kid:bftx-{datetime.now().strftime('%Y%m%d')}-001"
        return cls(SigningKey.generate(), kid)

    @classmethod
    def from_key_file(cls, path: Union[str, Path]) -> "Ed25519Signer":
        """
        Load a key written by ``write_key_file``.

        Format: {"kid": ..., "private_key_b64": ..., "public_key_b64": ...}
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            return cls(b64d(raw["private_key_b64"]), raw["kid"])
        except (OSError, ValueError, KeyError) as e:
            raise SigningError(f"Cannot load signing key from {path}: {e}") from e

    @property
    def public_key_b64(self) -> str:
        return b64e(bytes(self._sk.verify_key))

    def get_kid(self) -> str:
        return self._kid

    def sign(self, record: BFTX) -> BFTX:
        try:
            sig = self._sk.sign(signing_payload(record)).signature
        except CryptoError as e:
            raise SigningError(f"Signing failed: {e}", bftx_id=record.id) from e
        return record.evolve(
            signature=b64e(sig),
            public_key=self.public_key_b64,
            key_id=self._kid,
            verified=True,
        )

    def write_key_file(self, path: Union[str, Path]) -> None:
        """Write the key pair as JSON, readable by the owner only."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "kid": self._kid,
            "alg": "ed25519",
            "private_key_b64": b64e(bytes(self._sk)),
            "public_key_b64": self.public_key_b64,
        }
        fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def trust_entry(self) -> Dict[str, Any]:
        return {"kid": self._kid, "alg": "ed25519", "public_key_b64": self.public_key_b64}


def verify_record_signature(record: BFTX) -> bool:
    """
    Check a signed record against the public key it carries.

    Returns:
        True if signature is valid, False otherwise
    """
    if not record.signature or not record.public_key:
        return False
    try:
        vk = VerifyKey(b64d(record.public_key))
        vk.verify(signing_payload(record), b64d(record.signature))
        return True
    except (BadSignatureError, CryptoError, ValueError, TypeError):
        return False


def load_signer(key_path: Optional[Union[str, Path]]) -> Signer:
    """
    Factory: load the signer from ``key_path`` when it exists, otherwise
    generate an ephemeral key.
    """
    if key_path and Path(key_path).exists():
        return Ed25519Signer.from_key_file(key_path)
    signer = Ed25519Signer.generate()
    logger.warning("No signing key at %s, using ephemeral key %s", key_path, signer.get_kid())
    return signer
