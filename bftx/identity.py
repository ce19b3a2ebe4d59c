"""
BFTX Identity Generator

A BF_TX id binds the shipment content to the chain state current at
construction time:

    id = SHA-256( SHA-256(CJE(properties)) || last_block_app_hash )

Identical content constructed at a later block gets a different id.
"""

from typing import Any, Dict, Tuple, Union

from .errors import ChainUnavailable, NetworkError
from .hashing import constant_time_compare, content_digest, derive_bftx_id, validate_hex_string
from .models import BFTX, ShipmentProperties
from .network import ChainClient


def _content(properties: Union[ShipmentProperties, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(properties, ShipmentProperties):
        return properties.to_content()
    return properties


class IdentityGenerator:
    """Derives chain-anchored ids using the injected chain client."""

    def __init__(self, chain: ChainClient):
        self._chain = chain

    def current_salt(self) -> bytes:
        try:
            return self._chain.latest_app_hash()
        except ChainUnavailable:
            raise
        except NetworkError as e:
            raise ChainUnavailable(f"Cannot read latest app hash: {e}") from e

    def generate_id(self, properties: Union[ShipmentProperties, Dict[str, Any]]) -> Tuple[str, bytes]:
        """
        Returns:
            (bftx_id, salt) where salt is the app hash the id is bound to

        Raises:
            ChainUnavailable: if the app hash cannot be read
        """
        digest = content_digest(_content(properties))
        salt = self.current_salt()
        return derive_bftx_id(digest, salt), salt


def generate_id_with_salt(properties: Union[ShipmentProperties, Dict[str, Any]], salt: bytes) -> str:
    """Pure form of the derivation for a known salt."""
    return derive_bftx_id(content_digest(_content(properties)), salt)


def verify_identity(record: BFTX) -> bool:
    """Re-derive the id from the record's properties and recorded app hash."""
    if not validate_hex_string(record.app_hash):
        return False
    expected = generate_id_with_salt(record.properties, bytes.fromhex(record.app_hash))
    return constant_time_compare(expected, record.id)
