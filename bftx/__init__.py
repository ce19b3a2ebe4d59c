"""
Blockfreight BF_TX Lifecycle Engine

Version: 1.0.0

Identity and lifecycle management for Blockfreight freight-shipment
transactions (BF_TX).

A BF_TX id binds shipment content to the chain state current at
construction time:
    id = SHA-256( SHA-256(canonical(properties)) || last_block_app_hash )

Every record moves one way through DRAFT -> SIGNED -> TRANSMITTED, and may
be amended by exactly one newer record.

Usage:
    from bftx import (
        LifecycleEngine,
        SqliteRecordStore,
        TendermintRPCClient,
        Ed25519Signer,
    )

    engine = LifecycleEngine(
        SqliteRecordStore("data/bftx.db"),
        TendermintRPCClient("http://127.0.0.1:46657"),
        Ed25519Signer.from_key_file("secrets/bftx_signing_key.json"),
    )

    bftx_id = engine.construct({"shipper": "ACME Exports", "carrier": "Blue Line"})
    engine.sign(bftx_id)
    receipt = engine.broadcast(bftx_id)

    print(engine.state(bftx_id).describe())   # Transmitted!
"""

__version__ = "1.0.0"

# Canonicalization and hashing
from .canonicalization import canonicalize, canonicalize_str
from .hashing import content_digest, derive_bftx_id, sha256_hex

# Errors
from .errors import (
    BFTXError,
    ValidationError,
    EncodingError,
    NotFoundError,
    AlreadySignedError,
    NotSignedError,
    AlreadyTransmittedError,
    NotTransmittedError,
    AmendmentExistsError,
    NetworkError,
    ChainUnavailable,
    BroadcastRejectedError,
    StoreError,
    DuplicateRecordError,
    ConcurrentModificationError,
    SigningError,
)

# Records
from .models import BFTX, RecordState, RecordStatus, ShipmentProperties
from .validator import validate_properties
from .schema import normalize_document

# Identity
from .identity import IdentityGenerator, generate_id_with_salt, verify_identity

# Collaborators
from .store import RecordStore, InMemoryRecordStore, SqliteRecordStore, open_store
from .network import ChainClient, BroadcastReceipt, TendermintRPCClient, InMemoryChain
from .signing import Signer, Ed25519Signer, load_signer, verify_record_signature

# Engine
from .lifecycle import LifecycleEngine


__all__ = [
    # Version
    "__version__",

    # Canonicalization and hashing
    "canonicalize",
    "canonicalize_str",
    "content_digest",
    "derive_bftx_id",
    "sha256_hex",

    # Errors
    "BFTXError",
    "ValidationError",
    "EncodingError",
    "NotFoundError",
    "AlreadySignedError",
    "NotSignedError",
    "AlreadyTransmittedError",
    "NotTransmittedError",
    "AmendmentExistsError",
    "NetworkError",
    "ChainUnavailable",
    "BroadcastRejectedError",
    "StoreError",
    "DuplicateRecordError",
    "ConcurrentModificationError",
    "SigningError",

    # Records
    "BFTX",
    "RecordState",
    "RecordStatus",
    "ShipmentProperties",
    "validate_properties",
    "normalize_document",

    # Identity
    "IdentityGenerator",
    "generate_id_with_salt",
    "verify_identity",

    # Collaborators
    "RecordStore",
    "InMemoryRecordStore",
    "SqliteRecordStore",
    "open_store",
    "ChainClient",
    "BroadcastReceipt",
    "TendermintRPCClient",
    "InMemoryChain",
    "Signer",
    "Ed25519Signer",
    "load_signer",
    "verify_record_signature",

    # Engine
    "LifecycleEngine",
]
