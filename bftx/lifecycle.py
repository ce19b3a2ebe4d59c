"""
BFTX Lifecycle Engine

The state machine that moves a BF_TX through its lifecycle:

    DRAFT  --sign-->  SIGNED  --broadcast-->  TRANSMITTED

plus the orthogonal amendment link set on a record when a newer record is
appended to it. ``verified`` and ``transmitted`` are ratchets: once true
they are never reset.

The engine holds no record state of its own. Every operation reads the
record fresh from the store, checks the guard, and writes back with the
value it read as a compare-and-set token, so a concurrent writer between
read and write is detected instead of overwritten.

Collaborators (store, chain, signer) are injected; nothing here is global.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Tuple, Union

from .canonicalization import canonicalize
from .errors import (
    AlreadySignedError,
    AlreadyTransmittedError,
    AmendmentExistsError,
    BFTXError,
    DuplicateRecordError,
    NetworkError,
    NotSignedError,
    NotTransmittedError,
    SigningError,
    StoreError,
    ValidationError,
)
from .identity import IdentityGenerator
from .logging_config import AuditLogger, audit_log, set_operation_id
from .models import BFTX, RecordState, ShipmentProperties
from .network import BroadcastReceipt, ChainClient
from .signing import Signer, verify_record_signature
from .store import RecordStore
from .validator import validate_properties

Content = Union[ShipmentProperties, Dict[str, Any]]

_COLLABORATORS = (
    (NetworkError, "network"),
    (StoreError, "store"),
    (SigningError, "signer"),
)


class LifecycleEngine:
    """
    Coordinates BF_TX transitions against the store, chain and signer.

    Usage:
        engine = LifecycleEngine(SqliteRecordStore("data/bftx.db"),
                                 TendermintRPCClient("http://127.0.0.1:46657"),
                                 Ed25519Signer.generate())
        bftx_id = engine.construct({"shipper": "A", "carrier": "B"})
        engine.sign(bftx_id)
        engine.broadcast(bftx_id)
    """

    def __init__(
        self,
        store: RecordStore,
        chain: ChainClient,
        signer: Signer,
        identity: Optional[IdentityGenerator] = None,
        audit: Optional[AuditLogger] = None
    ):
        self.store = store
        self.chain = chain
        self.signer = signer
        self.identity = identity or IdentityGenerator(chain)
        self.audit = audit or audit_log

    @contextmanager
    def _operation(self, name: str, bftx_id: Optional[str] = None) -> Iterator[None]:
        """Tag log lines with an operation id and audit every failure."""
        set_operation_id()
        try:
            yield
        except BFTXError as e:
            for kind, collaborator in _COLLABORATORS:
                if isinstance(e, kind):
                    self.audit.collaborator_failure(name, collaborator, e.message,
                                                    bftx_id=e.bftx_id or bftx_id)
                    break
            else:
                self.audit.transition_rejected(name, e.bftx_id or bftx_id, e.message)
            raise

    # ============================================================
    # Queries
    # ============================================================

    def validate(self, content: Content) -> ShipmentProperties:
        """Schema check only; nothing is hashed or stored."""
        with self._operation("validate"):
            return validate_properties(content)

    def get(self, bftx_id: str) -> BFTX:
        with self._operation("get", bftx_id):
            return self.store.get(bftx_id)

    def state(self, bftx_id: str) -> RecordState:
        with self._operation("state", bftx_id):
            return self.store.get(bftx_id).state

    def total(self) -> int:
        with self._operation("total"):
            return self.store.count()

    def verify(self, content: Content) -> str:
        """Return the id of the stored record whose shipment equals ``content``."""
        with self._operation("verify"):
            properties = validate_properties(content)
            return self.store.find_id_by_content(canonicalize(properties.to_content()))

    def query(self, bftx_id: str) -> str:
        """Canonical content of the BF_TX as committed on the chain."""
        with self._operation("query", bftx_id):
            return self.chain.query_by_id(bftx_id)

    def chain_info(self) -> Dict[str, Any]:
        with self._operation("info"):
            return self.chain.info()

    # ============================================================
    # Transitions
    # ============================================================

    def construct(self, content: Content) -> str:
        """
        Create a DRAFT record bound to the current chain state.

        Constructing identical content again at the same chain state
        returns the existing id without touching the stored record.

        Raises:
            ValidationError, ChainUnavailable, StoreError
        """
        with self._operation("construct"):
            bftx_id, _ = self._construct(validate_properties(content))
            return bftx_id

    def _construct(self, properties: ShipmentProperties) -> Tuple[str, bool]:
        """Store a DRAFT record; returns its id and whether it was newly inserted."""
        bftx_id, salt = self.identity.generate_id(properties)
        record = BFTX(id=bftx_id, properties=properties, app_hash=salt.hex())
        try:
            self.store.put(bftx_id, record.canonical())
        except DuplicateRecordError:
            existing = self.store.get(bftx_id)
            if existing.properties != properties:
                raise
            return bftx_id, False
        self.audit.record_constructed(bftx_id, record.app_hash)
        return bftx_id, True

    def sign(self, bftx_id: str) -> BFTX:
        """
        Sign a DRAFT record.

        Raises:
            NotFoundError, AlreadySignedError, SigningError, StoreError
        """
        with self._operation("sign", bftx_id):
            raw, record = self.store.load(bftx_id)
            if record.verified:
                raise AlreadySignedError("BF_TX already signed.", bftx_id=bftx_id)

            signed = self.signer.sign(record)
            if (not signed.verified or signed.id != record.id
                    or signed.properties != record.properties
                    or not signed.signature):
                raise SigningError("Signer returned an invalid signed record", bftx_id=bftx_id)

            self.store.put(bftx_id, signed.canonical(), expected=raw)
            self.audit.record_signed(bftx_id, signed.key_id or "")
            return signed

    def broadcast(self, bftx_id: str) -> BroadcastReceipt:
        """
        Mark a SIGNED record transmitted, persist it, and submit its
        canonical content to the network.

        The transmitted flag is persisted before submission and is not
        reverted if the submission fails; use ``rebroadcast`` to retry.

        Raises:
            NotFoundError, NotSignedError, AlreadyTransmittedError,
            SigningError, StoreError, NetworkError
        """
        with self._operation("broadcast", bftx_id):
            raw, record = self.store.load(bftx_id)
            if not record.verified:
                raise NotSignedError("BF_TX is not signed yet.", bftx_id=bftx_id)
            if record.transmitted:
                raise AlreadyTransmittedError("BF_TX already transmitted.", bftx_id=bftx_id)
            if not verify_record_signature(record):
                raise SigningError(
                    "BF_TX signature does not match its content.", bftx_id=bftx_id
                )

            transmitted = record.evolve(transmitted=True)
            content = transmitted.canonical()
            self.store.put(bftx_id, content, expected=raw)

            receipt = self.chain.submit(content.encode("utf-8"))
            self.audit.record_transmitted(bftx_id, receipt.hash)
            return receipt

    def rebroadcast(self, bftx_id: str) -> BroadcastReceipt:
        """
        Submit the stored content of a TRANSMITTED record again without
        changing its state. Recovery path after a failed submission.

        Raises:
            NotFoundError, NotTransmittedError, NetworkError
        """
        with self._operation("rebroadcast", bftx_id):
            raw, record = self.store.load(bftx_id)
            if not record.transmitted:
                raise NotTransmittedError(
                    "BF_TX has not been transmitted; use broadcast.", bftx_id=bftx_id
                )
            receipt = self.chain.submit(raw.encode("utf-8"))
            self.audit.record_transmitted(bftx_id, receipt.hash, resubmitted=True)
            return receipt

    def append(self, new_content: Content, target_id: str) -> str:
        """
        Construct a new record and link it from ``target_id`` as its
        amendment. A record accepts a single amendment; to amend again,
        append to the amending record.

        Raises:
            NotFoundError, AmendmentExistsError, ValidationError,
            DuplicateRecordError, ChainUnavailable, StoreError
        """
        with self._operation("append", target_id):
            raw, target = self._load_amendable(target_id)
            properties = validate_properties(new_content)

            new_id, created = self._construct(properties)
            if new_id == target_id:
                raise ValidationError(
                    "Amendment content is identical to the target BF_TX", bftx_id=target_id
                )
            if not created:
                raise DuplicateRecordError(
                    f"Amendment content is already recorded as BF_TX {new_id}", bftx_id=target_id
                )

            amended = target.evolve(amendment=new_id)
            self.store.put(target_id, amended.canonical(), expected=raw)
            self.audit.record_amended(target_id, new_id)
            return new_id

    def _load_amendable(self, target_id: str) -> Tuple[str, BFTX]:
        raw, target = self.store.load(target_id)
        if target.amendment is not None:
            raise AmendmentExistsError(
                f"BF_TX already amended by {target.amendment}", bftx_id=target_id
            )
        return raw, target

