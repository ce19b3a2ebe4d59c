"""
BFTX Record Store

Durable key-value index of BF_TX records keyed by transaction id. The value
of each entry is the record's canonical JSON; lifecycle flags live inside
that value rather than in a separate index.

Writes are per-key atomic. ``put`` doubles as a compare-and-set: callers
pass the value they read as ``expected`` and the write only lands if the
stored value is still the same.
"""

import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from .errors import (
    ConcurrentModificationError,
    DuplicateRecordError,
    EncodingError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from .canonicalization import canonicalize
from .hashing import sha256_hex
from .models import BFTX


def properties_digest(canonical_properties: Union[str, bytes]) -> str:
    """Lookup key for the reverse content index."""
    return sha256_hex(canonical_properties)


def record_digest(record: BFTX) -> str:
    return properties_digest(canonicalize(record.properties_content()))


class RecordStore(ABC):
    """
    Abstract interface to the durable record collaborator.

    Implementations must be:
    - Persistent (survives restarts) where they claim durability
    - Atomic per key (a put either fully lands or not at all)
    """

    @abstractmethod
    def get_raw(self, bftx_id: str) -> str:
        """Return the stored canonical value. Raises NotFoundError."""
        pass

    @abstractmethod
    def put(self, bftx_id: str, value: str, expected: Optional[str] = None) -> None:
        """
        Write a canonical record value.

        With ``expected=None`` the key must not exist yet
        (DuplicateRecordError otherwise). With ``expected`` set the stored
        value must equal it (ConcurrentModificationError otherwise).
        """
        pass

    @abstractmethod
    def count(self) -> int:
        pass

    @abstractmethod
    def find_id_by_content(self, canonical_properties: Union[str, bytes]) -> str:
        """Return the id of a stored record with these properties. Raises NotFoundError."""
        pass

    def load(self, bftx_id: str) -> Tuple[str, BFTX]:
        """Return the stored value together with the parsed record."""
        raw = self.get_raw(bftx_id)
        try:
            return raw, BFTX.from_canonical(raw)
        except (EncodingError, ValidationError) as e:
            raise StoreError(f"Stored record is corrupt: {e}", bftx_id=bftx_id) from e

    def get(self, bftx_id: str) -> BFTX:
        return self.load(bftx_id)[1]

    def close(self) -> None:
        pass


class InMemoryRecordStore(RecordStore):
    """
    In-memory record store for development/testing.

    WARNING: Not persistent across restarts.
    """

    def __init__(self):
        self._records: Dict[str, str] = {}
        self._digests: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get_raw(self, bftx_id: str) -> str:
        with self._lock:
            value = self._records.get(bftx_id)
        if value is None:
            raise NotFoundError(f"BF_TX not found: {bftx_id}", bftx_id=bftx_id)
        return value

    def put(self, bftx_id: str, value: str, expected: Optional[str] = None) -> None:
        digest = _digest_of_value(bftx_id, value)
        with self._lock:
            current = self._records.get(bftx_id)
            _check_expected(bftx_id, current, expected)
            self._records[bftx_id] = value
            self._digests.setdefault(digest, bftx_id)

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def find_id_by_content(self, canonical_properties: Union[str, bytes]) -> str:
        digest = properties_digest(canonical_properties)
        with self._lock:
            bftx_id = self._digests.get(digest)
        if bftx_id is None:
            raise NotFoundError("Content does not have a BF_TX associated")
        return bftx_id


class SqliteRecordStore(RecordStore):
    """
    SQLite-backed record store.

    One row per record. A digest of the canonical properties is kept in an
    indexed column for the reverse content lookup. Connections are reused
    per thread.
    """

    def __init__(self, db_path: Union[str, Path]):
        # Connections are per thread; :memory: databases are not shared between them.
        if str(db_path) == ":memory:":
            raise StoreError("SqliteRecordStore needs a file path; use InMemoryRecordStore instead")
        self._db_path = Path(db_path)
        self._local = threading.local()
        self._init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            try:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
                conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute("PRAGMA synchronous=NORMAL;")
            except (sqlite3.Error, OSError) as e:
                raise StoreError(f"Cannot open record store at {self._db_path}: {e}") from e
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
        return conn

    @contextmanager
    def _transaction(self):
        """Commit on success, roll back on failure; sqlite errors become StoreError."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(f"Record store write failed: {e}") from e
        except Exception:
            conn.rollback()
            raise

    def _init_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS bftx_records (
                bftx_id TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                content_digest TEXT NOT NULL,
                created_at INTEGER DEFAULT (strftime('%s', 'now')),
                updated_at INTEGER DEFAULT (strftime('%s', 'now'))
            );""")
            conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_bftx_records_digest
            ON bftx_records(content_digest);""")

    def get_raw(self, bftx_id: str) -> str:
        try:
            cur = self._get_connection().execute(
                "SELECT value FROM bftx_records WHERE bftx_id=?", (bftx_id,)
            )
            row = cur.fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Record store read failed: {e}", bftx_id=bftx_id) from e
        if row is None:
            raise NotFoundError(f"BF_TX not found: {bftx_id}", bftx_id=bftx_id)
        return row["value"]

    def put(self, bftx_id: str, value: str, expected: Optional[str] = None) -> None:
        digest = _digest_of_value(bftx_id, value)
        with self._transaction() as conn:
            if expected is None:
                cur = conn.execute(
                    "INSERT OR IGNORE INTO bftx_records(bftx_id, value, content_digest) "
                    "VALUES(?,?,?)",
                    (bftx_id, value, digest)
                )
                if cur.rowcount != 1:
                    raise DuplicateRecordError(f"BF_TX already exists: {bftx_id}", bftx_id=bftx_id)
            else:
                cur = conn.execute(
                    "UPDATE bftx_records SET value=?, content_digest=?, "
                    "updated_at=strftime('%s','now') WHERE bftx_id=? AND value=?",
                    (value, digest, bftx_id, expected)
                )
                if cur.rowcount != 1:
                    raise ConcurrentModificationError(
                        f"BF_TX changed since it was read: {bftx_id}", bftx_id=bftx_id
                    )

    def count(self) -> int:
        try:
            cur = self._get_connection().execute("SELECT COUNT(*) AS cnt FROM bftx_records")
            return cur.fetchone()["cnt"]
        except sqlite3.Error as e:
            raise StoreError(f"Record store read failed: {e}") from e

    def find_id_by_content(self, canonical_properties: Union[str, bytes]) -> str:
        digest = properties_digest(canonical_properties)
        try:
            cur = self._get_connection().execute(
                "SELECT bftx_id FROM bftx_records WHERE content_digest=? "
                "ORDER BY created_at ASC, rowid ASC LIMIT 1",
                (digest,)
            )
            row = cur.fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Record store read failed: {e}") from e
        if row is None:
            raise NotFoundError("Content does not have a BF_TX associated")
        return row["bftx_id"]

    def close(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None


def _digest_of_value(bftx_id: str, value: str) -> str:
    try:
        record = BFTX.from_canonical(value)
    except (EncodingError, ValidationError) as e:
        raise StoreError(f"Refusing to store malformed record: {e}", bftx_id=bftx_id) from e
    if record.id != bftx_id:
        raise StoreError(f"Record id {record.id} does not match key {bftx_id}", bftx_id=bftx_id)
    return record_digest(record)


def _check_expected(bftx_id: str, current: Optional[str], expected: Optional[str]) -> None:
    if expected is None:
        if current is not None:
            raise DuplicateRecordError(f"BF_TX already exists: {bftx_id}", bftx_id=bftx_id)
    elif current != expected:
        raise ConcurrentModificationError(
            f"BF_TX changed since it was read: {bftx_id}", bftx_id=bftx_id
        )


def open_store(db_path: Optional[Union[str, Path]] = None) -> RecordStore:
    """Factory: sqlite store at ``db_path``, or in-memory when no path is given."""
    if db_path is None:
        return InMemoryRecordStore()
    return SqliteRecordStore(db_path)
