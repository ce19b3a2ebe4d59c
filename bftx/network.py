"""
BFTX Consensus Network Adapter

The engine needs three things from the chain: the latest committed
application hash (identity salt), a synchronous transaction submission and a
lookup of a committed BF_TX by id. ``TendermintRPCClient`` speaks the
Tendermint JSON-over-HTTP RPC; ``InMemoryChain`` is a local stand-in.

Calls block on the network and are never retried here.
"""

import base64
import hashlib
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from .canonicalization import parse_canonical
from .errors import (
    BroadcastRejectedError,
    ChainUnavailable,
    EncodingError,
    NetworkError,
    NotFoundError,
)


@dataclass(frozen=True)
class BroadcastReceipt:
    """Result of a synchronous broadcast."""
    hash: str
    code: int = 0
    log: str = ""
    data: str = ""

    def accepted(self) -> bool:
        return self.code == 0

    def to_dict(self) -> Dict[str, Any]:
        return {"hash": self.hash, "code": self.code, "log": self.log, "data": self.data}


class ChainClient(ABC):
    """Abstract interface to the consensus network collaborator."""

    @abstractmethod
    def info(self) -> Dict[str, Any]:
        """Application info, including ``last_block_app_hash`` (hex)."""
        pass

    @abstractmethod
    def submit(self, tx: bytes) -> BroadcastReceipt:
        pass

    @abstractmethod
    def query_by_id(self, bftx_id: str) -> str:
        """Canonical content of the committed BF_TX. Raises NotFoundError."""
        pass

    def latest_app_hash(self) -> bytes:
        return bytes.fromhex(self.info().get("last_block_app_hash", ""))

    def close(self) -> None:
        pass


class TendermintRPCClient(ChainClient):
    """
    Tendermint RPC client over HTTP.

    Endpoints used:
        /abci_info           -> response.last_block_app_hash
        /broadcast_tx_sync   -> {code, data, log, hash}
        /tx_search           -> txs[].tx for query bftx.id='<id>'
    """

    def __init__(
        self,
        address: str,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None
    ):
        self._address = address.rstrip("/")
        self._client = client or httpx.Client(base_url=self._address, timeout=timeout)

    def _call(self, method: str, params: Dict[str, Any], unavailable: type = NetworkError) -> Dict[str, Any]:
        try:
            response = self._client.get(f"/{method}", params=params)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            raise unavailable(f"{method} failed against {self._address}: {e}") from e
        except ValueError as e:
            raise NetworkError(f"{method} returned invalid JSON: {e}") from e

        if not isinstance(body, dict):
            raise NetworkError(f"{method} returned an unexpected payload")
        if body.get("error"):
            err = body["error"]
            detail = err.get("data") or err.get("message") if isinstance(err, dict) else err
            raise NetworkError(f"{method} error: {detail}")
        result = body.get("result")
        if not isinstance(result, dict):
            raise NetworkError(f"{method} returned no result")
        return result

    def info(self) -> Dict[str, Any]:
        result = self._call("abci_info", {}, unavailable=ChainUnavailable)
        response = result.get("response", {})
        return {
            "data": response.get("data", ""),
            "version": response.get("version", ""),
            "last_block_height": int(response.get("last_block_height") or 0),
            "last_block_app_hash": _decode_app_hash(response.get("last_block_app_hash")).hex(),
        }

    def submit(self, tx: bytes) -> BroadcastReceipt:
        result = self._call("broadcast_tx_sync", {"tx": "0x" + tx.hex()})
        receipt = BroadcastReceipt(
            hash=result.get("hash", ""),
            code=int(result.get("code") or 0),
            log=result.get("log", ""),
            data=result.get("data", ""),
        )
        if not receipt.accepted():
            raise BroadcastRejectedError(
                f"Transaction rejected with code {receipt.code}: {receipt.log}",
                result_code=receipt.code,
                log=receipt.log,
            )
        return receipt

    def query_by_id(self, bftx_id: str) -> str:
        result = self._call("tx_search", {
            "query": f"\"bftx.id='{bftx_id}'\"",
            "prove": "true",
        })
        txs = result.get("txs") or []
        if not txs:
            raise NotFoundError("Blockfreight Transaction not found.", bftx_id=bftx_id)
        try:
            return base64.b64decode(txs[0]["tx"]).decode("utf-8")
        except (KeyError, ValueError) as e:
            raise NetworkError(f"tx_search returned an undecodable transaction: {e}") from e

    def close(self) -> None:
        self._client.close()


def _decode_app_hash(value: Optional[str]) -> bytes:
    """abci_info reports the app hash base64-encoded."""
    if not value:
        return b""
    try:
        return base64.b64decode(value, validate=True)
    except ValueError as e:
        raise NetworkError(f"Undecodable app hash: {value!r}") from e


class InMemoryChain(ChainClient):
    """
    Local chain double for development/testing.

    Every accepted submission commits a block immediately; the app hash is
    the SHA-256 of the previous app hash and the transaction bytes.
    """

    def __init__(self, app_hash: bytes = b""):
        self._app_hash = app_hash
        self._height = 0
        self._txs: List[bytes] = []
        self._index: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    @property
    def transactions(self) -> List[bytes]:
        with self._lock:
            return list(self._txs)

    def info(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "data": "bftx",
                "version": "in-memory",
                "last_block_height": self._height,
                "last_block_app_hash": self._app_hash.hex(),
            }

    def submit(self, tx: bytes) -> BroadcastReceipt:
        with self._lock:
            tx_hash = hashlib.sha256(tx).hexdigest().upper()
            if tx in self._txs:
                raise BroadcastRejectedError(
                    "Transaction rejected with code 1: tx already exists in cache",
                    result_code=1,
                    log="tx already exists in cache",
                )
            self._txs.append(tx)
            self._height += 1
            self._app_hash = hashlib.sha256(self._app_hash + tx).digest()
            try:
                bftx_id = parse_canonical(tx).get("id")
            except (EncodingError, AttributeError):
                bftx_id = None
            if bftx_id:
                self._index[bftx_id] = tx
            return BroadcastReceipt(hash=tx_hash)

    def query_by_id(self, bftx_id: str) -> str:
        with self._lock:
            tx = self._index.get(bftx_id)
        if tx is None:
            raise NotFoundError("Blockfreight Transaction not found.", bftx_id=bftx_id)
        return tx.decode("utf-8")
