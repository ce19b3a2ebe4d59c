"""
BFTX Error Taxonomy

Every guard violation and every collaborator failure reaches the caller as
one of these types. Nothing is retried or swallowed inside the engine.
"""

from typing import Optional


class BFTXError(Exception):
    """Base class for all BF_TX lifecycle failures."""
    code = "BFTX_ERROR"

    def __init__(self, message: str, bftx_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.bftx_id = bftx_id

    def to_dict(self):
        d = {"error": self.code, "detail": self.message}
        if self.bftx_id:
            d["bftx_id"] = self.bftx_id
        return d


class ValidationError(BFTXError):
    """Shipment content does not match the BF_TX schema."""
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: Optional[list] = None, bftx_id: Optional[str] = None):
        super().__init__(message, bftx_id)
        self.errors = errors or []


class EncodingError(BFTXError):
    """A value cannot be represented in canonical JSON."""
    code = "ENCODING_ERROR"


class NotFoundError(BFTXError):
    code = "NOT_FOUND"


# Ratchet violations

class AlreadySignedError(BFTXError):
    code = "ALREADY_SIGNED"


class NotSignedError(BFTXError):
    code = "NOT_SIGNED"


class AlreadyTransmittedError(BFTXError):
    code = "ALREADY_TRANSMITTED"


class NotTransmittedError(BFTXError):
    code = "NOT_TRANSMITTED"


class AmendmentExistsError(BFTXError):
    """The target record already points at an amending record."""
    code = "AMENDMENT_EXISTS"


# Collaborator failures

class NetworkError(BFTXError):
    code = "NETWORK_ERROR"


class ChainUnavailable(NetworkError):
    """The consensus network could not be reached for a state read."""
    code = "CHAIN_UNAVAILABLE"


class BroadcastRejectedError(NetworkError):
    """The network answered a submission with a non-zero result code."""
    code = "BROADCAST_REJECTED"

    def __init__(self, message: str, result_code: int = 0, log: str = "", bftx_id: Optional[str] = None):
        super().__init__(message, bftx_id)
        self.result_code = result_code
        self.log = log


class StoreError(BFTXError):
    code = "STORE_ERROR"


class DuplicateRecordError(StoreError):
    code = "DUPLICATE_RECORD"


class ConcurrentModificationError(StoreError):
    """The stored value changed between the guard read and the write."""
    code = "CONCURRENT_MODIFICATION"


class SigningError(BFTXError):
    code = "SIGNING_ERROR"


RATCHET_ERRORS = (
    AlreadySignedError,
    NotSignedError,
    AlreadyTransmittedError,
    NotTransmittedError,
    AmendmentExistsError,
)
