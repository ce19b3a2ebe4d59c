"""
BFTX Record Model

The Blockfreight transaction (BF_TX) and the shipment payload it carries.
The shipment payload is a pydantic model so schema checks happen on
construction; the record itself is a plain dataclass whose canonical JSON
is the persisted value.
"""

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .canonicalization import canonicalize_str, parse_canonical
from .errors import EncodingError


class _Schema(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, allow_inf_nan=False)


class IssueDetails(_Schema):
    place_of_issue: Optional[str] = None
    date_of_issue: Optional[date] = None


class MasterInfo(_Schema):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    sig: Optional[str] = None


class Agent(_Schema):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    sig: Optional[str] = None
    conditions_for_carriage: Optional[str] = None


class ShipmentProperties(_Schema):
    """Bill of lading fields of a freight shipment."""
    shipper: str = Field(min_length=1)
    consignee: Optional[str] = None
    carrier: Optional[str] = None
    bol_num: Optional[str] = None
    ref_num: Optional[str] = None
    house_bill: Optional[str] = None
    vessel: Optional[str] = None
    port_of_loading: Optional[str] = None
    port_of_discharge: Optional[str] = None
    notify_address: Optional[str] = None
    desc_of_goods: Optional[str] = None
    gross_weight: Optional[float] = Field(default=None, ge=0)
    freight_payable_amt: Optional[float] = Field(default=None, ge=0)
    freight_adv_amt: Optional[float] = Field(default=None, ge=0)
    general_instructions: Optional[str] = None
    date_shipped: Optional[date] = None
    issue_details: Optional[IssueDetails] = None
    num_bol: Optional[int] = Field(default=None, ge=0)
    master_info: Optional[MasterInfo] = None
    agent_for_master: Optional[Agent] = None
    agent_for_owner: Optional[Agent] = None

    def to_content(self) -> Dict[str, Any]:
        """JSON-native dict with unset optional fields dropped."""
        return self.model_dump(mode="json", exclude_none=True)


class RecordStatus(str, Enum):
    """Position of a record on the signing/broadcast ratchet."""
    DRAFT = "DRAFT"
    SIGNED = "SIGNED"
    TRANSMITTED = "TRANSMITTED"


@dataclass(frozen=True)
class RecordState:
    """Composite view returned by the state query."""
    bftx_id: str
    verified: bool
    transmitted: bool
    amendment: Optional[str] = None

    @property
    def status(self) -> RecordStatus:
        if self.transmitted:
            return RecordStatus.TRANSMITTED
        if self.verified:
            return RecordStatus.SIGNED
        return RecordStatus.DRAFT

    @property
    def amended(self) -> bool:
        return self.amendment is not None

    def describe(self) -> str:
        if self.transmitted:
            text = "Transmitted!"
        elif self.verified:
            text = "Signed!"
        else:
            text = "Constructed!"
        if self.amendment:
            text += f" Amended by {self.amendment}."
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bftx_id": self.bftx_id,
            "status": self.status.value,
            "verified": self.verified,
            "transmitted": self.transmitted,
            "amendment": self.amendment,
            "description": self.describe(),
        }


@dataclass(frozen=True)
class BFTX:
    """
    Blockfreight transaction record.

    Instances are immutable; transitions produce updated copies via
    ``evolve``. The lifecycle flags travel inside the canonical content.
    """
    id: str
    properties: ShipmentProperties
    app_hash: str = ""
    verified: bool = False
    transmitted: bool = False
    amendment: Optional[str] = None
    signature: Optional[str] = None
    public_key: Optional[str] = None
    key_id: Optional[str] = None

    def evolve(self, **changes) -> "BFTX":
        return replace(self, **changes)

    @property
    def state(self) -> RecordState:
        return RecordState(
            bftx_id=self.id,
            verified=self.verified,
            transmitted=self.transmitted,
            amendment=self.amendment,
        )

    def properties_content(self) -> Dict[str, Any]:
        return self.properties.to_content()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "properties": self.properties_content(),
            "app_hash": self.app_hash,
            "verified": self.verified,
            "transmitted": self.transmitted,
            "amendment": self.amendment,
            "signature": self.signature,
            "public_key": self.public_key,
            "key_id": self.key_id,
        }

    def canonical(self) -> str:
        return canonicalize_str(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BFTX":
        from .validator import validate_properties

        if not isinstance(data, dict) or "id" not in data or "properties" not in data:
            raise EncodingError("Stored record is missing id or properties")
        return cls(
            id=data["id"],
            properties=validate_properties(data["properties"]),
            app_hash=data.get("app_hash", ""),
            verified=bool(data.get("verified", False)),
            transmitted=bool(data.get("transmitted", False)),
            amendment=data.get("amendment"),
            signature=data.get("signature"),
            public_key=data.get("public_key"),
            key_id=data.get("key_id"),
        )

    @classmethod
    def from_canonical(cls, content: Union[str, bytes]) -> "BFTX":
        return cls.from_dict(parse_canonical(content))
