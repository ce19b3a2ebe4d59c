"""
BFTX Versioned Schema Adapter

Two shapes of shipment content exist in the wild:

    v1 (legacy): PascalCase keys, usually wrapped as {"Type": "BFTX", "Properties": {...}}
    v2 (current): snake_case keys matching ShipmentProperties

The mappings here are pure key renames in both directions so that
``legacy_to_current(current_to_legacy(c)) == c`` for any v2 content.
Values are passed through untouched; type checks belong to the validator.
"""

from typing import Any, Dict, Sequence

from .errors import ValidationError

SCHEMA_V1 = 1
SCHEMA_V2 = 2

_PARTY_FIELDS = {
    "FirstName": "first_name",
    "LastName": "last_name",
    "Sig": "sig",
}

_AGENT_FIELDS = dict(_PARTY_FIELDS, ConditionsForCarriage="conditions_for_carriage")

_ISSUE_FIELDS = {
    "PlaceOfIssue": "place_of_issue",
    "DateOfIssue": "date_of_issue",
}

LEGACY_FIELDS = {
    "Shipper": "shipper",
    "Consignee": "consignee",
    "Carrier": "carrier",
    "BolNum": "bol_num",
    "RefNum": "ref_num",
    "HouseBill": "house_bill",
    "Vessel": "vessel",
    "PortOfLoading": "port_of_loading",
    "PortOfDischarge": "port_of_discharge",
    "NotifyAddress": "notify_address",
    "DescOfGoods": "desc_of_goods",
    "GrossWeight": "gross_weight",
    "FreightPayableAmt": "freight_payable_amt",
    "FreightAdvAmt": "freight_adv_amt",
    "GeneralInstructions": "general_instructions",
    "DateShipped": "date_shipped",
    "IssueDetails": "issue_details",
    "NumBol": "num_bol",
    "MasterInfo": "master_info",
    "AgentForMaster": "agent_for_master",
    "AgentForOwner": "agent_for_owner",
}

_NESTED = {
    "IssueDetails": _ISSUE_FIELDS,
    "MasterInfo": _PARTY_FIELDS,
    "AgentForMaster": _AGENT_FIELDS,
    "AgentForOwner": _AGENT_FIELDS,
}

CURRENT_FIELDS = {v: k for k, v in LEGACY_FIELDS.items()}

# Column order of the bill-of-lading CSV export (one shipment per line).
CSV_COLUMNS = (
    ("Shipper",),
    ("BolNum",),
    ("RefNum",),
    ("Consignee",),
    ("HouseBill",),
    ("Vessel",),
    ("PortOfLoading",),
    ("PortOfDischarge",),
    ("NotifyAddress",),
    ("DescOfGoods",),
    ("GrossWeight",),
    ("FreightPayableAmt",),
    ("FreightAdvAmt",),
    ("GeneralInstructions",),
    ("DateShipped",),
    ("IssueDetails", "PlaceOfIssue"),
    ("IssueDetails", "DateOfIssue"),
    ("NumBol",),
    ("MasterInfo", "FirstName"),
    ("MasterInfo", "LastName"),
    ("MasterInfo", "Sig"),
    ("AgentForOwner", "ConditionsForCarriage"),
)


def _rename(obj: Dict[str, Any], mapping: Dict[str, str], kind: str) -> Dict[str, Any]:
    out = {}
    for key, value in obj.items():
        if key not in mapping:
            raise ValidationError(f"Unknown {kind} field: {key}")
        out[mapping[key]] = value
    return out


def legacy_to_current(legacy: Dict[str, Any]) -> Dict[str, Any]:
    """Map v1 PascalCase properties to v2 snake_case content."""
    out = _rename(legacy, LEGACY_FIELDS, "v1")
    for legacy_key, sub in _NESTED.items():
        current_key = LEGACY_FIELDS[legacy_key]
        if isinstance(out.get(current_key), dict):
            out[current_key] = _rename(out[current_key], sub, f"v1 {legacy_key}")
    return out


def current_to_legacy(content: Dict[str, Any]) -> Dict[str, Any]:
    """Map v2 snake_case content to v1 PascalCase properties."""
    out = _rename(content, CURRENT_FIELDS, "v2")
    for legacy_key, sub in _NESTED.items():
        if isinstance(out.get(legacy_key), dict):
            reverse = {v: k for k, v in sub.items()}
            out[legacy_key] = _rename(out[legacy_key], reverse, f"v2 {LEGACY_FIELDS[legacy_key]}")
    return out


def detect_version(document: Dict[str, Any]) -> int:
    if not isinstance(document, dict):
        raise ValidationError("Shipment document must be a JSON object")
    if "Properties" in document or "Type" in document:
        return SCHEMA_V1
    if any(key in LEGACY_FIELDS for key in document):
        return SCHEMA_V1
    return SCHEMA_V2


def normalize_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return v2 shipment content from any supported document shape.

    Accepted shapes: bare v2 content, {"properties": v2}, bare v1
    properties, and {"Type": "BFTX", "Properties": v1}.
    """
    if detect_version(document) == SCHEMA_V1:
        if "Properties" in document:
            document_type = document.get("Type", "BFTX")
            if document_type != "BFTX":
                raise ValidationError(f"Unsupported document type: {document_type}")
            properties = document["Properties"]
            if not isinstance(properties, dict):
                raise ValidationError("Properties must be an object")
            return legacy_to_current(properties)
        return legacy_to_current(document)
    if isinstance(document.get("properties"), dict):
        return document["properties"]
    return document


def csv_row_to_legacy(row: Sequence[str]) -> Dict[str, Any]:
    """
    Map one CSV line to v1 properties. Empty cells are omitted.

    Raises:
        ValidationError: if the row does not have exactly one cell per column
    """
    if len(row) != len(CSV_COLUMNS):
        raise ValidationError(
            f"Line has wrong length: {len(row)} (expected {len(CSV_COLUMNS)})"
        )
    legacy: Dict[str, Any] = {}
    for path, cell in zip(CSV_COLUMNS, row):
        cell = cell.strip()
        if not cell:
            continue
        if len(path) == 1:
            legacy[path[0]] = cell
        else:
            legacy.setdefault(path[0], {})[path[1]] = cell
    return legacy

