"""
Shipment schema, record model and legacy format adapter tests.
"""

import json
import unittest
from pathlib import Path

from bftx.errors import EncodingError, ValidationError
from bftx.models import BFTX, RecordState, RecordStatus
from bftx.schema import (
    CSV_COLUMNS,
    SCHEMA_V1,
    SCHEMA_V2,
    csv_row_to_legacy,
    current_to_legacy,
    detect_version,
    legacy_to_current,
    normalize_document,
)
from bftx.validator import load_document, validate_properties

EXAMPLES_DIR = Path(__file__).resolve().parent.parent / "examples"

FULL_CONTENT = {
    "shipper": "Blockfreight Exports Ltd.",
    "consignee": "Pacific Imports Inc.",
    "bol_num": "BOL-1",
    "gross_weight": 10.5,
    "date_shipped": "2017-09-15",
    "issue_details": {"place_of_issue": "Singapore", "date_of_issue": "2017-09-14"},
    "num_bol": 3,
    "master_info": {"first_name": "Ana", "last_name": "Silva", "sig": "A.S."},
    "agent_for_owner": {"first_name": "Kenji", "conditions_for_carriage": "Standard"},
}


class TestShipmentValidation(unittest.TestCase):

    def test_valid_content(self):
        properties = validate_properties(FULL_CONTENT)
        self.assertEqual(properties.shipper, "Blockfreight Exports Ltd.")
        self.assertEqual(properties.to_content(), FULL_CONTENT)

    def test_shipper_required(self):
        with self.assertRaises(ValidationError) as ctx:
            validate_properties({"carrier": "B"})
        self.assertEqual(ctx.exception.errors[0]["field"], "shipper")

    def test_empty_shipper_rejected(self):
        with self.assertRaises(ValidationError):
            validate_properties({"shipper": ""})

    def test_unknown_field_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            validate_properties({"shipper": "A", "colour": "red"})
        self.assertIn("colour", ctx.exception.message)

    def test_negative_amount_rejected(self):
        with self.assertRaises(ValidationError):
            validate_properties({"shipper": "A", "freight_payable_amt": -1})

    def test_bad_date_rejected(self):
        with self.assertRaises(ValidationError):
            validate_properties({"shipper": "A", "date_shipped": "15/09/2017"})

    def test_non_object_rejected(self):
        with self.assertRaises(ValidationError):
            validate_properties(["shipper", "A"])

    def test_unset_fields_dropped_from_content(self):
        self.assertEqual(validate_properties({"shipper": "A"}).to_content(), {"shipper": "A"})


class TestRecordModel(unittest.TestCase):

    def setUp(self):
        self.record = BFTX(id="ab" * 32, properties=validate_properties({"shipper": "A"}), app_hash="aa")

    def test_canonical_round_trip(self):
        restored = BFTX.from_canonical(self.record.canonical())
        self.assertEqual(restored, self.record)

    def test_flags_are_embedded(self):
        stored = json.loads(self.record.evolve(verified=True).canonical())
        self.assertTrue(stored["verified"])
        self.assertFalse(stored["transmitted"])
        self.assertIsNone(stored["amendment"])

    def test_evolve_returns_copy(self):
        signed = self.record.evolve(verified=True)
        self.assertFalse(self.record.verified)
        self.assertTrue(signed.verified)

    def test_from_canonical_missing_id(self):
        with self.assertRaises(EncodingError):
            BFTX.from_canonical('{"properties":{"shipper":"A"}}')

    def test_state_description(self):
        self.assertEqual(self.record.state.describe(), "Constructed!")
        self.assertEqual(self.record.evolve(verified=True).state.describe(), "Signed!")
        transmitted = self.record.evolve(verified=True, transmitted=True, amendment="cd" * 32)
        self.assertEqual(transmitted.state.describe(), f"Transmitted! Amended by {'cd' * 32}.")
        self.assertEqual(transmitted.state.status, RecordStatus.TRANSMITTED)
        self.assertTrue(transmitted.state.amended)

    def test_state_to_dict(self):
        state = RecordState(bftx_id="x", verified=True, transmitted=False)
        self.assertEqual(state.to_dict()["status"], "SIGNED")
        self.assertFalse(state.amended)


class TestLegacySchema(unittest.TestCase):

    def test_round_trip(self):
        self.assertEqual(legacy_to_current(current_to_legacy(FULL_CONTENT)), FULL_CONTENT)

    def test_legacy_keys(self):
        legacy = current_to_legacy(FULL_CONTENT)
        self.assertEqual(legacy["Shipper"], "Blockfreight Exports Ltd.")
        self.assertEqual(legacy["IssueDetails"]["PlaceOfIssue"], "Singapore")
        self.assertEqual(legacy["AgentForOwner"]["ConditionsForCarriage"], "Standard")

    def test_unknown_legacy_key(self):
        with self.assertRaises(ValidationError):
            legacy_to_current({"Shipper": "A", "Colour": "red"})

    def test_detect_version(self):
        self.assertEqual(detect_version({"shipper": "A"}), SCHEMA_V2)
        self.assertEqual(detect_version({"Shipper": "A"}), SCHEMA_V1)
        self.assertEqual(detect_version({"Type": "BFTX", "Properties": {}}), SCHEMA_V1)
        with self.assertRaises(ValidationError):
            detect_version(["Shipper"])

    def test_normalize_document_shapes(self):
        expected = {"shipper": "A", "carrier": "B"}
        for document in (
            {"shipper": "A", "carrier": "B"},
            {"properties": {"shipper": "A", "carrier": "B"}},
            {"Shipper": "A", "Carrier": "B"},
            {"Type": "BFTX", "Properties": {"Shipper": "A", "Carrier": "B"}},
        ):
            self.assertEqual(normalize_document(document), expected)

    def test_normalize_rejects_other_types(self):
        with self.assertRaises(ValidationError):
            normalize_document({"Type": "INVOICE", "Properties": {"Shipper": "A"}})

    def test_example_document(self):
        content = normalize_document(load_document(EXAMPLES_DIR / "bf_tx_example.json"))
        properties = validate_properties(content)
        self.assertEqual(properties.vessel, "MV Ocean Trader")
        self.assertEqual(properties.num_bol, 3)

    def test_load_document_errors(self):
        with self.assertRaises(ValidationError):
            load_document(EXAMPLES_DIR / "does_not_exist.json")
        with self.assertRaises(ValidationError):
            load_document(EXAMPLES_DIR / "Lading.csv")


class TestCsvRows(unittest.TestCase):

    def _row(self, **cells):
        row = [""] * len(CSV_COLUMNS)
        for index, value in cells.items():
            row[int(index[1:])] = value
        return row

    def test_row_mapping(self):
        row = self._row(c0="Shipper Co", c10="100.5", c15="Oslo", c18="Ana")
        legacy = csv_row_to_legacy(row)
        self.assertEqual(legacy, {
            "Shipper": "Shipper Co",
            "GrossWeight": "100.5",
            "IssueDetails": {"PlaceOfIssue": "Oslo"},
            "MasterInfo": {"FirstName": "Ana"},
        })
        properties = validate_properties(legacy_to_current(legacy))
        self.assertEqual(properties.gross_weight, 100.5)

    def test_wrong_length(self):
        with self.assertRaises(ValidationError):
            csv_row_to_legacy(["Shipper Co", "BOL-1"])


if __name__ == "__main__":
    unittest.main()
