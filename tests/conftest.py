import json
from pathlib import Path

import pytest

from bftx.lifecycle import LifecycleEngine
from bftx.network import InMemoryChain
from bftx.signing import Ed25519Signer
from bftx.store import InMemoryRecordStore, SqliteRecordStore

EXAMPLES_DIR = Path(__file__).resolve().parent.parent / "examples"

GENESIS_APP_HASH = b"\xaa"


@pytest.fixture
def examples_dir():
    return EXAMPLES_DIR


@pytest.fixture
def shipment():
    return {
        "shipper": "Blockfreight Exports Ltd.",
        "consignee": "Pacific Imports Inc.",
        "carrier": "Blue Line",
        "port_of_loading": "Singapore",
        "port_of_discharge": "Los Angeles",
        "gross_weight": 5120.5,
        "date_shipped": "2017-09-15",
    }


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def sqlite_store(tmp_path):
    s = SqliteRecordStore(tmp_path / "bftx.db")
    yield s
    s.close()


@pytest.fixture
def chain():
    return InMemoryChain(app_hash=GENESIS_APP_HASH)


@pytest.fixture
def signer():
    return Ed25519Signer.generate("kid:bftx-test-001")


@pytest.fixture
def engine(store, chain, signer):
    return LifecycleEngine(store, chain, signer)


@pytest.fixture
def write_json(tmp_path):
    def _write(name, data):
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path
    return _write
