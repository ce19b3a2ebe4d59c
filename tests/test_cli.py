import json
import logging

import pytest

from bftx import cli, config


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def bftx(engine, examples_dir, monkeypatch, tmp_path):
    """Run the CLI against the in-memory engine; returns (exit code, stdout, stderr)."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "build_engine", lambda args: engine)

    def _run(capsys, *argv):
        code = cli.run(["--json-path", str(examples_dir), "--log-level", "CRITICAL"] + list(argv))
        out, err = capsys.readouterr()
        return code, out, err
    return _run


def result_of(out):
    lines = [line for line in out.splitlines() if line.startswith("-> blockfreight result: ")]
    return lines[-1][len("-> blockfreight result: "):]


def construct(bftx, capsys, name="bf_tx_example.json"):
    code, out, _ = bftx(capsys, "construct", name)
    assert code == 0
    return result_of(out)[len("BF_TX Id: "):]


def test_lifecycle(bftx, capsys, chain):
    bftx_id = construct(bftx, capsys)
    assert len(bftx_id) == 64

    code, out, _ = bftx(capsys, "state", bftx_id)
    assert result_of(out) == "BF_TX state: Constructed!"

    code, out, _ = bftx(capsys, "sign", bftx_id)
    assert (code, result_of(out)) == (0, "BF_TX signed")

    code, out, _ = bftx(capsys, "broadcast", bftx_id)
    assert code == 0
    assert out.startswith("-> data.hex: ")
    assert len(chain.transactions) == 1

    code, out, _ = bftx(capsys, "state", bftx_id)
    assert result_of(out) == "BF_TX state: Transmitted!"

    code, out, _ = bftx(capsys, "query", bftx_id)
    assert result_of(out) == chain.transactions[0].decode("utf-8")


def test_guard_violations_exit_nonzero(bftx, capsys):
    bftx_id = construct(bftx, capsys)

    code, out, err = bftx(capsys, "broadcast", bftx_id)
    assert code == 1
    assert out == ""
    assert err.strip() == "broadcast: BF_TX is not signed yet."

    bftx(capsys, "sign", bftx_id)
    code, _, err = bftx(capsys, "sign", bftx_id)
    assert code == 1
    assert err.strip() == "sign: BF_TX already signed."

    code, _, err = bftx(capsys, "rebroadcast", bftx_id)
    assert code == 1
    assert err.startswith("rebroadcast: ")


def test_unknown_id(bftx, capsys):
    code, _, err = bftx(capsys, "sign", "nope")
    assert code == 1
    assert err.strip() == "sign: BF_TX not found: nope"


def test_validate(bftx, capsys, write_json):
    code, out, _ = bftx(capsys, "validate", "bf_tx_example.json")
    assert (code, result_of(out)) == (0, "Success! [OK]")

    bad = write_json("bad.json", {"Type": "BFTX", "Properties": {"Carrier": "B"}})
    code, out, err = bftx(capsys, "validate", str(bad))
    assert code == 1
    assert err.startswith("validate: Invalid shipment content: shipper")


def test_missing_file(bftx, capsys):
    code, _, err = bftx(capsys, "construct", "missing.json")
    assert code == 1
    assert err.startswith("construct: Cannot read")


def test_append_and_total(bftx, capsys, examples_dir):
    target = construct(bftx, capsys)
    code, out, _ = bftx(capsys, "append", "bf_tx_amended.json", target)
    assert code == 0
    new_id = result_of(out)[len("BF_TX Id: "):]

    code, out, _ = bftx(capsys, "state", target)
    assert result_of(out) == f"BF_TX state: Constructed! Amended by {new_id}."

    code, _, err = bftx(capsys, "append", "bf_tx_amended.json", target)
    assert code == 1
    assert err.startswith("append: BF_TX already amended by")

    code, out, _ = bftx(capsys, "total")
    assert result_of(out) == "Total BF_TX on DB: 2"


def test_verify(bftx, capsys):
    bftx_id = construct(bftx, capsys)
    code, out, _ = bftx(capsys, "verify", "bf_tx_example.json")
    assert result_of(out) == f"The BF_TX associated to JSON content is {bftx_id}"

    code, _, err = bftx(capsys, "verify", "bf_tx_amended.json")
    assert code == 1
    assert err.strip() == "verify: Content does not have a BF_TX associated"


def test_get_and_print(bftx, capsys):
    bftx_id = construct(bftx, capsys)
    code, out, _ = bftx(capsys, "get", bftx_id)
    stored = json.loads(result_of(out))
    assert stored["id"] == bftx_id

    code, out, _ = bftx(capsys, "print", bftx_id)
    assert json.loads(out) == stored


def test_verbose_echoes_command(bftx, capsys):
    bftx_id = construct(bftx, capsys)
    code, out, _ = bftx(capsys, "--verbose", "state", bftx_id)
    assert out.splitlines()[0] == f"> state {bftx_id}"


def test_info(bftx, capsys):
    code, out, _ = bftx(capsys, "info")
    assert code == 0
    assert "-> data.hex: AA" in out


def test_import_csv(bftx, capsys, chain, engine):
    code, out, err = bftx(capsys, "import-csv", "Lading.csv", "--header", "--broadcast")
    assert code == 0
    assert result_of(out) == "Imported 2 BF_TX (1 skipped)"
    assert "breaking line number: 3" in err
    assert engine.total() == 2
    assert len(chain.transactions) == 2


def test_import_csv_twice_skips_recorded_lines(bftx, capsys, engine):
    code, out, _ = bftx(capsys, "import-csv", "Lading.csv", "--header")
    assert (code, result_of(out)) == (0, "Imported 2 BF_TX (1 skipped)")

    code, out, _ = bftx(capsys, "import-csv", "Lading.csv", "--header")
    assert (code, result_of(out)) == (0, "Imported 0 BF_TX (3 skipped)")
    assert engine.total() == 2


def test_import_csv_without_header_skips_it(bftx, capsys, engine):
    code, out, _ = bftx(capsys, "import-csv", "Lading.csv")
    assert result_of(out) == "Imported 2 BF_TX (2 skipped)"
    assert engine.total() == 2


def test_keygen(bftx, capsys, tmp_path):
    key_file = tmp_path / "keys" / "signing.json"
    code, out, _ = bftx(capsys, "keygen", "-o", str(key_file), "-k", "kid:bftx-ops-001")
    assert code == 0
    assert json.loads(out)["kid"] == "kid:bftx-ops-001"
    assert json.loads(key_file.read_text())["kid"] == "kid:bftx-ops-001"


def test_no_command_prints_help(capsys):
    assert cli.run([]) == 0
    assert "usage: bftx" in capsys.readouterr().out


def test_build_engine_uses_sqlite(tmp_path, capsys):
    db = tmp_path / "bftx.db"
    code = cli.run(["--db", str(db), "--key-file", str(tmp_path / "missing.json"), "total"])
    out, _ = capsys.readouterr()
    assert code == 0
    assert result_of(out) == "Total BF_TX on DB: 0"
    assert db.exists()


def test_production_requires_key_file(tmp_path, capsys, monkeypatch):
    monkeypatch.setattr(config, "ENV", "prod")
    code = cli.run(["--db", str(tmp_path / "bftx.db"), "--key-file", str(tmp_path / "missing.json"), "total"])
    _, err = capsys.readouterr()
    assert code == 1
    assert err.startswith("total: Signing key not found")
