#!/usr/bin/env python3
"""
Blockfreight BF_TX Command Line Interface

Usage:
    bftx construct <file>
    bftx validate <file>
    bftx verify <file>
    bftx sign <id>
    bftx broadcast <id>
    bftx rebroadcast <id>
    bftx append <file> <target_id>
    bftx state <id>
    bftx get <id>
    bftx print <id>
    bftx query <id>
    bftx total
    bftx info
    bftx keygen --output <file>
    bftx import-csv <file> [--broadcast] [--header]
    bftx serve [--host <host>] [--port <port>]
"""

import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import config
from .errors import BFTXError, EncodingError, SigningError, ValidationError
from .lifecycle import LifecycleEngine
from .logging_config import configure_logging
from .network import TendermintRPCClient
from .schema import csv_row_to_legacy, legacy_to_current, normalize_document
from .signing import Ed25519Signer, load_signer
from .store import SqliteRecordStore
from .validator import load_document

logger = logging.getLogger(__name__)


def print_response(args, result: str = "", data: str = "", log: str = "") -> None:
    """Print a command result in the `-> blockfreight result: ...` format."""
    if args.verbose:
        print(">", args.command, " ".join(_positional(args)))
    if result:
        print(f"-> blockfreight result: {result}")
    if data:
        print(f"-> data.hex: {data.upper()}")
    if log:
        print(f"-> log: {log}")
    if args.verbose:
        print("")


def _positional(args) -> List[str]:
    return [str(getattr(args, name)) for name in ("file", "bftx_id", "target_id") if getattr(args, name, None)]


def resolve_path(args, name: str) -> Path:
    """A path as given, or relative to --json-path when it does not exist as given."""
    path = Path(name)
    if path.exists() or path.is_absolute():
        return path
    return Path(args.json_path) / name


def read_content(args):
    """Shipment content of the document named by ``args.file``, in any supported shape."""
    return normalize_document(load_document(resolve_path(args, args.file)))


def build_engine(args) -> LifecycleEngine:
    """Wire the store, chain client and signer from flags and environment."""
    if config.is_production() and not Path(args.key_file).exists():
        raise SigningError(f"Signing key not found at {args.key_file}")
    store = SqliteRecordStore(args.db)
    chain = TendermintRPCClient(args.rpc, timeout=config.RPC_TIMEOUT)
    return LifecycleEngine(store, chain, load_signer(args.key_file))


def cmd_construct(args, engine: LifecycleEngine):
    """Construct a BF_TX from a shipment document."""
    bftx_id = engine.construct(read_content(args))
    print_response(args, result=f"BF_TX Id: {bftx_id}")


def cmd_validate(args, engine: LifecycleEngine):
    engine.validate(read_content(args))
    print_response(args, result="Success! [OK]")


def cmd_verify(args, engine: LifecycleEngine):
    """Find the BF_TX that holds the content of a shipment document."""
    bftx_id = engine.verify(read_content(args))
    print_response(args, result=f"The BF_TX associated to JSON content is {bftx_id}")


def cmd_sign(args, engine: LifecycleEngine):
    engine.sign(args.bftx_id)
    print_response(args, result="BF_TX signed")


def cmd_broadcast(args, engine: LifecycleEngine):
    receipt = engine.broadcast(args.bftx_id)
    print_response(args, data=receipt.hash, log=receipt.log)


def cmd_rebroadcast(args, engine: LifecycleEngine):
    receipt = engine.rebroadcast(args.bftx_id)
    print_response(args, data=receipt.hash, log=receipt.log)


def cmd_append(args, engine: LifecycleEngine):
    """Construct an amending BF_TX and link it from the target."""
    new_id = engine.append(read_content(args), args.target_id)
    print_response(args, result=f"BF_TX Id: {new_id}")


def cmd_state(args, engine: LifecycleEngine):
    print_response(args, result=f"BF_TX state: {engine.state(args.bftx_id).describe()}")


def cmd_get(args, engine: LifecycleEngine):
    print_response(args, result=engine.get(args.bftx_id).canonical())


def cmd_print(args, engine: LifecycleEngine):
    print(json.dumps(engine.get(args.bftx_id).to_dict(), indent=2, ensure_ascii=False))


def cmd_query(args, engine: LifecycleEngine):
    print_response(args, result=engine.query(args.bftx_id))


def cmd_total(args, engine: LifecycleEngine):
    print_response(args, result=f"Total BF_TX on DB: {engine.total()}")


def cmd_info(args, engine: LifecycleEngine):
    """Chain info plus a check of the local configuration."""
    info = engine.chain_info()
    print_response(args, result=info.get("data", ""), data=info.get("last_block_app_hash", ""))
    for name, ok in config.validate_config().items():
        print(f"   {name}: {'ok' if ok else 'missing'}", file=sys.stderr)


def cmd_keygen(args):
    """Generate an Ed25519 signing key file."""
    signer = Ed25519Signer.generate(args.key_id)
    output = args.output or args.key_file
    signer.write_key_file(output)
    print(json.dumps(signer.trust_entry(), indent=2))
    print(f"\nKey saved to: {output}", file=sys.stderr)


def cmd_import_csv(args, engine: LifecycleEngine):
    """
    Construct and sign one BF_TX per CSV line, optionally broadcasting each.

    Lines that do not map to valid shipment content are reported and
    skipped, as are lines already recorded in the requested state.
    Collaborator failures stop the import.
    """
    imported = skipped = 0
    with open(resolve_path(args, args.file), "r", encoding="utf-8", newline="") as f:
        reader = csv.reader(f)
        if args.header:
            next(reader, None)
        for line_number, row in enumerate(reader, start=1):
            try:
                content = legacy_to_current(csv_row_to_legacy(row))
                bftx_id = engine.construct(content)
            except (ValidationError, EncodingError) as e:
                skipped += 1
                logger.warning("Skipping CSV line %d: %s", line_number, e.message)
                print(f"breaking line number: {line_number}: {e.message}", file=sys.stderr)
                continue
            record = engine.get(bftx_id)
            if record.verified and (record.transmitted or not args.broadcast):
                skipped += 1
                logger.info("CSV line %d already recorded as %s", line_number, bftx_id)
                continue
            if not record.verified:
                engine.sign(bftx_id)
            if args.broadcast:
                engine.broadcast(bftx_id)
            imported += 1
    print_response(args, result=f"Imported {imported} BF_TX ({skipped} skipped)")


def cmd_serve(args, engine: LifecycleEngine):
    import uvicorn

    from .api import create_app

    uvicorn.run(create_app(engine), host=args.host, port=args.port,
                log_level=args.log_level.lower())


COMMANDS = {
    "construct": cmd_construct,
    "validate": cmd_validate,
    "verify": cmd_verify,
    "sign": cmd_sign,
    "broadcast": cmd_broadcast,
    "rebroadcast": cmd_rebroadcast,
    "append": cmd_append,
    "state": cmd_state,
    "get": cmd_get,
    "print": cmd_print,
    "query": cmd_query,
    "total": cmd_total,
    "info": cmd_info,
    "import-csv": cmd_import_csv,
    "serve": cmd_serve,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bftx",
        description="Blockfreight BF_TX CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bftx construct bf_tx_example.json
  bftx sign <id>
  bftx broadcast <id>
  bftx append bf_tx_amended.json <id>
  bftx state <id>
  bftx import-csv Lading.csv --broadcast
        """
    )
    parser.add_argument("--db", default=config.DB_PATH, help="Record store database file")
    parser.add_argument("--rpc", default=config.RPC_ADDRESS, help="Tendermint RPC address")
    parser.add_argument("--key-file", default=config.SIGNING_KEY_PATH, help="Signing key JSON file")
    parser.add_argument("--json-path", default=config.JSON_PATH,
                        help="Directory searched for shipment documents")
    parser.add_argument("-v", "--verbose", action="store_true", help="Echo the command before its result")
    parser.add_argument("--log-level", default=config.LOG_LEVEL.upper(), type=str.upper,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], help="Log level")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    for name, help_text in (
        ("construct", "Construct a BF_TX from a JSON document"),
        ("validate", "Validate a JSON document"),
        ("verify", "Find the BF_TX holding a JSON document's content"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("file", help="Shipment JSON document")

    for name, help_text in (
        ("sign", "Sign a BF_TX"),
        ("broadcast", "Broadcast a signed BF_TX"),
        ("rebroadcast", "Submit a transmitted BF_TX again"),
        ("state", "Show the state of a BF_TX"),
        ("get", "Show the stored canonical content of a BF_TX"),
        ("print", "Pretty-print a BF_TX"),
        ("query", "Show a BF_TX as committed on the chain"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("bftx_id", help="BF_TX id")

    append_parser = subparsers.add_parser("append", help="Amend a BF_TX with a new document")
    append_parser.add_argument("file", help="Shipment JSON document")
    append_parser.add_argument("target_id", help="BF_TX id to amend")

    subparsers.add_parser("total", help="Count stored BF_TX")
    subparsers.add_parser("info", help="Show chain info and check configuration")

    keygen_parser = subparsers.add_parser("keygen", help="Generate a signing key")
    keygen_parser.add_argument("-o", "--output", help="Output key file (default: --key-file)")
    keygen_parser.add_argument("-k", "--key-id", help="Key identifier")

    csv_parser = subparsers.add_parser("import-csv", help="Construct BF_TX from bill-of-lading CSV lines")
    csv_parser.add_argument("file", help="CSV file")
    csv_parser.add_argument("--broadcast", action="store_true", help="Broadcast each imported BF_TX")
    csv_parser.add_argument("--header", action="store_true", help="Skip the first line")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default=config.API_HOST)
    serve_parser.add_argument("--port", type=int, default=config.API_PORT)

    return parser


def run(argv: Optional[List[str]] = None) -> int:
    """Parse ``argv``, run one command and return the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        "DEBUG" if config.is_debug() else args.log_level,
        json_format=config.LOG_JSON,
        log_file=config.LOG_FILE or None,
    )

    if args.command is None:
        parser.print_help()
        return 0

    engine = None
    try:
        if args.command == "keygen":
            cmd_keygen(args)
            return 0
        engine = build_engine(args)
        COMMANDS[args.command](args, engine)
        return 0
    except BFTXError as e:
        print(f"{args.command}: {e.message}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"{args.command}: {e.strerror or e}", file=sys.stderr)
        return 1
    finally:
        if engine is not None:
            engine.store.close()
            engine.chain.close()


def main():
    sys.exit(run())


if __name__ == "__main__":
    main()
