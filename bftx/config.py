"""
Configuration module for BFTX.

Centralizes all configuration with environment variable support. The CLI
uses these values as defaults for its flags.
"""

import os
from pathlib import Path
from typing import Dict

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("BFTX_ENV", "dev")  # dev|stage|prod

# Record store
DB_PATH = os.getenv("BFTX_DB_PATH", "data/bftx.db")

# Consensus network RPC
RPC_ADDRESS = os.getenv("BFTX_RPC_ADDRESS", os.getenv("LOCAL_RPC_CLIENT_ADDRESS", "http://127.0.0.1:46657"))
RPC_TIMEOUT = float(os.getenv("BFTX_RPC_TIMEOUT", "10"))

# Signing
SIGNING_KEY_PATH = os.getenv("BFTX_SIGNING_KEY_PATH", "secrets/bftx_signing_key.json")

# Source directory for shipment JSON documents
JSON_PATH = os.getenv("BFTX_JSON_PATH", "./examples/")

# Logging
LOG_LEVEL = os.getenv("BFTX_LOG_LEVEL", "WARNING")
LOG_JSON = os.getenv("BFTX_LOG_JSON", "1").lower() in ("1", "true", "yes")
LOG_FILE = os.getenv("BFTX_LOG_FILE", "")

# HTTP API
API_HOST = os.getenv("BFTX_API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("BFTX_API_PORT", "12345"))


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Check the configured paths.
    Returns dict of name -> usable.
    """
    db_parent = Path(DB_PATH).parent
    return {
        "db_dir": db_parent.is_dir() or not db_parent.exists(),
        "signing_key": Path(SIGNING_KEY_PATH).exists(),
        "json_path": Path(JSON_PATH).is_dir(),
        "rpc_address": RPC_ADDRESS.startswith(("http://", "https://")),
    }


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("BFTX_DEBUG", "").lower() in ("1", "true", "yes")
