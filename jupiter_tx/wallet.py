"""Keypair loading. Key material is never logged or put in error messages."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import base58
from solders.keypair import Keypair

from jupiter_tx.config import PipelineConfig
from jupiter_tx.errors import KeypairError

logger = logging.getLogger(__name__)


def keypair_from_base58(secret: str) -> Keypair:
    try:
        return Keypair.from_bytes(base58.b58decode(secret.strip()))
    except (ValueError, TypeError):
        raise KeypairError("SECRET_KEY is not a base58-encoded 64-byte keypair") from None


def keypair_from_file(path: Path) -> Keypair:
    """Load a Solana CLI keypair file (JSON array of 64 integers)."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise KeypairError(f"keypair file not found: {path}") from None
    except (OSError, json.JSONDecodeError):
        raise KeypairError(f"keypair file is not readable JSON: {path}") from None

    if not isinstance(data, list):
        raise KeypairError(f"keypair file must contain a JSON array: {path}")
    try:
        return Keypair.from_bytes(bytes(data))
    except (ValueError, TypeError):
        raise KeypairError(f"keypair file does not hold a valid 64-byte keypair: {path}") from None


def load_keypair(config: PipelineConfig) -> Keypair:
    """SECRET_KEY wins over KEYPAIR_PATH; the Solana CLI default key is the last resort."""
    if config.secret_key:
        keypair = keypair_from_base58(config.secret_key)
        source = "SECRET_KEY"
    elif config.keypair_path:
        keypair = keypair_from_file(Path(config.keypair_path).expanduser())
        source = "KEYPAIR_PATH"
    elif default_keypair_path() is not None:
        keypair = keypair_from_file(default_keypair_path())
        source = "~/.config/solana/id.json"
    else:
        raise KeypairError("set SECRET_KEY or KEYPAIR_PATH to sign transactions")

    logger.info(f"Loaded signer {str(keypair.pubkey())[:8]}... from {source}")
    return keypair


def keypair_to_base58(keypair: Keypair) -> str:
    return base58.b58encode(bytes(keypair)).decode("ascii")


def default_keypair_path() -> Optional[Path]:
    path = Path.home() / ".config" / "solana" / "id.json"
    return path if path.exists() else None
