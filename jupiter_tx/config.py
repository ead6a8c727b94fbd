"""Pipeline configuration.

Built once at process start with :meth:`PipelineConfig.from_env` and passed
by reference into every pipeline entry point. Nothing below the entry point
reads the environment.

Environment variables:
    RPC_URL                  Solana RPC endpoint (required)
    JUPITER_API_URL          Jupiter API base (default https://lite-api.jup.ag)
    API_KEY                  Jupiter API key, sent as X-API-KEY
    SECRET_KEY               base58 64-byte secret key
    KEYPAIR_PATH             Solana CLI keypair file (used when SECRET_KEY unset)
    FEE_ACCOUNT / FEE_BPS    Optional integrator fee, both or neither
    COMMITMENT               processed | confirmed | finalized
    CONFIRM_TIMEOUT_SECONDS  Confirmation polling horizon
    HTTP_TIMEOUT_SECONDS     Jupiter API request timeout
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from solders.pubkey import Pubkey

from jupiter_tx.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_JUPITER_API_URL = "https://lite-api.jup.ag"
COMMITMENT_LEVELS = ("processed", "confirmed", "finalized")

# Basis points, applied identically by every flow.
MIN_FEE_BPS = 1
MAX_FEE_BPS = 10_000


@dataclass(frozen=True)
class IntegratorFee:
    """Optional integrator fee shared by all trading flows."""

    account: str
    bps: int

    def __post_init__(self) -> None:
        if not MIN_FEE_BPS <= self.bps <= MAX_FEE_BPS:
            raise ConfigurationError(
                f"FEE_BPS must be between {MIN_FEE_BPS} and {MAX_FEE_BPS}, got {self.bps}"
            )
        try:
            Pubkey.from_string(self.account)
        except ValueError as e:
            raise ConfigurationError(f"FEE_ACCOUNT is not a valid public key: {e}") from e

    @classmethod
    def from_values(cls, account: Optional[str], bps: Optional[str]) -> Optional[IntegratorFee]:
        account = (account or "").strip()
        bps = (bps or "").strip()
        if not account and not bps:
            return None
        if not account or not bps:
            raise ConfigurationError("FEE_ACCOUNT and FEE_BPS must be set together")
        try:
            parsed = int(bps)
        except ValueError as e:
            raise ConfigurationError(f"FEE_BPS must be an integer, got {bps!r}") from e
        return cls(account=account, bps=parsed)


@dataclass(frozen=True)
class PipelineConfig:
    rpc_url: str
    jupiter_api_url: str = DEFAULT_JUPITER_API_URL
    api_key: Optional[str] = field(default=None, repr=False)
    secret_key: Optional[str] = field(default=None, repr=False)
    keypair_path: Optional[str] = None
    fee: Optional[IntegratorFee] = None
    commitment: str = "confirmed"
    confirm_timeout_seconds: float = 30.0
    http_timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        if not self.rpc_url:
            raise ConfigurationError("RPC_URL must be set")
        if self.commitment not in COMMITMENT_LEVELS:
            raise ConfigurationError(
                f"COMMITMENT must be one of {', '.join(COMMITMENT_LEVELS)}, got {self.commitment!r}"
            )
        if self.confirm_timeout_seconds <= 0 or self.http_timeout_seconds <= 0:
            raise ConfigurationError("timeouts must be positive")

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        env_file: Optional[Path] = None,
    ) -> PipelineConfig:
        """Build the configuration from ``env`` (default ``os.environ``).

        When reading the process environment, a ``.env`` file is loaded first
        without overriding variables that are already set.
        """
        if env is None:
            _load_dotenv(env_file)
            env = os.environ

        return cls(
            rpc_url=env.get("RPC_URL", "").strip(),
            jupiter_api_url=(env.get("JUPITER_API_URL") or DEFAULT_JUPITER_API_URL).rstrip("/"),
            api_key=env.get("API_KEY") or None,
            secret_key=env.get("SECRET_KEY") or None,
            keypair_path=env.get("KEYPAIR_PATH") or None,
            fee=IntegratorFee.from_values(env.get("FEE_ACCOUNT"), env.get("FEE_BPS")),
            commitment=(env.get("COMMITMENT") or "confirmed").lower(),
            confirm_timeout_seconds=_float(env, "CONFIRM_TIMEOUT_SECONDS", 30.0),
            http_timeout_seconds=_float(env, "HTTP_TIMEOUT_SECONDS", 30.0),
        )


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


def _load_dotenv(env_file: Optional[Path]) -> None:
    from dotenv import find_dotenv, load_dotenv

    path = env_file or find_dotenv(usecwd=True)
    if path and load_dotenv(path, override=False):
        logger.debug(f"Loaded .env from {path}")
