"""
Shared pytest fixtures.

Nothing here touches the network: the RPC node is an in-memory FakeLedger
and the Jupiter API is served by an httpx.MockTransport handler.
"""

import base64
import struct
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import httpx
import pytest
from solders.address_lookup_table_account import LOOKUP_TABLE_META_SIZE
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from jupiter_tx.config import PipelineConfig
from jupiter_tx.errors import TransportError
from jupiter_tx.jupiter_api import JupiterClient
from jupiter_tx.ledger import SignatureStatus

COMPUTE_BUDGET_PROGRAM = "ComputeBudget111111111111111111111111111111"
TEST_API_URL = "https://jupiter.test"


# ─── Instruction JSON helpers ─────────────────────────────────────────────────

def ix_json(program, accounts: Iterable[Tuple[object, bool, bool]] = (), data: bytes = b"") -> dict:
    """One instruction in Jupiter's JSON shape. ``accounts`` are (key, signer, writable)."""
    return {
        "programId": str(program),
        "accounts": [
            {"pubkey": str(key), "isSigner": is_signer, "isWritable": is_writable}
            for key, is_signer, is_writable in accounts
        ],
        "data": base64.b64encode(data).decode("ascii"),
    }


def swap_instructions_payload(
    user: Pubkey,
    swap_accounts: Sequence[Pubkey],
    lookup_tables: Sequence[object] = (),
    swap_program: Optional[Pubkey] = None,
) -> dict:
    """A realistic /swap-instructions body: compute budget, setup, swap, cleanup."""
    swap_program = swap_program or Pubkey.new_unique()
    token_program = Pubkey.new_unique()
    ata = Pubkey.new_unique()
    return {
        "computeBudgetInstructions": [
            ix_json(COMPUTE_BUDGET_PROGRAM, data=bytes([2, 0x40, 0x0D, 0x03, 0x00])),
            ix_json(COMPUTE_BUDGET_PROGRAM, data=bytes([3, 1, 0, 0, 0, 0, 0, 0, 0])),
        ],
        "setupInstructions": [
            ix_json(token_program, [(user, True, True), (ata, False, True)], b"\x01"),
        ],
        "swapInstruction": ix_json(
            swap_program,
            [(user, True, True)] + [(key, False, i % 2 == 0) for i, key in enumerate(swap_accounts)],
            b"\xe5\x17\xcb\x97\x7a\xe3\xad\x2a",
        ),
        "cleanupInstruction": ix_json(token_program, [(ata, False, True), (user, True, True)], b"\x09"),
        "addressLookupTableAddresses": [str(table) for table in lookup_tables],
        "prioritizationFeeLamports": 1000,
    }


# ─── Lookup table account data ────────────────────────────────────────────────

def serialize_lookup_table(
    addresses: Sequence[Pubkey],
    authority: Optional[Pubkey] = None,
    deactivation_slot: int = 2**64 - 1,
    last_extended_slot: int = 0,
) -> bytes:
    """On-chain account bytes of an initialized lookup table."""
    header = bytearray(LOOKUP_TABLE_META_SIZE)
    struct.pack_into("<IQQB", header, 0, 1, deactivation_slot, last_extended_slot, 0)
    if authority is not None:
        header[21] = 1
        header[22:54] = bytes(authority)
    return bytes(header) + b"".join(bytes(address) for address in addresses)


# ─── Fake RPC node ────────────────────────────────────────────────────────────

class FakeLedger:
    """In-memory stand-in for LedgerClient.

    ``statuses`` is consumed one entry per poll; the last entry repeats.
    Entries may be a SignatureStatus, None (not yet seen) or an exception.
    """

    def __init__(
        self,
        accounts: Optional[Dict[Pubkey, bytes]] = None,
        failing_accounts: Iterable[Pubkey] = (),
        last_valid_block_height: int = 1_000,
        block_heights: Sequence[int] = (900,),
        statuses: Sequence[object] = (SignatureStatus(slot=42, err=None, confirmation_status="confirmed"),),
        send_error: Optional[Exception] = None,
    ):
        self.accounts = dict(accounts or {})
        self.failing_accounts = set(failing_accounts)
        self.blockhash = Hash.new_unique()
        self.last_valid_block_height = last_valid_block_height
        self.block_heights = list(block_heights)
        self.statuses = list(statuses)
        self.send_error = send_error
        self.sent: List[bytes] = []
        self.fetched: List[Pubkey] = []

    async def get_account_data(self, pubkey: Pubkey) -> Optional[bytes]:
        self.fetched.append(pubkey)
        if pubkey in self.failing_accounts:
            raise TransportError(f"getAccountInfo {pubkey} failed", collaborator="rpc")
        return self.accounts.get(pubkey)

    async def get_latest_blockhash(self):
        return self.blockhash, self.last_valid_block_height

    async def get_block_height(self) -> int:
        if len(self.block_heights) > 1:
            return self.block_heights.pop(0)
        return self.block_heights[0]

    async def send_raw_transaction(self, raw: bytes, *, skip_preflight: bool = False) -> Signature:
        self.sent.append(raw)
        if self.send_error is not None:
            raise self.send_error
        return VersionedTransaction.from_bytes(raw).signatures[0]

    async def get_signature_status(self, signature: Signature):
        item = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(item, Exception):
            raise item
        return item


# ─── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture
def payer() -> Keypair:
    return Keypair()


@pytest.fixture
def config() -> PipelineConfig:
    return PipelineConfig(
        rpc_url="http://127.0.0.1:8899",
        jupiter_api_url=TEST_API_URL,
        confirm_timeout_seconds=1.0,
        http_timeout_seconds=5.0,
    )


@pytest.fixture
def make_jupiter(config) -> Callable[..., JupiterClient]:
    """Build a JupiterClient whose HTTP calls go to ``handler``."""

    def _make(handler: Callable[[httpx.Request], httpx.Response], cfg: Optional[PipelineConfig] = None):
        cfg = cfg or config
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=cfg.jupiter_api_url)
        return JupiterClient(cfg, http_client=http_client)

    return _make
