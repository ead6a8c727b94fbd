"""Solana RPC access used by the pipeline.

Thin wrapper over ``solana.rpc.async_api.AsyncClient`` that converts library
exceptions into pipeline errors. Read failures surface as
:class:`TransportError`; send failures as submit errors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction_status import TransactionConfirmationStatus

from jupiter_tx.errors import SubmitTransportError, TransactionRejected, TransportError
from jupiter_tx.submitter import describe_rpc_error

logger = logging.getLogger(__name__)

_CONFIRMATION_STATUS = (
    (TransactionConfirmationStatus.Processed, "processed"),
    (TransactionConfirmationStatus.Confirmed, "confirmed"),
    (TransactionConfirmationStatus.Finalized, "finalized"),
)


def _confirmation_status(status) -> Optional[str]:
    for known, name in _CONFIRMATION_STATUS:
        if status == known:
            return name
    return None


@dataclass(frozen=True)
class SignatureStatus:
    slot: int
    err: Optional[str]
    confirmation_status: Optional[str]


class LedgerClient:
    """RPC node collaborator: account reads, blockhash, send, status polling."""

    def __init__(
        self,
        rpc_url: str,
        commitment: str = "confirmed",
        timeout: float = 30.0,
        client: Optional[AsyncClient] = None,
    ):
        self.rpc_url = rpc_url
        self.commitment = Commitment(commitment)
        self._client = client or AsyncClient(rpc_url, commitment=self.commitment, timeout=timeout)

    async def __aenter__(self) -> LedgerClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.close()

    async def get_account_data(self, pubkey: Pubkey) -> Optional[bytes]:
        try:
            resp = await self._client.get_account_info(pubkey, commitment=self.commitment)
        except (SolanaRpcException, RPCException) as e:
            raise TransportError(f"getAccountInfo {pubkey} failed: {e}", collaborator="rpc") from e
        if resp.value is None:
            return None
        return bytes(resp.value.data)

    async def get_latest_blockhash(self) -> Tuple[Hash, int]:
        try:
            resp = await self._client.get_latest_blockhash(commitment=self.commitment)
        except (SolanaRpcException, RPCException) as e:
            raise TransportError(f"getLatestBlockhash failed: {e}", collaborator="rpc") from e
        return resp.value.blockhash, resp.value.last_valid_block_height

    async def get_block_height(self) -> int:
        try:
            resp = await self._client.get_block_height(commitment=self.commitment)
        except (SolanaRpcException, RPCException) as e:
            raise TransportError(f"getBlockHeight failed: {e}", collaborator="rpc") from e
        return resp.value

    async def send_raw_transaction(self, raw: bytes, *, skip_preflight: bool = False) -> Signature:
        opts = TxOpts(skip_preflight=skip_preflight, preflight_commitment=self.commitment)
        try:
            resp = await self._client.send_raw_transaction(raw, opts=opts)
        except RPCException as e:
            error = str(e)
            raise TransactionRejected(
                f"node rejected transaction: {error}",
                submitted=False,
                error_hint=describe_rpc_error(error),
            ) from e
        except SolanaRpcException as e:
            raise SubmitTransportError(f"sendTransaction failed: {e}", submitted=False) from e
        return resp.value

    async def get_signature_status(self, signature: Signature) -> Optional[SignatureStatus]:
        try:
            resp = await self._client.get_signature_statuses([signature])
        except (SolanaRpcException, RPCException) as e:
            raise TransportError(f"getSignatureStatuses failed: {e}", collaborator="rpc") from e

        value = resp.value[0] if resp.value else None
        if value is None:
            return None
        return SignatureStatus(
            slot=value.slot,
            err=str(value.err) if value.err is not None else None,
            confirmation_status=_confirmation_status(value.confirmation_status),
        )
