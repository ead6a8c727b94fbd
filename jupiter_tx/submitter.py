"""Transaction submission and confirmation.

One send, then status polling until the requested commitment is reached,
the node reports an error, the blockhash expires or the polling horizon
passes. Nothing is resent: a caller that wants to retry must rebuild the
message with a fresh blockhash.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol

from solders.signature import Signature
from solders.transaction import VersionedTransaction

from jupiter_tx.errors import (
    ConfirmationTimeout,
    EmptyInstructionSet,
    MissingPayerSignature,
    SubmitError,
    TransactionRejected,
    TransportError,
)

if TYPE_CHECKING:
    from jupiter_tx.ledger import SignatureStatus

logger = logging.getLogger(__name__)

COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}
MAX_POLL_INTERVAL = 2.0


class Ledger(Protocol):
    async def send_raw_transaction(self, raw: bytes, *, skip_preflight: bool = False) -> Signature: ...

    async def get_signature_status(self, signature: Signature) -> Optional[SignatureStatus]: ...

    async def get_block_height(self) -> int: ...


@dataclass(frozen=True)
class ConfirmationReceipt:
    signature: str
    slot: int
    confirmation_status: str


def is_blockhash_expired(error: Optional[str]) -> bool:
    if not error:
        return False
    lower = error.lower()
    return "blockhash" in lower or "block height exceeded" in lower


def describe_rpc_error(error: Optional[str]) -> Optional[str]:
    """Return a short, human-readable hint for common Solana node errors."""
    if not error:
        return None

    lower = error.lower()
    if "alreadyprocessed" in lower or "already been processed" in lower:
        return "Transaction already processed; likely duplicate or replayed."
    if is_blockhash_expired(error):
        return "Blockhash expired; rebuild and re-sign the transaction."
    if "accountinuse" in lower:
        return "Account in use by another transaction."
    if "insufficientfunds" in lower or "insufficient funds" in lower:
        return "Insufficient funds for fee or transfer."
    if "invalidaccountdata" in lower:
        return "Invalid account data; verify mint/account ownership."
    if "uninitializedaccount" in lower:
        return "Account not initialized; create associated token account."
    if "signatureverificationfailed" in lower or "signature verification" in lower:
        return "Signature verification failed; ensure signer and recent blockhash match."

    match = re.search(r"Custom\((\d+)\)", error)
    if match:
        return f"Custom program error {match.group(1)}; program-specific constraint failed."
    return None


def commitment_reached(status: Optional[str], commitment: str) -> bool:
    if status is None:
        return False
    return COMMITMENT_RANK.get(status, -1) >= COMMITMENT_RANK[commitment]


async def submit_transaction(
    tx: VersionedTransaction,
    ledger: Ledger,
    *,
    last_valid_block_height: Optional[int] = None,
    commitment: str = "confirmed",
    timeout_seconds: float = 30.0,
    poll_interval: float = 0.5,
    skip_preflight: bool = False,
) -> ConfirmationReceipt:
    """
    Send a signed transaction and wait for confirmation.

    Raises:
        EmptyInstructionSet: the transaction carries no instructions
        MissingPayerSignature: the fee payer slot is unsigned
        TransactionRejected: preflight failure, on-chain error or expired blockhash
        ConfirmationTimeout: no confirmation within ``timeout_seconds``
        SubmitTransportError: network failure before the node answered
    """
    if commitment not in COMMITMENT_RANK:
        raise ValueError(f"unknown commitment {commitment!r}")
    if not tx.message.instructions:
        raise EmptyInstructionSet("refusing to submit a transaction without instructions")
    if not tx.signatures or tx.signatures[0] == Signature.default():
        raise MissingPayerSignature("refusing to submit a transaction without the payer signature")

    local_signature = str(tx.signatures[0])
    try:
        signature = await ledger.send_raw_transaction(bytes(tx), skip_preflight=skip_preflight)
    except SubmitError as e:
        e.signature = local_signature
        e.details["signature"] = local_signature
        logger.warning(f"Transaction {local_signature[:16]}... not accepted: {e.message}")
        raise

    logger.info(f"Transaction sent: {str(signature)[:16]}...")
    return await confirm_signature(
        signature,
        ledger,
        last_valid_block_height=last_valid_block_height,
        commitment=commitment,
        timeout_seconds=timeout_seconds,
        poll_interval=poll_interval,
    )


async def confirm_signature(
    signature: Signature,
    ledger: Ledger,
    *,
    last_valid_block_height: Optional[int] = None,
    commitment: str = "confirmed",
    timeout_seconds: float = 30.0,
    poll_interval: float = 0.5,
) -> ConfirmationReceipt:
    """Poll the signature status with gentle backoff until a terminal state."""
    sig = str(signature)
    deadline = time.monotonic() + timeout_seconds
    poll_count = 0

    while True:
        try:
            status = await ledger.get_signature_status(signature)
        except TransportError as exc:
            logger.debug(f"Status check failed: {exc}")
            status = None

        if status is not None:
            if status.err:
                logger.warning(f"Transaction {sig[:16]}... failed: {status.err}")
                raise TransactionRejected(
                    f"transaction failed on chain: {status.err}",
                    signature=sig,
                    submitted=True,
                    error_hint=describe_rpc_error(status.err),
                )
            if commitment_reached(status.confirmation_status, commitment):
                logger.info(f"Transaction {sig[:16]}... {status.confirmation_status}")
                return ConfirmationReceipt(
                    signature=sig,
                    slot=status.slot,
                    confirmation_status=status.confirmation_status,
                )

        if last_valid_block_height is not None:
            try:
                height = await ledger.get_block_height()
            except TransportError as exc:
                logger.debug(f"Block height check failed: {exc}")
                height = None
            if height is not None and height > last_valid_block_height:
                logger.warning(
                    f"Transaction {sig[:16]}... expired at block height {height} "
                    f"(last valid {last_valid_block_height})"
                )
                raise TransactionRejected(
                    "blockhash expired before the transaction was confirmed",
                    signature=sig,
                    submitted=True,
                    error_hint=describe_rpc_error("blockhash expired"),
                )

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.warning(f"Transaction {sig[:16]}... confirmation timeout after {timeout_seconds}s")
            raise ConfirmationTimeout(
                f"transaction not {commitment} within {timeout_seconds}s",
                signature=sig,
                submitted=True,
            )

        poll_count += 1
        wait_time = min(poll_interval * (1.2 ** min(poll_count, 10)), MAX_POLL_INTERVAL)
        await asyncio.sleep(min(wait_time, remaining))
