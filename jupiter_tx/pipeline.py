"""Trading flows built on the transaction pipeline.

``swap-instructions`` runs the full pipeline: decode → resolve lookup
tables → compile → sign → submit. The other flows receive a transaction the
API already built and only sign it; ``swap`` then submits to the RPC node,
while ultra, trigger and recurring hand the signed bytes back to the API's
execute endpoint.

Every flow fails fast with a typed error. Submission (or execute) is always
the last step, so any earlier failure leaves nothing on chain.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from jupiter_tx.compiler import compile_message
from jupiter_tx.config import PipelineConfig
from jupiter_tx.errors import OrderCreationFailed, TransactionRejected
from jupiter_tx.instructions import decode_swap_instructions
from jupiter_tx.jupiter_api import JupiterClient
from jupiter_tx.ledger import LedgerClient
from jupiter_tx.logging_config import CorrelationContext, get_logger
from jupiter_tx.lookup_tables import resolve_lookup_tables_detailed
from jupiter_tx.models import (
    CreateOrderResponse,
    ExecuteResponse,
    OrderRejected,
    QuoteRequest,
    RecurringOrderRequest,
    SwapInstructionsResponse,
    TriggerOrderRequest,
    UltraOrderRequest,
)
from jupiter_tx.signer import encode_transaction, sign_message, sign_prebuilt_transaction
from jupiter_tx.submitter import ConfirmationReceipt, describe_rpc_error, submit_transaction

logger = logging.getLogger(__name__)
flow_log = get_logger(__name__)


@dataclass(frozen=True)
class BuiltTransaction:
    transaction: VersionedTransaction
    last_valid_block_height: int
    lookup_tables: List[AddressLookupTableAccount]
    skipped_lookup_tables: List[str]

    @property
    def signature(self) -> str:
        return str(self.transaction.signatures[0])


@dataclass(frozen=True)
class PipelineResult:
    flow: str
    signature: Optional[str]
    submitted: bool
    confirmed: bool
    status: Optional[str] = None
    slot: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@asynccontextmanager
async def open_clients(config: PipelineConfig) -> AsyncIterator[Tuple[JupiterClient, LedgerClient]]:
    """Jupiter and RPC clients for one run, closed on exit."""
    async with JupiterClient(config) as jupiter, LedgerClient(
        config.rpc_url, commitment=config.commitment, timeout=config.http_timeout_seconds
    ) as ledger:
        yield jupiter, ledger


async def build_swap_transaction(
    response: SwapInstructionsResponse,
    keypair: Keypair,
    ledger: LedgerClient,
    *,
    strict_lookup_tables: bool = False,
) -> BuiltTransaction:
    """Decode, resolve, compile and sign a swap-instructions response.

    Decoding runs before any network call, so a bad response never costs an
    RPC round trip.
    """
    instructions = decode_swap_instructions(response)

    tables, skipped = await resolve_lookup_tables_detailed(
        response.address_lookup_table_addresses, ledger.get_account_data, strict=strict_lookup_tables
    )

    blockhash, last_valid_block_height = await ledger.get_latest_blockhash()
    message = compile_message(keypair.pubkey(), instructions, tables, blockhash)
    transaction = sign_message(message, [keypair])

    built = BuiltTransaction(
        transaction=transaction,
        last_valid_block_height=last_valid_block_height,
        lookup_tables=tables,
        skipped_lookup_tables=skipped,
    )
    logger.info(
        f"Built transaction {built.signature[:16]}...: {len(instructions)} instructions, "
        f"{len(tables)} lookup tables, {len(bytes(transaction))} bytes"
    )
    return built


def _receipt_result(flow: str, receipt: ConfirmationReceipt, **extra: Any) -> PipelineResult:
    flow_log.info("Flow finished", flow=flow, signature=receipt.signature, slot=receipt.slot)
    return PipelineResult(
        flow=flow,
        signature=receipt.signature,
        submitted=True,
        confirmed=True,
        status=receipt.confirmation_status,
        slot=receipt.slot,
        extra=extra,
    )


async def run_swap_instructions(
    config: PipelineConfig,
    keypair: Keypair,
    *,
    jupiter: JupiterClient,
    ledger: LedgerClient,
    request: Optional[QuoteRequest] = None,
    strict_lookup_tables: bool = False,
) -> PipelineResult:
    """/quote → /swap-instructions → build locally → submit to RPC."""
    request = request or QuoteRequest()
    with CorrelationContext(flow="swap-instructions"):
        quote = await jupiter.get_quote(request)
        response = await jupiter.get_swap_instructions(quote, str(keypair.pubkey()))
        built = await build_swap_transaction(
            response, keypair, ledger, strict_lookup_tables=strict_lookup_tables
        )
        receipt = await submit_transaction(
            built.transaction,
            ledger,
            last_valid_block_height=built.last_valid_block_height,
            commitment=config.commitment,
            timeout_seconds=config.confirm_timeout_seconds,
        )
        return _receipt_result(
            "swap-instructions",
            receipt,
            in_amount=quote.in_amount,
            out_amount=quote.out_amount,
            skipped_lookup_tables=built.skipped_lookup_tables,
        )


async def run_swap(
    config: PipelineConfig,
    keypair: Keypair,
    *,
    jupiter: JupiterClient,
    ledger: LedgerClient,
    request: Optional[QuoteRequest] = None,
) -> PipelineResult:
    """/quote → /swap (prebuilt) → sign → submit to RPC."""
    request = request or QuoteRequest()
    with CorrelationContext(flow="swap"):
        quote = await jupiter.get_quote(request)
        swap = await jupiter.get_swap_transaction(quote, str(keypair.pubkey()))
        transaction = sign_prebuilt_transaction(swap.swap_transaction, [keypair])
        receipt = await submit_transaction(
            transaction,
            ledger,
            last_valid_block_height=swap.last_valid_block_height,
            commitment=config.commitment,
            timeout_seconds=config.confirm_timeout_seconds,
        )
        return _receipt_result("swap", receipt, in_amount=quote.in_amount, out_amount=quote.out_amount)


def _execute_result(flow: str, transaction: VersionedTransaction, response: ExecuteResponse) -> PipelineResult:
    signature = response.signature or str(transaction.signatures[0])
    if not response.succeeded:
        flow_log.warning("Execute failed", flow=flow, status=response.status, error=response.error)
        raise TransactionRejected(
            f"{flow} execute returned status {response.status!r}: {response.error or 'no error detail'}",
            signature=signature,
            submitted=response.signature is not None,
            error_hint=describe_rpc_error(response.error),
        )
    flow_log.info("Flow finished", flow=flow, signature=signature, status=response.status)
    return PipelineResult(
        flow=flow,
        signature=signature,
        submitted=True,
        confirmed=True,
        status=response.status,
        slot=response.slot,
        extra=response.extra,
    )


async def run_ultra(
    config: PipelineConfig,
    keypair: Keypair,
    *,
    jupiter: JupiterClient,
    request: Optional[UltraOrderRequest] = None,
) -> PipelineResult:
    """/ultra/order → sign → /ultra/execute."""
    request = request or UltraOrderRequest(taker=str(keypair.pubkey()))
    with CorrelationContext(flow="ultra"):
        order = await jupiter.get_ultra_order(request)
        transaction = sign_prebuilt_transaction(order.transaction, [keypair])
        response = await jupiter.execute_ultra(encode_transaction(transaction), order.request_id)
        return _execute_result("ultra", transaction, response)


def _require_created(flow: str, response: CreateOrderResponse):
    if isinstance(response, OrderRejected):
        flow_log.warning("createOrder failed", flow=flow, error=response.error)
        raise OrderCreationFailed(f"{flow} createOrder failed: {response.error}", collaborator="jupiter")
    return response


async def run_trigger(
    config: PipelineConfig,
    keypair: Keypair,
    *,
    jupiter: JupiterClient,
    request: Optional[TriggerOrderRequest] = None,
) -> PipelineResult:
    """/trigger/createOrder → sign → /trigger/execute."""
    request = request or TriggerOrderRequest(maker=str(keypair.pubkey()))
    with CorrelationContext(flow="trigger"):
        created = _require_created("trigger", await jupiter.create_trigger_order(request))
        transaction = sign_prebuilt_transaction(created.transaction, [keypair])
        response = await jupiter.execute_trigger(encode_transaction(transaction), created.request_id)
        result = _execute_result("trigger", transaction, response)
        if created.order:
            result.extra.setdefault("order", created.order)
        return result


async def run_recurring(
    config: PipelineConfig,
    keypair: Keypair,
    *,
    jupiter: JupiterClient,
    request: Optional[RecurringOrderRequest] = None,
) -> PipelineResult:
    """/recurring/createOrder → sign → /recurring/execute."""
    request = request or RecurringOrderRequest(user=str(keypair.pubkey()))
    with CorrelationContext(flow="recurring"):
        created = _require_created("recurring", await jupiter.create_recurring_order(request))
        transaction = sign_prebuilt_transaction(created.transaction, [keypair])
        response = await jupiter.execute_recurring(encode_transaction(transaction), created.request_id)
        result = _execute_result("recurring", transaction, response)
        if created.order:
            result.extra.setdefault("order", created.order)
        return result
