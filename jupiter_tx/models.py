"""Typed Jupiter API requests and responses.

Each response family is a frozen dataclass with a ``from_dict`` parser.
Fields we do not model are kept in ``extra`` so new API fields pass through
without breaking parsing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from jupiter_tx.errors import ApiParseError
from jupiter_tx.instructions import (
    InstructionDescriptor,
    optional_descriptor,
    parse_instruction_list,
)

SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


def _require_dict(payload: Any, what: str) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ApiParseError(f"{what} response must be a JSON object", collaborator="jupiter")
    return payload


def _require_str(payload: Dict[str, Any], key: str, what: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ApiParseError(f"{what} response missing {key!r}", collaborator="jupiter")
    return value


def _first(payload: Dict[str, Any], *keys: str) -> Optional[Any]:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def _extra(payload: Dict[str, Any], known: Tuple[str, ...]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if k not in known}


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ApiParseError(f"expected an integer, got {value!r}", collaborator="jupiter") from None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QuoteRequest:
    input_mint: str = SOL_MINT
    output_mint: str = USDC_MINT
    amount: int = 50_000_000
    slippage_bps: int = 50


@dataclass(frozen=True)
class UltraOrderRequest:
    taker: str
    input_mint: str = SOL_MINT
    output_mint: str = USDC_MINT
    amount: int = 10_000_000


@dataclass(frozen=True)
class TriggerOrderRequest:
    maker: str
    input_mint: str = SOL_MINT
    output_mint: str = USDC_MINT
    making_amount: int = 30_000_000
    taking_amount: int = 5_000_000


@dataclass(frozen=True)
class RecurringOrderRequest:
    user: str
    input_mint: str = SOL_MINT
    output_mint: str = USDC_MINT
    in_amount: int = 50_000_000
    number_of_orders: int = 2
    interval_seconds: int = 86_400


# ---------------------------------------------------------------------------
# Swap API
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QuoteResponse:
    """A quote. ``raw`` is posted back verbatim to /swap and /swap-instructions."""

    input_mint: str
    output_mint: str
    in_amount: str
    out_amount: str
    other_amount_threshold: Optional[str]
    swap_mode: Optional[str]
    slippage_bps: Optional[int]
    price_impact_pct: Optional[str]
    raw: Dict[str, Any] = field(repr=False)

    @classmethod
    def from_dict(cls, payload: Any) -> QuoteResponse:
        payload = _require_dict(payload, "quote")
        if payload.get("error"):
            raise ApiParseError(f"quote failed: {payload['error']}", collaborator="jupiter")
        return cls(
            input_mint=_require_str(payload, "inputMint", "quote"),
            output_mint=_require_str(payload, "outputMint", "quote"),
            in_amount=str(payload.get("inAmount", "")),
            out_amount=str(payload.get("outAmount", "")),
            other_amount_threshold=payload.get("otherAmountThreshold"),
            swap_mode=payload.get("swapMode"),
            slippage_bps=_optional_int(payload.get("slippageBps")),
            price_impact_pct=payload.get("priceImpactPct"),
            raw=payload,
        )


@dataclass(frozen=True)
class SwapTransactionResponse:
    swap_transaction: str
    last_valid_block_height: Optional[int]
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Any) -> SwapTransactionResponse:
        payload = _require_dict(payload, "swap")
        return cls(
            swap_transaction=_require_str(payload, "swapTransaction", "swap"),
            last_valid_block_height=_optional_int(payload.get("lastValidBlockHeight")),
            extra=_extra(payload, ("swapTransaction", "lastValidBlockHeight")),
        )


@dataclass(frozen=True)
class SwapInstructionsResponse:
    token_ledger_instruction: Optional[InstructionDescriptor] = None
    compute_budget_instructions: Tuple[InstructionDescriptor, ...] = ()
    setup_instructions: Tuple[InstructionDescriptor, ...] = ()
    swap_instruction: Optional[InstructionDescriptor] = None
    cleanup_instruction: Optional[InstructionDescriptor] = None
    address_lookup_table_addresses: Tuple[str, ...] = ()
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN = (
        "tokenLedgerInstruction",
        "computeBudgetInstructions",
        "setupInstructions",
        "swapInstruction",
        "cleanupInstruction",
        "addressLookupTableAddresses",
    )

    @classmethod
    def from_dict(cls, payload: Any) -> SwapInstructionsResponse:
        payload = _require_dict(payload, "swap-instructions")
        if payload.get("error"):
            raise ApiParseError(f"swap-instructions failed: {payload['error']}", collaborator="jupiter")

        addresses = payload.get("addressLookupTableAddresses") or []
        if not isinstance(addresses, list) or not all(isinstance(a, str) for a in addresses):
            raise ApiParseError("addressLookupTableAddresses must be a list of strings", collaborator="jupiter")

        return cls(
            token_ledger_instruction=optional_descriptor(payload.get("tokenLedgerInstruction")),
            compute_budget_instructions=parse_instruction_list(payload.get("computeBudgetInstructions")),
            setup_instructions=parse_instruction_list(payload.get("setupInstructions")),
            swap_instruction=optional_descriptor(payload.get("swapInstruction")),
            cleanup_instruction=optional_descriptor(payload.get("cleanupInstruction")),
            address_lookup_table_addresses=tuple(addresses),
            extra=_extra(payload, cls._KNOWN),
        )


# ---------------------------------------------------------------------------
# Ultra / Trigger / Recurring
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UltraOrderResponse:
    request_id: str
    transaction: str
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Any) -> UltraOrderResponse:
        payload = _require_dict(payload, "ultra order")
        if not payload.get("transaction"):
            reason = payload.get("errorMessage") or payload.get("error") or "no transaction returned"
            raise ApiParseError(f"ultra order failed: {reason}", collaborator="jupiter")
        return cls(
            request_id=_require_str(payload, "requestId", "ultra order"),
            transaction=_require_str(payload, "transaction", "ultra order"),
            extra=_extra(payload, ("requestId", "transaction")),
        )


@dataclass(frozen=True)
class OrderCreated:
    """createOrder succeeded: an unsigned transaction to sign and execute."""

    transaction: str
    request_id: str
    order: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OrderRejected:
    """createOrder returned no transaction; the API's reason is in ``error``."""

    error: str
    code: Optional[Any] = None
    extra: Dict[str, Any] = field(default_factory=dict)


CreateOrderResponse = Union[OrderCreated, OrderRejected]

_CREATE_ORDER_KEYS = ("transaction", "tx", "transactions", "requestId", "request_id", "order")


def parse_create_order_response(payload: Any) -> CreateOrderResponse:
    payload = _require_dict(payload, "createOrder")
    transaction = _first(payload, "transaction", "tx", "transactions")
    if isinstance(transaction, list):
        transaction = transaction[0] if transaction else None
    extra = _extra(payload, _CREATE_ORDER_KEYS)

    if not transaction:
        error = payload.get("error") or payload.get("message") or "createOrder returned no transaction"
        return OrderRejected(error=str(error), code=payload.get("code"), extra=extra)
    if not isinstance(transaction, str):
        raise ApiParseError("createOrder transaction must be a base64 string", collaborator="jupiter")

    return OrderCreated(
        transaction=transaction,
        request_id=str(_first(payload, "requestId", "request_id") or ""),
        order=payload.get("order"),
        extra=extra,
    )


@dataclass(frozen=True)
class ExecuteResponse:
    """Result of /ultra, /trigger or /recurring execute."""

    status: Optional[str]
    signature: Optional[str]
    slot: Optional[int] = None
    error: Optional[str] = None
    code: Optional[Any] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return (self.status or "").lower() == "success"

    @classmethod
    def from_dict(cls, payload: Any) -> ExecuteResponse:
        payload = _require_dict(payload, "execute")
        known = ("status", "signature", "slot", "error", "code")
        return cls(
            status=payload.get("status"),
            signature=payload.get("signature"),
            slot=_optional_int(payload.get("slot")),
            error=payload.get("error"),
            code=payload.get("code"),
            extra=_extra(payload, known),
        )
