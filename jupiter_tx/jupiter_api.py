"""
Jupiter API client.

Covers the endpoints the pipeline needs:
- /swap/v1: quote, swap (prebuilt transaction), swap-instructions
- /ultra/v1: order, execute
- /trigger/v1 and /recurring/v1: createOrder, execute

Usage:
    async with JupiterClient(config) as api:
        quote = await api.get_quote(QuoteRequest(amount=1_000_000))
        ixs = await api.get_swap_instructions(quote, user_public_key="...")

No retries: a failed call raises and the caller decides what to do.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from jupiter_tx.config import PipelineConfig
from jupiter_tx.errors import ApiParseError, TransportError
from jupiter_tx.models import (
    CreateOrderResponse,
    ExecuteResponse,
    QuoteRequest,
    QuoteResponse,
    RecurringOrderRequest,
    SwapInstructionsResponse,
    SwapTransactionResponse,
    TriggerOrderRequest,
    UltraOrderRequest,
    UltraOrderResponse,
    parse_create_order_response,
)

logger = logging.getLogger(__name__)

USER_AGENT = "jupiter-tx/0.1"


class JupiterClient:
    """Async Jupiter API client. Owns its httpx client unless one is passed in."""

    def __init__(self, config: PipelineConfig, http_client: Optional[httpx.AsyncClient] = None):
        self._config = config
        self._fee = config.fee
        self._owns_client = http_client is None

        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        if config.api_key:
            headers["X-API-KEY"] = config.api_key

        if http_client is None:
            self._client = httpx.AsyncClient(
                base_url=config.jupiter_api_url,
                timeout=config.http_timeout_seconds,
                headers=headers,
            )
        else:
            self._client = http_client
            self._client.headers.update(headers)
            if not str(self._client.base_url):
                self._client.base_url = config.jupiter_api_url

    async def __aenter__(self) -> "JupiterClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, json=json_payload)
        except httpx.HTTPError as e:
            logger.error(f"Jupiter {method} {path} failed: {e}")
            raise TransportError(f"Jupiter {path} request failed: {e}", collaborator="jupiter") from e

        try:
            data = response.json()
        except ValueError as e:
            if response.is_error:
                raise TransportError(
                    f"Jupiter {path} returned HTTP {response.status_code}",
                    collaborator="jupiter",
                    status_code=response.status_code,
                ) from e
            raise ApiParseError(f"Jupiter {path} returned non-JSON body", collaborator="jupiter") from e

        if response.is_error:
            # createOrder and execute report business failures with a JSON body;
            # let those through to the typed parsers.
            if (
                isinstance(data, dict)
                and path.endswith(("createOrder", "execute"))
                and any(data.get(key) for key in ("error", "code", "status"))
            ):
                logger.warning(f"Jupiter {path} returned HTTP {response.status_code}: {data.get('error')}")
                return data
            raise TransportError(
                f"Jupiter {path} returned HTTP {response.status_code}: {data}",
                collaborator="jupiter",
                status_code=response.status_code,
            )
        return data

    # ------------------------------------------------------------------
    # Swap API
    # ------------------------------------------------------------------

    async def get_quote(self, request: QuoteRequest) -> QuoteResponse:
        params: Dict[str, Any] = {
            "inputMint": request.input_mint,
            "outputMint": request.output_mint,
            "amount": str(request.amount),
            "slippageBps": request.slippage_bps,
        }
        if self._fee:
            params["platformFeeBps"] = self._fee.bps

        quote = QuoteResponse.from_dict(await self._request("GET", "/swap/v1/quote", params=params))
        logger.debug(
            f"Got quote: {request.input_mint[:8]}... -> {request.output_mint[:8]}... "
            f"in={quote.in_amount} out={quote.out_amount}"
        )
        return quote

    def _swap_body(self, quote: QuoteResponse, user_public_key: str) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "quoteResponse": quote.raw,
            "userPublicKey": user_public_key,
            "payer": user_public_key,
        }
        if self._fee:
            body["feeAccount"] = self._fee.account
        return body

    async def get_swap_transaction(self, quote: QuoteResponse, user_public_key: str) -> SwapTransactionResponse:
        data = await self._request("POST", "/swap/v1/swap", json_payload=self._swap_body(quote, user_public_key))
        return SwapTransactionResponse.from_dict(data)

    async def get_swap_instructions(self, quote: QuoteResponse, user_public_key: str) -> SwapInstructionsResponse:
        body = self._swap_body(quote, user_public_key)
        body["instructionFormat"] = "json"
        data = await self._request("POST", "/swap/v1/swap-instructions", json_payload=body)
        return SwapInstructionsResponse.from_dict(data)

    # ------------------------------------------------------------------
    # Ultra
    # ------------------------------------------------------------------

    async def get_ultra_order(self, request: UltraOrderRequest) -> UltraOrderResponse:
        params: Dict[str, Any] = {
            "inputMint": request.input_mint,
            "outputMint": request.output_mint,
            "amount": str(request.amount),
            "taker": request.taker,
        }
        if self._fee:
            params["referralAccount"] = self._fee.account
            params["referralFee"] = self._fee.bps
        return UltraOrderResponse.from_dict(await self._request("GET", "/ultra/v1/order", params=params))

    async def execute_ultra(self, signed_transaction: str, request_id: str) -> ExecuteResponse:
        return await self._execute("/ultra/v1/execute", signed_transaction, request_id)

    # ------------------------------------------------------------------
    # Trigger / Recurring
    # ------------------------------------------------------------------

    async def create_trigger_order(self, request: TriggerOrderRequest) -> CreateOrderResponse:
        params: Dict[str, Any] = {
            "makingAmount": str(request.making_amount),
            "takingAmount": str(request.taking_amount),
        }
        if self._fee:
            params["feeBps"] = self._fee.bps
        body = {
            "inputMint": request.input_mint,
            "outputMint": request.output_mint,
            "maker": request.maker,
            "payer": request.maker,
            "params": params,
        }
        return parse_create_order_response(
            await self._request("POST", "/trigger/v1/createOrder", json_payload=body)
        )

    async def execute_trigger(self, signed_transaction: str, request_id: str) -> ExecuteResponse:
        return await self._execute("/trigger/v1/execute", signed_transaction, request_id)

    async def create_recurring_order(self, request: RecurringOrderRequest) -> CreateOrderResponse:
        body = {
            "user": request.user,
            "inputMint": request.input_mint,
            "outputMint": request.output_mint,
            "params": {
                "time": {
                    "inAmount": request.in_amount,
                    "numberOfOrders": request.number_of_orders,
                    "interval": request.interval_seconds,
                }
            },
        }
        return parse_create_order_response(
            await self._request("POST", "/recurring/v1/createOrder", json_payload=body)
        )

    async def execute_recurring(self, signed_transaction: str, request_id: str) -> ExecuteResponse:
        return await self._execute("/recurring/v1/execute", signed_transaction, request_id)

    async def _execute(self, path: str, signed_transaction: str, request_id: str) -> ExecuteResponse:
        body = {"signedTransaction": signed_transaction, "requestId": request_id}
        return ExecuteResponse.from_dict(await self._request("POST", path, json_payload=body))
