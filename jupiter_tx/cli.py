"""
Command line entry point.

Usage:
    jupiter-tx swap-instructions --amount 50000000
    jupiter-tx ultra --json
    python -m jupiter_tx trigger --making-amount 30000000 --taking-amount 5000000

Configuration comes from the environment (and a .env file, if present).
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from solders.keypair import Keypair

from jupiter_tx.config import PipelineConfig
from jupiter_tx.errors import JupiterTxError
from jupiter_tx.logging_config import setup_logging
from jupiter_tx.models import (
    SOL_MINT,
    USDC_MINT,
    QuoteRequest,
    RecurringOrderRequest,
    TriggerOrderRequest,
    UltraOrderRequest,
)
from jupiter_tx.pipeline import (
    PipelineResult,
    open_clients,
    run_recurring,
    run_swap,
    run_swap_instructions,
    run_trigger,
    run_ultra,
)
from jupiter_tx.wallet import load_keypair

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--json", action="store_true", help="Print machine-readable JSON")
    common.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    common.add_argument("--log-json", action="store_true", help="Emit JSON log lines on stderr")
    common.add_argument("--log-file", type=Path, default=None, help="Also write JSON logs to this file")
    common.add_argument("--env-file", type=Path, default=None, help="Load environment from this file")
    common.add_argument("--input-mint", default=SOL_MINT, help="Mint to sell (default: SOL)")
    common.add_argument("--output-mint", default=USDC_MINT, help="Mint to buy (default: USDC)")

    parser = argparse.ArgumentParser(
        prog="jupiter-tx",
        description="Build, sign and submit Jupiter transactions",
    )
    sub = parser.add_subparsers(dest="flow", required=True)

    for name in ("swap", "swap-instructions"):
        p = sub.add_parser(name, parents=[common], help=f"Quote and {name}")
        p.add_argument("--amount", type=int, default=50_000_000, help="Input amount in base units")
        p.add_argument("--slippage-bps", type=int, default=50, help="Slippage tolerance (default: 50)")
        if name == "swap-instructions":
            p.add_argument(
                "--strict-lookup-tables",
                action="store_true",
                help="Fail if any address lookup table cannot be loaded",
            )

    p = sub.add_parser("ultra", parents=[common], help="Ultra order and execute")
    p.add_argument("--amount", type=int, default=10_000_000, help="Input amount in base units")

    p = sub.add_parser("trigger", parents=[common], help="Create and execute a limit order")
    p.add_argument("--making-amount", type=int, default=30_000_000)
    p.add_argument("--taking-amount", type=int, default=5_000_000)

    p = sub.add_parser("recurring", parents=[common], help="Create and execute a recurring order")
    p.add_argument("--in-amount", type=int, default=50_000_000)
    p.add_argument("--number-of-orders", type=int, default=2)
    p.add_argument("--interval", type=int, default=86_400, help="Seconds between orders")

    return parser


async def run_flow(args: argparse.Namespace, config: PipelineConfig, keypair: Keypair) -> PipelineResult:
    user = str(keypair.pubkey())
    async with open_clients(config) as (jupiter, ledger):
        if args.flow in ("swap", "swap-instructions"):
            request = QuoteRequest(
                input_mint=args.input_mint,
                output_mint=args.output_mint,
                amount=args.amount,
                slippage_bps=args.slippage_bps,
            )
            if args.flow == "swap":
                return await run_swap(config, keypair, jupiter=jupiter, ledger=ledger, request=request)
            return await run_swap_instructions(
                config,
                keypair,
                jupiter=jupiter,
                ledger=ledger,
                request=request,
                strict_lookup_tables=args.strict_lookup_tables,
            )

        if args.flow == "ultra":
            request = UltraOrderRequest(
                taker=user, input_mint=args.input_mint, output_mint=args.output_mint, amount=args.amount
            )
            return await run_ultra(config, keypair, jupiter=jupiter, request=request)

        if args.flow == "trigger":
            request = TriggerOrderRequest(
                maker=user,
                input_mint=args.input_mint,
                output_mint=args.output_mint,
                making_amount=args.making_amount,
                taking_amount=args.taking_amount,
            )
            return await run_trigger(config, keypair, jupiter=jupiter, request=request)

        request = RecurringOrderRequest(
            user=user,
            input_mint=args.input_mint,
            output_mint=args.output_mint,
            in_amount=args.in_amount,
            number_of_orders=args.number_of_orders,
            interval_seconds=args.interval,
        )
        return await run_recurring(config, keypair, jupiter=jupiter, request=request)


def _print_result(result: PipelineResult, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.to_dict(), default=str))
        return
    print(f"{result.flow}: {result.status or 'ok'}")
    print(f"  signature: {result.signature}")
    if result.slot is not None:
        print(f"  slot: {result.slot}")
    for key, value in result.extra.items():
        print(f"  {key}: {value}")


def _print_error(error: JupiterTxError, as_json: bool) -> None:
    if as_json:
        print(json.dumps({"error": error.to_dict()}, default=str))
        return
    print(f"error [{error.code}] {error.stage}: {error.message}", file=sys.stderr)
    for key, value in error.details.items():
        if value is not None:
            print(f"  {key}: {value}", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)
    setup_logging(
        level="DEBUG" if args.verbose else "INFO",
        json_format=args.log_json,
        log_file=args.log_file,
    )

    try:
        config = PipelineConfig.from_env(env_file=args.env_file)
        keypair = load_keypair(config)
        result = asyncio.run(run_flow(args, config, keypair))
    except JupiterTxError as e:
        logger.debug(f"{args.flow} failed", exc_info=True)
        _print_error(e, args.json)
        return 1
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130

    _print_result(result, args.json)
    return 0


if __name__ == "__main__":
    sys.exit(main())
