"""
jupiter_tx - build, sign and submit Jupiter swap transactions on Solana.

The pipeline turns a swap-instructions response into a signed v0
transaction: decode → resolve lookup tables → compile → sign → submit.
"""

from jupiter_tx.compiler import compile_message
from jupiter_tx.config import IntegratorFee, PipelineConfig
from jupiter_tx.errors import JupiterTxError
from jupiter_tx.instructions import decode, decode_swap_instructions
from jupiter_tx.lookup_tables import resolve_lookup_tables
from jupiter_tx.pipeline import (
    BuiltTransaction,
    PipelineResult,
    build_swap_transaction,
    run_recurring,
    run_swap,
    run_swap_instructions,
    run_trigger,
    run_ultra,
)
from jupiter_tx.signer import sign_message
from jupiter_tx.submitter import submit_transaction

__version__ = "0.1.0"

__all__ = [
    "BuiltTransaction",
    "IntegratorFee",
    "JupiterTxError",
    "PipelineConfig",
    "PipelineResult",
    "build_swap_transaction",
    "compile_message",
    "decode",
    "decode_swap_instructions",
    "resolve_lookup_tables",
    "run_recurring",
    "run_swap",
    "run_swap_instructions",
    "run_trigger",
    "run_ultra",
    "sign_message",
    "submit_transaction",
]
