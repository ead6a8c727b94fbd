"""Versioned (v0) message compilation.

Thin typed wrapper around ``solders.message.MessageV0.try_compile``: inputs
are checked up front so the common failures surface as pipeline errors.

Key order inside the message:
    payer, writable signers, readonly signers, writable non-signers,
    readonly non-signers, then looked-up writable keys, then looked-up
    readonly keys.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Set

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import MessageV0
from solders.pubkey import Pubkey

from jupiter_tx.errors import CompileError, MissingPayer, TooManyAccounts

logger = logging.getLogger(__name__)

# Account indexes are u8.
MAX_ACCOUNTS = 256


def unique_account_keys(payer: Pubkey, instructions: Sequence[Instruction]) -> Set[Pubkey]:
    """Every distinct key the message will address, payer and programs included."""
    keys = {payer}
    for ix in instructions:
        keys.add(ix.program_id)
        keys.update(account.pubkey for account in ix.accounts)
    return keys


def compile_message(
    payer: Optional[Pubkey],
    instructions: Sequence[Instruction],
    lookup_tables: Sequence[AddressLookupTableAccount],
    recent_blockhash: Hash,
) -> MessageV0:
    """Compile instructions into a v0 message.

    Raises:
        MissingPayer: no fee payer supplied
        TooManyAccounts: the account set does not fit the u8 index space
        CompileError: the message could not be compiled (e.g. a lookup
            table index above 255)
    """
    if payer is None:
        raise MissingPayer("a fee payer is required to compile a message")

    # Static and looked-up keys never overlap, so this bounds every index.
    key_count = len(unique_account_keys(payer, instructions))
    if key_count > MAX_ACCOUNTS:
        raise TooManyAccounts(f"{key_count} account keys exceed the addressing limit of {MAX_ACCOUNTS}")

    try:
        message = MessageV0.try_compile(payer, list(instructions), list(lookup_tables), recent_blockhash)
    except Exception as e:
        raise CompileError(f"message compilation failed: {e}") from e

    looked_up = sum(
        len(bytes(lookup.writable_indexes)) + len(bytes(lookup.readonly_indexes))
        for lookup in message.address_table_lookups
    )
    logger.debug(
        f"Compiled message: {len(message.instructions)} instructions, {len(message.account_keys)} static keys, "
        f"{looked_up} looked up via {len(message.address_table_lookups)} tables"
    )
    return message
