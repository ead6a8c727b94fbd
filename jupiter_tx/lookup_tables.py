"""Address lookup table resolution.

Lookup tables only shrink the message: a table that cannot be fetched or
parsed is skipped and the accounts it would have covered stay in the static
key list. Callers that need every table pass ``strict=True``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, Union

from solders.address_lookup_table_account import AddressLookupTable, AddressLookupTableAccount
from solders.pubkey import Pubkey

from jupiter_tx.errors import IncompleteLookupTables, LookupTableParseError

logger = logging.getLogger(__name__)

AccountFetcher = Callable[[Pubkey], Awaitable[Optional[bytes]]]


def parse_lookup_table(key: Pubkey, data: bytes) -> AddressLookupTableAccount:
    """Parse raw account data of an address lookup table."""
    try:
        table = AddressLookupTable.deserialize(data)
    except ValueError as e:
        raise LookupTableParseError(f"invalid lookup table account data: {e}") from e
    return AddressLookupTableAccount(key=key, addresses=list(table.addresses))


async def _load_one(address: Union[Pubkey, str], fetch: AccountFetcher) -> Optional[AddressLookupTableAccount]:
    try:
        key = address if isinstance(address, Pubkey) else Pubkey.from_string(address)
    except ValueError as e:
        logger.warning(f"Skipping lookup table {address!r}: invalid address ({e})")
        return None

    try:
        data = await fetch(key)
    except Exception as e:
        logger.warning(f"Skipping lookup table {str(key)[:16]}...: fetch failed ({e})")
        return None
    if data is None:
        logger.warning(f"Skipping lookup table {str(key)[:16]}...: account not found")
        return None

    try:
        return parse_lookup_table(key, data)
    except LookupTableParseError as e:
        logger.warning(f"Skipping lookup table {str(key)[:16]}...: {e.message}")
        return None


async def resolve_lookup_tables_detailed(
    addresses: Sequence[Union[Pubkey, str]],
    fetch: AccountFetcher,
    *,
    strict: bool = False,
) -> Tuple[List[AddressLookupTableAccount], List[str]]:
    """Resolve tables, returning ``(tables, skipped_addresses)`` in input order.

    With ``strict`` set, any skipped table raises :class:`IncompleteLookupTables`.
    """
    if not addresses:
        return [], []

    results = await asyncio.gather(*(_load_one(address, fetch) for address in addresses))
    tables = [table for table in results if table is not None]
    skipped = [str(address) for address, table in zip(addresses, results) if table is None]

    if strict and skipped:
        raise IncompleteLookupTables(
            f"{len(skipped)} of {len(addresses)} lookup tables could not be resolved",
            missing=skipped,
        )
    if skipped:
        logger.warning(f"Resolved {len(tables)}/{len(addresses)} lookup tables; message will be larger")
    else:
        logger.debug(f"Resolved {len(tables)} lookup tables")
    return tables, skipped


async def resolve_lookup_tables(
    addresses: Sequence[Union[Pubkey, str]],
    fetch: AccountFetcher,
    *,
    strict: bool = False,
) -> List[AddressLookupTableAccount]:
    """Fetch and parse every lookup table, one attempt each.

    Fetches run concurrently; the result keeps the order of ``addresses``.
    Failed tables are skipped unless ``strict`` is set, in which case
    :class:`IncompleteLookupTables` is raised.
    """
    tables, _ = await resolve_lookup_tables_detailed(addresses, fetch, strict=strict)
    return tables
