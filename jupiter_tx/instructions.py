"""Instruction decoding.

Jupiter describes instructions either as JSON objects (program id, account
metas, base64 data) or, for the legacy format, as an opaque base64 blob of a
pre-compiled instruction. Only the JSON form can be turned into an
executable instruction: a compiled instruction references accounts by index
into a message we do not have, so its signer/writable flags are lost.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, List, Optional, Tuple, Union

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from jupiter_tx.errors import (
    ApiParseError,
    EmptyInstructionSet,
    InvalidAddress,
    InvalidEncoding,
    UnsupportedFormat,
)

if TYPE_CHECKING:
    from jupiter_tx.models import SwapInstructionsResponse

logger = logging.getLogger(__name__)

LEGACY_FORMAT_MESSAGE = (
    "legacy compiled instruction returned; "
    're-issue the API call with "instructionFormat": "json"'
)


class AccessMode(str, Enum):
    WRITABLE_SIGNER = "writable_signer"
    READONLY_SIGNER = "readonly_signer"
    WRITABLE = "writable"
    READONLY = "readonly"

    @classmethod
    def from_flags(cls, is_signer: bool, is_writable: bool) -> AccessMode:
        if is_signer:
            return cls.WRITABLE_SIGNER if is_writable else cls.READONLY_SIGNER
        return cls.WRITABLE if is_writable else cls.READONLY

    @property
    def is_signer(self) -> bool:
        return self in (AccessMode.WRITABLE_SIGNER, AccessMode.READONLY_SIGNER)

    @property
    def is_writable(self) -> bool:
        return self in (AccessMode.WRITABLE_SIGNER, AccessMode.WRITABLE)

    def account_meta(self, pubkey: Pubkey) -> AccountMeta:
        return AccountMeta(pubkey, self.is_signer, self.is_writable)


@dataclass(frozen=True)
class AccountRef:
    pubkey: str
    is_signer: bool
    is_writable: bool

    @property
    def access_mode(self) -> AccessMode:
        return AccessMode.from_flags(self.is_signer, self.is_writable)


@dataclass(frozen=True)
class StructuredInstruction:
    """JSON instruction: program id, ordered account refs, base64 payload."""

    program_id: str
    accounts: Tuple[AccountRef, ...]
    data: str


@dataclass(frozen=True)
class LegacyEncodedInstruction:
    """Pre-compiled base64 instruction. Never executable here."""

    blob: str


InstructionDescriptor = Union[StructuredInstruction, LegacyEncodedInstruction]


def _flag(account: dict, name: str) -> bool:
    value = account[name]
    if not isinstance(value, bool):
        raise ApiParseError(f"{name} must be a boolean, got {value!r}", collaborator="jupiter")
    return value


def parse_instruction_descriptor(raw: Any) -> InstructionDescriptor:
    """Turn one JSON value from the API into a typed descriptor."""
    if isinstance(raw, str):
        return LegacyEncodedInstruction(blob=raw)
    if not isinstance(raw, dict):
        raise ApiParseError(
            f"instruction must be an object or string, got {type(raw).__name__}",
            collaborator="jupiter",
        )

    try:
        program_id = raw["programId"]
        data = raw["data"]
        accounts = tuple(
            AccountRef(
                pubkey=account["pubkey"],
                is_signer=_flag(account, "isSigner"),
                is_writable=_flag(account, "isWritable"),
            )
            for account in raw["accounts"]
        )
    except (KeyError, TypeError) as e:
        raise ApiParseError(f"malformed instruction object: missing {e}", collaborator="jupiter") from e

    if not isinstance(program_id, str) or not isinstance(data, str):
        raise ApiParseError("programId and data must be strings", collaborator="jupiter")
    return StructuredInstruction(program_id=program_id, accounts=accounts, data=data)


def parse_instruction_list(raw: Any) -> Tuple[InstructionDescriptor, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ApiParseError("instruction list must be an array", collaborator="jupiter")
    return tuple(parse_instruction_descriptor(item) for item in raw)


def parse_pubkey(value: str, what: str = "address") -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except (ValueError, TypeError) as e:
        raise InvalidAddress(f"invalid {what} {value!r}: {e}", address=str(value)) from e


def decode_instruction_data(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidEncoding(f"instruction data is not valid base64: {e}") from e


def encode_instruction_data(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode(descriptor: InstructionDescriptor) -> Instruction:
    """Decode one descriptor into an executable instruction.

    Account order is preserved exactly as received.

    Raises:
        UnsupportedFormat: descriptor is the legacy pre-compiled form
        InvalidAddress: program id or an account is not a public key
        InvalidEncoding: payload is not base64
    """
    if isinstance(descriptor, LegacyEncodedInstruction):
        raise UnsupportedFormat(LEGACY_FORMAT_MESSAGE)

    program_id = parse_pubkey(descriptor.program_id, "program id")
    accounts = [
        account.access_mode.account_meta(parse_pubkey(account.pubkey, "account"))
        for account in descriptor.accounts
    ]
    return Instruction(program_id, decode_instruction_data(descriptor.data), accounts)


def decode_all(descriptors: Iterable[InstructionDescriptor]) -> List[Instruction]:
    return [decode(descriptor) for descriptor in descriptors]


def decode_swap_instructions(response: SwapInstructionsResponse) -> List[Instruction]:
    """Decode a swap-instructions response into the final instruction list.

    Order: token ledger, compute budget, setup, swap, cleanup.
    """
    if response.swap_instruction is None:
        raise EmptyInstructionSet(
            "swap-instructions response has no swap instruction; check amount/slippage"
        )

    ordered: List[InstructionDescriptor] = []
    if response.token_ledger_instruction is not None:
        ordered.append(response.token_ledger_instruction)
    ordered.extend(response.compute_budget_instructions)
    ordered.extend(response.setup_instructions)
    ordered.append(response.swap_instruction)
    if response.cleanup_instruction is not None:
        ordered.append(response.cleanup_instruction)

    instructions = decode_all(ordered)
    if not instructions:
        raise EmptyInstructionSet("swap-instructions response contained no instructions")

    logger.debug(
        f"Decoded {len(instructions)} instructions "
        f"({len(response.compute_budget_instructions)} compute budget, "
        f"{len(response.setup_instructions)} setup)"
    )
    return instructions


def optional_descriptor(raw: Optional[Any]) -> Optional[InstructionDescriptor]:
    if raw is None:
        return None
    return parse_instruction_descriptor(raw)
