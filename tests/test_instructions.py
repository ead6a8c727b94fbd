"""
test_instructions.py: Instruction decoding.

Tests:
    1. Account order and flags survive decoding
    2. Base64 payloads round-trip, including the empty payload
    3. Legacy pre-compiled instructions are rejected with UnsupportedFormat
    4. Missing swap instruction raises EmptyInstructionSet
    5. Swap-instructions responses decode in ledger/budget/setup/swap/cleanup order
"""

import pytest
from solders.pubkey import Pubkey

from conftest import COMPUTE_BUDGET_PROGRAM, ix_json, swap_instructions_payload
from jupiter_tx.errors import (
    ApiParseError,
    EmptyInstructionSet,
    InvalidAddress,
    InvalidEncoding,
    UnsupportedFormat,
)
from jupiter_tx.instructions import (
    AccessMode,
    LegacyEncodedInstruction,
    StructuredInstruction,
    decode,
    decode_instruction_data,
    decode_swap_instructions,
    encode_instruction_data,
    parse_instruction_descriptor,
)
from jupiter_tx.models import SwapInstructionsResponse


# ─── Descriptor parsing ───────────────────────────────────────────────────────

class TestParseDescriptor:
    def test_object_becomes_structured(self):
        program = Pubkey.new_unique()
        descriptor = parse_instruction_descriptor(ix_json(program, [(Pubkey.new_unique(), False, True)]))
        assert isinstance(descriptor, StructuredInstruction)
        assert descriptor.program_id == str(program)
        assert descriptor.accounts[0].access_mode is AccessMode.WRITABLE

    def test_string_becomes_legacy(self):
        descriptor = parse_instruction_descriptor("AQID")
        assert descriptor == LegacyEncodedInstruction(blob="AQID")

    def test_missing_field_raises_parse_error(self):
        raw = ix_json(Pubkey.new_unique())
        del raw["accounts"]
        with pytest.raises(ApiParseError):
            parse_instruction_descriptor(raw)

    def test_non_boolean_flag_raises_parse_error(self):
        raw = ix_json(Pubkey.new_unique(), [(Pubkey.new_unique(), False, False)])
        raw["accounts"][0]["isSigner"] = "false"
        with pytest.raises(ApiParseError, match="isSigner"):
            parse_instruction_descriptor(raw)

    def test_number_is_not_an_instruction(self):
        with pytest.raises(ApiParseError):
            parse_instruction_descriptor(7)


# ─── Decoding ─────────────────────────────────────────────────────────────────

class TestDecode:
    def test_preserves_account_order_and_flags(self):
        program = Pubkey.new_unique()
        accounts = [
            (Pubkey.new_unique(), True, True),
            (Pubkey.new_unique(), False, False),
            (Pubkey.new_unique(), True, False),
            (Pubkey.new_unique(), False, True),
        ]
        ix = decode(parse_instruction_descriptor(ix_json(program, accounts, b"\x01\x02")))

        assert ix.program_id == program
        assert [(m.pubkey, m.is_signer, m.is_writable) for m in ix.accounts] == accounts
        assert bytes(ix.data) == b"\x01\x02"

    def test_duplicate_accounts_are_kept(self):
        key = Pubkey.new_unique()
        ix = decode(parse_instruction_descriptor(ix_json(Pubkey.new_unique(), [(key, False, True), (key, False, True)])))
        assert [m.pubkey for m in ix.accounts] == [key, key]

    @pytest.mark.parametrize("payload", [b"", b"\x00", bytes(range(256))])
    def test_payload_round_trip(self, payload):
        assert decode_instruction_data(encode_instruction_data(payload)) == payload
        ix = decode(parse_instruction_descriptor(ix_json(Pubkey.new_unique(), data=payload)))
        assert bytes(ix.data) == payload

    def test_legacy_format_is_unsupported(self):
        with pytest.raises(UnsupportedFormat, match="instructionFormat"):
            decode(LegacyEncodedInstruction(blob="AQIDBA=="))

    def test_invalid_program_id(self):
        raw = ix_json(Pubkey.new_unique())
        raw["programId"] = "not-a-key"
        with pytest.raises(InvalidAddress) as excinfo:
            decode(parse_instruction_descriptor(raw))
        assert excinfo.value.address == "not-a-key"

    def test_invalid_account_address(self):
        raw = ix_json(Pubkey.new_unique(), [(Pubkey.new_unique(), False, False)])
        raw["accounts"][0]["pubkey"] = "0OIl"
        with pytest.raises(InvalidAddress):
            decode(parse_instruction_descriptor(raw))

    def test_invalid_base64(self):
        raw = ix_json(Pubkey.new_unique())
        raw["data"] = "***"
        with pytest.raises(InvalidEncoding):
            decode(parse_instruction_descriptor(raw))


# ─── Swap-instructions responses ──────────────────────────────────────────────

class TestDecodeSwapInstructions:
    def test_order_is_ledger_budget_setup_swap_cleanup(self):
        user = Pubkey.new_unique()
        ledger_program = Pubkey.new_unique()
        payload = swap_instructions_payload(user, [Pubkey.new_unique() for _ in range(3)])
        payload["tokenLedgerInstruction"] = ix_json(ledger_program, [(user, True, True)])
        response = SwapInstructionsResponse.from_dict(payload)

        instructions = decode_swap_instructions(response)

        compute_budget = Pubkey.from_string(COMPUTE_BUDGET_PROGRAM)
        assert len(instructions) == 6
        assert instructions[0].program_id == ledger_program
        assert [ix.program_id for ix in instructions[1:3]] == [compute_budget, compute_budget]
        assert bytes(instructions[3].data) == b"\x01"
        assert instructions[4].program_id == Pubkey.from_string(payload["swapInstruction"]["programId"])
        assert bytes(instructions[5].data) == b"\x09"

    def test_optional_groups_may_be_absent(self):
        response = SwapInstructionsResponse.from_dict(
            {"swapInstruction": ix_json(Pubkey.new_unique()), "computeBudgetInstructions": None}
        )
        assert len(decode_swap_instructions(response)) == 1

    def test_missing_swap_instruction(self):
        response = SwapInstructionsResponse.from_dict({"setupInstructions": [], "computeBudgetInstructions": []})
        with pytest.raises(EmptyInstructionSet):
            decode_swap_instructions(response)

    def test_legacy_setup_instruction_fails_whole_response(self):
        payload = swap_instructions_payload(Pubkey.new_unique(), [Pubkey.new_unique()])
        payload["setupInstructions"].append("AQIDBA==")
        response = SwapInstructionsResponse.from_dict(payload)
        with pytest.raises(UnsupportedFormat):
            decode_swap_instructions(response)

    def test_unknown_fields_are_kept(self):
        payload = swap_instructions_payload(Pubkey.new_unique(), [Pubkey.new_unique()])
        response = SwapInstructionsResponse.from_dict(payload)
        assert response.extra == {"prioritizationFeeLamports": 1000}
