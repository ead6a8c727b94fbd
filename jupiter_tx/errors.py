"""Exception hierarchy for the transaction pipeline.

Every error carries the pipeline ``stage`` it came from and a stable
``code`` so callers can tell "never submitted" apart from "submitted but
not confirmed" without parsing messages.
"""
from typing import Any, Dict, List, Optional


class JupiterTxError(Exception):
    """Base exception for all pipeline errors."""
    code: str = "SYS_001"
    stage: str = "pipeline"

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "stage": self.stage,
            "type": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(JupiterTxError):
    """Configuration error."""
    code = "CFG_001"
    stage = "config"


class KeypairError(ConfigurationError):
    """Signing key could not be loaded. Never includes key data."""
    code = "CFG_002"


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------


class DecodeError(JupiterTxError):
    code = "DEC_000"
    stage = "decode"


class InvalidAddress(DecodeError):
    """A program id or account address is not a valid public key."""
    code = "DEC_001"

    def __init__(self, message: str, address: str = None):
        super().__init__(message, {"address": address})
        self.address = address


class InvalidEncoding(DecodeError):
    """Instruction payload is not valid base64."""
    code = "DEC_002"


class UnsupportedFormat(DecodeError):
    """Pre-compiled (legacy) instruction received instead of the JSON form."""
    code = "DEC_003"


class EmptyInstructionSet(DecodeError):
    """No executable instructions, or the mandatory swap instruction is missing."""
    code = "DEC_004"


# ---------------------------------------------------------------------------
# Resolve
# ---------------------------------------------------------------------------


class LookupTableError(JupiterTxError):
    code = "ALT_000"
    stage = "resolve"


class LookupTableParseError(LookupTableError):
    """Account data is not an initialized address lookup table."""
    code = "ALT_001"


class IncompleteLookupTables(LookupTableError):
    """Strict resolution could not load every requested table."""
    code = "ALT_002"

    def __init__(self, message: str, missing: List[str]):
        super().__init__(message, {"missing": missing})
        self.missing = missing


# ---------------------------------------------------------------------------
# Compile
# ---------------------------------------------------------------------------


class CompileError(JupiterTxError):
    code = "CMP_000"
    stage = "compile"


class TooManyAccounts(CompileError):
    code = "CMP_001"


class MissingPayer(CompileError):
    code = "CMP_002"


# ---------------------------------------------------------------------------
# Sign
# ---------------------------------------------------------------------------


class SigningError(JupiterTxError):
    code = "SIG_000"
    stage = "sign"


class UnknownSigner(SigningError):
    """Keypair supplied for an account the message does not require to sign."""
    code = "SIG_001"

    def __init__(self, message: str, pubkey: str = None):
        super().__init__(message, {"pubkey": pubkey})
        self.pubkey = pubkey


class MissingPayerSignature(SigningError):
    code = "SIG_002"


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------


class SubmitError(JupiterTxError):
    """Submission failed.

    ``submitted`` is True once the node accepted the bytes, so a caller can
    distinguish "signed but not confirmed" from "never submitted".
    """
    code = "SUB_000"
    stage = "submit"

    def __init__(
        self,
        message: str,
        signature: Optional[str] = None,
        submitted: bool = False,
        error_hint: Optional[str] = None,
    ):
        super().__init__(
            message,
            {"signature": signature, "submitted": submitted, "error_hint": error_hint},
        )
        self.signature = signature
        self.submitted = submitted
        self.error_hint = error_hint


class TransactionRejected(SubmitError):
    """Node validation failure: bad signature, stale blockhash, simulation error."""
    code = "SUB_001"


class ConfirmationTimeout(SubmitError):
    code = "SUB_002"


class SubmitTransportError(SubmitError):
    """Network failure before any node response."""
    code = "SUB_003"


# ---------------------------------------------------------------------------
# Collaborators (Jupiter API, RPC node)
# ---------------------------------------------------------------------------


class CollaboratorError(JupiterTxError):
    code = "EXT_000"
    stage = "collaborator"

    def __init__(self, message: str, collaborator: str = None, status_code: int = None):
        super().__init__(message, {"collaborator": collaborator, "status_code": status_code})
        self.collaborator = collaborator
        self.status_code = status_code


class TransportError(CollaboratorError):
    """External API call failed at the HTTP/connection level."""
    code = "EXT_001"


class ApiParseError(CollaboratorError):
    """External API returned a payload of the wrong shape."""
    code = "EXT_002"


class OrderCreationFailed(CollaboratorError):
    """createOrder answered without a transaction to sign."""
    code = "EXT_003"
