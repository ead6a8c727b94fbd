"""Transaction signing.

The message is serialized once; every keypair signs that same byte string
and the signature lands at the slot of its key among the required signers.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import List, Optional, Sequence, Union

from solders.keypair import Keypair
from solders.message import Message, MessageV0, to_bytes_versioned
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from jupiter_tx.errors import ApiParseError, MissingPayerSignature, UnknownSigner

logger = logging.getLogger(__name__)

VersionedMessage = Union[Message, MessageV0]


def required_signers(message: VersionedMessage) -> List[Pubkey]:
    return list(message.account_keys[: message.header.num_required_signatures])


def _fill_signatures(
    message: VersionedMessage,
    keypairs: Sequence[Keypair],
    existing: Optional[Sequence[Signature]] = None,
    require_payer: bool = True,
) -> List[Signature]:
    signers = required_signers(message)
    signatures = list(existing or [])
    if len(signatures) != len(signers):
        signatures = [Signature.default()] * len(signers)

    message_bytes = to_bytes_versioned(message)
    for keypair in keypairs:
        pubkey = keypair.pubkey()
        try:
            position = signers.index(pubkey)
        except ValueError:
            raise UnknownSigner(
                f"{pubkey} is not a required signer of this message", pubkey=str(pubkey)
            ) from None
        signatures[position] = keypair.sign_message(message_bytes)

    if require_payer and signers and signatures[0] == Signature.default():
        raise MissingPayerSignature(f"fee payer {signers[0]} did not sign the transaction")
    return signatures


def sign_message(message: VersionedMessage, keypairs: Sequence[Keypair]) -> VersionedTransaction:
    """Sign a compiled message with every supplied keypair.

    Raises:
        UnknownSigner: a keypair is not among the message's required signers
        MissingPayerSignature: no keypair for the fee payer was supplied
    """
    signatures = _fill_signatures(message, keypairs)
    tx = VersionedTransaction.populate(message, signatures)
    logger.debug(f"Signed transaction {str(signatures[0])[:16]}... with {len(keypairs)} key(s)")
    return tx


def decode_transaction(encoded: str) -> VersionedTransaction:
    """Decode a base64 transaction as returned by the Jupiter API."""
    try:
        return VersionedTransaction.from_bytes(base64.b64decode(encoded, validate=True))
    except (binascii.Error, ValueError) as e:
        raise ApiParseError(f"transaction is not a valid base64 versioned transaction: {e}",
                            collaborator="jupiter") from e


def sign_prebuilt_transaction(
    transaction: Union[str, VersionedTransaction],
    keypairs: Sequence[Keypair],
) -> VersionedTransaction:
    """Sign a transaction built by the API.

    Signatures already present for keys we do not hold are kept. The fee
    payer may be an API key (gasless orders) that signs at execute time, so
    an empty payer slot is only an error once the transaction reaches the
    RPC node.
    """
    tx = decode_transaction(transaction) if isinstance(transaction, str) else transaction
    signatures = _fill_signatures(tx.message, keypairs, existing=tx.signatures, require_payer=False)
    return VersionedTransaction.populate(tx.message, signatures)


def verify_signatures(tx: VersionedTransaction) -> bool:
    """True when every non-default signature verifies against the message."""
    message_bytes = to_bytes_versioned(tx.message)
    signers = required_signers(tx.message)
    if len(tx.signatures) != len(signers):
        return False
    default = Signature.default()
    return all(
        signature == default or signature.verify(pubkey, message_bytes)
        for pubkey, signature in zip(signers, tx.signatures)
    )


def encode_transaction(tx: VersionedTransaction) -> str:
    return base64.b64encode(bytes(tx)).decode("ascii")
