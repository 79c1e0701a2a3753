"""
Signed-action verification.

A client proves control of an address by personal-signing (EIP-191) a
message that binds the operation to a contract:

    registration:    bytes(lower(strip0x(factory)))
    call creation:   bytes(lower(strip0x(factory)) ++ lower(strip0x(callId)))
    proposal:        bytes(strip0x(proposalHash))

The hex text is decoded to raw bytes before signing and recovery. Signing
the hex characters as UTF-8 recovers a different address.
"""

from dataclasses import dataclass

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as KeyValidationError
from eth_utils import to_hex

from .errors import InvalidSignature
from .security import validate_address, validate_signature
from .util import same_address, strip_0x


@dataclass(frozen=True)
class SignedAction:
    """Transient (actor, payload, signature) triple for one verification."""
    actor: str
    payload: bytes
    signature: str

    def verify(self) -> str:
        return verify(self.actor, self.payload, self.signature)


# ============================================================
# Message construction
# ============================================================

def _hex_message(hex_text: str) -> bytes:
    try:
        return bytes.fromhex(hex_text)
    except ValueError:
        raise InvalidSignature()


def registration_message(contract_address: str) -> bytes:
    """Message for account registration: the contract address alone."""
    return _hex_message(strip_0x(contract_address).lower())


def call_creation_message(contract_address: str, call_id: str) -> bytes:
    """Message for call creation: contract address followed by the call id."""
    return _hex_message(strip_0x(contract_address).lower() + strip_0x(call_id).lower())


def proposal_message(proposal_hash: str) -> bytes:
    """Message for signed proposal submission: the raw content hash, unbound to any contract."""
    return _hex_message(strip_0x(proposal_hash))


# ============================================================
# Recovery
# ============================================================

def recover_signer(payload: bytes, signature: str) -> str:
    """
    Recover the checksummed signer of a personal-signed payload.

    Raises:
        InvalidSignature: If the signature is malformed or does not decode
            to a valid curve point
    """
    validate_signature(signature)
    try:
        return Account.recover_message(encode_defunct(primitive=payload), signature=signature)
    except (ValueError, TypeError, BadSignature, KeyValidationError):
        raise InvalidSignature() from None


def verify(claimed_address: str, payload: bytes, signature: str) -> str:
    """
    Check that `signature` over `payload` was produced by `claimed_address`.

    Args:
        claimed_address: 0x-prefixed 40 hex character address
        payload: Raw message bytes (see the message builders above)
        signature: 0x-prefixed 130 hex character signature

    Returns:
        The recovered signer, checksummed

    Raises:
        InvalidAddress: If claimed_address is malformed
        InvalidSignature: If the signature is malformed, unrecoverable or
            belongs to another key
    """
    validate_address(claimed_address)
    signer = recover_signer(payload, signature)
    if not same_address(signer, claimed_address):
        raise InvalidSignature()
    return signer


def sign_message(private_key: str, payload: bytes) -> str:
    """Personal-sign a payload, returning the 0x-prefixed 65-byte signature."""
    signed = Account.sign_message(encode_defunct(primitive=payload), private_key)
    return to_hex(signed.signature)
