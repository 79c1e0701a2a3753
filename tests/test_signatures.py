import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import to_hex

from cfp_api.errors import InvalidAddress, InvalidSignature
from cfp_api.signatures import (
    SignedAction,
    call_creation_message,
    proposal_message,
    recover_signer,
    registration_message,
    sign_message,
    verify,
)

from conftest import FACTORY, call_id, sign


def test_registration_message_is_decoded_factory_address():
    assert registration_message(FACTORY) == bytes.fromhex("fa" * 20)
    assert registration_message(FACTORY.lower()) == registration_message(FACTORY)


def test_call_creation_message_binds_factory_and_call_id():
    cid = "0x" + "AB" * 32
    msg = call_creation_message(FACTORY, cid)
    assert len(msg) == 52
    assert msg == bytes.fromhex("fa" * 20 + "ab" * 32)


def test_proposal_message_is_raw_hash():
    assert proposal_message(call_id(7)) == (7).to_bytes(32, "big")


def test_verify_returns_signer(alice):
    sig = sign(alice, registration_message(FACTORY))
    assert verify(alice.address, registration_message(FACTORY), sig) == alice.address


def test_verify_is_case_insensitive(alice):
    sig = sign(alice, registration_message(FACTORY))
    assert verify(alice.address.lower(), registration_message(FACTORY), sig) == alice.address


def test_verify_rejects_other_key(alice, bob):
    sig = sign(bob, registration_message(FACTORY))
    with pytest.raises(InvalidSignature):
        verify(alice.address, registration_message(FACTORY), sig)


def test_verify_rejects_other_message(alice):
    sig = sign(alice, registration_message("0x" + "fb" * 20))
    with pytest.raises(InvalidSignature):
        verify(alice.address, registration_message(FACTORY), sig)


def test_hex_text_signature_does_not_verify(alice):
    # Signing the address characters instead of the decoded bytes recovers another key.
    signed = Account.sign_message(encode_defunct(text="fa" * 20), alice.key)
    with pytest.raises(InvalidSignature):
        verify(alice.address, registration_message(FACTORY), to_hex(signed.signature))


@pytest.mark.parametrize("signature", [
    "",
    "0x",
    "0x1234",
    "ab" * 65,
    "0x" + "zz" * 65,
    "0x" + "ab" * 66,
    "0x" + "ff" * 65,
    "0x" + "00" * 64 + "1b",
    "0x" + "ff" * 64 + "1c",
    None,
    12345,
])
def test_malformed_signature_is_invalid_signature(alice, signature):
    with pytest.raises(InvalidSignature):
        verify(alice.address, registration_message(FACTORY), signature)


@pytest.mark.parametrize("address", ["", "0x123", "fa" * 20, "0x" + "gg" * 20])
def test_malformed_address_is_rejected(alice, address):
    sig = sign(alice, registration_message(FACTORY))
    with pytest.raises(InvalidAddress):
        verify(address, registration_message(FACTORY), sig)


def test_recover_signer_over_call_creation(alice):
    msg = call_creation_message(FACTORY, call_id(1))
    assert recover_signer(msg, sign(alice, msg)) == alice.address


def test_signed_action_verify(alice):
    msg = proposal_message(call_id(3))
    action = SignedAction(actor=alice.address, payload=msg, signature=sign_message(alice.key, msg))
    assert action.verify() == alice.address


def test_unexpected_recovery_errors_propagate(alice, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("backend crashed")

    monkeypatch.setattr(Account, "recover_message", broken)
    with pytest.raises(RuntimeError):
        recover_signer(registration_message(FACTORY), sign(alice, registration_message(FACTORY)))
