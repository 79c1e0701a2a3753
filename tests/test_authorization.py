import pytest

from cfp_api.authorization import authorize_account, is_authorized, register
from cfp_api.errors import (
    AlreadyAuthorized,
    Internal,
    InvalidAddress,
    InvalidSignature,
    Unauthorized,
)
from cfp_api.ledger import LedgerRejection, LedgerUnavailable
from cfp_api.signatures import registration_message

from conftest import FACTORY, sign


def test_register_then_register_again(ledger, alice):
    sig = sign(alice, registration_message(FACTORY))
    assert register(ledger, alice.address, sig) == {"message": "OK"}
    assert is_authorized(ledger, alice.address)["authorized"] is True

    with pytest.raises(AlreadyAuthorized):
        register(ledger, alice.address, sig)
    assert ledger.log.count("authorize") == 1


def test_register_with_someone_elses_signature(ledger, alice, bob):
    sig = sign(bob, registration_message(FACTORY))
    with pytest.raises(InvalidSignature):
        register(ledger, alice.address, sig)
    assert "authorize" not in ledger.log


def test_register_malformed_input_never_reaches_ledger(ledger, alice):
    sig = sign(alice, registration_message(FACTORY))
    with pytest.raises(InvalidAddress):
        register(ledger, "0xnope", sig)
    with pytest.raises(InvalidSignature):
        register(ledger, alice.address, "0x00")
    assert ledger.log == []


def test_register_race_maps_revert_to_already_authorized(ledger, alice):
    ledger.fail_on["authorize"] = LedgerRejection("VM Exception while processing transaction: revert Ya se ha registrado")
    with pytest.raises(AlreadyAuthorized):
        register(ledger, alice.address, sign(alice, registration_message(FACTORY)))


def test_register_unknown_revert_is_internal(ledger, alice):
    ledger.fail_on["authorize"] = LedgerRejection("execution reverted: something else")
    with pytest.raises(Internal):
        register(ledger, alice.address, sign(alice, registration_message(FACTORY)))


def test_register_transport_failure_is_internal(ledger, alice):
    ledger.fail_on["is_registered"] = LedgerUnavailable("connection refused")
    with pytest.raises(Internal):
        register(ledger, alice.address, sign(alice, registration_message(FACTORY)))


def test_is_authorized_unknown_address(ledger, bob):
    assert is_authorized(ledger, bob.address) == {"authorized": False, "address": bob.address}


def test_authorize_account_as_owner(ledger, alice):
    assert authorize_account(ledger, alice.address) == {"message": "OK"}
    assert alice.address.lower() in ledger.authorized


def test_authorize_account_requires_factory_ownership(ledger, alice, bob):
    ledger.owner_address = bob.address
    with pytest.raises(Unauthorized):
        authorize_account(ledger, alice.address)
    assert "authorize" not in ledger.log
