"""
Account registration and authorization handlers.
"""

from typing import Any, Dict

from .errors import OK, AlreadyAuthorized, InvalidSignature, REGISTRATION_REJECTIONS, Unauthorized
from .ledger import LedgerClient
from .logging_config import audit_log
from .security import validate_address, validate_signature
from .signatures import registration_message, verify
from .transactions import ledger_reads, submit
from .util import same_address


def register(ledger: LedgerClient, address: str, signature: str) -> Dict[str, Any]:
    """
    Authorize `address` on the factory after it proves control of the key.

    The client signs the factory address (lowercase, 0x stripped, hex
    decoded). The server's operating key then submits authorize(address),
    which the factory only accepts from its privileged account.
    """
    validate_address(address)
    validate_signature(signature)

    try:
        verify(address, registration_message(ledger.factory_address), signature)
    except InvalidSignature:
        audit_log.signature_rejected("register", address, signature)
        raise

    # Optimistic pre-check; the ledger still guards against races below.
    with ledger_reads("register"):
        if ledger.is_registered(address):
            raise AlreadyAuthorized()

    submit("authorize", lambda: ledger.authorize(address), REGISTRATION_REJECTIONS)
    return {"message": OK}


def is_authorized(ledger: LedgerClient, address: str) -> Dict[str, Any]:
    validate_address(address)
    with ledger_reads("authorized"):
        authorized = ledger.is_authorized(address)
    return {"authorized": bool(authorized), "address": address}


def authorize_account(ledger: LedgerClient, address: str) -> Dict[str, Any]:
    """Admin path: authorize without a signature, only if we own the factory."""
    validate_address(address)
    with ledger_reads("authorize"):
        owner = ledger.owner()
    if not same_address(owner, ledger.operator_address):
        audit_log.security_event("authorize_without_ownership", severity="high", address=address)
        raise Unauthorized()

    submit("authorize", lambda: ledger.authorize(address), REGISTRATION_REJECTIONS)
    return {"message": OK}
