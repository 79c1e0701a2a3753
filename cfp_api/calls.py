"""
Call (CFP) creation and lookup handlers.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from .errors import (
    OK,
    AlreadyCreated,
    CALL_CREATION_REJECTIONS,
    CallIdNotFound,
    CfpError,
    InvalidCallId,
    InvalidSignature,
    NameAlreadyRegistered,
    NamingStepFailed,
    Unauthorized,
)
from .ledger import CallRecord, LedgerClient, LedgerError
from .logging_config import audit_log
from .naming import NamingService
from .security import validate_closing_time, validate_hash32, validate_label, validate_signature
from .signatures import call_creation_message, recover_signer
from .transactions import iso_or_internal, ledger_reads, submit
from .util import ZERO_ADDRESS, epoch_to_iso

logger = logging.getLogger(__name__)


def resolve_cfp(ledger: LedgerClient, call_id: str) -> CallRecord:
    """Look up the CFP bound to a call id, raising CallIdNotFound when absent."""
    with ledger_reads("calls"):
        record = ledger.calls(call_id)
    if not record.exists:
        raise CallIdNotFound()
    return record


# ============================================================
# Creation
# ============================================================

def create_call(
    ledger: LedgerClient,
    call_id: str,
    closing_time: str,
    signature: str,
    now: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Create a call on behalf of whoever signed factory ++ callId.

    The recovered signer, not the HTTP caller, becomes the creator of
    record, so a relay can submit for a verified third party.
    """
    validate_hash32(call_id, InvalidCallId)
    validate_signature(signature)
    closing_unix = validate_closing_time(closing_time, now)

    try:
        signer = recover_signer(call_creation_message(ledger.factory_address, call_id), signature)
    except InvalidSignature:
        audit_log.signature_rejected("create", None, signature)
        raise

    with ledger_reads("create"):
        if not ledger.is_authorized(signer):
            raise Unauthorized()
        if ledger.calls(call_id).exists:
            raise AlreadyCreated()

    submit("createFor", lambda: ledger.create_for(call_id, closing_unix, signer), CALL_CREATION_REJECTIONS)
    logger.info("Call created", extra={"extra_fields": {"call_id": call_id, "creator": signer}})
    return {"message": OK}


def create_call_with_name(
    ledger: LedgerClient,
    naming: NamingService,
    call_id: str,
    closing_time: str,
    signature: str,
    call_name: str,
    description: Optional[str] = None,
    now: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Create a call, then give its CFP a name.

    Naming failures never undo the call: the result says the call exists
    and whether the name was registered.
    """
    validate_label(call_name)
    create_call(ledger, call_id, closing_time, signature, now)

    result: Dict[str, Any] = {
        "message": OK,
        "callCreated": True,
        "ensRegistered": False,
        "ensName": None,
        "reason": None,
    }
    try:
        record = resolve_cfp(ledger, call_id)
        registration = naming.register_call_name(call_name, record.cfp, description)
    except NameAlreadyRegistered as e:
        result["reason"] = e.code
    except NamingStepFailed as e:
        result["reason"] = e.code
        result["failedStep"] = e.step
    except CfpError as e:
        logger.error("Naming after call creation failed: %s", e.code)
        result["reason"] = e.code
    else:
        result["ensRegistered"] = True
        result["ensName"] = registration.name
        result["callAddress"] = record.cfp
    return result


# ============================================================
# Lookups
# ============================================================

def list_calls(ledger: LedgerClient) -> List[Dict[str, Any]]:
    """Enumerate every call through the factory's per-creator indexes."""
    with ledger_reads("list_calls"):
        call_ids: Dict[str, None] = {}
        for i in range(ledger.creators_count()):
            creator = ledger.creators(i)
            for j in range(ledger.created_by_count(creator)):
                call_ids[ledger.created_by(creator, j)] = None

        calls = []
        for call_id in call_ids:
            record = ledger.calls(call_id)
            if not record.exists:
                continue
            calls.append({
                "callId": call_id,
                "creator": record.creator,
                "cfp": record.cfp,
                "closingTime": _closing_time_or_none(ledger, record.cfp),
            })
    return calls


def _closing_time_or_none(ledger: LedgerClient, cfp: str) -> Optional[str]:
    try:
        return epoch_to_iso(ledger.closing_time(cfp))
    except (LedgerError, ValueError) as e:
        logger.warning("closingTime unreadable for %s: %s", cfp, e)
        return None


def get_call(ledger: LedgerClient, call_id: str) -> Dict[str, str]:
    validate_hash32(call_id, InvalidCallId)
    record = resolve_cfp(ledger, call_id)
    return {"creator": record.creator, "cfp": record.cfp}


def get_closing_time(ledger: LedgerClient, call_id: str) -> Dict[str, str]:
    validate_hash32(call_id, InvalidCallId)
    record = resolve_cfp(ledger, call_id)
    with ledger_reads("closing_time"):
        closing = ledger.closing_time(record.cfp)
    return {"closingTime": iso_or_internal(closing), "callId": call_id, "cfpAddress": record.cfp}


def proposal_counts(ledger: LedgerClient, call_ids: Iterable[str]) -> Dict[str, int]:
    """Proposal count per call id; unknown calls count zero."""
    ids = [c.strip() for c in call_ids if c and c.strip()]
    for call_id in ids:
        validate_hash32(call_id, InvalidCallId)

    counts: Dict[str, int] = {}
    with ledger_reads("proposal_counts"):
        for call_id in ids:
            record = ledger.calls(call_id)
            counts[call_id] = ledger.proposal_count(record.cfp) if record.exists else 0
    return counts


def contract_address(ledger: LedgerClient) -> Dict[str, str]:
    return {"address": ledger.factory_address}


def contract_owner(ledger: LedgerClient) -> Dict[str, str]:
    try:
        return {"address": ledger.owner()}
    except LedgerError as e:
        logger.warning("Factory owner unreadable: %s", e)
        return {"address": ZERO_ADDRESS}
