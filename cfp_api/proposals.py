"""
Proposal registration handlers.

Anyone may register a proposal hash on an open call; the CFP contract
attributes the sender. The signed variant additionally checks a signature
over the raw proposal hash before submitting.
"""

from typing import Any, Dict, Optional

from .calls import resolve_cfp
from .errors import (
    OK,
    AlreadyRegistered,
    InvalidCallId,
    InvalidClosingTime,
    InvalidProposal,
    InvalidSignature,
    PROPOSAL_REJECTIONS,
    ProposalNotFound,
)
from .ledger import CallRecord, LedgerClient
from .logging_config import audit_log
from .security import validate_address, validate_hash32, validate_signature
from .signatures import proposal_message, verify
from .transactions import iso_or_internal, ledger_reads, submit
from .util import now_epoch


def _open_call_without_proposal(ledger: LedgerClient, call_id: str, proposal_hash: str,
                                now: Optional[int]) -> CallRecord:
    record = resolve_cfp(ledger, call_id)
    if now is None:
        now = now_epoch()
    with ledger_reads("register_proposal"):
        closed = ledger.closing_time(record.cfp) <= now
        if closed:
            raise InvalidClosingTime.closed()
        if ledger.proposal_data(record.cfp, proposal_hash).exists:
            raise AlreadyRegistered()
    return record


def register_proposal(ledger: LedgerClient, call_id: str, proposal_hash: str,
                      now: Optional[int] = None) -> Dict[str, Any]:
    validate_hash32(call_id, InvalidCallId)
    validate_hash32(proposal_hash, InvalidProposal)

    record = _open_call_without_proposal(ledger, call_id, proposal_hash, now)
    submit("registerProposal", lambda: ledger.register_proposal(record.cfp, proposal_hash), PROPOSAL_REJECTIONS)
    return {"message": OK}


def register_proposal_with_signature(ledger: LedgerClient, call_id: str, proposal_hash: str,
                                     signature: str, signer: str,
                                     now: Optional[int] = None) -> Dict[str, Any]:
    """
    Register a proposal that `signer` signed.

    The signature covers the raw proposal hash bytes only. The write is
    still submitted by the operating key, so the CFP records the server as
    the sender, not the verified signer.
    """
    validate_hash32(call_id, InvalidCallId)
    validate_hash32(proposal_hash, InvalidProposal)
    validate_address(signer)
    validate_signature(signature)

    try:
        verify(signer, proposal_message(proposal_hash), signature)
    except InvalidSignature:
        audit_log.signature_rejected("register_proposal", signer, signature)
        raise

    record = _open_call_without_proposal(ledger, call_id, proposal_hash, now)
    submit("registerProposal", lambda: ledger.register_proposal(record.cfp, proposal_hash), PROPOSAL_REJECTIONS)
    return {"message": OK}


def get_proposal_data(ledger: LedgerClient, call_id: str, proposal_hash: str) -> Dict[str, str]:
    validate_hash32(call_id, InvalidCallId)
    validate_hash32(proposal_hash, InvalidProposal)

    record = resolve_cfp(ledger, call_id)
    with ledger_reads("proposal_data"):
        data = ledger.proposal_data(record.cfp, proposal_hash)
    if not data.exists:
        raise ProposalNotFound()
    return {
        "sender": data.sender,
        "blockNumber": str(data.block_number),
        "timestamp": iso_or_internal(data.timestamp),
    }
