"""
Ledger call helpers shared by the handlers.

Writes are submitted, awaited to a receipt and their revert reasons mapped
onto the error taxonomy. Read failures collapse to Internal.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator

from .errors import Internal, RejectionTable, map_ledger_rejection
from .ledger import LedgerError, LedgerRejection, LedgerUnavailable, PendingTx, TxReceipt
from .logging_config import audit_log
from .util import epoch_to_iso

logger = logging.getLogger(__name__)


@contextmanager
def ledger_reads(operation: str) -> Iterator[None]:
    """Turn any ledger failure inside the block into Internal."""
    try:
        yield
    except LedgerError as e:
        logger.error("Ledger read failed during %s: %s", operation, e)
        raise Internal() from e


def iso_or_internal(ts_epoch: int) -> str:
    """Render a ledger timestamp; one outside datetime's range is Internal."""
    try:
        return epoch_to_iso(ts_epoch)
    except ValueError as e:
        logger.error("Ledger timestamp not representable: %s", ts_epoch)
        raise Internal() from e


def submit(operation: str, send: Callable[[], PendingTx], rejections: RejectionTable) -> TxReceipt:
    """
    Submit a write and wait for its receipt.

    Args:
        operation: Name used in audit records
        send: Callable that submits the transaction
        rejections: Revert substring table for this operation

    Returns:
        The successful receipt

    Raises:
        CfpError: The mapped rejection, or Internal for transport failures
            and non-success receipts
    """
    try:
        pending = send()
        audit_log.ledger_write(operation, "SUBMITTED", pending.tx_hash)
        receipt = pending.wait()
    except LedgerRejection as e:
        error = map_ledger_rejection(e.reason, rejections)
        audit_log.ledger_rejection(operation, e.reason, error.code)
        raise error from e
    except LedgerUnavailable as e:
        audit_log.ledger_write(operation, "FAILED", error=str(e))
        raise Internal() from e

    if not receipt.succeeded:
        audit_log.ledger_write(operation, "FAILED", receipt.tx_hash, receipt_status=receipt.status)
        raise Internal()

    audit_log.ledger_write(operation, "CONFIRMED", receipt.tx_hash, block_number=receipt.block_number)
    return receipt
