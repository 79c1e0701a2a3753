"""
Error taxonomy for the CFP registry API.

Every handler failure is raised as a CfpError subclass. The HTTP layer turns
it into {"detail": <code>} with the class status code, so clients can branch
on the status and show the code.
"""

from typing import Callable, Iterable, Optional, Tuple

OK = "OK"


class CfpError(Exception):
    """Base class for all domain errors surfaced to clients."""
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, code: Optional[str] = None, status_code: Optional[int] = None):
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.code)


# ============================================================
# Malformed input (400, never reaches the ledger)
# ============================================================

class MalformedInput(CfpError):
    code = "MALFORMED_INPUT"
    status_code = 400


class InvalidAddress(MalformedInput):
    code = "INVALID_ADDRESS"


class InvalidCallId(MalformedInput):
    code = "INVALID_CALLID"


class InvalidProposal(MalformedInput):
    code = "INVALID_PROPOSAL"


class InvalidClosingTimeFormat(MalformedInput):
    code = "INVALID_TIME_FORMAT"


class InvalidName(MalformedInput):
    code = "INVALID_NAME"


class InvalidSignature(CfpError):
    """Malformed signature or recovered signer mismatch. Never says which."""
    code = "INVALID_SIGNATURE"
    status_code = 400


class InvalidClosingTime(CfpError):
    code = "INVALID_CLOSING_TIME"
    status_code = 400

    @classmethod
    def closed(cls) -> "InvalidClosingTime":
        """The call is already closed: forbidden class, not a bad request."""
        return cls(status_code=403)


# ============================================================
# Forbidden class (403, domain rule violations)
# ============================================================

class Unauthorized(CfpError):
    code = "UNAUTHORIZED"
    status_code = 403


class AlreadyAuthorized(CfpError):
    code = "ALREADY_AUTHORIZED"
    status_code = 403


class AlreadyCreated(CfpError):
    code = "ALREADY_CREATED"
    status_code = 403


class AlreadyRegistered(CfpError):
    code = "ALREADY_REGISTERED"
    status_code = 403


class NameAlreadyRegistered(CfpError):
    code = "NAME_ALREADY_REGISTERED"
    status_code = 403


class NamingStepFailed(CfpError):
    """A naming sub-step failed after the earlier steps were committed."""
    code = "NAMING_FAILED"
    status_code = 400

    def __init__(self, step: str):
        self.step = step
        super().__init__()


# ============================================================
# Not found (404)
# ============================================================

class NotFound(CfpError):
    code = "NOT_FOUND"
    status_code = 404


class CallIdNotFound(NotFound):
    code = "CALLID_NOT_FOUND"


class ProposalNotFound(NotFound):
    code = "PROPOSAL_NOT_FOUND"


class NameNotFound(NotFound):
    code = "NAME_NOT_FOUND"


# ============================================================
# Internal (500)
# ============================================================

class Internal(CfpError):
    code = "INTERNAL_ERROR"
    status_code = 500


class RateLimited(CfpError):
    code = "RATE_LIMIT"
    status_code = 429

    def __init__(self, retry_after: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__()


# ============================================================
# Ledger revert reasons
# ============================================================

# Revert strings emitted by the deployed contracts.
REVERT_ALREADY_AUTHORIZED = "Ya se ha registrado"
REVERT_CALL_EXISTS = "El llamado ya existe"
REVERT_CLOSING_IN_PAST = "El cierre de la convocatoria no puede estar en el pasado"
REVERT_UNAUTHORIZED = "No autorizado"
REVERT_CALL_CLOSED = "Convocatoria cerrada"
REVERT_PROPOSAL_EXISTS = "La propuesta ya ha sido registrada"

RejectionTable = Iterable[Tuple[str, Callable[[], CfpError]]]

REGISTRATION_REJECTIONS: RejectionTable = (
    (REVERT_ALREADY_AUTHORIZED, AlreadyAuthorized),
)

CALL_CREATION_REJECTIONS: RejectionTable = (
    (REVERT_CALL_EXISTS, AlreadyCreated),
    (REVERT_CLOSING_IN_PAST, InvalidClosingTime),
    (REVERT_UNAUTHORIZED, Unauthorized),
)

PROPOSAL_REJECTIONS: RejectionTable = (
    (REVERT_CALL_CLOSED, InvalidClosingTime.closed),
    (REVERT_PROPOSAL_EXISTS, AlreadyRegistered),
)


def map_ledger_rejection(reason: Optional[str], table: RejectionTable) -> CfpError:
    """
    Map a ledger revert reason to a taxonomy error.

    The first entry whose substring occurs in the reason wins; anything
    unrecognized collapses to Internal so contract internals never reach
    the client.
    """
    text = reason or ""
    for needle, make_error in table:
        if needle in text:
            return make_error()
    return Internal()
