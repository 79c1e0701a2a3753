import logging
import threading
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import authorization, calls, config, proposals
from .errors import CfpError, Internal, MalformedInput, NameNotFound, RateLimited
from .ledger import LedgerClient, LedgerError, get_ledger_client
from .logging_config import audit_log, configure_logging, get_request_id, set_request_id
from .models import (
    CreateCallRequest,
    CreateCallWithNameRequest,
    RegisterCallNameRequest,
    RegisterProposalRequest,
    RegisterProposalWithSignatureRequest,
    RegisterRequest,
    RegisterUserNameRequest,
    ResolveAddressesRequest,
)
from .naming import NamingService
from .rate_limit import RateLimiter
from .security import extract_client_id

logger = logging.getLogger(__name__)

app = FastAPI(
    title="CFP Registry API",
    debug=config.is_debug(),
    docs_url=None if config.is_production() else "/docs",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_URL],
    allow_methods=["*"],
    allow_headers=["*"],
)

write_limiter = RateLimiter(config.WRITE_RPM)
LEDGER: Optional[LedgerClient] = None
_ledger_lock = threading.Lock()


def get_ledger() -> LedgerClient:
    """Build the shared ledger client once; a bad configuration is Internal."""
    global LEDGER
    if LEDGER is None:
        with _ledger_lock:
            if LEDGER is None:
                try:
                    LEDGER = get_ledger_client()
                except (ValueError, KeyError, LedgerError) as e:
                    logger.error("Ledger client construction failed: %s", e)
                    raise Internal() from e
    return LEDGER


def get_naming(ledger: LedgerClient = Depends(get_ledger)) -> NamingService:
    return NamingService(ledger)


def limit_writes(request: Request) -> None:
    client_id = extract_client_id(request.headers, request.client.host if request.client else None)
    result = write_limiter.check(client_id)
    if not result.allowed:
        audit_log.rate_limit_exceeded(client_id, request.url.path)
        raise RateLimited(result.retry_after_header)


@app.on_event("startup")
def _startup():
    configure_logging(config.LOG_LEVEL, config.LOG_JSON, config.LOG_FILE or None)
    missing = [name for name, ok in config.validate_config().items() if not ok]
    if missing:
        logger.warning("Missing configuration: %s", ", ".join(missing))


@app.middleware("http")
async def request_context(request: Request, call_next):
    set_request_id(request.headers.get("x-request-id"))
    response = await call_next(request)
    response.headers["X-Request-Id"] = get_request_id()
    return response


@app.exception_handler(CfpError)
async def cfp_error_handler(request: Request, exc: CfpError):
    headers = None
    if isinstance(exc, RateLimited) and exc.retry_after:
        headers = {"Retry-After": exc.retry_after}
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.code}, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected request body on %s: %s", request.url.path,
                [".".join(str(p) for p in err["loc"]) for err in exc.errors()])
    return JSONResponse(status_code=MalformedInput.status_code, content={"detail": MalformedInput.code})


@app.get("/health")
def health():
    return {"status": "ok", "env": config.ENV}


# ============================================================
# Contract info
# ============================================================

@app.get("/contract-address")
def contract_address(ledger: LedgerClient = Depends(get_ledger)):
    return calls.contract_address(ledger)


@app.get("/contract-owner")
def contract_owner(ledger: LedgerClient = Depends(get_ledger)):
    return calls.contract_owner(ledger)


@app.get("/contracts/addresses")
def contract_addresses():
    return config.contract_addresses()


# ============================================================
# Accounts
# ============================================================

@app.post("/register", dependencies=[Depends(limit_writes)])
def register(req: RegisterRequest, ledger: LedgerClient = Depends(get_ledger)):
    return authorization.register(ledger, req.address, req.signature)


@app.get("/authorized/{address}")
def authorized(address: str, ledger: LedgerClient = Depends(get_ledger)):
    return authorization.is_authorized(ledger, address)


@app.post("/authorize/{address}", dependencies=[Depends(limit_writes)])
def authorize(address: str, ledger: LedgerClient = Depends(get_ledger)):
    return authorization.authorize_account(ledger, address)


# ============================================================
# Calls
# ============================================================

@app.post("/create", status_code=201, dependencies=[Depends(limit_writes)])
def create(req: CreateCallRequest, ledger: LedgerClient = Depends(get_ledger)):
    return calls.create_call(ledger, req.callId, req.closingTime, req.signature)


@app.post("/create-with-ens", status_code=201, dependencies=[Depends(limit_writes)])
def create_with_ens(req: CreateCallWithNameRequest,
                    ledger: LedgerClient = Depends(get_ledger),
                    naming: NamingService = Depends(get_naming)):
    return calls.create_call_with_name(ledger, naming, req.callId, req.closingTime, req.signature,
                                       req.callName, req.description)


@app.get("/calls")
def list_calls(ledger: LedgerClient = Depends(get_ledger)):
    return calls.list_calls(ledger)


@app.get("/calls/{call_id}")
def get_call(call_id: str, ledger: LedgerClient = Depends(get_ledger)):
    return calls.get_call(ledger, call_id)


@app.get("/closing-time/{call_id}")
def closing_time(call_id: str, ledger: LedgerClient = Depends(get_ledger)):
    return calls.get_closing_time(ledger, call_id)


@app.get("/proposal-counts")
def proposal_counts(callIds: str = "", ledger: LedgerClient = Depends(get_ledger)):
    return calls.proposal_counts(ledger, callIds.split(","))


# ============================================================
# Proposals
# ============================================================

@app.post("/register-proposal", dependencies=[Depends(limit_writes)])
def register_proposal(req: RegisterProposalRequest, ledger: LedgerClient = Depends(get_ledger)):
    return proposals.register_proposal(ledger, req.callId, req.proposal)


@app.post("/register-proposal-with-signature", dependencies=[Depends(limit_writes)])
def register_proposal_with_signature(req: RegisterProposalWithSignatureRequest,
                                     ledger: LedgerClient = Depends(get_ledger)):
    return proposals.register_proposal_with_signature(ledger, req.callId, req.proposal,
                                                      req.signature, req.signer)


@app.get("/proposal-data/{call_id}/{proposal}")
def proposal_data(call_id: str, proposal: str, ledger: LedgerClient = Depends(get_ledger)):
    return proposals.get_proposal_data(ledger, call_id, proposal)


# ============================================================
# Naming
# ============================================================

@app.post("/ens/register-user", dependencies=[Depends(limit_writes)])
def ens_register_user(req: RegisterUserNameRequest, naming: NamingService = Depends(get_naming)):
    reg = naming.register_user_name(req.userName, req.userAddress, req.description)
    return {
        "success": True,
        "message": f"Registered {reg.name}",
        "transactionHash": reg.tx_hash,
        "blockNumber": reg.block_number,
    }


@app.post("/ens/register-call", dependencies=[Depends(limit_writes)])
def ens_register_call(req: RegisterCallNameRequest, naming: NamingService = Depends(get_naming)):
    reg = naming.register_call_name(req.callName, req.callAddress, req.description)
    return {
        "success": True,
        "message": f"Registered {reg.name}",
        "transactionHash": reg.tx_hash,
        "blockNumber": reg.block_number,
    }


@app.get("/ens/resolve-name/{name}")
def ens_resolve_name(name: str, naming: NamingService = Depends(get_naming)):
    address = naming.resolve_name(name)
    if address is None:
        return JSONResponse(status_code=404, content={
            "success": False, "message": "Name not found", "address": None})
    return {"success": True, "name": name, "address": address}


@app.get("/ens/resolve-address/{address}")
def ens_resolve_address(address: str, naming: NamingService = Depends(get_naming)):
    name = naming.resolve_address(address)
    if name is None:
        return JSONResponse(status_code=404, content={
            "success": False, "message": "No name for address", "name": None})
    return {"success": True, "address": address, "name": name}


@app.post("/ens/resolve-addresses")
def ens_resolve_addresses(req: ResolveAddressesRequest, naming: NamingService = Depends(get_naming)):
    return {"success": True, "results": naming.resolve_addresses(req.addresses)}


@app.get("/ens/name-info/{name}")
def ens_name_info(name: str, naming: NamingService = Depends(get_naming)):
    info = naming.name_info(name)
    if info is None:
        raise NameNotFound()
    return {"success": True, "nameInfo": info.to_dict()}


@app.get("/ens/check-availability/{name}")
def ens_check_availability(name: str, naming: NamingService = Depends(get_naming)):
    return {"success": True, "name": name, "isAvailable": naming.is_name_available(name)}
