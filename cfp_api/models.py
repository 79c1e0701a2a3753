from pydantic import BaseModel, Field
from typing import List, Optional

# Field formats are checked by the handlers (security.py) so that every
# malformed value maps to its own error code instead of a generic 422.


class RegisterRequest(BaseModel):
    address: str
    signature: str


class CreateCallRequest(BaseModel):
    callId: str
    closingTime: str
    signature: str


class CreateCallWithNameRequest(CreateCallRequest):
    callName: str
    description: Optional[str] = None


class RegisterProposalRequest(BaseModel):
    callId: str
    proposal: str


class RegisterProposalWithSignatureRequest(RegisterProposalRequest):
    signature: str
    signer: str


class RegisterUserNameRequest(BaseModel):
    userName: str
    userAddress: str
    description: Optional[str] = None


class RegisterCallNameRequest(BaseModel):
    callName: str
    callAddress: str
    description: Optional[str] = None


class ResolveAddressesRequest(BaseModel):
    addresses: List[str] = Field(default_factory=list)
