"""
Ledger client for the CFP registry API.

Provides the contract-call interface the handlers depend on, with a
web3.py implementation that signs every write with the operating key.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests
from eth_account import Account
from eth_utils import to_checksum_address, to_hex
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from . import config
from .abi import (
    CFP_ABI,
    CFP_FACTORY_ABI,
    ENS_REGISTRY_ABI,
    FIFS_REGISTRAR_ABI,
    PUBLIC_RESOLVER_ABI,
    REVERSE_REGISTRAR_ABI,
)
from .util import hex32_to_bytes, is_zero_address, to_hex32

logger = logging.getLogger(__name__)

CALLS_REGISTRAR = "llamados"
USERS_REGISTRAR = "usuarios"

TX_SUCCESS = 1


# ============================================================
# Errors
# ============================================================

class LedgerError(Exception):
    """Base class for ledger collaborator failures."""


class LedgerRejection(LedgerError):
    """The contract reverted. `reason` carries the raw revert text."""

    def __init__(self, reason: str):
        self.reason = reason or ""
        super().__init__(self.reason)


class LedgerUnavailable(LedgerError):
    """RPC transport or node failure; the outcome of a write may be unknown."""


# ============================================================
# Value types
# ============================================================

def _field(raw: Any, name: str, index: int) -> Any:
    if isinstance(raw, dict):
        return raw[name]
    if hasattr(raw, name):
        return getattr(raw, name)
    return raw[index]


@dataclass(frozen=True)
class CallRecord:
    """A call as stored by the factory. A zero creator means no such call."""
    creator: str
    cfp: str

    @property
    def exists(self) -> bool:
        return not is_zero_address(self.creator)

    @classmethod
    def from_raw(cls, raw: Any) -> "CallRecord":
        """Decode tuple-shaped or named contract results alike."""
        return cls(
            creator=str(_field(raw, "creator", 0)),
            cfp=str(_field(raw, "cfp", 1)),
        )


@dataclass(frozen=True)
class ProposalRecord:
    """Proposal data stored by a CFP. A zero sender means not registered."""
    sender: str
    block_number: int
    timestamp: int

    @property
    def exists(self) -> bool:
        return not is_zero_address(self.sender)

    @classmethod
    def from_raw(cls, raw: Any) -> "ProposalRecord":
        return cls(
            sender=str(_field(raw, "sender", 0)),
            block_number=int(_field(raw, "blockNumber", 1)),
            timestamp=int(_field(raw, "timestamp", 2)),
        )


@dataclass(frozen=True)
class TxReceipt:
    tx_hash: str
    block_number: int
    status: int

    @property
    def succeeded(self) -> bool:
        return self.status == TX_SUCCESS


class PendingTx:
    """
    Handle for a submitted write.

    Once submitted a transaction cannot be retracted; wait() polls for its
    receipt. Abandoning the handle does not stop the ledger from applying it.
    """

    def __init__(self, tx_hash: str, waiter: Callable[[str], TxReceipt]):
        self.tx_hash = tx_hash
        self._waiter = waiter
        self._receipt: Optional[TxReceipt] = None

    def wait(self) -> TxReceipt:
        if self._receipt is None:
            self._receipt = self._waiter(self.tx_hash)
        return self._receipt


# ============================================================
# Interface
# ============================================================

class LedgerClient(ABC):
    """Contract-call interface of the factory, its CFPs and the naming suite."""

    @property
    @abstractmethod
    def factory_address(self) -> str:
        """Address of the CFP factory contract."""

    @property
    @abstractmethod
    def operator_address(self) -> str:
        """Address of the operating key that submits every write."""

    @property
    @abstractmethod
    def public_resolver_address(self) -> str:
        """Address of the public resolver used for new names."""

    # -- factory reads
    @abstractmethod
    def owner(self) -> str: ...

    @abstractmethod
    def is_registered(self, address: str) -> bool: ...

    @abstractmethod
    def is_authorized(self, address: str) -> bool: ...

    @abstractmethod
    def calls(self, call_id: str) -> CallRecord: ...

    @abstractmethod
    def creators_count(self) -> int: ...

    @abstractmethod
    def creators(self, index: int) -> str: ...

    @abstractmethod
    def created_by_count(self, creator: str) -> int: ...

    @abstractmethod
    def created_by(self, creator: str, index: int) -> str: ...

    # -- factory writes
    @abstractmethod
    def authorize(self, address: str) -> PendingTx: ...

    @abstractmethod
    def register(self) -> PendingTx: ...

    @abstractmethod
    def create_for(self, call_id: str, closing_time: int, creator: str) -> PendingTx: ...

    @abstractmethod
    def create(self, call_id: str, closing_time: int) -> PendingTx: ...

    # -- per-CFP
    @abstractmethod
    def closing_time(self, cfp: str) -> int: ...

    @abstractmethod
    def proposal_data(self, cfp: str, proposal_hash: str) -> ProposalRecord: ...

    @abstractmethod
    def register_proposal(self, cfp: str, proposal_hash: str) -> PendingTx: ...

    @abstractmethod
    def proposal_count(self, cfp: str) -> int: ...

    # -- naming suite
    @abstractmethod
    def ens_owner(self, node: str) -> str: ...

    @abstractmethod
    def ens_resolver(self, node: str) -> str: ...

    @abstractmethod
    def set_resolver(self, node: str, resolver: str) -> PendingTx: ...

    @abstractmethod
    def resolver_addr(self, resolver: str, node: str) -> str: ...

    @abstractmethod
    def set_addr(self, node: str, address: str) -> PendingTx: ...

    @abstractmethod
    def resolver_text(self, resolver: str, node: str, key: str) -> str: ...

    @abstractmethod
    def set_text(self, node: str, key: str, value: str) -> PendingTx: ...

    @abstractmethod
    def resolver_name(self, resolver: str, node: str) -> str: ...

    @abstractmethod
    def reverse_node(self, address: str) -> str: ...

    @abstractmethod
    def set_name_for_address(self, address: str, name: str) -> PendingTx: ...

    @abstractmethod
    def registrar_register(self, registrar: str, label_hash: str, owner: str) -> PendingTx: ...


# ============================================================
# web3.py implementation
# ============================================================

def _revert_reason(exc: ContractLogicError) -> str:
    return getattr(exc, "message", None) or str(exc)


class Web3LedgerClient(LedgerClient):
    """
    Ledger client backed by a JSON-RPC node.

    The operating key is derived once from the seed phrase and lives for the
    process lifetime. Submissions are serialized so nonces stay ordered;
    waiting for receipts is not.
    """

    def __init__(
        self,
        rpc_url: str,
        mnemonic: str,
        addresses: Dict[str, str],
        account_path: str = "m/44'/60'/0'/0/0",
        rpc_timeout: int = 30,
        receipt_timeout: int = 120,
        w3: Optional[Web3] = None,
    ):
        if not mnemonic:
            raise ValueError("MNEMONIC required for the operating key")

        Account.enable_unaudited_hdwallet_features()
        self._account = Account.from_mnemonic(mnemonic, account_path=account_path)
        self._w3 = w3 or Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": rpc_timeout}))
        self._receipt_timeout = receipt_timeout
        self._send_lock = threading.Lock()

        self._factory = self._contract(addresses["cfpFactoryAddress"], CFP_FACTORY_ABI)
        self._registry = self._contract(addresses["ensRegistryAddress"], ENS_REGISTRY_ABI)
        self._resolver = self._contract(addresses["publicResolverAddress"], PUBLIC_RESOLVER_ABI)
        self._reverse = self._contract(addresses["reverseRegistrarAddress"], REVERSE_REGISTRAR_ABI)
        self._registrars = {
            CALLS_REGISTRAR: self._contract(addresses["llamadosRegistrarAddress"], FIFS_REGISTRAR_ABI),
            USERS_REGISTRAR: self._contract(addresses["usuariosRegistrarAddress"], FIFS_REGISTRAR_ABI),
        }

        logger.info("Ledger client initialized", extra={"extra_fields": {"operator": self._account.address}})

    def _contract(self, address: str, abi):
        return self._w3.eth.contract(address=to_checksum_address(address), abi=abi)

    # -- plumbing

    def _call(self, fn) -> Any:
        try:
            return fn.call()
        except ContractLogicError as e:
            raise LedgerRejection(_revert_reason(e)) from e
        except (Web3Exception, requests.RequestException, OSError, ValueError) as e:
            raise LedgerUnavailable(str(e)) from e

    def _transact(self, fn) -> PendingTx:
        sender = self._account.address
        with self._send_lock:
            try:
                tx = fn.build_transaction({
                    "from": sender,
                    "nonce": self._w3.eth.get_transaction_count(sender, "pending"),
                    "chainId": self._w3.eth.chain_id,
                })
                signed = self._account.sign_transaction(tx)
                tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
            except ContractLogicError as e:
                raise LedgerRejection(_revert_reason(e)) from e
            except (Web3Exception, requests.RequestException, OSError, ValueError) as e:
                raise LedgerUnavailable(str(e)) from e
        logger.debug("Transaction submitted", extra={"extra_fields": {"tx_hash": to_hex(tx_hash)}})
        return PendingTx(to_hex(tx_hash), self._wait_for_receipt)

    def _wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._receipt_timeout)
        except TimeExhausted as e:
            raise LedgerUnavailable(f"receipt not available for {tx_hash}") from e
        except (Web3Exception, requests.RequestException, OSError, ValueError) as e:
            raise LedgerUnavailable(str(e)) from e
        return TxReceipt(tx_hash=tx_hash, block_number=int(receipt["blockNumber"]), status=int(receipt["status"]))

    # -- addresses

    @property
    def factory_address(self) -> str:
        return self._factory.address

    @property
    def operator_address(self) -> str:
        return self._account.address

    @property
    def public_resolver_address(self) -> str:
        return self._resolver.address

    # -- factory reads

    def owner(self) -> str:
        return self._call(self._factory.functions.owner())

    def is_registered(self, address: str) -> bool:
        return bool(self._call(self._factory.functions.isRegistered(to_checksum_address(address))))

    def is_authorized(self, address: str) -> bool:
        return bool(self._call(self._factory.functions.isAuthorized(to_checksum_address(address))))

    def calls(self, call_id: str) -> CallRecord:
        return CallRecord.from_raw(self._call(self._factory.functions.calls(hex32_to_bytes(call_id))))

    def creators_count(self) -> int:
        return int(self._call(self._factory.functions.creatorsCount()))

    def creators(self, index: int) -> str:
        return self._call(self._factory.functions.creators(index))

    def created_by_count(self, creator: str) -> int:
        return int(self._call(self._factory.functions.createdByCount(to_checksum_address(creator))))

    def created_by(self, creator: str, index: int) -> str:
        raw = self._call(self._factory.functions.createdBy(to_checksum_address(creator), index))
        return to_hex32(raw)

    # -- factory writes

    def authorize(self, address: str) -> PendingTx:
        return self._transact(self._factory.functions.authorize(to_checksum_address(address)))

    def register(self) -> PendingTx:
        return self._transact(self._factory.functions.register())

    def create_for(self, call_id: str, closing_time: int, creator: str) -> PendingTx:
        return self._transact(self._factory.functions.createFor(
            hex32_to_bytes(call_id), int(closing_time), to_checksum_address(creator)))

    def create(self, call_id: str, closing_time: int) -> PendingTx:
        return self._transact(self._factory.functions.create(hex32_to_bytes(call_id), int(closing_time)))

    # -- per-CFP

    def _cfp(self, cfp: str):
        return self._contract(cfp, CFP_ABI)

    def closing_time(self, cfp: str) -> int:
        return int(self._call(self._cfp(cfp).functions.closingTime()))

    def proposal_data(self, cfp: str, proposal_hash: str) -> ProposalRecord:
        raw = self._call(self._cfp(cfp).functions.proposalData(hex32_to_bytes(proposal_hash)))
        return ProposalRecord.from_raw(raw)

    def register_proposal(self, cfp: str, proposal_hash: str) -> PendingTx:
        return self._transact(self._cfp(cfp).functions.registerProposal(hex32_to_bytes(proposal_hash)))

    def proposal_count(self, cfp: str) -> int:
        return int(self._call(self._cfp(cfp).functions.proposalCount()))

    # -- naming suite

    def ens_owner(self, node: str) -> str:
        return self._call(self._registry.functions.owner(hex32_to_bytes(node)))

    def ens_resolver(self, node: str) -> str:
        return self._call(self._registry.functions.resolver(hex32_to_bytes(node)))

    def set_resolver(self, node: str, resolver: str) -> PendingTx:
        return self._transact(self._registry.functions.setResolver(
            hex32_to_bytes(node), to_checksum_address(resolver)))

    def resolver_addr(self, resolver: str, node: str) -> str:
        contract = self._contract(resolver, PUBLIC_RESOLVER_ABI)
        return self._call(contract.functions.addr(hex32_to_bytes(node)))

    def set_addr(self, node: str, address: str) -> PendingTx:
        return self._transact(self._resolver.functions.setAddr(
            hex32_to_bytes(node), to_checksum_address(address)))

    def resolver_text(self, resolver: str, node: str, key: str) -> str:
        contract = self._contract(resolver, PUBLIC_RESOLVER_ABI)
        return self._call(contract.functions.text(hex32_to_bytes(node), key))

    def set_text(self, node: str, key: str, value: str) -> PendingTx:
        return self._transact(self._resolver.functions.setText(hex32_to_bytes(node), key, value))

    def resolver_name(self, resolver: str, node: str) -> str:
        contract = self._contract(resolver, PUBLIC_RESOLVER_ABI)
        return self._call(contract.functions.name(hex32_to_bytes(node)))

    def reverse_node(self, address: str) -> str:
        return to_hex32(self._call(self._reverse.functions.node(to_checksum_address(address))))

    def set_name_for_address(self, address: str, name: str) -> PendingTx:
        return self._transact(self._reverse.functions.setNameForAddress(to_checksum_address(address), name))

    def registrar_register(self, registrar: str, label_hash: str, owner: str) -> PendingTx:
        contract = self._registrars[registrar]
        return self._transact(contract.functions.register(hex32_to_bytes(label_hash), to_checksum_address(owner)))


def get_ledger_client() -> LedgerClient:
    """
    Factory function to create the ledger client from configuration.

    Returns:
        Configured LedgerClient instance
    """
    return Web3LedgerClient(
        rpc_url=config.RPC_URL,
        mnemonic=config.MNEMONIC,
        addresses=config.contract_addresses(),
        account_path=config.MNEMONIC_ACCOUNT_PATH,
        rpc_timeout=config.RPC_TIMEOUT_SECONDS,
        receipt_timeout=config.TX_RECEIPT_TIMEOUT_SECONDS,
    )

