"""
ENS-style naming for calls and users.

Names live under two domains, one for calls and one for users. Registering
a name takes several independent writes (registrar, resolver, address,
description text, reverse record); a failed step leaves the earlier ones in
place and is reported by step.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from eth_utils import keccak, to_hex

from . import config
from .errors import CfpError, NameAlreadyRegistered, NamingStepFailed
from .ledger import CALLS_REGISTRAR, USERS_REGISTRAR, LedgerClient, TxReceipt
from .logging_config import audit_log
from .security import validate_address, validate_label, validate_name
from .transactions import ledger_reads, submit
from .util import is_zero_address

logger = logging.getLogger(__name__)

DESCRIPTION_KEY = "description"


def labelhash(label: str) -> str:
    return to_hex(keccak(text=label))


def namehash(name: str) -> str:
    """Standard ENS namehash; the empty name hashes to 32 zero bytes."""
    node = b"\x00" * 32
    if name:
        for label in reversed(name.split(".")):
            node = keccak(node + keccak(text=label))
    return to_hex(node)


@dataclass
class NameInfo:
    name: str
    address: str
    description: Optional[str] = None
    reverse_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        data = {"name": self.name, "address": self.address}
        if self.description:
            data["description"] = self.description
        if self.reverse_name:
            data["reverseName"] = self.reverse_name
        return data


@dataclass
class NameRegistration:
    name: str
    tx_hash: str
    block_number: int


class NamingService:
    """Registers and resolves names through the ledger's naming contracts."""

    def __init__(
        self,
        ledger: LedgerClient,
        calls_domain: Optional[str] = None,
        users_domain: Optional[str] = None,
    ):
        self._ledger = ledger
        self.calls_domain = calls_domain or config.CALLS_DOMAIN
        self.users_domain = users_domain or config.USERS_DOMAIN

    # ------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------

    def register_user_name(self, user_name: str, user_address: str,
                           description: Optional[str] = None) -> NameRegistration:
        return self._register(user_name, self.users_domain, USERS_REGISTRAR, user_address, description)

    def register_call_name(self, call_name: str, call_address: str,
                           description: Optional[str] = None) -> NameRegistration:
        return self._register(call_name, self.calls_domain, CALLS_REGISTRAR, call_address, description)

    def _register(self, label: str, domain: str, registrar: str, target: str,
                  description: Optional[str]) -> NameRegistration:
        validate_label(label)
        validate_address(target)
        full_name = f"{label}.{domain}"
        node = namehash(full_name)
        ledger = self._ledger

        with ledger_reads("name_owner"):
            if not is_zero_address(ledger.ens_owner(node)):
                raise NameAlreadyRegistered()

        # The operating key owns the node so it can set the records below.
        receipt = self._step(full_name, "register", lambda: ledger.registrar_register(
            registrar, labelhash(label), ledger.operator_address))
        self._step(full_name, "resolver", lambda: ledger.set_resolver(node, ledger.public_resolver_address))
        self._step(full_name, "address", lambda: ledger.set_addr(node, target))
        if description:
            self._step(full_name, "text", lambda: ledger.set_text(node, DESCRIPTION_KEY, description))
        self._step(full_name, "reverse", lambda: ledger.set_name_for_address(target, full_name))

        logger.info("Name registered", extra={"extra_fields": {"name": full_name, "address": target}})
        return NameRegistration(name=full_name, tx_hash=receipt.tx_hash, block_number=receipt.block_number)

    def _step(self, full_name: str, step: str, send) -> TxReceipt:
        try:
            return submit(f"naming.{step}", send, ())
        except CfpError as e:
            audit_log.naming_step_failed(full_name, step, e.code)
            raise NamingStepFailed(step) from e

    # ------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------

    def resolve_name(self, name: str) -> Optional[str]:
        validate_name(name)
        node = namehash(name)
        with ledger_reads("resolve_name"):
            resolver = self._ledger.ens_resolver(node)
            if is_zero_address(resolver):
                return None
            address = self._ledger.resolver_addr(resolver, node)
        return None if is_zero_address(address) else address

    def resolve_address(self, address: str) -> Optional[str]:
        validate_address(address)
        with ledger_reads("resolve_address"):
            reverse = self._ledger.reverse_node(address)
            resolver = self._ledger.ens_resolver(reverse)
            if is_zero_address(resolver):
                return None
            name = self._ledger.resolver_name(resolver, reverse)
        return name or None

    def resolve_addresses(self, addresses: Iterable[str]) -> Dict[str, Optional[str]]:
        """Reverse-resolve many addresses; one failure only blanks its own entry."""
        results: Dict[str, Optional[str]] = {}
        for address in addresses:
            try:
                results[address] = self.resolve_address(address)
            except CfpError as e:
                logger.warning("Could not resolve %s: %s", address, e.code)
                results[address] = None
        return results

    def name_info(self, name: str) -> Optional[NameInfo]:
        validate_name(name)
        node = namehash(name)
        with ledger_reads("name_info"):
            resolver = self._ledger.ens_resolver(node)
            if is_zero_address(resolver):
                return None
            address = self._ledger.resolver_addr(resolver, node)
            description = self._ledger.resolver_text(resolver, node, DESCRIPTION_KEY)
        reverse_name = None if is_zero_address(address) else self.resolve_address(address)
        return NameInfo(name=name, address=address, description=description or None,
                        reverse_name=reverse_name)

    def is_name_available(self, name: str) -> bool:
        validate_name(name)
        with ledger_reads("check_availability"):
            return is_zero_address(self._ledger.ens_owner(namehash(name)))
