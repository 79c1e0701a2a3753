import os
import sys
from collections import defaultdict
from itertools import count

import pytest
from eth_account import Account
from eth_utils import keccak, to_checksum_address, to_hex
from fastapi.testclient import TestClient

# Ensure the package is importable without installation
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cfp_api import config
from cfp_api.errors import (
    REVERT_ALREADY_AUTHORIZED,
    REVERT_CALL_CLOSED,
    REVERT_CALL_EXISTS,
    REVERT_CLOSING_IN_PAST,
    REVERT_PROPOSAL_EXISTS,
    REVERT_UNAUTHORIZED,
)
from cfp_api.ledger import (
    CALLS_REGISTRAR,
    USERS_REGISTRAR,
    CallRecord,
    LedgerClient,
    LedgerRejection,
    PendingTx,
    ProposalRecord,
    TxReceipt,
)
from cfp_api.main import app, get_ledger, write_limiter
from cfp_api.naming import namehash
from cfp_api.signatures import sign_message
from cfp_api.util import ZERO_ADDRESS, hex32_to_bytes, now_epoch, strip_0x

FACTORY = to_checksum_address("0x" + "fa" * 20)
RESOLVER = to_checksum_address("0x" + "5e" * 20)


class FakeLedger(LedgerClient):
    """
    In-memory stand-in for the deployed contracts.

    Writes apply immediately and revert with the same strings as the real
    contracts. `fail_on[method]` makes that method raise the given error.
    `now` pins the ledger clock; None follows the wall clock.
    """

    def __init__(self, operator: str):
        self.operator = operator
        self.owner_address = operator
        self.now = None
        self.fail_on = {}
        self.log = []

        self.registered = set()
        self.authorized = set()
        self.call_records = {}
        self.creator_list = []
        self.created = defaultdict(list)
        self.closing = {}
        self.proposals = defaultdict(dict)

        self.ens_owners = {}
        self.ens_resolvers = {}
        self.addrs = {}
        self.texts = {}
        self.names = {}
        self.registrar_nodes = {
            CALLS_REGISTRAR: namehash(config.CALLS_DOMAIN),
            USERS_REGISTRAR: namehash(config.USERS_DOMAIN),
        }

        self._blocks = count(1)
        self._cfps = count(1)

    # -- helpers

    def _touch(self, name):
        self.log.append(name)
        if name in self.fail_on:
            raise self.fail_on[name]

    def _clock(self):
        return now_epoch() if self.now is None else self.now

    def _mine(self, name):
        block = next(self._blocks)
        tx_hash = to_hex(keccak(text=f"{name}:{block}"))
        receipt = TxReceipt(tx_hash=tx_hash, block_number=block, status=1)
        return PendingTx(tx_hash, lambda _: receipt)

    def add_call(self, call_id, creator, closing_time):
        """Seed a call directly, bypassing the creation rules."""
        cfp = to_checksum_address("0x" + format(next(self._cfps), "040x"))
        self.call_records[call_id.lower()] = CallRecord(creator=creator, cfp=cfp)
        if creator not in self.creator_list:
            self.creator_list.append(creator)
        self.created[creator].append(call_id.lower())
        self.closing[cfp] = closing_time
        return cfp

    # -- addresses

    @property
    def factory_address(self):
        return FACTORY

    @property
    def operator_address(self):
        return self.operator

    @property
    def public_resolver_address(self):
        return RESOLVER

    # -- factory

    def owner(self):
        self._touch("owner")
        return self.owner_address

    def is_registered(self, address):
        self._touch("is_registered")
        return address.lower() in self.registered

    def is_authorized(self, address):
        self._touch("is_authorized")
        return address.lower() in self.authorized

    def calls(self, call_id):
        self._touch("calls")
        return self.call_records.get(call_id.lower(), CallRecord(ZERO_ADDRESS, ZERO_ADDRESS))

    def creators_count(self):
        self._touch("creators_count")
        return len(self.creator_list)

    def creators(self, index):
        self._touch("creators")
        return self.creator_list[index]

    def created_by_count(self, creator):
        self._touch("created_by_count")
        return len(self.created[creator])

    def created_by(self, creator, index):
        self._touch("created_by")
        return self.created[creator][index]

    def authorize(self, address):
        self._touch("authorize")
        if address.lower() in self.registered:
            raise LedgerRejection(f"execution reverted: {REVERT_ALREADY_AUTHORIZED}")
        self.registered.add(address.lower())
        self.authorized.add(address.lower())
        return self._mine("authorize")

    def register(self):
        self._touch("register")
        self.registered.add(self.operator.lower())
        return self._mine("register")

    def create_for(self, call_id, closing_time, creator):
        self._touch("create_for")
        if creator.lower() not in self.authorized:
            raise LedgerRejection(f"execution reverted: {REVERT_UNAUTHORIZED}")
        if call_id.lower() in self.call_records:
            raise LedgerRejection(f"execution reverted: {REVERT_CALL_EXISTS}")
        if closing_time <= self._clock():
            raise LedgerRejection(f"execution reverted: {REVERT_CLOSING_IN_PAST}")
        self.add_call(call_id, creator, closing_time)
        return self._mine("create_for")

    def create(self, call_id, closing_time):
        return self.create_for(call_id, closing_time, self.operator)

    # -- per-CFP

    def closing_time(self, cfp):
        self._touch("closing_time")
        return self.closing[cfp]

    def proposal_data(self, cfp, proposal_hash):
        self._touch("proposal_data")
        return self.proposals[cfp].get(proposal_hash.lower(), ProposalRecord(ZERO_ADDRESS, 0, 0))

    def register_proposal(self, cfp, proposal_hash):
        self._touch("register_proposal")
        if self.closing[cfp] <= self._clock():
            raise LedgerRejection(f"execution reverted: {REVERT_CALL_CLOSED}")
        if proposal_hash.lower() in self.proposals[cfp]:
            raise LedgerRejection(f"execution reverted: {REVERT_PROPOSAL_EXISTS}")
        pending = self._mine("register_proposal")
        self.proposals[cfp][proposal_hash.lower()] = ProposalRecord(
            sender=self.operator, block_number=pending.wait().block_number, timestamp=self._clock())
        return pending

    def proposal_count(self, cfp):
        self._touch("proposal_count")
        return len(self.proposals[cfp])

    # -- naming suite

    def ens_owner(self, node):
        self._touch("ens_owner")
        return self.ens_owners.get(node, ZERO_ADDRESS)

    def ens_resolver(self, node):
        self._touch("ens_resolver")
        return self.ens_resolvers.get(node, ZERO_ADDRESS)

    def set_resolver(self, node, resolver):
        self._touch("set_resolver")
        if self.ens_owners.get(node) != self.operator:
            raise LedgerRejection("execution reverted")
        self.ens_resolvers[node] = resolver
        return self._mine("set_resolver")

    def resolver_addr(self, resolver, node):
        self._touch("resolver_addr")
        return self.addrs.get(node, ZERO_ADDRESS)

    def set_addr(self, node, address):
        self._touch("set_addr")
        self.addrs[node] = address
        return self._mine("set_addr")

    def resolver_text(self, resolver, node, key):
        self._touch("resolver_text")
        return self.texts.get((node, key), "")

    def set_text(self, node, key, value):
        self._touch("set_text")
        self.texts[(node, key)] = value
        return self._mine("set_text")

    def resolver_name(self, resolver, node):
        self._touch("resolver_name")
        return self.names.get(node, "")

    def reverse_node(self, address):
        self._touch("reverse_node")
        return namehash(f"{strip_0x(address).lower()}.addr.reverse")

    def set_name_for_address(self, address, name):
        self._touch("set_name_for_address")
        node = namehash(f"{strip_0x(address).lower()}.addr.reverse")
        self.ens_resolvers[node] = RESOLVER
        self.names[node] = name
        return self._mine("set_name_for_address")

    def registrar_register(self, registrar, label_hash, owner):
        self._touch("registrar_register")
        parent = hex32_to_bytes(self.registrar_nodes[registrar])
        node = to_hex(keccak(parent + hex32_to_bytes(label_hash)))
        if node in self.ens_owners:
            raise LedgerRejection("execution reverted")
        self.ens_owners[node] = owner
        return self._mine("registrar_register")


def call_id(n: int) -> str:
    return "0x" + format(n, "064x")


def sign(account, payload: bytes) -> str:
    return sign_message(account.key, payload)


@pytest.fixture
def operator():
    return Account.create()


@pytest.fixture
def alice():
    return Account.create()


@pytest.fixture
def bob():
    return Account.create()


@pytest.fixture
def ledger(operator):
    return FakeLedger(operator.address)


@pytest.fixture
def client(ledger):
    app.dependency_overrides[get_ledger] = lambda: ledger
    write_limiter.reset()
    yield TestClient(app)
    app.dependency_overrides.clear()
