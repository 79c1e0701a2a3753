"""
ABI fragments for the deployed contracts.

Only the functions this service calls are listed.
"""


def _fn(name, inputs=(), outputs=(), mutability="view"):
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t, "internalType": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t, "internalType": t} for n, t in outputs],
    }


def _tx(name, inputs=()):
    return _fn(name, inputs, (), "nonpayable")


CFP_FACTORY_ABI = [
    _fn("owner", outputs=[("", "address")]),
    _fn("isRegistered", [("account", "address")], [("", "bool")]),
    _fn("isAuthorized", [("account", "address")], [("", "bool")]),
    _tx("authorize", [("account", "address")]),
    _tx("register"),
    _fn("calls", [("callId", "bytes32")], [("creator", "address"), ("cfp", "address")]),
    _fn("creatorsCount", outputs=[("", "uint256")]),
    _fn("creators", [("index", "uint256")], [("", "address")]),
    _fn("createdByCount", [("creator", "address")], [("", "uint256")]),
    _fn("createdBy", [("creator", "address"), ("index", "uint256")], [("", "bytes32")]),
    _tx("createFor", [("callId", "bytes32"), ("timestamp", "uint256"), ("creator", "address")]),
    _tx("create", [("callId", "bytes32"), ("timestamp", "uint256")]),
]

CFP_ABI = [
    _fn("closingTime", outputs=[("", "uint256")]),
    _fn(
        "proposalData",
        [("proposal", "bytes32")],
        [("sender", "address"), ("blockNumber", "uint256"), ("timestamp", "uint256")],
    ),
    _tx("registerProposal", [("proposal", "bytes32")]),
    _fn("proposalCount", outputs=[("", "uint256")]),
]

ENS_REGISTRY_ABI = [
    _fn("owner", [("node", "bytes32")], [("", "address")]),
    _fn("resolver", [("node", "bytes32")], [("", "address")]),
    _tx("setResolver", [("node", "bytes32"), ("resolver", "address")]),
]

PUBLIC_RESOLVER_ABI = [
    _fn("addr", [("node", "bytes32")], [("", "address")]),
    _tx("setAddr", [("node", "bytes32"), ("addr", "address")]),
    _fn("text", [("node", "bytes32"), ("key", "string")], [("", "string")]),
    _tx("setText", [("node", "bytes32"), ("key", "string"), ("value", "string")]),
    _fn("name", [("node", "bytes32")], [("", "string")]),
]

REVERSE_REGISTRAR_ABI = [
    _fn("node", [("addr", "address")], [("", "bytes32")]),
    _tx("setNameForAddress", [("addr", "address"), ("name", "string")]),
]

FIFS_REGISTRAR_ABI = [
    _tx("register", [("label", "bytes32"), ("owner", "address")]),
]
