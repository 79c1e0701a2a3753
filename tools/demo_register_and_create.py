import json, os, secrets, time
import requests
from eth_account import Account
from cfp_api.signatures import call_creation_message, proposal_message, registration_message, sign_message
from cfp_api.util import epoch_to_iso

BASE = os.getenv("CFP_API_URL", "http://127.0.0.1:8000")

acct = Account.create()
factory = requests.get(BASE + "/contract-address", timeout=10).json()["address"]
print("Factory:", factory, "Client:", acct.address)

r = requests.post(BASE + "/register", json={
    "address": acct.address,
    "signature": sign_message(acct.key, registration_message(factory)),
}, timeout=180)
print("Register:", r.status_code, r.text)

call_id = "0x" + secrets.token_hex(32)
r = requests.post(BASE + "/create-with-ens", json={
    "callId": call_id,
    "closingTime": epoch_to_iso(int(time.time()) + 3600),
    "signature": sign_message(acct.key, call_creation_message(factory, call_id)),
    "callName": "demo-" + call_id[2:10],
    "description": "Demo call",
}, timeout=300)
print("Create:", r.status_code, json.dumps(r.json(), indent=2))

proposal = "0x" + secrets.token_hex(32)
r = requests.post(BASE + "/register-proposal-with-signature", json={
    "callId": call_id,
    "proposal": proposal,
    "signature": sign_message(acct.key, proposal_message(proposal)),
    "signer": acct.address,
}, timeout=180)
print("Proposal:", r.status_code, r.text)

print("Proposal data:", requests.get(f"{BASE}/proposal-data/{call_id}/{proposal}", timeout=10).json())
