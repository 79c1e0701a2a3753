import json
from eth_account import Account
from eth_utils import to_hex

Account.enable_unaudited_hdwallet_features()
acct, mnemonic = Account.create_with_mnemonic()

print(json.dumps({"mnemonic": mnemonic, "address": acct.address, "private_key": to_hex(acct.key)}, indent=2))
print("Export MNEMONIC to use this account as the operating key.")
