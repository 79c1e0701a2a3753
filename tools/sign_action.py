import argparse, json
from cfp_api.signatures import call_creation_message, proposal_message, registration_message, sign_message


def main():
    p = argparse.ArgumentParser(description="Produce the signature a client sends for a CFP registry action.")
    p.add_argument("action", choices=["register", "create", "proposal"])
    p.add_argument("--key", required=True, help="0x-prefixed private key of the signer")
    p.add_argument("--factory", help="factory contract address (register, create)")
    p.add_argument("--call-id", help="32-byte call id (create)")
    p.add_argument("--proposal", help="32-byte proposal hash (proposal)")
    args = p.parse_args()

    if args.action == "register":
        if not args.factory:
            p.error("--factory is required")
        payload = registration_message(args.factory)
    elif args.action == "create":
        if not (args.factory and args.call_id):
            p.error("--factory and --call-id are required")
        payload = call_creation_message(args.factory, args.call_id)
    else:
        if not args.proposal:
            p.error("--proposal is required")
        payload = proposal_message(args.proposal)

    print(json.dumps({"action": args.action, "signature": sign_message(args.key, payload)}, indent=2))


if __name__ == "__main__":
    main()
