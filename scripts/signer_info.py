#!/usr/bin/env python3
"""Inspect the claim signer configured in the environment.

Run from the repository root:
  python -m scripts.signer_info              # signer address + EIP-712 domain
  python -m scripts.signer_info --generate   # fresh key for SERVER_PRIVATE_KEY
  python -m scripts.signer_info --verify response.json

--verify takes a saved /api/score/submit response ({claim, signature}) and
checks it against the configured domain, the same way RewardsVault does.
"""

import argparse
import json
import sys

from eth_account import Account

from claim_signer import ClaimRecord, ClaimSigner
from config import Config


def _signer() -> ClaimSigner:
    if not Config.SERVER_PRIVATE_KEY or not Config.REWARDS_VAULT_ADDRESS:
        raise SystemExit("SERVER_PRIVATE_KEY and REWARDS_VAULT_ADDRESS must be set")
    return ClaimSigner(
        Config.SERVER_PRIVATE_KEY,
        chain_id=Config.CHAIN_ID,
        verifying_contract=Config.REWARDS_VAULT_ADDRESS,
        name=Config.EIP712_DOMAIN_NAME,
        version=Config.EIP712_DOMAIN_VERSION,
    )


def _verify(path: str) -> int:
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    c = payload["claim"]
    claim = ClaimRecord(
        player=c["player"],
        score=int(c["score"]),
        reward=int(c["reward"]),
        nonce=int(c["nonce"]),
        deadline=int(c["deadline"]),
    )
    signer = _signer()
    recovered = signer.verify(claim, payload["signature"])
    ok = recovered.lower() == signer.address.lower()
    print(json.dumps({"ok": ok, "recovered": recovered, "expected": signer.address}, indent=2))
    return 0 if ok else 1


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--generate", action="store_true", help="generate a new signing key")
    parser.add_argument("--verify", metavar="FILE", help="verify a saved claim response")
    args = parser.parse_args(argv)

    if args.generate:
        acct = Account.create()
        print("SERVER_PRIVATE_KEY=0x" + bytes(acct.key).hex())
        print("# signer address (set this as the vault signer on-chain):")
        print(acct.address)
        return 0

    if args.verify:
        return _verify(args.verify)

    signer = _signer()
    print(json.dumps({"signer_address": signer.address, "domain": signer.domain}, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
