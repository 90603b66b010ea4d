"""EIP-712 claim signing.

The digest binds the domain (name, version, chainId, verifyingContract) as well
as the claim fields, so a signature made for one chain or vault contract does
not verify against another. The RewardsVault contract recomputes the same
digest and recovers the signer on-chain.
"""

from __future__ import annotations

from dataclasses import dataclass

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import is_address, to_checksum_address

from errors import SigningError

DOMAIN_NAME = "CryptoSnakeRewards"
DOMAIN_VERSION = "1"

EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

CLAIM_TYPE = [
    {"name": "player", "type": "address"},
    {"name": "score", "type": "uint256"},
    {"name": "reward", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
]


@dataclass(frozen=True)
class ClaimRecord:
    player: str
    score: int
    reward: int
    nonce: int
    deadline: int

    def to_dict(self) -> dict:
        # Big integers go out as strings; JS numbers would lose precision.
        return {
            "player": self.player,
            "score": int(self.score),
            "reward": str(self.reward),
            "nonce": str(self.nonce),
            "deadline": str(self.deadline),
        }


class ClaimSigner:
    """Holds the backend signing key. Build one per app and pass it in."""

    def __init__(
        self,
        private_key: str,
        chain_id: int,
        verifying_contract: str,
        name: str = DOMAIN_NAME,
        version: str = DOMAIN_VERSION,
    ):
        if not is_address(verifying_contract or ""):
            raise ValueError(f"Invalid verifying contract address: {verifying_contract!r}")
        self._account = Account.from_key(private_key)
        self.domain = {
            "name": name,
            "version": version,
            "chainId": int(chain_id),
            "verifyingContract": to_checksum_address(verifying_contract),
        }

    @property
    def address(self) -> str:
        return self._account.address

    def _typed_data(self, claim: ClaimRecord) -> dict:
        return {
            "types": {"EIP712Domain": EIP712_DOMAIN_TYPE, "Claim": CLAIM_TYPE},
            "primaryType": "Claim",
            "domain": self.domain,
            "message": {
                "player": to_checksum_address(claim.player),
                "score": int(claim.score),
                "reward": int(claim.reward),
                "nonce": int(claim.nonce),
                "deadline": int(claim.deadline),
            },
        }

    def sign(self, claim: ClaimRecord) -> str:
        """Return the 65-byte r||s||v signature as 0x-prefixed hex."""
        try:
            signable = encode_typed_data(full_message=self._typed_data(claim))
            signed = self._account.sign_message(signable)
        except Exception as exc:
            raise SigningError() from exc
        return "0x" + bytes(signed.signature).hex()

    def verify(self, claim: ClaimRecord, signature: str) -> str:
        """Recover the address that produced ``signature`` over ``claim``."""
        signable = encode_typed_data(full_message=self._typed_data(claim))
        return Account.recover_message(signable, signature=signature)

    def is_valid(self, claim: ClaimRecord, signature: str) -> bool:
        try:
            recovered = self.verify(claim, signature)
        except Exception:
            return False
        return recovered.lower() == self.address.lower()
