"""Score submission -> signed claim.

States, in order:
  received -> validated -> reward_computed -> caps_reserved -> nonce_issued
  -> signed -> persisted -> responded
Any step may exit to ``rejected`` by raising a ClaimError subclass.

Caps reserved for a request that later fails (nonce store, signing, submission
insert) are not released. The wallet loses that quota for the day.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone

from eth_utils import is_address
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from caps_ledger import REJECT_GLOBAL_CAP, utc_day, wallet_key
from claim_signer import ClaimRecord, ClaimSigner
from errors import (
    GlobalCapExceeded,
    InvalidScore,
    InvalidWallet,
    RewardTooSmall,
    StorageError,
    WalletCapExceeded,
)
from extensions import db
from models_rewards import ScoreSubmission
from nonces import NonceIssuer
from rewards import compute_reward

STATE_RECEIVED = "received"
STATE_VALIDATED = "validated"
STATE_REWARD_COMPUTED = "reward_computed"
STATE_CAPS_RESERVED = "caps_reserved"
STATE_NONCE_ISSUED = "nonce_issued"
STATE_SIGNED = "signed"
STATE_PERSISTED = "persisted"
STATE_RESPONDED = "responded"
STATE_REJECTED = "rejected"


@dataclass(frozen=True)
class IssuedClaim:
    claim: ClaimRecord
    signature: str
    issued_at: int

    def to_dict(self) -> dict:
        return {"success": True, "claim": self.claim.to_dict(), "signature": self.signature}


def normalize_wallet(wallet) -> str:
    """Validate an address and return its canonical lowercase 0x form."""
    if not isinstance(wallet, str):
        raise InvalidWallet()
    wallet = wallet.strip()
    if not is_address(wallet):
        raise InvalidWallet()
    return wallet_key(wallet)


def normalize_score(score, max_score: int) -> int:
    # bool is an int subclass; JSON true is not a score
    if isinstance(score, bool):
        raise InvalidScore()
    if isinstance(score, float):
        if not score.is_integer():
            raise InvalidScore()
        score = int(score)
    if not isinstance(score, int):
        raise InvalidScore()
    if score < 0 or score > max_score:
        raise InvalidScore(f"Score must be between 0 and {max_score}")
    return score


class ClaimIssuer:
    def __init__(
        self,
        signer: ClaimSigner,
        ledger,
        nonce_issuer: NonceIssuer,
        difficulty_numerator: int = 1,
        decimals: int = 18,
        max_score: int = 100000,
        claim_window_seconds: int = 600,
        clock=time.time,
    ):
        self.signer = signer
        self.ledger = ledger
        self.nonce_issuer = nonce_issuer
        self.difficulty_numerator = int(difficulty_numerator)
        self.decimals = int(decimals)
        self.max_score = int(max_score)
        self.claim_window_seconds = int(claim_window_seconds)
        self.clock = clock

    def current_day(self) -> str:
        """UTC day the caps are keyed on, taken from the issuer clock."""
        return utc_day(datetime.fromtimestamp(self.clock(), tz=timezone.utc))

    def issue(self, wallet, score) -> IssuedClaim:
        state = STATE_RECEIVED
        try:
            wallet = normalize_wallet(wallet)
            score = normalize_score(score, self.max_score)
            state = STATE_VALIDATED

            reward = compute_reward(score, self.difficulty_numerator, self.decimals)
            if reward == 0:
                raise RewardTooSmall()
            state = STATE_REWARD_COMPUTED

            day = self.current_day()
            result = self.ledger.try_reserve(wallet, day, reward)
            if not result.admitted:
                current_app.logger.info(f"[caps-reject] wallet={wallet} day={day} reason={result.reason}")
                if result.reason == REJECT_GLOBAL_CAP:
                    raise GlobalCapExceeded()
                raise WalletCapExceeded()
            state = STATE_CAPS_RESERVED

            nonce = self.nonce_issuer.issue_nonce(wallet)
            issued_at = int(self.clock())
            deadline = issued_at + self.claim_window_seconds
            state = STATE_NONCE_ISSUED

            claim = ClaimRecord(player=wallet, score=score, reward=reward, nonce=nonce, deadline=deadline)
            signature = self.signer.sign(claim)
            state = STATE_SIGNED

            self._record_submission(wallet, score, reward, nonce)
            state = STATE_PERSISTED
        except Exception as exc:
            current_app.logger.info(f"[claim-{STATE_REJECTED}] at={state} error={type(exc).__name__}")
            raise

        current_app.logger.info(
            f"[claim-{STATE_RESPONDED}] wallet={wallet} score={score} reward={reward} nonce={nonce} deadline={deadline}"
        )
        return IssuedClaim(claim=claim, signature=signature, issued_at=issued_at)

    def _record_submission(self, wallet: str, score: int, reward: int, nonce: int) -> None:
        try:
            db.session.add(
                ScoreSubmission(
                    wallet=wallet,
                    score=score,
                    reward=str(reward),
                    nonce=str(nonce),
                    created_at=datetime.utcnow(),
                )
            )
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError() from exc
