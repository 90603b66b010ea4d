"""Claim nonce issuance.

A nonce is ``time.time_ns() << 80 | 80 random bits``: unique across wallets,
roughly increasing, and well inside uint256. It is committed to claim_nonces
before it is handed out, so a nonce that was signed is always in the log.
"""

import secrets
import time
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from caps_ledger import wallet_key
from errors import StorageError
from extensions import db
from models_rewards import ClaimNonce

RANDOM_BITS = 80


def new_nonce_value(clock_ns=time.time_ns) -> int:
    return (int(clock_ns()) << RANDOM_BITS) | secrets.randbits(RANDOM_BITS)


class NonceIssuer:
    def __init__(self, max_attempts: int = 3, clock_ns=time.time_ns):
        self.max_attempts = max_attempts
        self.clock_ns = clock_ns

    def issue_nonce(self, wallet: str) -> int:
        wallet = wallet_key(wallet)
        for attempt in range(1, self.max_attempts + 1):
            nonce = new_nonce_value(self.clock_ns)
            try:
                db.session.add(ClaimNonce(wallet=wallet, nonce=str(nonce), issued_at=datetime.utcnow()))
                db.session.commit()
                return nonce
            except IntegrityError:
                db.session.rollback()
                current_app.logger.warning(f"[nonce-collision] wallet={wallet} attempt={attempt}")
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise StorageError() from exc
        raise StorageError("Could not allocate a unique nonce")
