"""Reward issuance models (daily cap aggregates, nonces, score submissions).

Token amounts are stored as decimal strings: with 18 decimals they do not fit
in a 64-bit integer and SQLite has no exact wide numeric type.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String

from extensions import db


class DailyWalletTotal(db.Model):
    """Cumulative reward issued to one wallet on one UTC day."""

    __tablename__ = "daily_wallet_totals"

    wallet = Column(String(42), primary_key=True)
    # YYYY-MM-DD (UTC); rollover happens because the key changes
    day = Column(String(10), primary_key=True)
    total = Column(String(80), nullable=False, default="0")
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class GlobalDailyTotal(db.Model):
    """Cumulative reward issued to all wallets on one UTC day."""

    __tablename__ = "global_daily_totals"

    day = Column(String(10), primary_key=True)
    total = Column(String(80), nullable=False, default="0")
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class ClaimNonce(db.Model):
    """Append-only log of issued claim nonces."""

    __tablename__ = "claim_nonces"

    id = Column(Integer, primary_key=True)
    wallet = Column(String(42), nullable=False, index=True)
    nonce = Column(String(80), nullable=False, unique=True)
    issued_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_claim_nonce_wallet_issued", "wallet", "issued_at"),
    )


class ScoreSubmission(db.Model):
    """Accepted score submissions, whether or not the claim is executed on-chain."""

    __tablename__ = "score_submissions"

    id = Column(Integer, primary_key=True)
    wallet = Column(String(42), nullable=False, index=True)
    score = Column(Integer, nullable=False)
    reward = Column(String(80), nullable=False)
    nonce = Column(String(80), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    __table_args__ = (
        Index("idx_score_submissions_score", "score"),
        Index("idx_score_submissions_wallet_score", "wallet", "score"),
    )

    def to_dict(self):
        return {
            "wallet": self.wallet,
            "score": self.score,
            "reward": self.reward,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
