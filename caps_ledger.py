"""Daily reward caps (per wallet and global).

``try_reserve`` is the only write path: it checks both caps and increments
both totals as one atomic unit. Reading the totals and upserting them as two
separate steps lets two concurrent requests pass the check against the same
stale total, so each backend does the compare and the increment under one
lock / transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import redis
from eth_utils import remove_0x_prefix
from flask import current_app
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import StorageError
from extensions import db
from models_rewards import DailyWalletTotal, GlobalDailyTotal

REJECT_WALLET_CAP = "wallet_cap_exceeded"
REJECT_GLOBAL_CAP = "global_cap_exceeded"


@dataclass(frozen=True)
class Admitted:
    wallet_total: int
    global_total: int
    admitted = True


@dataclass(frozen=True)
class Rejected:
    reason: str
    admitted = False


def utc_day(now: datetime | None = None) -> str:
    """YYYY-MM-DD of the given (or current) moment in UTC."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%d")


def wallet_key(wallet: str) -> str:
    """Canonical ``0x`` + lowercase hex form used for every per-wallet row and key.

    ``0xAbC...``, ``0XABC...`` and bare ``abc...`` are the same 20-byte
    address and must share one cap bucket.
    """
    return "0x" + remove_0x_prefix((wallet or "").strip()).lower()


class SqlCapsLedger:
    """Caps stored in daily_wallet_totals / global_daily_totals.

    Lock order is always global row first, then wallet row.
    """

    def __init__(self, wallet_cap: int, global_cap: int):
        self.wallet_cap = int(wallet_cap)
        self.global_cap = int(global_cap)

    def _insert_missing(self, model, values: dict) -> None:
        dialect = db.engine.dialect.name
        if dialect == "sqlite":
            # Also takes SQLite's write lock, which serializes the read below.
            db.session.execute(sqlite_insert(model).values(**values).on_conflict_do_nothing())
            return
        if dialect in ("postgresql", "postgres"):
            db.session.execute(pg_insert(model).values(**values).on_conflict_do_nothing())
            return
        try:
            with db.session.begin_nested():
                db.session.add(model(**values))
        except IntegrityError:
            pass

    def try_reserve(self, wallet: str, day: str, amount: int) -> Admitted | Rejected:
        wallet = wallet_key(wallet)
        amount = int(amount)
        if amount < 0:
            raise ValueError("amount must be non-negative")

        now = datetime.utcnow()
        try:
            self._insert_missing(GlobalDailyTotal, {"day": day, "total": "0", "updated_at": now})
            self._insert_missing(DailyWalletTotal, {"wallet": wallet, "day": day, "total": "0", "updated_at": now})

            g = db.session.execute(
                select(GlobalDailyTotal)
                .where(GlobalDailyTotal.day == day)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one()
            w = db.session.execute(
                select(DailyWalletTotal)
                .where(DailyWalletTotal.wallet == wallet, DailyWalletTotal.day == day)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one()

            wallet_total = int(w.total or 0)
            global_total = int(g.total or 0)

            if wallet_total + amount > self.wallet_cap:
                db.session.rollback()
                return Rejected(REJECT_WALLET_CAP)
            if global_total + amount > self.global_cap:
                db.session.rollback()
                return Rejected(REJECT_GLOBAL_CAP)

            w.total = str(wallet_total + amount)
            w.updated_at = now
            g.total = str(global_total + amount)
            g.updated_at = now
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.warning(f"[caps-error] wallet={wallet} day={day} error={exc}")
            raise StorageError() from exc

        return Admitted(wallet_total=wallet_total + amount, global_total=global_total + amount)

    def wallet_total(self, wallet: str, day: str) -> int:
        row = DailyWalletTotal.query.get((wallet_key(wallet), day))
        return int(row.total) if row else 0

    def global_total(self, day: str) -> int:
        row = GlobalDailyTotal.query.get(day)
        return int(row.total) if row else 0


class RedisCapsLedger:
    """Caps kept in Redis, for deployments that share totals across instances.

    Uses an optimistic WATCH/MULTI transaction over both keys. Totals are
    decimal strings and the arithmetic happens in Python, so amounts larger
    than Redis' 64-bit INCRBY range stay exact.
    """

    def __init__(
        self,
        client: redis.Redis,
        wallet_cap: int,
        global_cap: int,
        key_prefix: str = "caps:",
        ttl_seconds: int = 7 * 24 * 3600,
        max_retries: int = 100,
    ):
        self.client = client
        self.wallet_cap = int(wallet_cap)
        self.global_cap = int(global_cap)
        self.key_prefix = key_prefix
        # Retention only. Keys must outlive their day or the cap would reset early.
        self.ttl_seconds = max(int(ttl_seconds), 2 * 24 * 3600)
        self.max_retries = max_retries

    def _wallet_key(self, wallet: str, day: str) -> str:
        return f"{self.key_prefix}wallet:{day}:{wallet_key(wallet)}"

    def _global_key(self, day: str) -> str:
        return f"{self.key_prefix}global:{day}"

    def try_reserve(self, wallet: str, day: str, amount: int) -> Admitted | Rejected:
        amount = int(amount)
        if amount < 0:
            raise ValueError("amount must be non-negative")
        wkey = self._wallet_key(wallet, day)
        gkey = self._global_key(day)

        try:
            for _ in range(self.max_retries):
                with self.client.pipeline() as pipe:
                    try:
                        pipe.watch(gkey, wkey)
                        wallet_total = int(pipe.get(wkey) or 0)
                        global_total = int(pipe.get(gkey) or 0)
                        if wallet_total + amount > self.wallet_cap:
                            pipe.unwatch()
                            return Rejected(REJECT_WALLET_CAP)
                        if global_total + amount > self.global_cap:
                            pipe.unwatch()
                            return Rejected(REJECT_GLOBAL_CAP)
                        pipe.multi()
                        pipe.set(wkey, str(wallet_total + amount), ex=self.ttl_seconds)
                        pipe.set(gkey, str(global_total + amount), ex=self.ttl_seconds)
                        pipe.execute()
                        return Admitted(wallet_total=wallet_total + amount, global_total=global_total + amount)
                    except redis.WatchError:
                        continue
        except redis.RedisError as exc:
            current_app.logger.warning(f"[caps-error] wallet={wallet_key(wallet)} day={day} error={exc}")
            raise StorageError() from exc

        raise StorageError("Cap store is too busy, please retry")

    def wallet_total(self, wallet: str, day: str) -> int:
        return int(self.client.get(self._wallet_key(wallet, day)) or 0)

    def global_total(self, day: str) -> int:
        return int(self.client.get(self._global_key(day)) or 0)
