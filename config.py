import os

from dotenv import load_dotenv

load_dotenv()


def _is_production() -> bool:
    return bool(os.getenv("RENDER")) or os.getenv("FLASK_ENV") == "production"


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if not url:
        if _is_production():
            raise RuntimeError("DATABASE_URL missing in production; refusing to use SQLite.")
        url = "sqlite:///rewards.db"
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY") or os.getenv("FLASK_SECRET_KEY") or "dev-secret-key-change-me"
    PRODUCTION = _is_production()
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_recycle": 300,
        "pool_pre_ping": True,
    }

    # Signing domain (Base Sepolia by default)
    CHAIN_ID = int(os.getenv("CHAIN_ID", "84532"))
    REWARDS_VAULT_ADDRESS = os.getenv("REWARDS_VAULT_ADDRESS", "").strip()
    SERVER_PRIVATE_KEY = os.getenv("SERVER_PRIVATE_KEY", "").strip()
    EIP712_DOMAIN_NAME = os.getenv("EIP712_DOMAIN_NAME", "CryptoSnakeRewards")
    EIP712_DOMAIN_VERSION = os.getenv("EIP712_DOMAIN_VERSION", "1")

    # Reward economics. Caps are whole tokens and converted with TOKEN_DECIMALS.
    TOKEN_DECIMALS = int(os.getenv("TOKEN_DECIMALS", "18"))
    DIFFICULTY_NUMERATOR = int(os.getenv("DIFFICULTY_NUMERATOR", "1"))
    CAP_PER_WALLET_PER_DAY = os.getenv("CAP_PER_WALLET_PER_DAY", "2000")
    CAP_GLOBAL_PER_DAY = os.getenv("CAP_GLOBAL_PER_DAY", "200000")
    CLAIM_WINDOW_SECONDS = int(os.getenv("CLAIM_WINDOW_SECONDS", "600"))
    MAX_SCORE = int(os.getenv("MAX_SCORE", "100000"))

    # Optional shared cap store; SQL tables are used when unset
    CAPS_REDIS_URL = os.getenv("CAPS_REDIS_URL", "").strip()
    CAPS_REDIS_TTL_SECONDS = int(os.getenv("CAPS_REDIS_TTL_SECONDS", str(7 * 24 * 3600)))

    # Transport rate limiting (Flask-Limiter)
    RATELIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URL", "memory://")
    SCORE_SUBMIT_RATE_LIMIT = os.getenv("SCORE_SUBMIT_RATE_LIMIT", "5 per minute")

    CORS_ORIGIN = os.getenv("CORS_ORIGIN", "http://localhost:3000")
