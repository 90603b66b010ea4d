import os
import time
from datetime import datetime, timezone

import redis
from eth_account import Account
from flask import Flask, jsonify, request
from flask_compress import Compress
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from caps_ledger import RedisCapsLedger, SqlCapsLedger
from claim_issuance import ClaimIssuer
from claim_signer import ClaimSigner
from config import Config
from extensions import db, limiter
from nonces import NonceIssuer
from rewards import parse_token_amount

DEV_VAULT_ADDRESS = "0x" + "0" * 40

_started_at = time.time()


def _build_signer(flask_app: Flask) -> ClaimSigner:
    cfg = flask_app.config
    private_key = cfg.get("SERVER_PRIVATE_KEY")
    vault = cfg.get("REWARDS_VAULT_ADDRESS")

    if cfg.get("PRODUCTION") and (not private_key or not vault):
        raise RuntimeError("SERVER_PRIVATE_KEY and REWARDS_VAULT_ADDRESS must be set in production.")
    if not private_key:
        # Throwaway key so local dev boots; its claims will not verify on-chain.
        private_key = Account.create().key
        flask_app.logger.warning("[signer] SERVER_PRIVATE_KEY not set, using an ephemeral key")
    if not vault:
        vault = DEV_VAULT_ADDRESS
        flask_app.logger.warning("[signer] REWARDS_VAULT_ADDRESS not set, using the zero address")

    return ClaimSigner(
        private_key,
        chain_id=cfg["CHAIN_ID"],
        verifying_contract=vault,
        name=cfg.get("EIP712_DOMAIN_NAME", "CryptoSnakeRewards"),
        version=cfg.get("EIP712_DOMAIN_VERSION", "1"),
    )


def _build_ledger(flask_app: Flask):
    cfg = flask_app.config
    decimals = int(cfg["TOKEN_DECIMALS"])
    wallet_cap = parse_token_amount(cfg["CAP_PER_WALLET_PER_DAY"], decimals)
    global_cap = parse_token_amount(cfg["CAP_GLOBAL_PER_DAY"], decimals)

    redis_url = cfg.get("CAPS_REDIS_URL")
    if redis_url:
        flask_app.logger.info("[caps] using Redis cap store")
        return RedisCapsLedger(
            redis.from_url(redis_url),
            wallet_cap,
            global_cap,
            ttl_seconds=int(cfg.get("CAPS_REDIS_TTL_SECONDS", 7 * 24 * 3600)),
        )
    return SqlCapsLedger(wallet_cap, global_cap)


def build_claim_issuer(flask_app: Flask, signer: ClaimSigner | None = None, clock=time.time) -> ClaimIssuer:
    cfg = flask_app.config
    return ClaimIssuer(
        signer=signer or _build_signer(flask_app),
        ledger=_build_ledger(flask_app),
        nonce_issuer=NonceIssuer(),
        difficulty_numerator=cfg["DIFFICULTY_NUMERATOR"],
        decimals=cfg["TOKEN_DECIMALS"],
        max_score=cfg["MAX_SCORE"],
        claim_window_seconds=cfg["CLAIM_WINDOW_SECONDS"],
        clock=clock,
    )


def create_app(config_class=Config, signer: ClaimSigner | None = None, clock=time.time) -> Flask:
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get("LOG_LEVEL", "INFO"))

    if flask_app.config.get("PRODUCTION"):
        if flask_app.config["SECRET_KEY"].startswith("dev-secret-key-change"):
            raise RuntimeError("SECRET_KEY must be set to a strong random value in production.")
        # Trust a single proxy hop so rate limits see the real client IP
        flask_app.wsgi_app = ProxyFix(flask_app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    db.init_app(flask_app)
    limiter.init_app(flask_app)
    Compress(flask_app)
    CORS(flask_app, supports_credentials=True, origins=[flask_app.config.get("CORS_ORIGIN", "*")])

    issuer = build_claim_issuer(flask_app, signer=signer, clock=clock)
    flask_app.extensions["claim_issuer"] = issuer
    flask_app.logger.info(f"[signer] backend signer address: {issuer.signer.address}")

    from score_api import score_api
    flask_app.register_blueprint(score_api)

    @flask_app.get("/health")
    def health():
        return jsonify({
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.time() - _started_at, 3),
        })

    @flask_app.errorhandler(404)
    def not_found(_err):
        return jsonify({"success": False, "error": "Not found"}), 404

    @flask_app.errorhandler(429)
    def rate_limited(_err):
        return jsonify({
            "success": False,
            "error": "Too many score submissions, please try again later.",
            "reason": "rate_limited",
        }), 429

    @flask_app.after_request
    def add_default_headers(resp):
        if request.path.startswith("/api/"):
            resp.headers.setdefault("Cache-Control", "no-store")
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        return resp

    with flask_app.app_context():
        import models_rewards  # noqa: F401
        db.create_all()

    return flask_app


if __name__ == '__main__':
    app = create_app()
    port = int(os.getenv('PORT', 8787))
    debug = os.getenv('FLASK_ENV', 'development') == 'development'

    print("=" * 60)
    print("Score Rewards claim service")
    print("=" * 60)
    print(f"Chain ID: {app.config['CHAIN_ID']}")
    print(f"Signer: {app.extensions['claim_issuer'].signer.address}")
    print(f"Submit: http://localhost:{port}/api/score/submit")
    print("=" * 60)

    app.run(debug=debug, port=port)
