"""Score submission and read-only game stats APIs.

Routes:
- POST /api/score/submit        {wallet, score} -> {claim, signature}
- GET  /api/leaderboard/top?limit=N
- GET  /api/stats
"""

from datetime import datetime

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func

from caps_ledger import wallet_key
from errors import ClaimError
from extensions import db, get_client_ip, limiter
from models_rewards import ScoreSubmission
from rewards import format_token_amount

score_api = Blueprint("score_api", __name__)

LEADERBOARD_MAX = 100


def _issuer():
    return current_app.extensions["claim_issuer"]


def _submit_rate_key() -> str:
    data = request.get_json(silent=True) or {}
    wallet = data.get("wallet") if isinstance(data, dict) else None
    if not isinstance(wallet, str) or not wallet:
        wallet = "unknown"
    return f"{get_client_ip()}-{wallet_key(wallet)}"


def _submit_rate_limit() -> str:
    return current_app.config.get("SCORE_SUBMIT_RATE_LIMIT", "5 per minute")


@score_api.errorhandler(ClaimError)
def _claim_error(err: ClaimError):
    return jsonify(err.to_dict()), err.status_code


@score_api.post("/api/score/submit")
@limiter.limit(_submit_rate_limit, key_func=_submit_rate_key)
def submit_score():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"success": False, "error": "JSON body is required", "reason": "invalid_input"}), 400

    try:
        issued = _issuer().issue(data.get("wallet"), data.get("score"))
    except ClaimError:
        raise
    except Exception:
        current_app.logger.exception("Score submit failed")
        return jsonify({"success": False, "error": "Internal server error", "reason": "internal_error"}), 500

    return jsonify(issued.to_dict())


@score_api.get("/api/leaderboard/top")
def leaderboard_top():
    try:
        limit = int(request.args.get("limit") or LEADERBOARD_MAX)
    except (TypeError, ValueError):
        limit = LEADERBOARD_MAX
    limit = max(1, min(limit, LEADERBOARD_MAX))

    best = func.max(ScoreSubmission.score).label("best_score")
    rows = (
        db.session.query(
            ScoreSubmission.wallet,
            best,
            func.count(ScoreSubmission.id).label("games"),
            func.max(ScoreSubmission.created_at).label("last_played_at"),
        )
        .group_by(ScoreSubmission.wallet)
        .order_by(best.desc(), ScoreSubmission.wallet.asc())
        .limit(limit)
        .all()
    )

    leaderboard = []
    for i, row in enumerate(rows):
        leaderboard.append(
            {
                "rank": i + 1,
                "wallet": row.wallet,
                "display_wallet": f"{row.wallet[:6]}...{row.wallet[-4:]}",
                "score": int(row.best_score or 0),
                "games": int(row.games or 0),
                "last_played_at": row.last_played_at.isoformat() if row.last_played_at else None,
            }
        )

    return jsonify({"success": True, "leaderboard": leaderboard, "total": len(leaderboard)})


@score_api.get("/api/stats")
def stats():
    issuer = _issuer()
    decimals = issuer.decimals
    today = issuer.current_day()

    rewards_today = issuer.ledger.global_total(today)
    remaining = max(issuer.ledger.global_cap - rewards_today, 0)

    return jsonify(
        {
            "success": True,
            "day": today,
            "total_games": ScoreSubmission.query.count(),
            "rewards_distributed_today": format_token_amount(rewards_today, decimals),
            "remaining_rewards_today": format_token_amount(remaining, decimals),
            "cap_per_wallet_per_day": format_token_amount(issuer.ledger.wallet_cap, decimals),
            "cap_global_per_day": format_token_amount(issuer.ledger.global_cap, decimals),
            "signer_address": issuer.signer.address,
            "last_updated": datetime.utcnow().isoformat(),
        }
    )
