from flask import request
from flask_limiter import Limiter
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def get_client_ip() -> str:
    """Best-effort client IP, used as the rate limit key.

    Behind ProxyFix, access_route[0] is the real client. Local development
    falls back to remote_addr.
    """
    if request.access_route:
        return request.access_route[0]
    return request.remote_addr or "0.0.0.0"


# Storage comes from RATELIMIT_STORAGE_URI; use Redis when running more than one instance.
limiter = Limiter(get_client_ip, default_limits=["200 per day", "50 per hour"])
