"""Rejection reasons for claim issuance.

Every failure carries a machine-readable ``reason`` so the game UI can show an
accurate message, and an HTTP status the blueprint uses as-is.
"""


class ClaimError(Exception):
    reason = "claim_error"
    status_code = 500
    message = "Claim could not be issued"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, "reason": self.reason}


# ---- Client errors (never retried) ----
class InvalidInput(ClaimError):
    reason = "invalid_input"
    status_code = 400
    message = "Invalid input"


class InvalidWallet(InvalidInput):
    reason = "invalid_wallet"
    message = "Invalid wallet address"


class InvalidScore(InvalidInput):
    reason = "invalid_score"
    message = "Invalid score"


class RewardTooSmall(ClaimError):
    reason = "reward_too_small"
    status_code = 400
    message = "Score too low for reward"


# ---- Throttling (retry after the next UTC day) ----
class QuotaExceeded(ClaimError):
    reason = "quota_exceeded"
    status_code = 429
    message = "Daily reward cap exceeded"


class WalletCapExceeded(QuotaExceeded):
    reason = "wallet_cap_exceeded"
    message = "Daily reward cap exceeded for this wallet"


class GlobalCapExceeded(QuotaExceeded):
    reason = "global_cap_exceeded"
    message = "Global daily reward cap exceeded"


# ---- Server errors ----
class StorageError(ClaimError):
    """Cap, nonce or submission store unavailable. Safe to retry the submission."""

    reason = "storage_unavailable"
    status_code = 500
    message = "Storage temporarily unavailable"


class SigningError(ClaimError):
    reason = "signing_failed"
    status_code = 500
    message = "Claim could not be signed"
