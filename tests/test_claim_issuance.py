import pytest

from caps_ledger import Rejected, REJECT_GLOBAL_CAP
from claim_issuance import ClaimIssuer, normalize_score, normalize_wallet
from errors import (
    GlobalCapExceeded,
    InvalidScore,
    InvalidWallet,
    QuotaExceeded,
    RewardTooSmall,
    SigningError,
    StorageError,
    WalletCapExceeded,
)
from models_rewards import ClaimNonce, ScoreSubmission
from nonces import NonceIssuer
from conftest import T0, TEST_SIGNER_ADDRESS, WALLET_A

TOKEN = 10 ** 18


class BrokenSigner:
    address = '0x0000000000000000000000000000000000000000'

    def sign(self, claim):
        raise SigningError()


class BrokenNonces:
    def issue_nonce(self, wallet):
        raise StorageError()


class GlobalFullLedger:
    def try_reserve(self, wallet, day, amount):
        return Rejected(REJECT_GLOBAL_CAP)


def _issuer(issuer, **overrides):
    params = dict(
        signer=issuer.signer,
        ledger=issuer.ledger,
        nonce_issuer=issuer.nonce_issuer,
        difficulty_numerator=issuer.difficulty_numerator,
        decimals=issuer.decimals,
        max_score=issuer.max_score,
        claim_window_seconds=issuer.claim_window_seconds,
        clock=issuer.clock,
    )
    params.update(overrides)
    return ClaimIssuer(**params)


def test_score_250_end_to_end(issuer):
    issued = issuer.issue(WALLET_A, 250)
    assert issued.claim.reward == 2 * TOKEN
    assert issued.claim.deadline == T0 + 600
    assert issued.issued_at == T0
    assert issuer.signer.verify(issued.claim, issued.signature) == issuer.signer.address


def test_deadline_uses_configured_window(issuer):
    issued = _issuer(issuer, claim_window_seconds=60).issue(WALLET_A, 250)
    assert issued.claim.deadline == T0 + 60


def test_difficulty_scales_reward(issuer):
    issued = _issuer(issuer, difficulty_numerator=3).issue(WALLET_A, 250)
    assert issued.claim.reward == 7 * TOKEN


def test_repeated_submissions_stop_at_wallet_cap(issuer):
    for _ in range(5):
        issuer.issue(WALLET_A, 250)
    with pytest.raises(WalletCapExceeded) as exc:
        issuer.issue(WALLET_A, 250)
    assert isinstance(exc.value, QuotaExceeded)
    assert exc.value.status_code == 429


def test_global_rejection_maps_to_global_cap_error(issuer):
    with pytest.raises(GlobalCapExceeded):
        _issuer(issuer, ledger=GlobalFullLedger()).issue(WALLET_A, 250)
    assert ScoreSubmission.query.count() == 0


def test_low_score_is_reward_too_small(issuer):
    with pytest.raises(RewardTooSmall):
        issuer.issue(WALLET_A, 99)
    assert issuer.ledger.global_total('2023-11-14') == 0


def test_signing_failure_returns_nothing_and_keeps_reservation(issuer):
    with pytest.raises(SigningError):
        _issuer(issuer, signer=BrokenSigner()).issue(WALLET_A, 250)
    assert ScoreSubmission.query.count() == 0
    # nonce was logged and the cap reservation is not released
    assert ClaimNonce.query.count() == 1
    assert issuer.ledger.wallet_total(WALLET_A, '2023-11-14') == 2 * TOKEN


def test_nonce_store_failure_is_a_storage_error(issuer):
    with pytest.raises(StorageError):
        _issuer(issuer, nonce_issuer=BrokenNonces()).issue(WALLET_A, 250)
    assert ScoreSubmission.query.count() == 0


def test_nonce_issuer_is_used_per_claim(issuer):
    custom = _issuer(issuer, nonce_issuer=NonceIssuer(clock_ns=lambda: 1))
    issued = custom.issue(WALLET_A, 250)
    assert issued.claim.nonce >> 80 == 1


def test_normalize_wallet_keeps_valid_addresses():
    assert normalize_wallet('  ' + WALLET_A + ' ') == WALLET_A
    assert normalize_wallet(WALLET_A[2:]) == WALLET_A
    assert normalize_wallet('0X' + WALLET_A[2:].upper()) == WALLET_A
    assert normalize_wallet(TEST_SIGNER_ADDRESS) == TEST_SIGNER_ADDRESS.lower()
    with pytest.raises(InvalidWallet):
        normalize_wallet('0xZZZ0000000000000000000000000000000000001')


def test_normalize_score_bounds():
    assert normalize_score(0, 100000) == 0
    assert normalize_score(100000, 100000) == 100000
    assert normalize_score(3.0, 100000) == 3
    for bad in (-1, 100001, 2.5, False, '7'):
        with pytest.raises(InvalidScore):
            normalize_score(bad, 100000)
