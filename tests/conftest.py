import os
import sys

import pytest

# Ensure the repository root (containing the flat modules) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
REPO_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from app import create_app
from claim_signer import ClaimSigner
from extensions import db

# Hardhat's well-known dev account #0 and first deployment address
TEST_PRIVATE_KEY = '0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80'
TEST_SIGNER_ADDRESS = '0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266'
TEST_VAULT_ADDRESS = '0x5FbDB2315678afecb367f032d93F642f64180aa3'
TEST_CHAIN_ID = 84532

# 2023-11-14T22:13:20Z
T0 = 1_700_000_000

WALLET_A = '0xabc0000000000000000000000000000000000001'
WALLET_B = '0xabc0000000000000000000000000000000000002'


class TestConfig:
    TESTING = True
    PRODUCTION = False
    SECRET_KEY = 'test-secret'
    LOG_LEVEL = 'INFO'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {'connect_args': {'timeout': 30, 'check_same_thread': False}}
    CHAIN_ID = TEST_CHAIN_ID
    REWARDS_VAULT_ADDRESS = TEST_VAULT_ADDRESS
    SERVER_PRIVATE_KEY = TEST_PRIVATE_KEY
    EIP712_DOMAIN_NAME = 'CryptoSnakeRewards'
    EIP712_DOMAIN_VERSION = '1'
    TOKEN_DECIMALS = 18
    DIFFICULTY_NUMERATOR = 1
    # Small caps so tests can reach them: 5 submissions of score 250 per wallet
    CAP_PER_WALLET_PER_DAY = '10'
    CAP_GLOBAL_PER_DAY = '25'
    CLAIM_WINDOW_SECONDS = 600
    MAX_SCORE = 100000
    CAPS_REDIS_URL = ''
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = 'memory://'
    SCORE_SUBMIT_RATE_LIMIT = '5 per minute'
    CORS_ORIGIN = 'http://localhost:3000'


class FixedClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture()
def clock():
    return FixedClock()


@pytest.fixture()
def config_class(tmp_path):
    # File-backed SQLite so worker threads get their own connections
    class _Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'rewards-test.db'}"
    return _Config


@pytest.fixture()
def signer():
    return ClaimSigner(TEST_PRIVATE_KEY, chain_id=TEST_CHAIN_ID, verifying_contract=TEST_VAULT_ADDRESS)


@pytest.fixture()
def flask_app(config_class, signer, clock):
    application = create_app(config_class, signer=signer, clock=clock)
    with application.app_context():
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def issuer(flask_app):
    return flask_app.extensions['claim_issuer']


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()
