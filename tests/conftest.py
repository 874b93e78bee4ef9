import os
import itertools
from datetime import datetime, timedelta, timezone
from decimal import Decimal

os.environ.setdefault("FLASK_ENV", "testing")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from sqlalchemy import select

from app import create_app
from config import Config
from extensions import db
from models import User, Wallet

TEST_PLAN = {"name": "Test Plan", "rate": "0.10", "holding_hours": 24}
START = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Clock the engine reads instead of the wall clock; tests move it forward by hand."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(START)


@pytest.fixture
def app(tmp_path, clock):
    class TestConfig(Config):
        TESTING = True
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'ledger.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30}}
        LOG_DIR = str(tmp_path / "logs")
        INVESTMENT_PLANS = Config.INVESTMENT_PLANS + [TEST_PLAN]

    app = create_app(TestConfig, clock=clock)
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def ctx(app):
    """App context for tests that call the engine directly."""
    with app.app_context():
        yield
        db.session.remove()


@pytest.fixture
def engine(app):
    return app.extensions["ledger"]


@pytest.fixture
def make_user(app, engine):
    counter = itertools.count(1)

    def _make(username=None, is_staff=False, referrer=None):
        username = username or f"user{next(counter)}"
        with app.app_context():
            user = User(username=username, email=f"{username}@example.com", is_staff=is_staff)
            db.session.add(user)
            db.session.commit()
            user_id = user.id
            engine.on_user_registered(user_id, referrer)
            db.session.remove()
        return user_id

    return _make


@pytest.fixture
def staff(make_user):
    return make_user("admin", is_staff=True)


@pytest.fixture
def fund(app, engine):
    def _fund(user_id, amount):
        with app.app_context():
            engine.admin_fund(user_id, amount, caller_is_staff=True)
            db.session.remove()

    return _fund


@pytest.fixture
def balances(app):
    """Read (main, profit) for a user straight from the wallets table."""
    def _balances(user_id):
        with app.app_context():
            row = db.session.execute(
                select(Wallet.main_balance, Wallet.profit_balance).where(Wallet.user_id == user_id)
            ).one()
            db.session.remove()
        return Decimal(row[0]), Decimal(row[1])

    return _balances


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    def _login(user_id):
        with client.session_transaction() as sess:
            sess["_user_id"] = str(user_id)
            sess["_fresh"] = True
        return client

    return _login
