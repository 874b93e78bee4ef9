from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

from extensions import db
from ledger.errors import InsufficientFundsError, InvalidStateError
from ledger.unit_of_work import atomic
from ledger.wallet_store import WalletStore


def _run(app, fn, *args):
    with app.app_context():
        try:
            return fn(*args)
        finally:
            db.session.remove()


def test_parallel_withdrawals_never_overdraw(app, engine, make_user, fund, balances):
    user_id = make_user()
    fund(user_id, "100")

    def withdraw():
        try:
            engine.request_withdraw(user_id, "10")
            return True
        except InsufficientFundsError:
            return False

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: _run(app, withdraw), range(20)))

    assert results.count(True) == 10
    assert balances(user_id)[0] == Decimal("0.00")


def test_parallel_credits_and_debits_lose_nothing(app, make_user, fund, balances):
    user_id = make_user()
    fund(user_id, "50")

    def credit():
        with atomic("test credit"):
            WalletStore.credit(user_id, "5")

    def debit():
        with atomic("test debit"):
            WalletStore.debit(user_id, "5")

    jobs = [credit] * 10 + [debit] * 10
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda job: _run(app, job), jobs))

    assert balances(user_id)[0] == Decimal("50.00")


def test_parallel_approvals_credit_once(app, engine, make_user, balances):
    user_id = make_user()
    with app.app_context():
        txn_id = engine.request_deposit(user_id, "100", "card", "TX").id
        db.session.remove()

    def approve():
        try:
            engine.admin_decide(txn_id, "approve", caller_is_staff=True)
            return True
        except InvalidStateError:
            return False

    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(pool.map(lambda _: _run(app, approve), range(6)))

    assert results.count(True) == 1
    assert balances(user_id)[0] == Decimal("100.00")


def test_parallel_sweeps_pay_once(app, engine, make_user, fund, clock, balances):
    user_id = make_user()
    fund(user_id, "100")
    with app.app_context():
        engine.request_investment(user_id, "100", "Test Plan")
        db.session.remove()
    clock.advance(hours=25)

    with ThreadPoolExecutor(max_workers=4) as pool:
        list(pool.map(lambda _: _run(app, engine.sweep, user_id), range(4)))

    assert balances(user_id) == (Decimal("110.00"), Decimal("10.00"))
