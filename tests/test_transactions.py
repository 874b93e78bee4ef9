from decimal import Decimal

import pytest

from ledger.errors import (
    BelowMinimumError, InsufficientFundsError, InvalidAmountError, InvalidStateError,
    NotFoundError, ValidationError,
)
from models import TransactionStatus, TransactionType


class TestDeposits:

    def test_request_creates_pending_entry_without_touching_wallet(self, ctx, engine, make_user, balances):
        user_id = make_user()
        txn = engine.request_deposit(user_id, "100", "mpesa", "TX-001")

        assert txn.type == TransactionType.DEPOSIT.value
        assert txn.status == TransactionStatus.PENDING.value
        assert txn.meta_dict == {"method": "mpesa", "tx_id": "TX-001"}
        assert balances(user_id) == (Decimal("0.00"), Decimal("0.00"))

    @pytest.mark.parametrize("method, tx_id", [(None, "TX"), ("card", ""), ("  ", "TX")])
    def test_requires_method_and_tx_id(self, ctx, engine, make_user, method, tx_id):
        user_id = make_user()
        with pytest.raises(ValidationError):
            engine.request_deposit(user_id, "10", method, tx_id)

    def test_rejects_bad_amount(self, ctx, engine, make_user):
        user_id = make_user()
        with pytest.raises(InvalidAmountError):
            engine.request_deposit(user_id, "-10", "card", "TX")

    def test_unknown_user(self, ctx, engine):
        with pytest.raises(NotFoundError):
            engine.request_deposit(424242, "10", "card", "TX")

    def test_approve_credits_once(self, ctx, engine, make_user, balances):
        user_id = make_user()
        txn = engine.request_deposit(user_id, "100", "card", "TX-100")

        approved = engine.admin_decide(txn.id, "approve", caller_is_staff=True)
        assert approved.status == TransactionStatus.COMPLETED.value
        assert balances(user_id)[0] == Decimal("100.00")

        with pytest.raises(InvalidStateError):
            engine.admin_decide(txn.id, "approve", caller_is_staff=True)
        with pytest.raises(InvalidStateError):
            engine.admin_decide(txn.id, "reject", caller_is_staff=True)
        assert balances(user_id)[0] == Decimal("100.00")

    def test_reject_leaves_wallet_alone(self, ctx, engine, make_user, balances):
        user_id = make_user()
        txn = engine.request_deposit(user_id, "100", "card", "TX-100")

        rejected = engine.admin_decide(txn.id, "reject", caller_is_staff=True)
        assert rejected.status == TransactionStatus.REJECTED.value
        assert balances(user_id)[0] == Decimal("0.00")


class TestWithdrawals:

    def test_request_locks_funds(self, ctx, engine, make_user, fund, balances):
        user_id = make_user()
        fund(user_id, "80")

        txn = engine.request_withdraw(user_id, "50", "mpesa", "0700000000")
        assert txn.status == TransactionStatus.PENDING.value
        assert txn.meta_dict == {"method": "mpesa", "destination": "0700000000"}
        assert balances(user_id)[0] == Decimal("30.00")

    def test_below_minimum(self, ctx, engine, make_user, fund):
        user_id = make_user()
        fund(user_id, "10")
        with pytest.raises(BelowMinimumError):
            engine.request_withdraw(user_id, "0.50")

    def test_insufficient_funds_creates_nothing(self, ctx, engine, make_user, fund, balances):
        user_id = make_user()
        fund(user_id, "10")
        with pytest.raises(InsufficientFundsError):
            engine.request_withdraw(user_id, "10.01")

        assert balances(user_id)[0] == Decimal("10.00")
        withdrawals = [t for t in engine.list_transactions(user_id) if t.type == TransactionType.WITHDRAW.value]
        assert withdrawals == []

    def test_reject_refunds(self, ctx, engine, make_user, fund, balances):
        user_id = make_user()
        fund(user_id, "50")
        txn = engine.request_withdraw(user_id, "50")
        assert balances(user_id)[0] == Decimal("0.00")

        engine.admin_decide(txn.id, "reject", caller_is_staff=True)
        assert balances(user_id)[0] == Decimal("50.00")

        with pytest.raises(InvalidStateError):
            engine.admin_decide(txn.id, "reject", caller_is_staff=True)
        assert balances(user_id)[0] == Decimal("50.00")

    def test_approve_does_not_debit_twice(self, ctx, engine, make_user, fund, balances):
        user_id = make_user()
        fund(user_id, "50")
        txn = engine.request_withdraw(user_id, "20")

        engine.admin_decide(txn.id, "approve", caller_is_staff=True)
        assert balances(user_id)[0] == Decimal("30.00")


class TestHistory:

    def test_newest_first(self, ctx, engine, make_user, clock):
        user_id = make_user()
        first = engine.request_deposit(user_id, "1", "card", "A")
        clock.advance(minutes=1)
        second = engine.request_deposit(user_id, "2", "card", "B")

        ids = [t.id for t in engine.list_transactions(user_id)]
        assert ids == [second.id, first.id]

    def test_legacy_string_meta_is_parsed(self, ctx, make_user):
        from extensions import db
        from models import Transaction

        user_id = make_user()
        txn = Transaction(user_id=user_id, type="deposit", amount=Decimal("5"), status="pending",
                          meta='{"method": "card", "tx_id": "OLD"}')
        db.session.add(txn)
        db.session.commit()

        assert txn.to_dict()["meta"] == {"method": "card", "tx_id": "OLD"}
