from decimal import Decimal

import pytest

from ledger.errors import InsufficientFundsError, InvalidAmountError, InvalidStateError
from ledger.unit_of_work import atomic
from ledger.wallet_store import WalletStore, to_amount


class TestToAmount:

    @pytest.mark.parametrize("raw, expected", [
        ("10", Decimal("10.00")),
        (10, Decimal("10.00")),
        (12.5, Decimal("12.50")),
        ("0.005", Decimal("0.01")),
        (Decimal("3.14159"), Decimal("3.14")),
    ])
    def test_parses_and_rounds_to_cents(self, raw, expected):
        assert to_amount(raw) == expected

    def test_largest_storable_amount(self):
        assert to_amount("9999999999.99") == Decimal("9999999999.99")
        assert to_amount("9999999999.994") == Decimal("9999999999.99")

    @pytest.mark.parametrize("raw", [
        None, True, "", "abc", "-5", 0, "0.001", "NaN", "Infinity", [10],
        "1e30", "1e400", 1e30, "10000000000.00",
    ])
    def test_rejects_bad_amounts(self, raw):
        with pytest.raises(InvalidAmountError):
            to_amount(raw)


class TestWalletStore:

    def test_credit_and_debit(self, ctx, make_user, balances):
        user_id = make_user()
        with atomic("test"):
            assert WalletStore.credit(user_id, "100") == Decimal("100.00")
            assert WalletStore.debit(user_id, "40.50") == Decimal("59.50")
        assert balances(user_id) == (Decimal("59.50"), Decimal("0.00"))

    def test_credit_creates_missing_wallet(self, ctx, app):
        from extensions import db
        from models import User

        user = User(username="walletless", email="walletless@example.com")
        db.session.add(user)
        db.session.commit()

        with atomic("test"):
            WalletStore.credit(user.id, "5")
        assert WalletStore.main_balance(user.id) == Decimal("5.00")

    def test_debit_refuses_overdraft(self, ctx, make_user, balances):
        user_id = make_user()
        with atomic("test"):
            WalletStore.credit(user_id, "20")

        with pytest.raises(InsufficientFundsError):
            with atomic("test"):
                WalletStore.debit(user_id, "20.01")
        assert balances(user_id) == (Decimal("20.00"), Decimal("0.00"))

    def test_debit_without_wallet_is_insufficient(self, ctx):
        with pytest.raises(InsufficientFundsError):
            with atomic("test"):
                WalletStore.debit(99999, "1")

    def test_rejects_non_positive_amounts(self, ctx, make_user):
        user_id = make_user()
        with pytest.raises(InvalidAmountError):
            WalletStore.credit(user_id, 0)
        with pytest.raises(InvalidAmountError):
            WalletStore.debit(user_id, "-1")

    def test_accrue_profit_leaves_main_balance(self, ctx, make_user, balances):
        user_id = make_user()
        with atomic("test"):
            WalletStore.accrue_profit(user_id, "7.25")
        assert balances(user_id) == (Decimal("0.00"), Decimal("7.25"))

    def test_override_returns_previous_balance(self, ctx, make_user, balances):
        user_id = make_user()
        with atomic("test"):
            WalletStore.credit(user_id, "30")
        with atomic("test"):
            previous = WalletStore.override_main_balance(user_id, Decimal("12.00"))
        assert previous == Decimal("30.00")
        assert balances(user_id)[0] == Decimal("12.00")

    def test_rollback_discards_mutation(self, ctx, make_user, balances):
        user_id = make_user()
        with pytest.raises(RuntimeError):
            with atomic("test"):
                WalletStore.credit(user_id, "50")
                raise RuntimeError("boom")
        assert balances(user_id)[0] == Decimal("0.00")

    def test_invalid_state_error_is_conflict(self):
        assert InvalidStateError().status_code == 409
