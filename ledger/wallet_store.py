"""
Wallet Store: the only code allowed to change wallet balances.

Every mutation is a single conditional UPDATE, so concurrent calls for the
same user serialize on the wallet row and no update is lost. Nothing here
commits; the engine operation calling in owns the transaction.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
import logging

from sqlalchemy import select, update
from extensions import db
from models import Wallet, utcnow
from ledger.errors import InsufficientFundsError, InvalidAmountError, InvalidStateError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest value a Numeric(12, 2) column holds
MAX_AMOUNT = Decimal("9999999999.99")


def to_amount(value, field_name="amount") -> Decimal:
    """Parse a money amount and round it to cents; non-positive or malformed values are rejected."""
    if value is None or isinstance(value, bool):
        raise InvalidAmountError(f"{field_name} is required")
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, (int, float, str)):
            amount = Decimal(str(value).strip())
        else:
            raise InvalidAmountError(f"Invalid type for {field_name}: {type(value).__name__}")
        if not amount.is_finite():
            raise InvalidAmountError(f"Invalid {field_name}: {value!r}")
        amount = amount.quantize(CENT, ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmountError(f"Invalid {field_name}: {value!r}") from e

    if amount <= 0:
        raise InvalidAmountError(f"{field_name} must be greater than zero")
    if amount > MAX_AMOUNT:
        raise InvalidAmountError(f"{field_name} cannot exceed {MAX_AMOUNT}")
    return amount


class WalletStore:

    @staticmethod
    def get_wallet(user_id: int):
        return db.session.execute(
            select(Wallet).where(Wallet.user_id == user_id).execution_options(populate_existing=True)
        ).scalar_one_or_none()

    @staticmethod
    def ensure_wallet(user_id: int) -> Wallet:
        wallet = WalletStore.get_wallet(user_id)
        if wallet is None:
            wallet = Wallet(user_id=user_id, main_balance=ZERO, profit_balance=ZERO)
            db.session.add(wallet)
            db.session.flush()
        return wallet

    @staticmethod
    def main_balance(user_id: int) -> Decimal:
        balance = db.session.execute(
            select(Wallet.main_balance).where(Wallet.user_id == user_id)
        ).scalar_one_or_none()
        return Decimal(balance) if balance is not None else ZERO

    @staticmethod
    def credit(user_id: int, amount) -> Decimal:
        """Add amount to the spendable balance and return the new balance."""
        amount = to_amount(amount)
        result = db.session.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id)
            .values(main_balance=Wallet.main_balance + amount, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.session.add(Wallet(user_id=user_id, main_balance=amount, profit_balance=ZERO))
            db.session.flush()
        new_balance = WalletStore.main_balance(user_id)
        logger.info(f"Wallet credit: user {user_id}, amount {amount}, new balance {new_balance}")
        return new_balance

    @staticmethod
    def debit(user_id: int, amount) -> Decimal:
        """Take amount from the spendable balance; refuses to go below zero."""
        amount = to_amount(amount)
        result = db.session.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id, Wallet.main_balance >= amount)
            .values(main_balance=Wallet.main_balance - amount, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            available = WalletStore.main_balance(user_id)
            logger.warning(f"Debit refused: user {user_id}, amount {amount}, available {available}")
            raise InsufficientFundsError(f"Insufficient balance. Required: {amount}, Available: {available}")
        new_balance = WalletStore.main_balance(user_id)
        logger.info(f"Wallet debit: user {user_id}, amount {amount}, new balance {new_balance}")
        return new_balance

    @staticmethod
    def accrue_profit(user_id: int, amount) -> Decimal:
        """Track realized earnings on the profit wallet. Never debited."""
        amount = to_amount(amount)
        WalletStore.ensure_wallet(user_id)
        db.session.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id)
            .values(profit_balance=Wallet.profit_balance + amount, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return db.session.execute(
            select(Wallet.profit_balance).where(Wallet.user_id == user_id)
        ).scalar_one()

    @staticmethod
    def override_main_balance(user_id: int, new_balance: Decimal) -> Decimal:
        """
        Administrative override used only by the admin adjudicator.
        Compare-and-set against the balance read under lock; returns the previous balance.
        """
        wallet = db.session.execute(
            select(Wallet)
            .where(Wallet.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if wallet is None:
            wallet = WalletStore.ensure_wallet(user_id)

        previous = Decimal(wallet.main_balance)
        result = db.session.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id, Wallet.main_balance == previous)
            .values(main_balance=new_balance, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateError(f"Wallet for user {user_id} changed during override, retry")
        logger.warning(f"Wallet override: user {user_id}, {previous} -> {new_balance}")
        return previous
