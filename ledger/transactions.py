"""
Transaction Ledger and its status state machine.

    deposit / withdraw : pending -> completed | rejected
    investment         : active  -> completed   (maturity only)
    payout / profit    : completed from creation

Withdrawals lock funds at request time; a rejected withdrawal is refunded.
Deposits only reach the wallet once approved.
"""
from decimal import Decimal
import logging

from sqlalchemy import update
from extensions import db
from models import Transaction, TransactionStatus, TransactionType, User
from ledger.errors import BelowMinimumError, InvalidStateError, NotFoundError, ValidationError
from ledger.unit_of_work import atomic
from ledger.wallet_store import WalletStore, to_amount

logger = logging.getLogger(__name__)

ADJUDICABLE_TYPES = (TransactionType.DEPOSIT.value, TransactionType.WITHDRAW.value)


def require_user(user_id) -> User:
    user = User.query.filter_by(id=user_id).first() if user_id is not None else None
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


def _require_text(value, field_name):
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


class TransactionLedger:

    def __init__(self, clock, min_withdrawal: Decimal, referrals=None):
        self.clock = clock
        self.min_withdrawal = min_withdrawal
        self.referrals = referrals

    # ------------------------------------------------------------------
    # Entry creation
    # ------------------------------------------------------------------
    def record(self, user_id, txn_type, amount, status, meta=None, investment_id=None) -> Transaction:
        """Append a ledger entry in the caller's unit of work."""
        now = self.clock()
        txn = Transaction(
            user_id=user_id,
            type=TransactionType(txn_type).value,
            amount=amount,
            status=TransactionStatus(status).value,
            meta=meta or {},
            investment_id=investment_id,
            created_at=now,
            updated_at=now,
        )
        db.session.add(txn)
        db.session.flush()
        return txn

    def request_deposit(self, user_id, amount, method, external_tx_id) -> Transaction:
        amount = to_amount(amount)
        method = _require_text(method, "method")
        external_tx_id = _require_text(external_tx_id, "tx_id")

        with atomic("deposit request"):
            require_user(user_id)
            txn = self.record(
                user_id, TransactionType.DEPOSIT, amount, TransactionStatus.PENDING,
                meta={"method": method, "tx_id": external_tx_id},
            )
        logger.info(f"Deposit {txn.id} requested by user {user_id}: {amount} via {method}")
        return txn

    def request_withdraw(self, user_id, amount, method=None, destination=None) -> Transaction:
        amount = to_amount(amount)
        if amount < self.min_withdrawal:
            raise BelowMinimumError(f"Minimum withdrawal amount is {self.min_withdrawal}")

        meta = {}
        if method:
            meta["method"] = str(method).strip()
        if destination:
            meta["destination"] = str(destination).strip()

        with atomic("withdraw request"):
            require_user(user_id)
            WalletStore.debit(user_id, amount)
            txn = self.record(user_id, TransactionType.WITHDRAW, amount, TransactionStatus.PENDING, meta=meta)
        logger.info(f"Withdrawal {txn.id} requested by user {user_id}: {amount} locked")
        return txn

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    @staticmethod
    def get(transaction_id) -> Transaction:
        txn = db.session.get(Transaction, transaction_id, populate_existing=True)
        if txn is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return txn

    @staticmethod
    def list_for_user(user_id, limit=None):
        query = Transaction.query.filter_by(user_id=user_id).order_by(
            Transaction.created_at.desc(), Transaction.id.desc()
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def list_all(status=None):
        query = Transaction.query
        if status:
            query = query.filter_by(status=TransactionStatus(status).value)
        return query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).all()

    # ------------------------------------------------------------------
    # State machine (runs inside the caller's unit of work)
    # ------------------------------------------------------------------
    def transition(self, txn: Transaction, expected: TransactionStatus, new: TransactionStatus) -> Transaction:
        """Compare-and-set the status; fails if someone else moved it first."""
        result = db.session.execute(
            update(Transaction)
            .where(Transaction.id == txn.id, Transaction.status == expected.value)
            .values(status=new.value, updated_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateError(
                f"Transaction {txn.id} is not {expected.value}; cannot move it to {new.value}"
            )
        return db.session.get(Transaction, txn.id, populate_existing=True)

    def _ensure_pending(self, txn: Transaction):
        if txn.type not in ADJUDICABLE_TYPES:
            raise InvalidStateError(f"{txn.type} entries cannot be adjudicated")
        if txn.status != TransactionStatus.PENDING.value:
            raise InvalidStateError(f"Transaction {txn.id} is already {txn.status}")

    def approve(self, txn: Transaction) -> Transaction:
        self._ensure_pending(txn)
        updated = self.transition(txn, TransactionStatus.PENDING, TransactionStatus.COMPLETED)
        if updated.type == TransactionType.DEPOSIT.value:
            WalletStore.credit(updated.user_id, updated.amount)
            if self.referrals is not None:
                self.referrals.on_deposit_completed(updated)
        # Approved withdrawals already left the wallet at request time.
        return updated

    def reject(self, txn: Transaction) -> Transaction:
        self._ensure_pending(txn)
        updated = self.transition(txn, TransactionStatus.PENDING, TransactionStatus.REJECTED)
        if updated.type == TransactionType.WITHDRAW.value:
            WalletStore.credit(updated.user_id, updated.amount)
        return updated

    @staticmethod
    def delete(txn: Transaction):
        """Audit-trail correction: removes the row and leaves balances untouched."""
        db.session.delete(txn)
        db.session.flush()
