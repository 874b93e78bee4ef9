#======================================================================================
#
#   ADMIN ADJUDICATOR: staff decisions on ledger entries and wallet corrections
#
#=======================================================================================
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
import logging

from models import Transaction, TransactionStatus, TransactionType, User
from ledger.errors import ForbiddenError, InvalidAmountError, ValidationError
from ledger.transactions import require_user
from ledger.unit_of_work import atomic
from ledger.wallet_store import CENT, MAX_AMOUNT, WalletStore, to_amount

logger = logging.getLogger(__name__)

ACTIONS = ("approve", "reject")


def staff_required(caller_is_staff):
    if not caller_is_staff:
        raise ForbiddenError("Staff privileges required")


class AdminAdjudicator:

    def __init__(self, ledger, referrals):
        self.ledger = ledger
        self.referrals = referrals

    def decide(self, transaction_id, action, caller_is_staff) -> Transaction:
        staff_required(caller_is_staff)
        action = (action or "").strip().lower()
        if action not in ACTIONS:
            raise ValidationError(f"Unknown action {action!r}; expected approve or reject")

        with atomic(f"admin {action}"):
            txn = self.ledger.get(transaction_id)
            if action == "approve":
                updated = self.ledger.approve(txn)
            else:
                updated = self.ledger.reject(txn)
        logger.info(f"Transaction {transaction_id} ({updated.type}) {action}d by staff")
        return updated

    def delete(self, transaction_id, caller_is_staff):
        staff_required(caller_is_staff)
        with atomic("admin delete"):
            txn = self.ledger.get(transaction_id)
            snapshot = txn.to_dict()
            self.ledger.delete(txn)
        logger.warning(
            f"Transaction {transaction_id} deleted by staff (type {snapshot['type']}, "
            f"amount {snapshot['amount']}, status {snapshot['status']}); balances unchanged"
        )
        return snapshot

    def fund_user(self, user_id, amount, caller_is_staff) -> Transaction:
        """Credit a user's wallet directly, recorded as an already-completed deposit."""
        staff_required(caller_is_staff)
        amount = to_amount(amount)
        with atomic("admin fund"):
            require_user(user_id)
            WalletStore.credit(user_id, amount)
            txn = self.ledger.record(
                user_id, TransactionType.DEPOSIT, amount, TransactionStatus.COMPLETED,
                meta={"source": "admin_fund"},
            )
        logger.info(f"User {user_id} funded by staff: {amount}")
        return txn

    def correct_balance(self, user_id, new_balance, caller_is_staff, reason=None) -> Transaction:
        """Set the spendable balance outright; the difference is booked as a completed deposit or withdraw."""
        staff_required(caller_is_staff)
        if new_balance is None or isinstance(new_balance, bool):
            raise InvalidAmountError("balance is required")
        try:
            target = Decimal(str(new_balance).strip())
            if not target.is_finite():
                raise InvalidOperation(new_balance)
            target = target.quantize(CENT, ROUND_HALF_UP)
        except (InvalidOperation, ValueError) as e:
            raise InvalidAmountError(f"Invalid balance: {new_balance!r}") from e
        if target < 0:
            raise InvalidAmountError("balance cannot be negative")
        if target > MAX_AMOUNT:
            raise InvalidAmountError(f"balance cannot exceed {MAX_AMOUNT}")

        with atomic("admin balance correction"):
            require_user(user_id)
            previous = WalletStore.override_main_balance(user_id, target)
            delta = target - previous
            if delta == 0:
                raise InvalidAmountError("New balance equals the current balance")
            txn_type = TransactionType.DEPOSIT if delta > 0 else TransactionType.WITHDRAW
            txn = self.ledger.record(
                user_id, txn_type, abs(delta), TransactionStatus.COMPLETED,
                meta={
                    "source": "admin_adjustment",
                    "reason": reason or "",
                    "previous_balance": str(previous),
                },
            )
        logger.warning(f"Balance of user {user_id} corrected by staff: {previous} -> {target}")
        return txn

    # ------------------------------------------------------------------
    # Admin read side
    # ------------------------------------------------------------------
    def transactions(self, caller_is_staff, status=None):
        staff_required(caller_is_staff)
        if status and status not in {s.value for s in TransactionStatus}:
            raise ValidationError(f"Unknown status {status!r}")
        return self.ledger.list_all(status)

    def stats(self, caller_is_staff) -> dict:
        staff_required(caller_is_staff)
        users = User.query.count()
        transactions = Transaction.query.count()
        pending = Transaction.query.filter_by(status=TransactionStatus.PENDING.value).count()
        return {"users": users, "transactions": transactions, "pending": pending}

    def referrals_overview(self, caller_is_staff):
        staff_required(caller_is_staff)
        return [referral.to_dict() for referral in self.referrals.list_all()]
