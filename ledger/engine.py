"""
LedgerEngine: the single entry point the service layer talks to.

Built once per application from configuration (plans, withdrawal floor,
referral rate) and stored on ``app.extensions["ledger"]``. Read paths
settle due investments for the requesting user before reporting.
"""
from datetime import datetime, timezone
from decimal import Decimal
import logging

from flask import current_app
from sqlalchemy import func, select
from extensions import db
from models import Investment, InvestmentStatus, Transaction, TransactionStatus, TransactionType
from ledger.adjudicator import AdminAdjudicator
from ledger.investments import InvestmentRegistry
from ledger.maturity import MaturitySweeper
from ledger.plans import PlanBook
from ledger.referrals import ReferralCrediting
from ledger.transactions import TransactionLedger, require_user
from ledger.unit_of_work import atomic
from ledger.wallet_store import WalletStore

logger = logging.getLogger(__name__)


def system_clock():
    return datetime.now(timezone.utc)


class LedgerEngine:

    def __init__(self, plans: PlanBook, min_withdrawal=Decimal("1.00"), referral_bonus_rate=Decimal("0.05"),
                 recent_limit=10, clock=None):
        self.plans = plans
        self.clock = clock or system_clock
        self.recent_limit = recent_limit
        self.ledger = TransactionLedger(self.clock, Decimal(str(min_withdrawal)))
        self.referrals = ReferralCrediting(self.ledger, Decimal(str(referral_bonus_rate)), self.clock)
        self.ledger.referrals = self.referrals
        self.registry = InvestmentRegistry(plans, self.ledger, self.clock)
        self.sweeper = MaturitySweeper(plans, self.registry, self.ledger, self.clock)
        self.adjudicator = AdminAdjudicator(self.ledger, self.referrals)

    @classmethod
    def from_config(cls, config, clock=None) -> "LedgerEngine":
        return cls(
            plans=PlanBook.from_config(config["INVESTMENT_PLANS"], legacy=config.get("LEGACY_PLAN")),
            min_withdrawal=config.get("MIN_WITHDRAWAL", "1.00"),
            referral_bonus_rate=config.get("REFERRAL_BONUS_RATE", "0.05"),
            recent_limit=config.get("RECENT_TRANSACTIONS_LIMIT", 10),
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Registration hook (called by the auth service after sign-up)
    # ------------------------------------------------------------------
    def on_user_registered(self, user_id, referrer_username=None):
        with atomic("wallet opening"):
            require_user(user_id)
            WalletStore.ensure_wallet(user_id)
        if referrer_username:
            return self.referrals.record_referral(user_id, referrer_username)
        return None

    # ------------------------------------------------------------------
    # User requests
    # ------------------------------------------------------------------
    def request_deposit(self, user_id, amount, method, external_tx_id) -> Transaction:
        return self.ledger.request_deposit(user_id, amount, method, external_tx_id)

    def request_withdraw(self, user_id, amount, method=None, destination=None) -> Transaction:
        return self.ledger.request_withdraw(user_id, amount, method, destination)

    def request_investment(self, user_id, amount, plan_name) -> Investment:
        return self.registry.invest(user_id, plan_name, amount)

    def list_transactions(self, user_id):
        return self.ledger.list_for_user(user_id)

    def record_referral(self, referred_user_id, referrer_username):
        return self.referrals.record_referral(referred_user_id, referrer_username)

    def list_referrals(self, user_id):
        return self.referrals.list_for_referrer(user_id)

    # ------------------------------------------------------------------
    # Read paths (settle first)
    # ------------------------------------------------------------------
    def sweep(self, user_id) -> dict:
        return self.sweeper.sweep(user_id)

    def list_investments(self, user_id):
        self.sweep(user_id)
        return [self.registry.describe(investment) for investment in self.registry.list_for_user(user_id)]

    def dashboard_summary(self, user_id) -> dict:
        self.sweep(user_id)
        wallet = WalletStore.get_wallet(user_id)

        totals = {
            (txn_type, status): Decimal(amount or 0)
            for txn_type, status, amount in db.session.execute(
                select(Transaction.type, Transaction.status, func.sum(Transaction.amount))
                .where(Transaction.user_id == user_id)
                .group_by(Transaction.type, Transaction.status)
            ).all()
        }

        def total(txn_type, *statuses):
            return sum((totals.get((txn_type.value, s.value), Decimal("0")) for s in statuses), Decimal("0"))

        realized = db.session.execute(
            select(func.sum(Investment.earnings)).where(
                Investment.user_id == user_id, Investment.status == InvestmentStatus.COMPLETED.value
            )
        ).scalar_one_or_none()
        earnings = total(TransactionType.PROFIT, TransactionStatus.COMPLETED) + Decimal(realized or 0)

        recent = self.ledger.list_for_user(user_id, limit=self.recent_limit)
        return {
            "wallet_balance": _fmt(wallet.main_balance if wallet else 0),
            "profit_balance": _fmt(wallet.profit_balance if wallet else 0),
            "total_deposits": _fmt(total(TransactionType.DEPOSIT, TransactionStatus.COMPLETED)),
            "total_withdrawals": _fmt(total(TransactionType.WITHDRAW, TransactionStatus.COMPLETED)),
            "total_investments": _fmt(
                total(TransactionType.INVESTMENT, TransactionStatus.ACTIVE, TransactionStatus.COMPLETED)
            ),
            "total_payouts": _fmt(total(TransactionType.PAYOUT, TransactionStatus.COMPLETED)),
            "total_earnings": _fmt(earnings),
            "recent": [txn.to_dict() for txn in recent],
        }

    # ------------------------------------------------------------------
    # Staff
    # ------------------------------------------------------------------
    def admin_decide(self, transaction_id, action, caller_is_staff) -> Transaction:
        return self.adjudicator.decide(transaction_id, action, caller_is_staff)

    def admin_delete(self, transaction_id, caller_is_staff) -> dict:
        return self.adjudicator.delete(transaction_id, caller_is_staff)

    def admin_fund(self, user_id, amount, caller_is_staff) -> Transaction:
        return self.adjudicator.fund_user(user_id, amount, caller_is_staff)

    def admin_correct_balance(self, user_id, new_balance, caller_is_staff, reason=None) -> Transaction:
        return self.adjudicator.correct_balance(user_id, new_balance, caller_is_staff, reason)

    def admin_transactions(self, caller_is_staff, status=None):
        return self.adjudicator.transactions(caller_is_staff, status)

    def admin_stats(self, caller_is_staff) -> dict:
        return self.adjudicator.stats(caller_is_staff)

    def admin_referrals(self, caller_is_staff):
        return self.adjudicator.referrals_overview(caller_is_staff)

    # ------------------------------------------------------------------
    # One-time migration of ledger-only investments
    # ------------------------------------------------------------------
    def backfill_legacy_investments(self) -> int:
        adopted = self.registry.adopt_legacy()
        logger.info(f"Legacy investment backfill adopted {len(adopted)} entries")
        return len(adopted)


def _fmt(value) -> str:
    return str(Decimal(value or 0).quantize(Decimal("0.01")))


def get_engine() -> LedgerEngine:
    return current_app.extensions["ledger"]
