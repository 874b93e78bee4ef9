"""
Investment Registry.

The registry row is the canonical record of a position. Older code wrote
investments only as ``investment``/``active`` ledger entries; those are
adopted into the registry (and linked through ``investment_id``) before any
maturity decision, so a position is never matured from two places.
"""
from decimal import Decimal
import logging

from sqlalchemy import update
from extensions import db
from models import (
    Investment, InvestmentStatus, Transaction, TransactionStatus, TransactionType, as_utc,
)
from ledger.errors import InvalidStateError, ValidationError
from ledger.plans import parse_rate
from ledger.transactions import require_user
from ledger.unit_of_work import atomic
from ledger.wallet_store import WalletStore, to_amount

logger = logging.getLogger(__name__)


class InvestmentRegistry:

    def __init__(self, plans, ledger, clock):
        self.plans = plans
        self.ledger = ledger
        self.clock = clock

    def invest(self, user_id, plan_name, principal) -> Investment:
        principal = to_amount(principal, "amount")
        if not plan_name:
            raise ValidationError("plan is required")
        plan = self.plans.get(plan_name)

        with atomic("investment"):
            require_user(user_id)
            WalletStore.debit(user_id, principal)
            now = self.clock()
            investment = Investment(
                user_id=user_id,
                plan=plan.name,
                rate=plan.rate,
                principal=principal,
                earnings=Decimal("0.00"),
                status=InvestmentStatus.ACTIVE.value,
                created_at=now,
                updated_at=now,
            )
            db.session.add(investment)
            db.session.flush()
            self.ledger.record(
                user_id, TransactionType.INVESTMENT, principal, TransactionStatus.ACTIVE,
                meta={
                    "plan": plan.name,
                    "rate": str(plan.rate),
                    "payout_date": plan.payout_date(now).isoformat(),
                },
                investment_id=investment.id,
            )
        logger.info(f"Investment {investment.id} opened: user {user_id}, {plan.name}, principal {principal}")
        return investment

    # ------------------------------------------------------------------
    # Legacy ledger-only positions
    # ------------------------------------------------------------------
    @staticmethod
    def unlinked_legacy_entries(user_id=None):
        query = Transaction.query.filter(
            Transaction.type == TransactionType.INVESTMENT.value,
            Transaction.status == TransactionStatus.ACTIVE.value,
            Transaction.investment_id.is_(None),
        )
        if user_id is not None:
            query = query.filter_by(user_id=user_id)
        return query.order_by(Transaction.id).all()

    def adopt_legacy_entry(self, entry: Transaction):
        """Create the registry row for one legacy entry. Returns None if another sweep adopted it first."""
        meta = entry.meta_dict
        plan_name = str(meta.get("plan") or "").strip()[:100] or None
        plan = self.plans.resolve(plan_name, parse_rate(meta.get("rate")))
        if plan_name not in self.plans:
            logger.warning(
                f"Legacy investment entry {entry.id} has plan {plan_name!r} that is no longer offered; "
                f"settling at rate {plan.rate} over {plan.holding_period}"
            )

        entry_id = entry.id
        try:
            with atomic("legacy investment adoption"):
                investment = Investment(
                    user_id=entry.user_id,
                    plan=plan.name,
                    rate=plan.rate,
                    principal=entry.amount,
                    earnings=Decimal("0.00"),
                    status=InvestmentStatus.ACTIVE.value,
                    created_at=as_utc(entry.created_at),
                    updated_at=self.clock(),
                )
                db.session.add(investment)
                db.session.flush()
                result = db.session.execute(
                    update(Transaction)
                    .where(Transaction.id == entry_id, Transaction.investment_id.is_(None))
                    .values(investment_id=investment.id)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise InvalidStateError(f"Legacy investment entry {entry_id} was adopted concurrently")
        except InvalidStateError as e:
            logger.info(str(e))
            return None
        logger.info(f"Legacy investment entry {entry_id} adopted as investment {investment.id}")
        return investment

    def adopt_legacy(self, user_id=None):
        adopted = []
        for entry in self.unlinked_legacy_entries(user_id):
            try:
                investment = self.adopt_legacy_entry(entry)
            except Exception as e:
                logger.error(f"Failed to adopt legacy investment entry {entry.id}: {e}")
                continue
            if investment is not None:
                adopted.append(investment)
        return adopted

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------
    @staticmethod
    def list_for_user(user_id, status=None):
        query = Investment.query.filter_by(user_id=user_id)
        if status:
            query = query.filter_by(status=status)
        return query.order_by(Investment.created_at.desc(), Investment.id.desc()).all()

    def terms_for(self, investment: Investment):
        return self.plans.resolve(investment.plan, investment.rate)

    def describe(self, investment: Investment) -> dict:
        """Investment as reported to users; active rows carry projections, never persisted."""
        data = investment.to_dict()
        plan = self.terms_for(investment)

        started_at = as_utc(investment.created_at)
        data["rate"] = str(plan.rate)
        data["payoutDate"] = plan.payout_date(started_at).isoformat()
        if investment.status == InvestmentStatus.ACTIVE.value:
            data["projectedEarnings"] = str(plan.earnings_for(Decimal(investment.principal)))
        else:
            data["projectedEarnings"] = data["earnings"]
        return data
