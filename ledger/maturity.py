from decimal import Decimal
import logging

from sqlalchemy import update
from extensions import db
from models import (
    Investment, InvestmentStatus, Transaction, TransactionStatus, TransactionType, as_utc,
)
from ledger.errors import InvalidStateError, LedgerError
from ledger.unit_of_work import atomic
from ledger.wallet_store import WalletStore

logger = logging.getLogger(__name__)


class MaturitySweeper:
    """
    Settles a user's investments whose holding period has elapsed.

    Runs inline on the read path for one user. Each investment settles in its
    own unit of work: status flip, wallet credit, ledger entries. A failure on
    one investment is rolled back and logged without stopping the others.
    """

    def __init__(self, plans, registry, ledger, clock):
        self.plans = plans
        self.registry = registry
        self.ledger = ledger
        self.clock = clock

    def sweep(self, user_id: int) -> dict:
        """Main method to settle due investments for a user"""
        now = self.clock()
        response = {
            "user_id": user_id,
            "adopted": 0,
            "matured": [],
            "failed": [],
            "total_paid": Decimal("0.00"),
            "timestamp": now.isoformat(),
        }

        response["adopted"] = len(self.registry.adopt_legacy(user_id))

        for investment in self.registry.list_for_user(user_id, status=InvestmentStatus.ACTIVE.value):
            investment_id = investment.id
            try:
                payout = self.settle(investment, now)
            except LedgerError as e:
                response["failed"].append({"investment_id": investment_id, "error": e.message})
                logger.warning(f"Maturity skipped for investment {investment_id}: {e}")
                continue
            except Exception as e:
                response["failed"].append({"investment_id": investment_id, "error": str(e)})
                logger.error(f"Unexpected error maturing investment {investment_id}: {e}", exc_info=True)
                continue
            if payout is not None:
                response["matured"].append(payout.to_dict())
                response["total_paid"] += Decimal(payout.amount)

        if response["matured"]:
            logger.info(
                f"Maturity sweep for user {user_id}: {len(response['matured'])} settled, "
                f"{response['total_paid']} paid"
            )
        return response

    def is_due(self, investment: Investment, now) -> bool:
        plan = self.registry.terms_for(investment)
        return now - as_utc(investment.created_at) >= plan.holding_period

    def settle(self, investment: Investment, now):
        """Pay out one investment if due. Returns the payout entry, or None if it is not due yet."""
        plan = self.registry.terms_for(investment)
        if not self.is_due(investment, now):
            return None

        investment_id = investment.id
        user_id = investment.user_id
        principal = Decimal(investment.principal)
        earnings = plan.earnings_for(principal)
        payout_amount = principal + earnings

        with atomic("investment maturity"):
            result = db.session.execute(
                update(Investment)
                .where(Investment.id == investment_id, Investment.status == InvestmentStatus.ACTIVE.value)
                .values(
                    status=InvestmentStatus.COMPLETED.value,
                    earnings=earnings,
                    matured_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidStateError(f"Investment {investment_id} was already settled")

            WalletStore.credit(user_id, payout_amount)
            if earnings > 0:
                WalletStore.accrue_profit(user_id, earnings)

            db.session.execute(
                update(Transaction)
                .where(
                    Transaction.investment_id == investment_id,
                    Transaction.type == TransactionType.INVESTMENT.value,
                    Transaction.status == TransactionStatus.ACTIVE.value,
                )
                .values(status=TransactionStatus.COMPLETED.value, updated_at=now)
                .execution_options(synchronize_session=False)
            )

            payout = self.ledger.record(
                user_id, TransactionType.PAYOUT, payout_amount, TransactionStatus.COMPLETED,
                meta={
                    "source": "investment",
                    "investment_id": investment_id,
                    "plan": plan.name,
                    "principal": str(principal),
                    "profit": str(earnings),
                },
                investment_id=investment_id,
            )

        logger.info(
            f"Investment {investment_id} matured: user {user_id}, principal {principal}, profit {earnings}"
        )
        return payout
