from decimal import Decimal, ROUND_HALF_UP
import logging

from sqlalchemy import update
from extensions import db
from models import Referral, Transaction, TransactionStatus, TransactionType, User
from ledger.errors import NotFoundError, ValidationError
from ledger.transactions import require_user
from ledger.unit_of_work import atomic
from ledger.wallet_store import WalletStore

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class ReferralCrediting:
    """Records who referred whom and pays the referrer once the referred user's first deposit clears."""

    def __init__(self, ledger, bonus_rate: Decimal, clock):
        self.ledger = ledger
        self.bonus_rate = bonus_rate
        self.clock = clock

    def record_referral(self, referred_user_id, referrer_username) -> Referral:
        if not referrer_username:
            raise ValidationError("referrer is required")

        with atomic("referral registration"):
            referred = require_user(referred_user_id)
            referrer = User.query.filter_by(username=str(referrer_username).strip()).first()
            if referrer is None:
                raise NotFoundError(f"Referrer {referrer_username} not found")
            if referrer.id == referred.id:
                raise ValidationError("Users cannot refer themselves")

            existing = Referral.query.filter_by(referred_id=referred.id).first()
            if existing is not None:
                return existing

            referral = Referral(
                referrer_id=referrer.id,
                referred_id=referred.id,
                bonus_amount=Decimal("0.00"),
                created_at=self.clock(),
            )
            db.session.add(referral)
        logger.info(f"Referral recorded: user {referrer.id} referred user {referred.id}")
        return referral

    def bonus_for(self, amount) -> Decimal:
        return (Decimal(amount) * self.bonus_rate).quantize(CENT, ROUND_HALF_UP)

    def on_deposit_completed(self, deposit: Transaction):
        """Runs inside the deposit approval's unit of work. Returns the profit entry, if one was paid."""
        referral = Referral.query.filter(
            Referral.referred_id == deposit.user_id, Referral.rewarded_at.is_(None)
        ).first()
        if referral is None:
            return None

        bonus = self.bonus_for(deposit.amount)
        if bonus <= 0:
            return None

        now = self.clock()
        result = db.session.execute(
            update(Referral)
            .where(Referral.id == referral.id, Referral.rewarded_at.is_(None))
            .values(bonus_amount=bonus, rewarded_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None

        WalletStore.credit(referral.referrer_id, bonus)
        WalletStore.accrue_profit(referral.referrer_id, bonus)
        entry = self.ledger.record(
            referral.referrer_id, TransactionType.PROFIT, bonus, TransactionStatus.COMPLETED,
            meta={"source": "referral", "referred_id": deposit.user_id, "deposit_id": deposit.id},
        )
        logger.info(f"Referral bonus {bonus} paid to user {referral.referrer_id} for deposit {deposit.id}")
        return entry

    @staticmethod
    def list_for_referrer(user_id):
        rows = (
            db.session.query(Referral, User)
            .join(User, Referral.referred_id == User.id)
            .filter(Referral.referrer_id == user_id)
            .order_by(Referral.created_at.desc(), Referral.id.desc())
            .all()
        )
        return [
            {
                "name": user.username,
                "email": user.email,
                "joined": user.to_dict()["dateJoined"],
                "status": "Rewarded" if referral.rewarded_at else "Active",
                "earnings": referral.to_dict()["bonusAmount"],
            }
            for referral, user in rows
        ]

    @staticmethod
    def list_all():
        return Referral.query.order_by(Referral.created_at.desc(), Referral.id.desc()).all()
