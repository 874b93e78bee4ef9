# models.py - Flask-SQLAlchemy models for wallets, the transaction ledger, investments and referrals
from datetime import datetime, timezone
from decimal import Decimal
import enum
import json
from flask_login import UserMixin
from sqlalchemy import CheckConstraint, Index, text
from extensions import db


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _money(value):
    return str(Decimal(value or 0).quantize(Decimal("0.01")))


def _iso(value):
    value = as_utc(value)
    return value.isoformat() if value else None


# ===========================================================
# ENUM DEFINITIONS
# ===========================================================

class TransactionType(str, enum.Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    INVESTMENT = "investment"
    PAYOUT = "payout"
    PROFIT = "profit"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    REJECTED = "rejected"


class InvestmentStatus(str, enum.Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"


# ===========================================================
# BASE MIXIN FOR COMMON FIELDS
# ===========================================================

class BaseMixin:
    """Provides created_at and updated_at timestamps to inheriting models."""
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ===========================================================
# USER MODELS
# ===========================================================

class User(UserMixin, db.Model, BaseMixin):
    """Identity owned by the auth service; the ledger only reads id, username and is_staff."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=True)
    is_staff = db.Column(db.Boolean, default=False, nullable=False)

    wallet = db.relationship('Wallet', uselist=False, back_populates='user', cascade="all,delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "isStaff": self.is_staff,
            "dateJoined": _iso(self.created_at),
        }


# ===========================================================
# WALLET & TRANSACTIONS
# ===========================================================

class Wallet(db.Model, BaseMixin):
    __tablename__ = 'wallets'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True, index=True)
    main_balance = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"), server_default=text("0.00"))
    profit_balance = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"), server_default=text("0.00"))

    user = db.relationship('User', back_populates='wallet')

    __table_args__ = (
        CheckConstraint('main_balance >= 0', name='chk_wallet_main_non_negative'),
        CheckConstraint('profit_balance >= 0', name='chk_wallet_profit_non_negative'),
    )

    def to_dict(self):
        return {
            "userId": self.user_id,
            "mainBalance": _money(self.main_balance),
            "profitBalance": _money(self.profit_balance),
        }


class Transaction(db.Model, BaseMixin):
    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False)  # deposit, withdraw, investment, payout, profit
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.String(20), default=TransactionStatus.PENDING.value, nullable=False)
    meta = db.Column(db.JSON, nullable=True)
    investment_id = db.Column(db.Integer, db.ForeignKey('investments.id', ondelete='SET NULL'), nullable=True, index=True)

    investment = db.relationship('Investment', back_populates='ledger_entries')

    __table_args__ = (
        CheckConstraint('amount > 0', name='chk_transaction_amount_positive'),
        Index('idx_transaction_user_type_status', 'user_id', 'type', 'status'),
        Index('idx_transaction_created', 'created_at'),
    )

    @property
    def meta_dict(self):
        """Legacy rows stored meta as a JSON string."""
        if not self.meta:
            return {}
        if isinstance(self.meta, str):
            try:
                parsed = json.loads(self.meta)
            except ValueError:
                return {}
            return parsed if isinstance(parsed, dict) else {}
        return dict(self.meta)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type,
            "amount": _money(self.amount),
            "status": self.status,
            "meta": self.meta_dict,
            "investmentId": self.investment_id,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


# ===========================================================
# INVESTMENTS
# ===========================================================

class Investment(db.Model, BaseMixin):
    __tablename__ = 'investments'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    plan = db.Column(db.String(100), nullable=False)
    rate = db.Column(db.Numeric(6, 4), nullable=True)  # rate locked in when the position opened
    principal = db.Column(db.Numeric(12, 2), nullable=False)
    earnings = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"), server_default=text("0.00"))
    status = db.Column(db.String(20), nullable=False, default=InvestmentStatus.ACTIVE.value)
    matured_at = db.Column(db.DateTime(timezone=True), nullable=True)

    ledger_entries = db.relationship('Transaction', back_populates='investment')

    __table_args__ = (
        CheckConstraint('principal > 0', name='chk_investment_principal_positive'),
        CheckConstraint('earnings >= 0', name='chk_investment_earnings_non_negative'),
        Index('idx_investment_user_status', 'user_id', 'status'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "plan": self.plan,
            "principal": _money(self.principal),
            "earnings": _money(self.earnings),
            "status": self.status,
            "createdAt": _iso(self.created_at),
            "maturedAt": _iso(self.matured_at),
        }


# ===========================================================
# REFERRALS
# ===========================================================

class Referral(db.Model):
    __tablename__ = 'referrals'

    id = db.Column(db.Integer, primary_key=True)
    referrer_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    referred_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    bonus_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"), server_default=text("0.00"))
    rewarded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    referrer = db.relationship('User', foreign_keys=[referrer_id], backref='referrals_made')
    referred = db.relationship('User', foreign_keys=[referred_id], backref='referrals_received')

    def to_dict(self):
        return {
            "id": self.id,
            "referrerId": self.referrer_id,
            "referredId": self.referred_id,
            "bonusAmount": _money(self.bonus_amount),
            "rewardedAt": _iso(self.rewarded_at),
            "createdAt": _iso(self.created_at),
        }
