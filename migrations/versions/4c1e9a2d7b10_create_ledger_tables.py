"""create users, wallets, investments, transactions and referrals

Revision ID: 4c1e9a2d7b10
Revises:
Create Date: 2025-11-20 10:12:41.318204

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1e9a2d7b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=80), nullable=False),
        sa.Column('email', sa.String(length=120), nullable=True),
        sa.Column('is_staff', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'wallets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('main_balance', sa.Numeric(precision=12, scale=2), nullable=False, server_default=sa.text('0.00')),
        sa.Column('profit_balance', sa.Numeric(precision=12, scale=2), nullable=False, server_default=sa.text('0.00')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('main_balance >= 0', name='chk_wallet_main_non_negative'),
        sa.CheckConstraint('profit_balance >= 0', name='chk_wallet_profit_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('wallets', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_wallets_user_id'), ['user_id'], unique=True)

    op.create_table(
        'investments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('plan', sa.String(length=100), nullable=False),
        sa.Column('rate', sa.Numeric(precision=6, scale=4), nullable=True),
        sa.Column('principal', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('earnings', sa.Numeric(precision=12, scale=2), nullable=False, server_default=sa.text('0.00')),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('matured_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('principal > 0', name='chk_investment_principal_positive'),
        sa.CheckConstraint('earnings >= 0', name='chk_investment_earnings_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('investments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_investments_user_id'), ['user_id'], unique=False)
        batch_op.create_index('idx_investment_user_status', ['user_id', 'status'], unique=False)

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('investment_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('amount > 0', name='chk_transaction_amount_positive'),
        sa.ForeignKeyConstraint(['investment_id'], ['investments.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_transactions_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_transactions_investment_id'), ['investment_id'], unique=False)
        batch_op.create_index('idx_transaction_user_type_status', ['user_id', 'type', 'status'], unique=False)
        batch_op.create_index('idx_transaction_created', ['created_at'], unique=False)

    op.create_table(
        'referrals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('referrer_id', sa.Integer(), nullable=False),
        sa.Column('referred_id', sa.Integer(), nullable=False),
        sa.Column('bonus_amount', sa.Numeric(precision=12, scale=2), nullable=False, server_default=sa.text('0.00')),
        sa.Column('rewarded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['referred_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['referrer_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('referred_id'),
    )
    with op.batch_alter_table('referrals', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_referrals_referrer_id'), ['referrer_id'], unique=False)


def downgrade():
    with op.batch_alter_table('referrals', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_referrals_referrer_id'))
    op.drop_table('referrals')

    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.drop_index('idx_transaction_created')
        batch_op.drop_index('idx_transaction_user_type_status')
        batch_op.drop_index(batch_op.f('ix_transactions_investment_id'))
        batch_op.drop_index(batch_op.f('ix_transactions_user_id'))
    op.drop_table('transactions')

    with op.batch_alter_table('investments', schema=None) as batch_op:
        batch_op.drop_index('idx_investment_user_status')
        batch_op.drop_index(batch_op.f('ix_investments_user_id'))
    op.drop_table('investments')

    with op.batch_alter_table('wallets', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_wallets_user_id'))
    op.drop_table('wallets')

    op.drop_table('users')
