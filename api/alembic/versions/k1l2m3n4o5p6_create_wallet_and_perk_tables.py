"""create wallet ledger, store perk and wallet request tables

Revision ID: k1l2m3n4o5p6
Revises:
Create Date: 2026-10-12 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'k1l2m3n4o5p6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'wallet_accounts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('legacy_balance', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('version', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_wallet_accounts_user_id', 'wallet_accounts', ['user_id'], unique=True)

    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('wallet_accounts.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('kind', sa.String(20), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('reference', sa.String(64), nullable=False),
        sa.Column('balance_after', sa.BigInteger(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_ledger_amount_positive'),
    )
    op.create_index('ix_ledger_entries_account_id', 'ledger_entries', ['account_id'])
    op.create_index('ix_ledger_entries_reference', 'ledger_entries', ['reference'])
    op.create_index('ix_ledger_account_created', 'ledger_entries', ['account_id', 'created_at'])
    op.create_index('ix_ledger_status_created', 'ledger_entries', ['status', 'created_at'])

    op.create_table(
        'stores',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_stores_owner_id', 'stores', ['owner_id'])

    op.create_table(
        'perk_entitlements',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('perk_type', sa.String(50), nullable=False),
        sa.Column('price_paid', sa.BigInteger(), nullable=False),
        sa.Column('granted_duration_days', sa.Integer(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('ledger_entry_id', sa.Integer(), sa.ForeignKey('ledger_entries.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('purchased_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('granted_duration_days >= 1', name='ck_entitlement_duration_positive'),
    )
    op.create_index('ix_perk_entitlements_store_id', 'perk_entitlements', ['store_id'])
    op.create_index('ix_entitlement_store_active', 'perk_entitlements', ['store_id', 'is_active', 'expires_at'])
    op.create_index('ix_entitlement_expires', 'perk_entitlements', ['expires_at'])

    op.create_table(
        'wallet_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('evidence_ref', sa.String(500), nullable=True),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('ledger_entry_id', sa.Integer(), sa.ForeignKey('ledger_entries.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_wallet_requests_user_id', 'wallet_requests', ['user_id'])
    op.create_index('ix_wallet_request_status', 'wallet_requests', ['status', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_wallet_request_status', 'wallet_requests')
    op.drop_index('ix_wallet_requests_user_id', 'wallet_requests')
    op.drop_table('wallet_requests')

    op.drop_index('ix_entitlement_expires', 'perk_entitlements')
    op.drop_index('ix_entitlement_store_active', 'perk_entitlements')
    op.drop_index('ix_perk_entitlements_store_id', 'perk_entitlements')
    op.drop_table('perk_entitlements')

    op.drop_index('ix_stores_owner_id', 'stores')
    op.drop_table('stores')

    op.drop_index('ix_ledger_status_created', 'ledger_entries')
    op.drop_index('ix_ledger_account_created', 'ledger_entries')
    op.drop_index('ix_ledger_entries_reference', 'ledger_entries')
    op.drop_index('ix_ledger_entries_account_id', 'ledger_entries')
    op.drop_table('ledger_entries')

    op.drop_index('ix_wallet_accounts_user_id', 'wallet_accounts')
    op.drop_table('wallet_accounts')
