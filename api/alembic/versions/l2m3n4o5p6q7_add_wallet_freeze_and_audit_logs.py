"""add wallet freeze columns and audit_logs table

Revision ID: l2m3n4o5p6q7
Revises: k1l2m3n4o5p6
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'l2m3n4o5p6q7'
down_revision: Union[str, None] = 'k1l2m3n4o5p6'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column('wallet_accounts', sa.Column('frozen_at', sa.DateTime(), nullable=True))
    op.add_column('wallet_accounts', sa.Column('frozen_by', sa.Integer(), nullable=True))
    op.add_column('wallet_accounts', sa.Column('freeze_reason', sa.Text(), nullable=True))

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('target_type', sa.String(50), nullable=False),
        sa.Column('target_id', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_audit_target', 'audit_logs', ['target_type', 'target_id'])
    op.create_index('ix_audit_created', 'audit_logs', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_audit_created', 'audit_logs')
    op.drop_index('ix_audit_target', 'audit_logs')
    op.drop_table('audit_logs')

    op.drop_column('wallet_accounts', 'freeze_reason')
    op.drop_column('wallet_accounts', 'frozen_by')
    op.drop_column('wallet_accounts', 'frozen_at')
