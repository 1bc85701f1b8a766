"""Create contracts table

Revision ID: 20261017_000001
Revises: None
Create Date: 2026-10-17

Rental contracts per flat. Renewals and modifications chain through
previous_contract_id.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261017_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CONTRACT_STATUSES = ('PENDING', 'ACTIVE', 'EXPIRED', 'RENEWED', 'CANCELLED', 'SUPERSEDED')


def upgrade() -> None:
    """Create the contracts table."""
    op.create_table(
        'contracts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('flat_id', sa.Integer(), nullable=False),
        sa.Column('previous_contract_id', sa.Integer(), nullable=True),
        sa.Column('tenant_name', sa.String(length=255), nullable=False),
        sa.Column('tenant_contact', sa.String(length=100), nullable=True),
        sa.Column('tenant_email', sa.String(length=255), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('monthly_rent', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('day_of_month', sa.Integer(), nullable=False),
        sa.Column('security_deposit', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column(
            'status',
            sa.Enum(*CONTRACT_STATUSES, name='contract_status', create_constraint=True),
            nullable=False,
            server_default='PENDING'
        ),
        sa.Column('dues_generated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('cancellation_date', sa.Date(), nullable=True),
        sa.Column('cancelled_by', sa.String(length=100), nullable=True),
        sa.Column('deposit_refunded', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status_changed_at', sa.DateTime(), nullable=True),
        sa.Column('status_changed_by', sa.String(length=100), nullable=True),
        sa.Column('status_change_reason', sa.String(length=500), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['flat_id'],
            ['flats.id'],
            name='fk_contracts_flat_id',
            ondelete='NO ACTION'
        ),
        sa.ForeignKeyConstraint(
            ['previous_contract_id'],
            ['contracts.id'],
            name='fk_contracts_previous_contract_id',
            ondelete='NO ACTION'
        ),
        sa.CheckConstraint('day_of_month BETWEEN 1 AND 31', name='ck_contracts_day_of_month'),
        sa.CheckConstraint('end_date >= start_date', name='ck_contracts_dates'),
    )

    op.create_index('ix_contracts_flat_id', 'contracts', ['flat_id'])
    op.create_index('ix_contracts_status', 'contracts', ['status'])
    op.create_index('ix_contracts_flat_dates', 'contracts', ['flat_id', 'start_date', 'end_date'])


def downgrade() -> None:
    """Drop the contracts table."""
    op.drop_index('ix_contracts_flat_dates', table_name='contracts')
    op.drop_index('ix_contracts_status', table_name='contracts')
    op.drop_index('ix_contracts_flat_id', table_name='contracts')
    op.drop_table('contracts')
