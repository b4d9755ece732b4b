"""create gateway sync tables

Revision ID: 3c1f7a92d4e0
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1f7a92d4e0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'contacts',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('source', sa.String(length=50), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_contacts_email', 'contacts', ['email'])

    op.create_table(
        'gateway_settings',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('gateway_id', sa.String(length=20), nullable=False),
        sa.Column('settings', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_gateway_settings_gateway_id', 'gateway_settings', ['gateway_id'], unique=True)

    op.create_table(
        'id_sequences',
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('next_value', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('name'),
    )

    op.create_table(
        'sync_runs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('gateway', sa.String(length=20), nullable=False),
        sa.Column('source', sa.String(length=20), nullable=False),
        sa.Column('sync_type', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('transactions_synced', sa.Integer(), nullable=False),
        sa.Column('transactions_skipped', sa.Integer(), nullable=False),
        sa.Column('transactions_total', sa.Integer(), nullable=False),
        sa.Column('contacts_created', sa.Integer(), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('triggered_by', sa.String(length=100), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sync_runs_gateway', 'sync_runs', ['gateway'])
    op.create_index(
        'uix_sync_run_gateway_running',
        'sync_runs',
        ['gateway'],
        unique=True,
        sqlite_where=sa.text("status = 'running'"),
        postgresql_where=sa.text("status = 'running'"),
    )

    op.create_table(
        'transactions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('transaction_id', sa.String(length=20), nullable=False),
        sa.Column('contact_id', sa.String(length=36), nullable=False),
        sa.Column('sync_run_id', sa.String(length=36), nullable=True),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('gateway', sa.String(length=20), nullable=False),
        sa.Column('gateway_transaction_id', sa.String(length=255), nullable=True),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('metadata', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id']),
        sa.ForeignKeyConstraint(['sync_run_id'], ['sync_runs.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_id'),
        sa.UniqueConstraint('gateway', 'gateway_transaction_id', name='uix_transaction_gateway_external'),
    )
    op.create_index('ix_transactions_contact_id', 'transactions', ['contact_id'])
    op.create_index('ix_transactions_sync_run_id', 'transactions', ['sync_run_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_transactions_sync_run_id', table_name='transactions')
    op.drop_index('ix_transactions_contact_id', table_name='transactions')
    op.drop_table('transactions')
    op.drop_index('uix_sync_run_gateway_running', table_name='sync_runs')
    op.drop_index('ix_sync_runs_gateway', table_name='sync_runs')
    op.drop_table('sync_runs')
    op.drop_table('id_sequences')
    op.drop_index('ix_gateway_settings_gateway_id', table_name='gateway_settings')
    op.drop_table('gateway_settings')
    op.drop_index('ix_contacts_email', table_name='contacts')
    op.drop_table('contacts')
