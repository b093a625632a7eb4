"""Workers and monthly salary payments

Revision ID: 20261019_workers
Revises: 20261019_initial
Create Date: 2026-10-19

This migration adds:
1. workers (employees, optionally linked to a user account)
2. worker_payments (one active salary payment per worker per month)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_workers'
down_revision = '20261019_initial'
branch_labels = None
depends_on = None


def _soft_delete_columns():
    return [
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def upgrade():
    # ==========================================================================
    # 1. WORKERS
    # ==========================================================================
    op.create_table('workers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=128), nullable=False),
        sa.Column('phone_number', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('passport_id', sa.String(length=32), nullable=False),
        sa.Column('hire_date', sa.Date(), nullable=False),
        sa.Column('termination_date', sa.Date(), nullable=True),
        sa.Column('monthly_salary', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        *_soft_delete_columns(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('passport_id'),
        sa.UniqueConstraint('user_id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('workers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_workers_full_name'), ['full_name'], unique=False)
        batch_op.create_index(batch_op.f('ix_workers_phone_number'), ['phone_number'], unique=False)
        batch_op.create_index(batch_op.f('ix_workers_hire_date'), ['hire_date'], unique=False)
        batch_op.create_index(batch_op.f('ix_workers_is_active'), ['is_active'], unique=False)

    # ==========================================================================
    # 2. SALARY PAYMENTS
    # ==========================================================================
    op.create_table('worker_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('worker_id', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('bonus', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('deduction', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('total_paid', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('method', sa.String(length=16), nullable=False, server_default='CASH'),
        sa.Column('payment_date', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        *_soft_delete_columns(),
        sa.ForeignKeyConstraint(['worker_id'], ['workers.id'], ),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('worker_payments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_worker_payments_worker_id'), ['worker_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_worker_payments_payment_date'), ['payment_date'], unique=False)
        batch_op.create_index(batch_op.f('ix_worker_payments_is_active'), ['is_active'], unique=False)
        batch_op.create_index('ix_worker_payments_worker_period', ['worker_id', 'year', 'month'], unique=False)


def downgrade():
    op.drop_table('worker_payments')
    op.drop_table('workers')
