"""initial ledger schema

Revision ID: 0001_initial_ledger
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the stall ledger from scratch:
- users: participants (owners, cashiers, administrators)
- session_tokens: hashed bearer sessions
- settlements: netted cashier -> owner debts
- sales: one row per consigned item, purchase phase and sale phase
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_ledger'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # users
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('iban', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_name', 'users', ['name'])

    # ============================================================================
    # session_tokens
    # ============================================================================
    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)

    # ============================================================================
    # settlements: written once per run, never updated
    # ============================================================================
    op.create_table(
        'settlements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('from_user_id', sa.Integer(), nullable=False),
        sa.Column('to_user_id', sa.Integer(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('sales_ids', sa.JSON(), nullable=False),
        sa.Column('settled_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['from_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['to_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['settled_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_settlements_from_to', 'settlements', ['from_user_id', 'to_user_id'])

    # ============================================================================
    # sales: purchase phase (purchased_at) and sale phase (sold_at) on one row
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=True),
        sa.Column('cost_cents', sa.Integer(), nullable=True),
        sa.Column('target_price_cents', sa.Integer(), nullable=True),
        sa.Column('owner_user_id', sa.Integer(), nullable=False),
        sa.Column('cashier_user_id', sa.Integer(), nullable=True),
        sa.Column('qr_id', sa.String(length=128), nullable=True),
        sa.Column('is_pin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('purchase_is_pin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('purchase_remarks', sa.String(length=500), nullable=True),
        sa.Column('image_url', sa.String(length=255), nullable=True),
        sa.Column('purchased_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sold_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('settlement_id', sa.Integer(), nullable=True),
        sa.Column('deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['owner_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['cashier_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['settlement_id'], ['settlements.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_owner_user_id', 'sales', ['owner_user_id'])
    op.create_index('ix_sales_cashier_user_id', 'sales', ['cashier_user_id'])
    op.create_index('ix_sales_sold_at', 'sales', ['sold_at'])
    op.create_index('ix_sales_settlement_id', 'sales', ['settlement_id'])
    op.create_index('ix_sales_processed_deleted', 'sales', ['processed', 'deleted'])
    op.create_index('ix_sales_owner_sold', 'sales', ['owner_user_id', 'sold_at'])

    # One live row per QR label; soft-deleted rows release the label
    op.create_index(
        'uq_sales_live_qr_id',
        'sales',
        ['qr_id'],
        unique=True,
        sqlite_where=sa.text('deleted = 0'),
        postgresql_where=sa.text('deleted = false'),
    )


def downgrade():
    op.drop_index('uq_sales_live_qr_id', table_name='sales')
    op.drop_index('ix_sales_owner_sold', table_name='sales')
    op.drop_index('ix_sales_processed_deleted', table_name='sales')
    op.drop_index('ix_sales_settlement_id', table_name='sales')
    op.drop_index('ix_sales_sold_at', table_name='sales')
    op.drop_index('ix_sales_cashier_user_id', table_name='sales')
    op.drop_index('ix_sales_owner_user_id', table_name='sales')
    op.drop_table('sales')

    op.drop_index('ix_settlements_from_to', table_name='settlements')
    op.drop_table('settlements')

    op.drop_index('ix_session_tokens_token_hash', table_name='session_tokens')
    op.drop_index('ix_session_tokens_user_id', table_name='session_tokens')
    op.drop_table('session_tokens')

    op.drop_index('ix_users_name', table_name='users')
    op.drop_table('users')
