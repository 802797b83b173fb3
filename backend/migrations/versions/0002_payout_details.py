"""payout details: payment QR per user and payee mappings

Revision ID: 0002_payout_details
Revises: 0001_initial_ledger
Create Date: 2026-10-19 12:00:00.000000

- users.qr_url: storage ref of the user's payment QR image
- payee_mappings: owner -> user whose payment QR collects the owner's payouts
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0002_payout_details'
down_revision = '0001_initial_ledger'
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table('users') as batch_op:
        batch_op.add_column(sa.Column('qr_url', sa.String(length=255), nullable=True))

    op.create_table(
        'payee_mappings',
        sa.Column('owner_user_id', sa.Integer(), nullable=False),
        sa.Column('qr_user_id', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_by_user_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['owner_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['qr_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['updated_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('owner_user_id'),
    )
    op.create_index('ix_payee_mappings_qr_user_id', 'payee_mappings', ['qr_user_id'])


def downgrade():
    op.drop_index('ix_payee_mappings_qr_user_id', table_name='payee_mappings')
    op.drop_table('payee_mappings')

    with op.batch_alter_table('users') as batch_op:
        batch_op.drop_column('qr_url')
