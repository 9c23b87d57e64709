"""Add sales ledger table.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'sales',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('payment_intent_id', sa.String(255), nullable=False),
        sa.Column('item_id', sa.String(36), nullable=False),
        sa.Column('item_type', sa.String(20), nullable=False),
        sa.Column('item_title', sa.String(255), nullable=False),
        sa.Column('buyer_id', sa.String(36), nullable=False),
        sa.Column('artist_id', sa.String(36), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('product_amount', sa.Integer(), nullable=False),
        sa.Column('application_fee_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('platform_commission', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('platform_commission_percentage', sa.Float(), nullable=False, server_default='0'),
        sa.Column('artist_payout', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='completed'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('payment_intent_id', name='uq_sale_payment_intent_id'),
    )
    op.create_index('idx_sale_artist_id', 'sales', ['artist_id'])
    op.create_index('idx_sale_buyer_id', 'sales', ['buyer_id'])


def downgrade():
    op.drop_index('idx_sale_buyer_id', table_name='sales')
    op.drop_index('idx_sale_artist_id', table_name='sales')
    op.drop_table('sales')
