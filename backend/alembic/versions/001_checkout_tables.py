"""Create artworks, purchases and failed_payments tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'artworks',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('artist_id', sa.String(36), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('item_type', sa.String(20), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=True),
        sa.Column('sold', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('payment_intent_id', sa.String(255), nullable=True),
        sa.Column('buyer_id', sa.String(36), nullable=True),
        sa.Column('sold_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_artwork_artist_id', 'artworks', ['artist_id'])
    op.create_index('idx_artwork_payment_intent_id', 'artworks', ['payment_intent_id'])

    op.create_table(
        'purchases',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('product_id', sa.String(36), nullable=False),
        sa.Column('payment_intent_id', sa.String(255), nullable=False),
        sa.Column('buyer_id', sa.String(36), nullable=False),
        sa.Column('seller_id', sa.String(36), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('product_id', 'payment_intent_id', 'buyer_id', name='uq_purchase_intent'),
    )
    op.create_index('idx_purchase_buyer_id', 'purchases', ['buyer_id'])
    op.create_index('idx_purchase_payment_intent_id', 'purchases', ['payment_intent_id'])

    op.create_table(
        'failed_payments',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('payment_intent_id', sa.String(255), nullable=False),
        sa.Column('item_id', sa.String(36), nullable=True),
        sa.Column('item_type', sa.String(20), nullable=True),
        sa.Column('buyer_id', sa.String(36), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('error_code', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_failed_payments_payment_intent_id', 'failed_payments', ['payment_intent_id'])


def downgrade():
    op.drop_index('ix_failed_payments_payment_intent_id', table_name='failed_payments')
    op.drop_table('failed_payments')
    op.drop_index('idx_purchase_payment_intent_id', table_name='purchases')
    op.drop_index('idx_purchase_buyer_id', table_name='purchases')
    op.drop_table('purchases')
    op.drop_index('idx_artwork_payment_intent_id', table_name='artworks')
    op.drop_index('idx_artwork_artist_id', table_name='artworks')
    op.drop_table('artworks')
