"""stores, inventory and order tables

Revision ID: 0001_init
Revises:
Create Date: 2025-06-01

"""
from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'stores',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('owner_id', sa.Integer, nullable=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True, unique=True),
        sa.Column('address', sa.String(500), nullable=False, server_default=''),
        sa.Column('latitude', sa.Float, nullable=False),
        sa.Column('longitude', sa.Float, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_index('ix_stores_is_active', 'stores', ['is_active'])

    op.create_table(
        'master_products',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('base_price', sa.Numeric(10,2), nullable=False),
        sa.Column('discounted_price', sa.Numeric(10,2), nullable=True),
        sa.Column('unit', sa.String(50), nullable=True),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('store_id', sa.Integer, sa.ForeignKey('stores.id', ondelete='CASCADE'), nullable=False),
        sa.Column('master_product_id', sa.Integer, sa.ForeignKey('master_products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.UniqueConstraint('store_id', 'master_product_id', name='uq_products_store_master'),
    )
    op.create_index('ix_products_store_id', 'products', ['store_id'])
    op.create_index('ix_products_master_product_id', 'products', ['master_product_id'])

    op.create_table(
        'order_sequences',
        sa.Column('prefix', sa.String(20), primary_key=True),
        sa.Column('last_value', sa.Integer, nullable=False),
    )

    op.create_table(
        'customer_orders',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('customer_id', sa.Integer, nullable=False),
        sa.Column('order_code', sa.String(30), nullable=False),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('payment_status', sa.String(30), nullable=False),
        sa.Column('payment_method', sa.String(30), nullable=False),
        sa.Column('subtotal_amount', sa.Numeric(10,2), nullable=False),
        sa.Column('delivery_fee', sa.Numeric(10,2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(10,2), nullable=False),
        sa.Column('total_amount', sa.Numeric(10,2), nullable=False),
        sa.Column('delivery_address', sa.String(500), nullable=False),
        sa.Column('delivery_latitude', sa.Float, nullable=False),
        sa.Column('delivery_longitude', sa.Float, nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('placed_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_customer_orders_order_code', 'customer_orders', ['order_code'], unique=True)
    op.create_index('ix_customer_orders_customer_id', 'customer_orders', ['customer_id'])

    op.create_table(
        'store_orders',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('customer_order_id', sa.Integer, sa.ForeignKey('customer_orders.id', ondelete='CASCADE'), nullable=False),
        # Deleting a store must not erase order history
        sa.Column('store_id', sa.Integer, sa.ForeignKey('stores.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('subtotal_amount', sa.Numeric(10,2), nullable=False),
        sa.Column('delivery_fee', sa.Numeric(10,2), nullable=False),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.UniqueConstraint('customer_order_id', 'store_id', name='uq_store_orders_order_store'),
    )
    op.create_index('ix_store_orders_customer_order_id', 'store_orders', ['customer_order_id'])
    op.create_index('ix_store_orders_store_id', 'store_orders', ['store_id'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('store_order_id', sa.Integer, sa.ForeignKey('store_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer, sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('product_name', sa.String(200), nullable=False),
        sa.Column('unit', sa.String(50), nullable=True),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('unit_price', sa.Numeric(10,2), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
    )
    op.create_index('ix_order_items_store_order_id', 'order_items', ['store_order_id'])

    op.create_table(
        'order_status_history',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('customer_order_id', sa.Integer, sa.ForeignKey('customer_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('notes', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_order_status_history_customer_order_id', 'order_status_history', ['customer_order_id'])

def downgrade():
    op.drop_table('order_status_history')
    op.drop_table('order_items')
    op.drop_table('store_orders')
    op.drop_table('customer_orders')
    op.drop_table('order_sequences')
    op.drop_table('products')
    op.drop_table('master_products')
    op.drop_table('stores')
