"""initial schema

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the KashPOS schema as first deployed:
- products: sellable items with stock and cost/price in cents
- sale_lines: one row per product line of a checkout
- transaction_sequences: per YY-MM transaction number counters
- payment_methods / customer_types: register lookups
- app_settings: runtime flags
- opex_items / opex_settings: monthly operating expenses and sales goal

sale_lines still carries the two report timestamp columns used before
reported_at existed (earnings_datetime, store_sale_datetime); the next
revision folds them into reported_at.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('stock_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cost_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('stock_qty >= 0', name='ck_products_stock_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_products_name', 'products', ['name'])

    op.create_table(
        'sale_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.String(length=36), nullable=True),
        sa.Column('transaction_number', sa.String(length=16), nullable=True),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=64), nullable=False),
        sa.Column('customer_type', sa.String(length=64), nullable=False),
        sa.Column('order_type', sa.String(length=16), nullable=True),
        sa.Column('customer_payment_cents', sa.Integer(), nullable=True),
        sa.Column('captured_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('earnings_datetime', sa.DateTime(timezone=True), nullable=True),
        sa.Column('store_sale_datetime', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('quantity > 0', name='ck_sale_lines_quantity_positive'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sale_lines_transaction_id', 'sale_lines', ['transaction_id'])
    op.create_index('ix_sale_lines_transaction_number', 'sale_lines', ['transaction_number'])
    op.create_index('ix_sale_lines_captured_at', 'sale_lines', ['captured_at'])

    op.create_table(
        'transaction_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('prefix', sa.String(length=8), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('prefix'),
        sqlite_autoincrement=True,
    )

    for table, default_color in (('payment_methods', '#3b82f6'), ('customer_types', '#22c55e')):
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=64), nullable=False),
            sa.Column('color', sa.String(length=16), nullable=False, server_default=default_color),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('name'),
            sqlite_autoincrement=True,
        )

    op.create_table(
        'app_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('value', sa.String(length=255), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key'),
        sqlite_autoincrement=True,
    )

    op.create_table(
        'opex_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('monthly_cost_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )

    op.create_table(
        'opex_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('target_monthly_sales_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )


def downgrade():
    op.drop_table('opex_settings')
    op.drop_table('opex_items')
    op.drop_table('app_settings')
    op.drop_table('customer_types')
    op.drop_table('payment_methods')
    op.drop_table('transaction_sequences')
    op.drop_index('ix_sale_lines_captured_at', table_name='sale_lines')
    op.drop_index('ix_sale_lines_transaction_number', table_name='sale_lines')
    op.drop_index('ix_sale_lines_transaction_id', table_name='sale_lines')
    op.drop_table('sale_lines')
    op.drop_index('ix_products_name', table_name='products')
    op.drop_table('products')
