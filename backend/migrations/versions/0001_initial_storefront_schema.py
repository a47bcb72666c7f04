"""initial storefront schema

Revision ID: 0001_initial_storefront
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete storefront schema:
- users
- catalog: products, product_images, product_sizes, product_colors, reviews
- loyalty: loyalty_tiers, loyalty_tier_perks, loyalty_enrollments,
  loyalty_rewards, loyalty_transactions (append-only ledger)
- coupons
- checkout: shipping_options, payment_methods, orders, order_items
- carts: carts, cart_items (denormalized aggregates on carts)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_storefront'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*, updated: bool = True):
    cols = [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                              server_default=sa.text('CURRENT_TIMESTAMP')))
    return cols


def upgrade():
    # ============================================================================
    # users
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_loyalty_member', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_users_email', 'users', ['email'])

    # ============================================================================
    # catalog
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('original_price_cents', sa.Integer(), nullable=True),
        sa.Column('image_url', sa.String(length=512), nullable=True),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('loyalty_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rating', sa.Numeric(2, 1), nullable=True),
        sa.Column('is_new', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_sale', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_nonnegative'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_products_category', 'products', ['category'])
    op.create_index('ix_products_category_price', 'products', ['category', 'price_cents'])

    op.create_table(
        'product_images',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('image_url', sa.String(length=512), nullable=False),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_product_images_product_id', 'product_images', ['product_id'])

    op.create_table(
        'product_sizes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('size', sa.String(length=50), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'size', name='uq_product_sizes_product_size'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_product_sizes_product_id', 'product_sizes', ['product_id'])

    op.create_table(
        'product_colors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('value', sa.String(length=50), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'name', name='uq_product_colors_product_name'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_product_colors_product_id', 'product_colors', ['product_id'])

    op.create_table(
        'reviews',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('user_name', sa.String(length=255), nullable=False),
        sa.Column('rating', sa.SmallInteger(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('rating BETWEEN 1 AND 5', name='ck_reviews_rating_range'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_reviews_user_id', 'reviews', ['user_id'])
    op.create_index('ix_reviews_product_id', 'reviews', ['product_id'])

    # ============================================================================
    # checkout reference data
    # ============================================================================
    op.create_table(
        'shipping_options',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('estimated_days', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_shipping_options_is_active', 'shipping_options', ['is_active'])

    op.create_table(
        'payment_methods',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('icon', sa.String(length=100), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_payment_methods_is_active', 'payment_methods', ['is_active'])

    # ============================================================================
    # orders
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('shipping_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('loyalty_points_earned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('shipping_address', sa.Text(), nullable=False),
        sa.Column('shipping_option_id', sa.Integer(), sa.ForeignKey('shipping_options.id'), nullable=True),
        sa.Column('payment_method_id', sa.Integer(), sa.ForeignKey('payment_methods.id'), nullable=True),
        sa.Column('coupon_code', sa.String(length=64), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_user_created', 'orders', ['user_id', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.Column('loyalty_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('size', sa.String(length=50), nullable=True),
        sa.Column('color', sa.String(length=50), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity >= 1', name='ck_order_items_quantity_positive'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

    # ============================================================================
    # coupons
    # ============================================================================
    op.create_table(
        'coupons',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('discount_type', sa.String(length=16), nullable=False),
        sa.Column('value', sa.Integer(), nullable=False),
        sa.Column('source', sa.String(length=16), nullable=False, server_default='OTHER'),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_used', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_coupons_code', 'coupons', ['code'])
    op.create_index('ix_coupons_user_id', 'coupons', ['user_id'])
    op.create_index('ix_coupons_used_expires', 'coupons', ['is_used', 'expires_at'])

    # ============================================================================
    # loyalty
    # ============================================================================
    op.create_table(
        'loyalty_tiers',
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('required_points', sa.Integer(), nullable=False),
        sa.Column('multiplier', sa.Numeric(3, 2), nullable=False, server_default='1.00'),
        sa.PrimaryKeyConstraint('name'),
        sa.UniqueConstraint('required_points'),
    )

    op.create_table(
        'loyalty_tier_perks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tier_name', sa.String(length=50), sa.ForeignKey('loyalty_tiers.name'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('perk', sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tier_name', 'position', name='uq_tier_perks_tier_position'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_loyalty_tier_perks_tier_name', 'loyalty_tier_perks', ['tier_name'])

    op.create_table(
        'loyalty_enrollments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('tier_name', sa.String(length=50), sa.ForeignKey('loyalty_tiers.name'), nullable=False),
        sa.Column('enrolled_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_redeemed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', name='uq_loyalty_enrollments_user'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_loyalty_enrollments_user_id', 'loyalty_enrollments', ['user_id'])

    op.create_table(
        'loyalty_rewards',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('points_required', sa.Integer(), nullable=False),
        sa.Column('validity_days', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('discount_type', sa.String(length=16), nullable=False),
        sa.Column('value', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_loyalty_rewards_is_active', 'loyalty_rewards', ['is_active'])

    op.create_table(
        'loyalty_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='COMPLETED'),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=True),
        sa.Column('coupon_id', sa.Integer(), sa.ForeignKey('coupons.id'), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('points >= 0', name='ck_loyalty_txns_points_nonnegative'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_loyalty_transactions_user_id', 'loyalty_transactions', ['user_id'])
    op.create_index('ix_loyalty_transactions_transaction_type', 'loyalty_transactions', ['transaction_type'])
    op.create_index('ix_loyalty_transactions_order_id', 'loyalty_transactions', ['order_id'])
    op.create_index('ix_loyalty_transactions_occurred_at', 'loyalty_transactions', ['occurred_at'])
    op.create_index('ix_loyalty_txns_user_occurred', 'loyalty_transactions', ['user_id', 'occurred_at'])

    # ============================================================================
    # carts
    # ============================================================================
    op.create_table(
        'carts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('estimated_loyalty_points', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', name='uq_carts_user'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_carts_user_id', 'carts', ['user_id'])

    op.create_table(
        'cart_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cart_id', sa.Integer(), sa.ForeignKey('carts.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('size', sa.String(length=50), nullable=True),
        sa.Column('color', sa.String(length=50), nullable=True),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unit_loyalty_points', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity >= 1', name='ck_cart_items_quantity_positive'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_cart_items_cart_id', 'cart_items', ['cart_id'])
    op.create_index('ix_cart_items_product_id', 'cart_items', ['product_id'])
    op.create_index('ix_cart_items_cart_product', 'cart_items', ['cart_id', 'product_id'])


def downgrade():
    for table in (
        'cart_items', 'carts',
        'loyalty_transactions', 'loyalty_rewards', 'loyalty_enrollments',
        'loyalty_tier_perks', 'loyalty_tiers',
        'coupons',
        'order_items', 'orders',
        'payment_methods', 'shipping_options',
        'reviews', 'product_colors', 'product_sizes', 'product_images', 'products',
        'users',
    ):
        op.drop_table(table)
