"""create_marketplace_tables

Revision ID: 3f9c1a7e5b20
Revises:
Create Date: 2026-10-12 09:14:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID


# revision identifiers, used by Alembic.
revision: str = '3f9c1a7e5b20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ORDER_STATUSES = (
    'pending_payment', 'paid', 'confirmed', 'ready_for_pickup',
    'completed', 'cancelled', 'disputed',
)


def upgrade() -> None:
    """Upgrade schema - businesses, listings, orders, wallets, notifications."""

    # Businesses and staff
    op.create_table(
        'businesses',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column(
            'business_type',
            sa.Enum('restaurant', 'bakery', 'cafe', 'grocery', 'hotel', 'catering',
                    'other', name='business_type_enum'),
            nullable=False,
        ),
        sa.Column('owner_auth_id', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('phone', sa.String(length=30), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_businesses_owner_auth_id', 'businesses', ['owner_auth_id'])

    op.create_table(
        'business_staff',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('business_id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column(
            'role',
            sa.Enum('owner', 'manager', 'staff', name='staff_role_enum'),
            nullable=False,
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id', 'user_id', name='uq_business_staff_user')
    )
    op.create_index('ix_business_staff_user_id', 'business_staff', ['user_id'])

    # Listings
    op.create_table(
        'listings',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('business_id', UUID(as_uuid=True), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column(
            'listing_type',
            sa.Enum('individual', 'bulk_bag', 'chef_special', 'mystery_box',
                    name='listing_type_enum'),
            nullable=False,
        ),
        sa.Column('original_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('asking_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('discounted_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('bulk_threshold', sa.Integer(), nullable=True),
        sa.Column('bulk_discount_pct', sa.Numeric(5, 2), nullable=True),
        sa.Column('peak_rules', JSONB(), nullable=True),
        sa.Column('total_quantity', sa.Integer(), nullable=False),
        sa.Column('available_quantity', sa.Integer(), nullable=False),
        sa.Column('pickup_window_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('pickup_window_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            'status',
            sa.Enum('active', 'sold_out', 'expired', 'cancelled',
                    name='listing_status_enum'),
            nullable=False,
        ),
        sa.Column('estimated_co2_savings_kg', sa.Numeric(10, 2), server_default='0', nullable=False),
        sa.Column('allergen_info', sa.Text(), nullable=True),
        sa.Column('ingredients', sa.Text(), nullable=True),
        sa.Column('preparation_time_minutes', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('expired_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expiry_reminder_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('total_quantity > 0', name='ck_listing_total_positive'),
        sa.CheckConstraint(
            'available_quantity >= 0 AND available_quantity <= total_quantity',
            name='ck_listing_available_within_total',
        ),
        sa.CheckConstraint('original_price > 0', name='ck_listing_original_positive'),
        sa.CheckConstraint('asking_price >= 0', name='ck_listing_asking_non_negative'),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_listings_business_id', 'listings', ['business_id'])
    op.create_index(
        'ix_listings_status_window_end', 'listings', ['status', 'pickup_window_end']
    )

    # Orders
    op.create_table(
        'orders',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('consumer_id', sa.String(), nullable=True),
        sa.Column('business_id', UUID(as_uuid=True), nullable=False),
        sa.Column('status', sa.Enum(*ORDER_STATUSES, name='order_status_enum'), nullable=False),
        sa.Column('subtotal_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('points_redeemed', sa.Integer(), server_default='0', nullable=False),
        sa.Column('points_discount_amount', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('wallet_amount_applied', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('amount_due', sa.Numeric(12, 2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('refunded_amount', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('points_awarded', sa.Integer(), server_default='0', nullable=False),
        sa.Column(
            'payment_method',
            sa.Enum('paystack', 'wallet', 'points', name='order_payment_method_enum'),
            nullable=True,
        ),
        sa.Column('payment_reference', sa.String(), nullable=True),
        sa.Column('payment_authorization_url', sa.Text(), nullable=True),
        sa.Column('pickup_code', sa.String(length=6), nullable=False),
        sa.Column('is_donation', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('special_instructions', sa.Text(), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('total_amount >= 0', name='ck_order_total_non_negative'),
        sa.CheckConstraint('amount_due >= 0', name='ck_order_amount_due_non_negative'),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_orders_consumer_id', 'orders', ['consumer_id'])
    op.create_index('ix_orders_business_id', 'orders', ['business_id'])
    op.create_index('ix_orders_payment_reference', 'orders', ['payment_reference'], unique=True)
    op.create_index('ix_orders_pickup_code', 'orders', ['pickup_code'], unique=True)
    op.create_index('ix_orders_status_created', 'orders', ['status', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', UUID(as_uuid=True), nullable=False),
        sa.Column('listing_id', UUID(as_uuid=True), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('line_total', sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_order_item_quantity_positive'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_listing_id', 'order_items', ['listing_id'])

    op.create_table(
        'order_status_events',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', UUID(as_uuid=True), nullable=False),
        sa.Column(
            'from_status',
            sa.Enum(*ORDER_STATUSES, name='order_status_enum', create_type=False),
            nullable=True,
        ),
        sa.Column(
            'to_status',
            sa.Enum(*ORDER_STATUSES, name='order_status_enum', create_type=False),
            nullable=False,
        ),
        sa.Column('actor', sa.String(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_order_status_events_order_id', 'order_status_events', ['order_id'])

    # Wallets and ledgers
    op.create_table(
        'wallets',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('balance', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('points_balance', sa.Integer(), server_default='0', nullable=False),
        sa.Column('total_meals_rescued', sa.Integer(), server_default='0', nullable=False),
        sa.Column('lifetime_credited', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('lifetime_debited', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('lifetime_points_earned', sa.Integer(), server_default='0', nullable=False),
        sa.Column(
            'status',
            sa.Enum('active', 'frozen', 'closed', name='wallet_status_enum'),
            nullable=False,
        ),
        sa.Column('frozen_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('balance >= 0', name='ck_wallet_balance_non_negative'),
        sa.CheckConstraint('points_balance >= 0', name='ck_wallet_points_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_wallets_user_id', 'wallets', ['user_id'], unique=True)

    op.create_table(
        'wallet_transactions',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('wallet_id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('idempotency_key', sa.String(), nullable=False),
        sa.Column(
            'transaction_type',
            sa.Enum('topup', 'purchase', 'refund', 'referral_bonus', 'admin_adjustment',
                    'transfer_in', 'transfer_out', name='transaction_type_enum'),
            nullable=False,
        ),
        sa.Column(
            'direction',
            sa.Enum('credit', 'debit', name='transaction_direction_enum'),
            nullable=False,
        ),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('balance_before', sa.Numeric(12, 2), nullable=False),
        sa.Column('balance_after', sa.Numeric(12, 2), nullable=False),
        sa.Column('source', sa.String(length=50), nullable=False),
        sa.Column('description', sa.String(), nullable=False),
        sa.Column('order_id', UUID(as_uuid=True), nullable=True),
        sa.Column('reference', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_transaction_amount_positive'),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_wallet_transactions_wallet_id', 'wallet_transactions', ['wallet_id'])
    op.create_index('ix_wallet_transactions_user_id', 'wallet_transactions', ['user_id'])
    op.create_index(
        'ix_wallet_transactions_idempotency_key', 'wallet_transactions',
        ['idempotency_key'], unique=True,
    )
    op.create_index('ix_wallet_transactions_order_id', 'wallet_transactions', ['order_id'])
    op.create_index(
        'ix_wallet_transactions_wallet_created', 'wallet_transactions',
        ['wallet_id', 'created_at'],
    )

    op.create_table(
        'points_entries',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('wallet_id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('idempotency_key', sa.String(), nullable=False),
        sa.Column('points_change', sa.Integer(), nullable=False),
        sa.Column(
            'reason',
            sa.Enum('order_completion', 'points_redemption', 'redemption_reversal',
                    'referral_bonus', 'admin_adjustment', name='points_reason_enum'),
            nullable=False,
        ),
        sa.Column('order_id', UUID(as_uuid=True), nullable=True),
        sa.Column('balance_after', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('points_change <> 0', name='ck_points_change_non_zero'),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_points_entries_wallet_id', 'points_entries', ['wallet_id'])
    op.create_index('ix_points_entries_user_id', 'points_entries', ['user_id'])
    op.create_index(
        'ix_points_entries_idempotency_key', 'points_entries',
        ['idempotency_key'], unique=True,
    )
    op.create_index('ix_points_entries_order_id', 'points_entries', ['order_id'])

    op.create_table(
        'wallet_topups',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('wallet_id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('reference', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column(
            'status',
            sa.Enum('pending', 'processing', 'completed', 'failed',
                    name='topup_status_enum'),
            nullable=False,
        ),
        sa.Column('authorization_url', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('failed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_topup_amount_positive'),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_wallet_topups_wallet_id', 'wallet_topups', ['wallet_id'])
    op.create_index('ix_wallet_topups_user_id', 'wallet_topups', ['user_id'])
    op.create_index('ix_wallet_topups_reference', 'wallet_topups', ['reference'], unique=True)

    # Notifications
    op.create_table(
        'notifications',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column(
            'category',
            sa.Enum('order_update', 'new_listing', 'deal_expiring', 'payment',
                    'review', 'system', name='notification_category_enum'),
            nullable=False,
        ),
        sa.Column('related_entity_id', sa.String(), nullable=True),
        sa.Column('related_entity_type', sa.String(length=50), nullable=True),
        sa.Column('is_read', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_user_read', 'notifications', ['user_id', 'is_read'])


def downgrade() -> None:
    """Downgrade schema - drop every marketplace table and enum."""
    op.drop_table('notifications')
    op.drop_table('wallet_topups')
    op.drop_table('points_entries')
    op.drop_table('wallet_transactions')
    op.drop_table('wallets')
    op.drop_table('order_status_events')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('listings')
    op.drop_table('business_staff')
    op.drop_table('businesses')

    for enum_name in (
        'notification_category_enum', 'topup_status_enum', 'points_reason_enum',
        'transaction_direction_enum', 'transaction_type_enum', 'wallet_status_enum',
        'order_payment_method_enum', 'order_status_enum', 'listing_status_enum',
        'listing_type_enum', 'staff_role_enum', 'business_type_enum',
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
