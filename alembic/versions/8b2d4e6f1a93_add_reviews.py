"""add_reviews

Revision ID: 8b2d4e6f1a93
Revises: 3f9c1a7e5b20
Create Date: 2026-10-18 10:02:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision: str = '8b2d4e6f1a93'
down_revision: Union[str, Sequence[str], None] = '3f9c1a7e5b20'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema - reviews table and the review_submitted points reason."""
    with op.get_context().autocommit_block():
        op.execute(
            "ALTER TYPE points_reason_enum ADD VALUE IF NOT EXISTS 'review_submitted'"
        )

    op.create_table(
        'reviews',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', UUID(as_uuid=True), nullable=False),
        sa.Column('business_id', UUID(as_uuid=True), nullable=False),
        sa.Column('consumer_id', sa.String(), nullable=False),
        sa.Column('rating_food', sa.Integer(), nullable=False),
        sa.Column('rating_service', sa.Integer(), nullable=False),
        sa.Column('rating_packaging', sa.Integer(), nullable=True),
        sa.Column('rating_value', sa.Integer(), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('is_verified_purchase', sa.Boolean(), nullable=False),
        sa.Column('business_response', sa.Text(), nullable=True),
        sa.Column('business_response_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            'rating_food BETWEEN 1 AND 5', name='ck_review_rating_food_range'
        ),
        sa.CheckConstraint(
            'rating_service BETWEEN 1 AND 5', name='ck_review_rating_service_range'
        ),
        sa.CheckConstraint(
            'rating_packaging IS NULL OR rating_packaging BETWEEN 1 AND 5',
            name='ck_review_rating_packaging_range',
        ),
        sa.CheckConstraint(
            'rating_value IS NULL OR rating_value BETWEEN 1 AND 5',
            name='ck_review_rating_value_range',
        ),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id'),
    )
    op.create_index('ix_reviews_business_id', 'reviews', ['business_id'])
    op.create_index('ix_reviews_consumer_id', 'reviews', ['consumer_id'])
    op.create_index(
        'ix_reviews_business_created', 'reviews', ['business_id', 'created_at']
    )


def downgrade() -> None:
    """Downgrade schema - drop reviews. The enum value stays (Postgres cannot drop it)."""
    op.drop_table('reviews')
