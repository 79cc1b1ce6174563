"""create ledger tables

Revision ID: 3f9c2a7d1e05
Revises:
Create Date: 2026-10-18 10:12:41.204518

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c2a7d1e05'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # 1. users
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('name', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    # 2. products
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('product_type', sa.String(length=20), nullable=False, server_default='Other'),
        sa.Column('flavor_detail', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_products_user_id', 'products', ['user_id'])

    # 3. purchases
    op.create_table(
        'purchases',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('purchase_date', sa.DateTime(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_per_item', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('total_cost', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_purchases_user_date', 'purchases', ['user_id', 'purchase_date'])
    op.create_index('ix_purchases_user_id', 'purchases', ['user_id'])
    op.create_index('ix_purchases_product_id', 'purchases', ['product_id'])

    # 4. consumption
    op.create_table(
        'consumption',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('consumption_date', sa.DateTime(), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_consumption_user_date', 'consumption', ['user_id', 'consumption_date'])
    op.create_index('ix_consumption_user_id', 'consumption', ['user_id'])
    op.create_index('ix_consumption_product_id', 'consumption', ['product_id'])

    # 5. giveaways
    op.create_table(
        'giveaways',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('giveaway_date', sa.DateTime(), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('recipient', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_giveaways_user_id', 'giveaways', ['user_id'])
    op.create_index('ix_giveaways_product_id', 'giveaways', ['product_id'])

    # 6. user_settings
    op.create_table(
        'user_settings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('monthly_budget', sa.Numeric(precision=10, scale=2), nullable=False, server_default='500.00'),
        sa.Column('currency', sa.String(length=10), nullable=False, server_default='SEK'),
        sa.Column('share_token', sa.String(length=64), nullable=True),
        sa.Column('share_preferences', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
        sa.UniqueConstraint('share_token')
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('user_settings')
    op.drop_index('ix_giveaways_product_id', table_name='giveaways')
    op.drop_index('ix_giveaways_user_id', table_name='giveaways')
    op.drop_table('giveaways')
    op.drop_index('ix_consumption_product_id', table_name='consumption')
    op.drop_index('ix_consumption_user_id', table_name='consumption')
    op.drop_index('ix_consumption_user_date', table_name='consumption')
    op.drop_table('consumption')
    op.drop_index('ix_purchases_product_id', table_name='purchases')
    op.drop_index('ix_purchases_user_id', table_name='purchases')
    op.drop_index('ix_purchases_user_date', table_name='purchases')
    op.drop_table('purchases')
    op.drop_index('ix_products_user_id', table_name='products')
    op.drop_table('products')
    op.drop_table('users')
