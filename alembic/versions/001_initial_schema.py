"""Initial schema - drops, reservations, purchases and activity log

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'drops',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('stock', sa.Integer(), nullable=False),
        sa.Column('initial_stock', sa.Integer(), nullable=False),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('stock >= 0', name='ck_drops_stock_non_negative'),
        sa.CheckConstraint('stock <= initial_stock', name='ck_drops_stock_within_initial'),
        sa.CheckConstraint('initial_stock >= 0', name='ck_drops_initial_stock_non_negative'),
        sa.CheckConstraint('price >= 0', name='ck_drops_price_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'reservations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('holder_id', sa.String(length=100), nullable=False),
        sa.Column('drop_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('price_at_reservation', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['drop_id'], ['drops.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_reservations_holder_drop', 'reservations', ['holder_id', 'drop_id'])
    op.create_index('idx_reservations_status_expires', 'reservations', ['status', 'expires_at'])
    op.create_index(op.f('ix_reservations_status'), 'reservations', ['status'])

    op.create_table(
        'purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('holder_id', sa.String(length=100), nullable=False),
        sa.Column('drop_id', sa.Integer(), nullable=False),
        sa.Column('reservation_id', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('purchased_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['drop_id'], ['drops.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['reservation_id'], ['reservations.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reservation_id')
    )
    op.create_index(op.f('ix_purchases_holder_id'), 'purchases', ['holder_id'])
    op.create_index(op.f('ix_purchases_purchased_at'), 'purchases', ['purchased_at'])
    op.create_index('idx_purchases_drop_purchased', 'purchases', ['drop_id', 'purchased_at'])

    op.create_table(
        'activity_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=100), nullable=False),
        sa.Column('details', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('user_id', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_activity_log_action'), 'activity_log', ['action'])
    op.create_index(op.f('ix_activity_log_entity_type'), 'activity_log', ['entity_type'])
    op.create_index(op.f('ix_activity_log_entity_id'), 'activity_log', ['entity_id'])
    op.create_index(op.f('ix_activity_log_created_at'), 'activity_log', ['created_at'])


def downgrade() -> None:
    op.drop_table('activity_log')
    op.drop_table('purchases')
    op.drop_table('reservations')
    op.drop_table('drops')
