"""Initial migration

Revision ID: 001
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


USER_ROLES = ('viewer', 'delivery_creator', 'trip_planner', 'admin')
VEHICLE_STATUSES = ('available', 'in_use', 'maintenance', 'inactive')
DELIVERY_STATUSES = ('pending', 'assigned', 'in_transit', 'delivered', 'failed')
TRIP_STATUSES = ('planned', 'in_progress', 'completed', 'cancelled')


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('role', sa.Enum(*USER_ROLES, name='user_role'), nullable=False, server_default='viewer'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Create vehicles table
    op.create_table(
        'vehicles',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('license_plate', sa.String(20), nullable=False),
        sa.Column('capacity_weight', sa.Float(), nullable=False),
        sa.Column('capacity_volume', sa.Float(), nullable=False),
        sa.Column('current_latitude', sa.Numeric(9, 6), nullable=True),
        sa.Column('current_longitude', sa.Numeric(9, 6), nullable=True),
        sa.Column('start_location', sa.String(500), nullable=True),
        sa.Column('status', sa.Enum(*VEHICLE_STATUSES, name='vehicle_status'), nullable=False, server_default='available'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('license_plate'),
        sa.CheckConstraint('capacity_weight >= 0', name='ck_vehicles_capacity_weight'),
        sa.CheckConstraint('capacity_volume >= 0', name='ck_vehicles_capacity_volume'),
    )
    op.create_index('ix_vehicles_status', 'vehicles', ['status'])

    # Create deliveries table
    op.create_table(
        'deliveries',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('customer_phone', sa.String(50), nullable=True),
        sa.Column('delivery_address', sa.Text(), nullable=False),
        sa.Column('latitude', sa.Numeric(9, 6), nullable=True),
        sa.Column('longitude', sa.Numeric(9, 6), nullable=True),
        sa.Column('scheduled_date', sa.Date(), nullable=False),
        sa.Column('weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('volume', sa.Float(), nullable=False, server_default='0'),
        sa.Column('status', sa.Enum(*DELIVERY_STATUSES, name='delivery_status'), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
        sa.CheckConstraint('weight >= 0', name='ck_deliveries_weight'),
        sa.CheckConstraint('volume >= 0', name='ck_deliveries_volume'),
    )
    op.create_index('ix_deliveries_status', 'deliveries', ['status'])
    op.create_index('ix_deliveries_scheduled_date', 'deliveries', ['scheduled_date'])

    # Create trips table
    op.create_table(
        'trips',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('vehicle_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('planned_start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('planned_end_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_volume', sa.Float(), nullable=False, server_default='0'),
        sa.Column('status', sa.Enum(*TRIP_STATUSES, name='trip_status'), nullable=False, server_default='planned'),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_trips_vehicle_id', 'trips', ['vehicle_id'])
    op.create_index('ix_trips_status', 'trips', ['status'])
    op.create_index('ix_trips_vehicle_status', 'trips', ['vehicle_id', 'status'])

    # Create trip_deliveries table (assignments)
    op.create_table(
        'trip_deliveries',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('trip_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('delivery_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('sequence_order', sa.Integer(), nullable=False),
        sa.Column('estimated_arrival', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_arrival', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['delivery_id'], ['deliveries.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('trip_id', 'delivery_id', name='uq_trip_deliveries_trip_delivery'),
        sa.CheckConstraint('sequence_order >= 1', name='ck_trip_deliveries_sequence_order'),
    )
    op.create_index('ix_trip_deliveries_trip_id', 'trip_deliveries', ['trip_id'])
    op.create_index('ix_trip_deliveries_delivery_id', 'trip_deliveries', ['delivery_id'])


def downgrade() -> None:
    op.drop_table('trip_deliveries')
    op.drop_table('trips')
    op.drop_table('deliveries')
    op.drop_table('vehicles')
    op.drop_table('users')

    op.execute('DROP TYPE IF EXISTS trip_status')
    op.execute('DROP TYPE IF EXISTS delivery_status')
    op.execute('DROP TYPE IF EXISTS vehicle_status')
    op.execute('DROP TYPE IF EXISTS user_role')
