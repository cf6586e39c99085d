"""Initial database schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Create trips table
    op.create_table('trips',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('origin', sa.String(length=128), nullable=False),
        sa.Column('destination', sa.String(length=128), nullable=False),
        sa.Column('departure_time', sa.DateTime(), nullable=False),
        sa.Column('seat_ids', sa.JSON(), nullable=False),
        sa.Column('seat_count', sa.Integer(), nullable=False),
        sa.Column('fare_amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('seat_count > 0', name='ck_trip_seat_count_positive'),
        sa.CheckConstraint('fare_amount > 0', name='ck_trip_fare_amount_positive'),
        sa.CheckConstraint('length(currency) = 3', name='ck_trip_currency_length'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_trips_origin'), 'trips', ['origin'], unique=False)
    op.create_index(op.f('ix_trips_destination'), 'trips', ['destination'], unique=False)
    op.create_index(op.f('ix_trips_departure_time'), 'trips', ['departure_time'], unique=False)

    # Create seat_holds table
    op.create_table('seat_holds',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('trip_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_seat_holds_trip_id'), 'seat_holds', ['trip_id'], unique=False)
    op.create_index(op.f('ix_seat_holds_status'), 'seat_holds', ['status'], unique=False)
    op.create_index(op.f('ix_seat_holds_expires_at'), 'seat_holds', ['expires_at'], unique=False)

    # Create seat_claims table; the unique constraint is the last line against double-selling
    op.create_table('seat_claims',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('trip_id', sa.Uuid(), nullable=False),
        sa.Column('seat_id', sa.String(length=32), nullable=False),
        sa.Column('hold_id', sa.Uuid(), nullable=False),
        sa.Column('state', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['hold_id'], ['seat_holds.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('trip_id', 'seat_id', name='uq_seat_claim_trip_seat')
    )
    op.create_index(op.f('ix_seat_claims_trip_id'), 'seat_claims', ['trip_id'], unique=False)
    op.create_index(op.f('ix_seat_claims_hold_id'), 'seat_claims', ['hold_id'], unique=False)

    # Create bookings table
    op.create_table('bookings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('token', sa.String(length=32), nullable=False),
        sa.Column('trip_id', sa.Uuid(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('seat_ids', sa.JSON(), nullable=False),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('hold_id', sa.Uuid(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('order_id', sa.String(length=64), nullable=True),
        sa.Column('payment_session_ref', sa.Text(), nullable=True),
        sa.Column('gateway_txn_id', sa.String(length=128), nullable=True),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('cancel_reason', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('total_amount > 0', name='ck_booking_total_amount_positive'),
        sa.CheckConstraint('length(customer_name) > 0', name='ck_booking_customer_name_not_empty'),
        sa.CheckConstraint('length(token) > 0', name='ck_booking_token_not_empty'),
        sa.CheckConstraint("status != 'CONFIRMED' OR paid_at IS NOT NULL", name='ck_booking_confirmed_is_paid'),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bookings_token'), 'bookings', ['token'], unique=True)
    op.create_index(op.f('ix_bookings_trip_id'), 'bookings', ['trip_id'], unique=False)
    op.create_index(op.f('ix_bookings_email'), 'bookings', ['email'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index(op.f('ix_bookings_expires_at'), 'bookings', ['expires_at'], unique=False)
    op.create_index(op.f('ix_bookings_order_id'), 'bookings', ['order_id'], unique=True)
    op.create_index(op.f('ix_bookings_created_at'), 'bookings', ['created_at'], unique=False)

    # Create booking_transitions table
    op.create_table('booking_transitions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('booking_id', sa.Uuid(), nullable=False),
        sa.Column('from_status', sa.String(length=20), nullable=True),
        sa.Column('to_status', sa.String(length=20), nullable=False),
        sa.Column('reason', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('from_status IS NULL OR from_status != to_status', name='ck_transition_changes_status'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_booking_transitions_booking_id'), 'booking_transitions', ['booking_id'], unique=False)
    op.create_index(op.f('ix_booking_transitions_created_at'), 'booking_transitions', ['created_at'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('booking_transitions')
    op.drop_table('bookings')
    op.drop_table('seat_claims')
    op.drop_table('seat_holds')
    op.drop_table('trips')
