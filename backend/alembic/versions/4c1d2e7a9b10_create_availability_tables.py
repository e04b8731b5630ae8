"""Create availability tables

Revision ID: 4c1d2e7a9b10
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4c1d2e7a9b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'facilities',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_facilities_id', 'facilities', ['id'])

    op.create_table(
        'doctors',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('full_name', sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_doctors_id', 'doctors', ['id'])

    op.create_table(
        'service_offerings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('facility_id', sa.Integer(), sa.ForeignKey('facilities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('doctor_id', sa.Integer(), sa.ForeignKey('doctors.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('default_duration_minutes', sa.Integer(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_service_offerings_id', 'service_offerings', ['id'])

    op.create_table(
        'availability_rules',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('doctor_id', sa.Integer(), sa.ForeignKey('doctors.id', ondelete='CASCADE'), nullable=False),
        sa.Column('facility_id', sa.Integer(), sa.ForeignKey('facilities.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'service_offering_id', sa.Integer(),
            sa.ForeignKey('service_offerings.id', ondelete='CASCADE'), nullable=True,
        ),
        sa.Column('day_of_week', sa.SmallInteger(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('slot_duration_minutes', sa.Integer(), nullable=False),
        sa.Column('slot_interval_minutes', sa.Integer(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('meta', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('day_of_week BETWEEN 0 AND 6', name='check_rule_day_of_week'),
        sa.CheckConstraint('start_time < end_time', name='check_rule_time_window'),
        sa.CheckConstraint('slot_duration_minutes > 0', name='check_rule_slot_duration'),
        sa.CheckConstraint(
            'slot_interval_minutes IS NULL OR slot_interval_minutes > 0',
            name='check_rule_slot_interval',
        ),
    )
    op.create_index('ix_availability_rules_id', 'availability_rules', ['id'])
    op.create_index('idx_availability_rules_doctor_facility', 'availability_rules', ['doctor_id', 'facility_id'])
    op.create_index('idx_availability_rules_active', 'availability_rules', ['active'])

    op.create_table(
        'availability_exceptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'availability_rule_id', sa.Integer(),
            sa.ForeignKey('availability_rules.id', ondelete='CASCADE'), nullable=True,
        ),
        sa.Column('facility_id', sa.Integer(), sa.ForeignKey('facilities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('doctor_id', sa.Integer(), sa.ForeignKey('doctors.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_at', sa.DateTime(), nullable=False),
        sa.Column('end_at', sa.DateTime(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False, server_default='blocked'),
        sa.Column('reason', sa.String(500), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('start_at <= end_at', name='check_exception_time_range'),
        sa.CheckConstraint("type IN ('blocked', 'override', 'emergency')", name='check_exception_type'),
    )
    op.create_index('ix_availability_exceptions_id', 'availability_exceptions', ['id'])
    op.create_index(
        'idx_availability_exceptions_pair_range', 'availability_exceptions',
        ['facility_id', 'doctor_id', 'start_at', 'end_at'],
    )
    op.create_index('idx_availability_exceptions_rule', 'availability_exceptions', ['availability_rule_id'])

    op.create_table(
        'availability_slots',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('facility_id', sa.Integer(), sa.ForeignKey('facilities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('doctor_id', sa.Integer(), sa.ForeignKey('doctors.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'service_offering_id', sa.Integer(),
            sa.ForeignKey('service_offerings.id', ondelete='CASCADE'), nullable=True,
        ),
        sa.Column('start_at', sa.DateTime(), nullable=False),
        sa.Column('end_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='open'),
        sa.Column('capacity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('reserved_until', sa.DateTime(), nullable=True),
        sa.Column(
            'created_from_rule_id', sa.Integer(),
            sa.ForeignKey('availability_rules.id', ondelete='SET NULL'), nullable=True,
        ),
        *_timestamps(),
        sa.UniqueConstraint(
            'facility_id', 'doctor_id', 'start_at', 'end_at',
            name='uq_availability_slots_facility_doctor_window',
        ),
        sa.CheckConstraint('start_at < end_at', name='check_slot_time_range'),
        sa.CheckConstraint('capacity >= 1', name='check_slot_capacity'),
        sa.CheckConstraint(
            "status IN ('open', 'reserved', 'booked', 'cancelled')",
            name='check_slot_status',
        ),
    )
    op.create_index('ix_availability_slots_id', 'availability_slots', ['id'])
    op.create_index('idx_availability_slots_start_at', 'availability_slots', ['start_at'])
    op.create_index('idx_availability_slots_doctor_start', 'availability_slots', ['doctor_id', 'start_at'])
    op.create_index('idx_availability_slots_facility_start', 'availability_slots', ['facility_id', 'start_at'])
    op.create_index(
        'idx_availability_slots_status_reserved_until', 'availability_slots', ['status', 'reserved_until']
    )

    op.create_table(
        'appointments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('patient_id', sa.Integer(), nullable=False),
        sa.Column('facility_id', sa.Integer(), sa.ForeignKey('facilities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('doctor_id', sa.Integer(), sa.ForeignKey('doctors.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'service_offering_id', sa.Integer(),
            sa.ForeignKey('service_offerings.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column(
            'availability_slot_id', sa.Integer(),
            sa.ForeignKey('availability_slots.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('start_at', sa.DateTime(), nullable=False),
        sa.Column('end_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('canceled_at', sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_appointments_id', 'appointments', ['id'])
    op.create_index('idx_appointments_patient', 'appointments', ['patient_id'])
    op.create_index('idx_appointments_status', 'appointments', ['status'])
    op.create_index('idx_appointments_facility_start', 'appointments', ['facility_id', 'start_at'])
    op.create_index('idx_appointments_slot', 'appointments', ['availability_slot_id'])


def downgrade() -> None:
    op.drop_table('appointments')
    op.drop_table('availability_slots')
    op.drop_table('availability_exceptions')
    op.drop_table('availability_rules')
    op.drop_table('service_offerings')
    op.drop_table('doctors')
    op.drop_table('facilities')
