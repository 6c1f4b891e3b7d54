"""Create events, participants and checkins tables

Revision ID: 001_create_checkin_tables
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_create_checkin_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table('events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organizer_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('location', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('timezone', sa.String(length=100), nullable=False, server_default='Asia/Tokyo'),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='draft'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_events_organizer_id', 'events', ['organizer_id'])
    op.create_index('ix_events_start_date', 'events', ['start_date'])
    op.create_index('ix_events_status', 'events', ['status'])

    op.create_table('participants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('event_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('employee_id', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('qr_email', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='tentative'),
        sa.Column('qr_code', sa.String(length=255), nullable=False),
        sa.Column('qr_code_generated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('payment_status', sa.String(length=50), nullable=False, server_default='unpaid'),
        sa.Column('payment_amount', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', 'email', name='uq_participants_event_email'),
        sa.UniqueConstraint('qr_code', name='uq_participants_qr_code')
    )
    op.create_index('ix_participants_event_id', 'participants', ['event_id'])
    op.create_index('ix_participants_email', 'participants', ['email'])
    op.create_index('ix_participants_employee_id', 'participants', ['employee_id'])
    op.create_index('ix_participants_status', 'participants', ['status'])
    op.create_index('ix_participants_payment_status', 'participants', ['payment_status'])

    op.create_table('checkins',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('event_id', sa.Uuid(), nullable=False),
        sa.Column('participant_id', sa.Uuid(), nullable=False),
        sa.Column('checked_in_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('checked_in_by', sa.Uuid(), nullable=True),
        sa.Column('checkin_method', sa.String(length=50), nullable=False, server_default='qrcode'),
        sa.Column('device_info', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['participant_id'], ['participants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        # Authoritative guard against double admission
        sa.UniqueConstraint('event_id', 'participant_id', name='uq_checkins_event_participant')
    )
    op.create_index('ix_checkins_event_id', 'checkins', ['event_id'])
    op.create_index('ix_checkins_participant_id', 'checkins', ['participant_id'])
    op.create_index('ix_checkins_checked_in_at', 'checkins', ['checked_in_at'])
    op.create_index('ix_checkins_checked_in_by', 'checkins', ['checked_in_by'])


def downgrade() -> None:
    op.drop_index('ix_checkins_checked_in_by', table_name='checkins')
    op.drop_index('ix_checkins_checked_in_at', table_name='checkins')
    op.drop_index('ix_checkins_participant_id', table_name='checkins')
    op.drop_index('ix_checkins_event_id', table_name='checkins')
    op.drop_table('checkins')

    op.drop_index('ix_participants_payment_status', table_name='participants')
    op.drop_index('ix_participants_status', table_name='participants')
    op.drop_index('ix_participants_employee_id', table_name='participants')
    op.drop_index('ix_participants_email', table_name='participants')
    op.drop_index('ix_participants_event_id', table_name='participants')
    op.drop_table('participants')

    op.drop_index('ix_events_status', table_name='events')
    op.drop_index('ix_events_start_date', table_name='events')
    op.drop_index('ix_events_organizer_id', table_name='events')
    op.drop_table('events')
