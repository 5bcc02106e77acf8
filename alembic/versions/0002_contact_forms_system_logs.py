"""contact forms, system logs and notification venue

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0002'
down_revision: Union[str, None] = '0001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('contact_forms',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('subject', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "status IN ('PENDING', 'IN_PROGRESS', 'RESOLVED', 'ARCHIVED')",
            name='ck_contact_forms_status',
        ),
    )
    op.create_index('ix_contact_forms_email', 'contact_forms', ['email'])
    op.create_index('ix_contact_forms_status', 'contact_forms', ['status'])
    op.create_index('ix_contact_forms_created_at', 'contact_forms', ['created_at'])

    op.create_table('system_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('level', sa.String(length=10), nullable=False),
        sa.Column('category', sa.String(length=30), nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('user_email', sa.String(length=255), nullable=True),
        sa.Column('user_name', sa.String(length=255), nullable=True),
        sa.Column('user_role', sa.String(length=50), nullable=True),
        sa.Column('ip_address', sa.String(length=100), nullable=True),
        sa.Column('user_agent', sa.String(length=1000), nullable=True),
        sa.Column('resource_type', sa.String(length=50), nullable=True),
        sa.Column('resource_id', sa.String(length=100), nullable=True),
        sa.Column('duration', sa.Integer(), nullable=True),
        sa.Column('status_code', sa.Integer(), nullable=True),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.String(length=2000), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "level IN ('DEBUG', 'INFO', 'WARN', 'ERROR', 'CRITICAL')",
            name='ck_system_logs_level',
        ),
        sa.CheckConstraint(
            "category IN ('AUTHENTICATION', 'ADMIN_ACTION', 'PAYMENT_PROCESSING', 'API_REQUEST', "
            "'EMAIL_SERVICE', 'SECURITY_EVENT', 'DATABASE_OPERATION', 'PERFORMANCE', "
            "'SYSTEM_ERROR', 'AUDIT_TRAIL')",
            name='ck_system_logs_category',
        ),
    )
    op.create_index('ix_system_logs_level', 'system_logs', ['level'])
    op.create_index('ix_system_logs_category', 'system_logs', ['category'])
    op.create_index('ix_system_logs_user_id', 'system_logs', ['user_id'])
    op.create_index('ix_system_logs_created_at', 'system_logs', ['created_at'])

    # 1) Nullable venue column on notifications
    op.add_column('notifications', sa.Column('venue_id', sa.Uuid(), nullable=True))
    op.create_foreign_key(
        'fk_notifications_venue_id', 'notifications', 'venues', ['venue_id'], ['id'], ondelete='SET NULL'
    )
    op.create_index('ix_notifications_venue_id', 'notifications', ['venue_id'])

    # 2) Backfill from the referenced reservation or payment
    conn = op.get_bind()
    conn.execute(sa.text(
        "UPDATE notifications SET venue_id = ("
        "SELECT r.venue_id FROM reservations r WHERE r.id = notifications.reference_id"
        ") WHERE reference_type = 'reservation'"
    ))
    conn.execute(sa.text(
        "UPDATE notifications SET venue_id = ("
        "SELECT r.venue_id FROM payments p JOIN reservations r ON r.id = p.reservation_id "
        "WHERE p.id = notifications.reference_id"
        ") WHERE reference_type = 'payment'"
    ))


def downgrade() -> None:
    op.drop_index('ix_notifications_venue_id', table_name='notifications')
    op.drop_constraint('fk_notifications_venue_id', 'notifications', type_='foreignkey')
    op.drop_column('notifications', 'venue_id')
    op.drop_index('ix_system_logs_created_at', table_name='system_logs')
    op.drop_index('ix_system_logs_user_id', table_name='system_logs')
    op.drop_index('ix_system_logs_category', table_name='system_logs')
    op.drop_index('ix_system_logs_level', table_name='system_logs')
    op.drop_table('system_logs')
    op.drop_index('ix_contact_forms_created_at', table_name='contact_forms')
    op.drop_index('ix_contact_forms_status', table_name='contact_forms')
    op.drop_index('ix_contact_forms_email', table_name='contact_forms')
    op.drop_table('contact_forms')
