"""Initial schema

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None

user_role = sa.Enum('admin', 'manager', 'employee', name='user_role')
application_type = sa.Enum('business_trip', 'expense', name='application_type')
application_status = sa.Enum('draft', 'pending', 'approved', 'rejected', 'returned', name='application_status')
approval_action = sa.Enum('approved', 'rejected', 'returned', name='approval_action')
notification_category = sa.Enum('approval', 'reminder', 'system', 'update', name='notification_category')
integration_status = sa.Enum('success', 'failed', 'pending', name='integration_status')


def _money(name):
    return sa.Column(name, sa.Numeric(12, 2), nullable=False, server_default='0')


def upgrade():
    op.create_table(
        'organizations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False, unique=True),
        sa.Column('settings', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'user_profiles',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('department', sa.String(120), nullable=True),
        sa.Column('position', sa.String(120), nullable=True),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('role', user_role, nullable=False),
        sa.Column('organization_id', sa.String(36), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_user_profiles_email', 'user_profiles', ['email'], unique=True)
    op.create_index('ix_user_profiles_organization_id', 'user_profiles', ['organization_id'])

    op.create_table(
        'expense_categories',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('organization_id', sa.String(36), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_expense_categories_organization_id', 'expense_categories', ['organization_id'])

    op.create_table(
        'applications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('user_profiles.id'), nullable=False),
        sa.Column('organization_id', sa.String(36), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('type', application_type, nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('data', sa.JSON(), nullable=False),
        _money('total_amount'),
        sa.Column('status', application_status, nullable=False, server_default='draft'),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('approved_by', sa.String(36), sa.ForeignKey('user_profiles.id'), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('total_amount >= 0', name='ck_applications_total_non_negative'),
    )
    op.create_index('ix_applications_user_id', 'applications', ['user_id'])
    op.create_index('ix_applications_organization_id', 'applications', ['organization_id'])
    op.create_index('ix_applications_status', 'applications', ['status'])

    op.create_table(
        'expense_items',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('application_id', sa.String(36), sa.ForeignKey('applications.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category_id', sa.String(36), sa.ForeignKey('expense_categories.id', ondelete='SET NULL'), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('receipt_url', sa.String(512), nullable=True),
        sa.Column('receipt_metadata', sa.JSON(), nullable=False),
        sa.Column('is_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_expense_items_amount_positive'),
    )
    op.create_index('ix_expense_items_application_id', 'expense_items', ['application_id'])

    op.create_table(
        'business_trip_details',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('application_id', sa.String(36), sa.ForeignKey('applications.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('destination', sa.String(255), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('purpose', sa.Text(), nullable=False),
        sa.Column('participants', sa.Text(), nullable=True),
        _money('estimated_daily_allowance'),
        _money('estimated_transportation'),
        _money('estimated_accommodation'),
        _money('actual_daily_allowance'),
        _money('actual_transportation'),
        _money('actual_accommodation'),
        sa.Column('report_content', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('end_date >= start_date', name='ck_business_trip_details_dates'),
    )

    op.create_table(
        'application_approvals',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('application_id', sa.String(36), sa.ForeignKey('applications.id'), nullable=False),
        sa.Column('approver_id', sa.String(36), sa.ForeignKey('user_profiles.id'), nullable=False),
        sa.Column('step', sa.Integer(), nullable=False),
        sa.Column('status', approval_action, nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('application_id', 'step', name='uq_application_approvals_step'),
    )
    op.create_index('ix_application_approvals_application_id', 'application_approvals', ['application_id'])
    op.create_index('ix_application_approvals_approver_id', 'application_approvals', ['approver_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('user_profiles.id'), nullable=False),
        sa.Column('type', notification_category, nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])

    op.create_table(
        'accounting_integration_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('application_id', sa.String(36), sa.ForeignKey('applications.id'), nullable=False),
        sa.Column('service_name', sa.String(64), nullable=False),
        sa.Column('operation_type', sa.String(32), nullable=False),
        sa.Column('request_data', sa.JSON(), nullable=False),
        sa.Column('response_data', sa.JSON(), nullable=False),
        sa.Column('status', integration_status, nullable=False, server_default='pending'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_retry_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_accounting_logs_app_status', 'accounting_integration_logs', ['application_id', 'status'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('organization_id', sa.String(36), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('user_profiles.id'), nullable=True),
        sa.Column('action', sa.String(120), nullable=False),
        sa.Column('resource_type', sa.String(120), nullable=False),
        sa.Column('resource_id', sa.String(36), nullable=True),
        sa.Column('old_values', sa.JSON(), nullable=False),
        sa.Column('new_values', sa.JSON(), nullable=False),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_audit_logs_org_created', 'audit_logs', ['organization_id', 'created_at'])

    op.create_table(
        'documents',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('organization_id', sa.String(36), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('application_id', sa.String(36), sa.ForeignKey('applications.id'), nullable=True),
        sa.Column('created_by', sa.String(36), sa.ForeignKey('user_profiles.id'), nullable=False),
        sa.Column('type', sa.String(64), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('file_url', sa.String(512), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('mime_type', sa.String(128), nullable=False),
        sa.Column('status', sa.String(32), nullable=False, server_default='completed'),
        sa.Column('content', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )


def downgrade():
    for table in (
        'documents',
        'audit_logs',
        'accounting_integration_logs',
        'notifications',
        'application_approvals',
        'business_trip_details',
        'expense_items',
        'applications',
        'expense_categories',
        'user_profiles',
        'organizations',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in (
        integration_status,
        notification_category,
        approval_action,
        application_status,
        application_type,
        user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
