"""Travel regulations

Revision ID: 20261019_regulations
Revises: 20261018_initial
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_regulations'
down_revision = '20261018_initial'
branch_labels = None
depends_on = None

regulation_status = sa.Enum('draft', 'active', 'archived', name='regulation_status')


def upgrade():
    op.create_table(
        'travel_regulations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('organization_id', sa.String(36), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('version', sa.String(32), nullable=False, server_default='v1.0'),
        sa.Column('company_info', sa.JSON(), nullable=False),
        sa.Column('articles', sa.JSON(), nullable=False),
        sa.Column('allowance_settings', sa.JSON(), nullable=False),
        sa.Column('status', regulation_status, nullable=False, server_default='draft'),
        sa.Column('created_by', sa.String(36), sa.ForeignKey('user_profiles.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index(
        'idx_travel_regulations_org_status', 'travel_regulations', ['organization_id', 'status']
    )


def downgrade():
    op.drop_index('idx_travel_regulations_org_status', table_name='travel_regulations')
    op.drop_table('travel_regulations')
    regulation_status.drop(op.get_bind(), checkfirst=True)
