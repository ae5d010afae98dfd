"""Create organization, user and incident visibility tables

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create incident visibility tables."""
    op.execute("""
        CREATE TYPE system_role AS ENUM ('super', 'admin', 'user', 'readonly')
    """)

    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False, unique=True),
        sa.Column('prefix', sa.String(32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.CheckConstraint('LENGTH(name) > 0', name='organization_name_not_empty')
    )
    op.create_index('idx_organizations_name', 'organizations', ['name'], unique=True)

    op.create_table(
        'org_parents',
        sa.Column('org_id', sa.Integer, sa.ForeignKey('organizations.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('parent_org_id', sa.Integer, sa.ForeignKey('organizations.id', ondelete='CASCADE'), primary_key=True),
        sa.CheckConstraint('org_id <> parent_org_id', name='org_parent_not_self')
    )
    op.create_index('idx_org_parents_parent', 'org_parents', ['parent_org_id'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('username', sa.String(255), nullable=False, unique=True),
        sa.Column('active', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('idx_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'user_orgs',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('org_id', sa.Integer, sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('workspace_id', sa.Integer, nullable=False),
        sa.Column('role', postgresql.ENUM('super', 'admin', 'user', 'readonly', name='system_role', create_type=False), nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.UniqueConstraint('user_id', 'org_id', 'workspace_id', name='uq_user_org_workspace')
    )
    op.create_index('idx_user_orgs_user_id', 'user_orgs', ['user_id'])
    op.create_index('idx_user_orgs_org_id', 'user_orgs', ['org_id'])

    op.create_table(
        'incidents',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('workspace_id', sa.Integer, nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('owner_org_id', sa.Integer, sa.ForeignKey('organizations.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('created_by', sa.Integer, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('active', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('description', sa.String(1024), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.UniqueConstraint('workspace_id', 'name', name='uq_incident_workspace_name')
    )
    op.create_index('idx_incidents_workspace_id', 'incidents', ['workspace_id'])
    op.create_index('idx_incidents_owner_org_id', 'incidents', ['owner_org_id'])

    op.create_table(
        'incident_orgs',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('incident_id', sa.Integer, sa.ForeignKey('incidents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('org_id', sa.Integer, sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.UniqueConstraint('incident_id', 'org_id', name='uq_incident_org')
    )
    op.create_index('idx_incident_orgs_incident_id', 'incident_orgs', ['incident_id'])
    op.create_index('idx_incident_orgs_org_id', 'incident_orgs', ['org_id'])


def downgrade() -> None:
    """Drop incident visibility tables."""
    op.drop_table('incident_orgs')
    op.drop_table('incidents')
    op.drop_table('user_orgs')
    op.drop_table('users')
    op.drop_table('org_parents')
    op.drop_table('organizations')
    op.execute("DROP TYPE IF EXISTS system_role")
