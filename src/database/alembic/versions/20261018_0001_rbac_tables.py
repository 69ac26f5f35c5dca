"""RBAC Tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18

Creates tables for the permission engine:
- roles: Role definitions with hierarchy level
- permissions: (resource, action) catalog
- role_permissions: Role-to-permission mappings
- agency_members: A user's role inside one agency
- member_client_access: Per-client grants for Member-level users
- access_log: Authorization decision audit trail

Seed data is loaded by ``python -m rbac.seed``.
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261018_0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # =========================================================================
    # ROLES TABLE
    # =========================================================================
    op.create_table(
        'roles',
        sa.Column('role_id', sa.String(36), primary_key=True),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('hierarchy_level', sa.Integer, nullable=False),
        sa.Column('agency_id', sa.String(64), nullable=True),
        sa.Column('is_system', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('code', 'agency_id', name='uq_role_code_agency'),
        sa.CheckConstraint('hierarchy_level >= 1', name='ck_roles_hierarchy_level_positive'),
    )
    op.create_index('ix_roles_code', 'roles', ['code'])
    op.create_index('ix_roles_hierarchy_level', 'roles', ['hierarchy_level'])
    op.create_index('ix_roles_agency_id', 'roles', ['agency_id'])
    # NULLs never collide in uq_role_code_agency, so system roles need their own index
    op.create_index(
        'uq_role_system_code', 'roles', ['code'], unique=True,
        sqlite_where=sa.text('agency_id IS NULL'),
        postgresql_where=sa.text('agency_id IS NULL'),
    )

    # =========================================================================
    # PERMISSIONS TABLE
    # =========================================================================
    op.create_table(
        'permissions',
        sa.Column('permission_id', sa.String(36), primary_key=True),
        sa.Column('resource', sa.String(50), nullable=False),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.UniqueConstraint('resource', 'action', name='uq_permission_resource_action'),
    )

    # =========================================================================
    # ROLE PERMISSIONS TABLE
    # =========================================================================
    op.create_table(
        'role_permissions',
        sa.Column('role_id', sa.String(36),
                  sa.ForeignKey('roles.role_id', ondelete='CASCADE'), primary_key=True),
        sa.Column('permission_id', sa.String(36),
                  sa.ForeignKey('permissions.permission_id', ondelete='CASCADE'), primary_key=True),
        sa.Column('granted_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # =========================================================================
    # AGENCY MEMBERS TABLE
    # =========================================================================
    op.create_table(
        'agency_members',
        sa.Column('user_id', sa.String(64), primary_key=True),
        sa.Column('agency_id', sa.String(64), primary_key=True),
        sa.Column('role_id', sa.String(36),
                  sa.ForeignKey('roles.role_id', ondelete='RESTRICT'), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('is_owner', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_agency_members_role_id', 'agency_members', ['role_id'])

    # =========================================================================
    # MEMBER CLIENT ACCESS TABLE
    # =========================================================================
    op.create_table(
        'member_client_access',
        sa.Column('access_id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('agency_id', sa.String(64), nullable=False),
        sa.Column('client_id', sa.String(64), nullable=False),
        sa.Column('granted_by', sa.String(64), nullable=True),
        sa.Column('granted_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'agency_id', 'client_id', name='uq_member_client_access'),
    )
    op.create_index('ix_member_access_user_agency', 'member_client_access', ['user_id', 'agency_id'])

    # =========================================================================
    # ACCESS LOG TABLE
    # =========================================================================
    op.create_table(
        'access_log',
        sa.Column('log_id', sa.String(36), primary_key=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('agency_id', sa.String(64), nullable=True),
        sa.Column('resource', sa.String(50), nullable=False),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('decision', sa.String(10), nullable=False),
        sa.Column('client_id', sa.String(64), nullable=True),
        sa.Column('reason', sa.String(100), nullable=False),
        sa.CheckConstraint("decision IN ('allowed', 'denied')", name='ck_access_log_decision_value'),
    )
    op.create_index('ix_access_log_timestamp', 'access_log', ['timestamp'])
    op.create_index('ix_access_log_agency_time', 'access_log', ['agency_id', 'timestamp'])
    op.create_index('ix_access_log_user_time', 'access_log', ['user_id', 'timestamp'])


def downgrade() -> None:
    op.drop_table('access_log')
    op.drop_table('member_client_access')
    op.drop_table('agency_members')
    op.drop_table('role_permissions')
    op.drop_table('permissions')
    op.drop_table('roles')
