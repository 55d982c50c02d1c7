"""Create tenancy tables

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

MEMBER_ROLES = "('owner', 'admin', 'editor', 'viewer')"
INVITABLE_ROLES = "('admin', 'editor', 'viewer')"

# Tables whose rows belong to exactly one organization and are isolated by RLS
TENANT_TABLES = ('reports', 'tenant_config', 'audit_events', 'organization_invitations')

# Non-owner role the application switches to; must match DATABASE_ROLE
APP_ROLE = 'impactos_app'

INVITATION_TOKEN_MATCH = "token = NULLIF(current_setting('app.invitation_token', true), '')"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    ]


def _uuid_pk() -> sa.Column:
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()'))


def upgrade() -> None:
    """Create identity, membership, session, invitation and tenant tables."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # Identity provider credentials
    op.create_table(
        'identity_accounts',
        _uuid_pk(),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('email_confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_sign_in_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sessions_revoked_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_identity_accounts_email', 'identity_accounts', [sa.text('LOWER(email)')], unique=True)

    op.create_table(
        'organizations',
        _uuid_pk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('LENGTH(name) >= 2', name='organization_name_min_length'),
    )
    op.create_index('idx_organizations_slug', 'organizations', ['slug'], unique=True)

    # Application profile, one per identity account
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), sa.ForeignKey('identity_accounts.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False, server_default=''),
        sa.Column('last_name', sa.String(100), nullable=False, server_default=''),
        sa.Column('default_organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_users_email', 'users', ['email'])

    op.create_table(
        'organization_members',
        _uuid_pk(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='viewer'),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'organization_id', name='uq_organization_members_user_org'),
        sa.CheckConstraint(f'role IN {MEMBER_ROLES}', name='organization_members_role_valid'),
    )
    op.create_index('idx_organization_members_user_id', 'organization_members', ['user_id'])
    op.create_index('idx_organization_members_organization_id', 'organization_members', ['organization_id'])

    # Authoritative active-organization record
    op.create_table(
        'user_sessions',
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('active_organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('last_switched_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('idx_user_sessions_active_organization_id', 'user_sessions', ['active_organization_id'])

    op.create_table(
        'organization_invitations',
        _uuid_pk(),
        sa.Column('token', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('invited_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(f'role IN {INVITABLE_ROLES}', name='organization_invitations_role_valid'),
    )
    op.create_index('idx_organization_invitations_token', 'organization_invitations', ['token'], unique=True)
    op.create_index('idx_organization_invitations_org_email', 'organization_invitations', ['organization_id', sa.text('LOWER(email)')])
    op.create_index('idx_organization_invitations_expires_at', 'organization_invitations', ['expires_at'])

    op.create_table(
        'tenant_config',
        _uuid_pk(),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('feature_company_updates', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('feature_interactions', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('feature_advisor_profiles', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('feature_fireflies', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('feature_commitment_tracking', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('feature_ai_integration', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('ai_features', postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        *_timestamps(),
    )

    op.create_table(
        'reports',
        _uuid_pk(),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('content', sa.Text, nullable=False, server_default=''),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_reports_organization_id', 'reports', ['organization_id'])

    op.create_table(
        'audit_events',
        _uuid_pk(),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(40), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('diff_json', postgresql.JSONB, nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_audit_events_organization_id', 'audit_events', ['organization_id'])
    op.create_index('idx_audit_events_user_id', 'audit_events', ['user_id'])
    op.create_index('idx_audit_events_created_at', 'audit_events', ['created_at'])

    # Active organization of the current request's user, read by RLS policies.
    # The application sets app.current_user_id per transaction.
    op.execute("""
        CREATE OR REPLACE FUNCTION get_active_organization_id()
        RETURNS uuid
        LANGUAGE sql
        STABLE
        SECURITY DEFINER
        SET search_path = public
        AS $$
            SELECT s.active_organization_id
            FROM user_sessions s
            JOIN organization_members m
              ON m.user_id = s.user_id
             AND m.organization_id = s.active_organization_id
            WHERE s.user_id = NULLIF(current_setting('app.current_user_id', true), '')::uuid
        $$
    """)

    for table in TENANT_TABLES:
        op.execute(f'ALTER TABLE {table} ENABLE ROW LEVEL SECURITY')
        if table == 'organization_invitations':
            continue
        op.execute(f"""
            CREATE POLICY {table}_tenant_isolation ON {table}
            USING (organization_id = get_active_organization_id())
            WITH CHECK (organization_id = get_active_organization_id())
        """)

    # Invitation links are opened before the invitee belongs to the
    # organization, so the row behind the presented token is visible too
    op.execute(f"""
        CREATE POLICY organization_invitations_tenant_isolation ON organization_invitations
        USING (
            organization_id = get_active_organization_id()
            OR {INVITATION_TOKEN_MATCH}
        )
        WITH CHECK (
            organization_id = get_active_organization_id()
            OR {INVITATION_TOKEN_MATCH}
        )
    """)

    # Members see the memberships of organizations they belong to
    op.execute('ALTER TABLE organization_members ENABLE ROW LEVEL SECURITY')
    op.execute("""
        CREATE POLICY organization_members_visibility ON organization_members
        USING (
            user_id = NULLIF(current_setting('app.current_user_id', true), '')::uuid
            OR organization_id = get_active_organization_id()
        )
    """)

    # Policies are not FORCEd: get_active_organization_id() runs as the table
    # owner and reads organization_members, whose policy calls it again.
    # The application runs every transaction as this non-owner role instead
    # (SET LOCAL ROLE, see DATABASE_ROLE), which the policies do apply to.
    op.execute(f"""
        DO $$
        BEGIN
            IF NOT EXISTS (SELECT 1 FROM pg_roles WHERE rolname = '{APP_ROLE}') THEN
                CREATE ROLE {APP_ROLE} NOLOGIN;
            END IF;
        END
        $$
    """)
    op.execute(f'GRANT USAGE ON SCHEMA public TO {APP_ROLE}')
    op.execute(f'GRANT SELECT, INSERT, UPDATE, DELETE ON ALL TABLES IN SCHEMA public TO {APP_ROLE}')
    op.execute(f'GRANT EXECUTE ON FUNCTION get_active_organization_id() TO {APP_ROLE}')
    op.execute(f'GRANT {APP_ROLE} TO CURRENT_USER')


def downgrade() -> None:
    """Drop tenancy tables."""
    op.execute(f'REVOKE {APP_ROLE} FROM CURRENT_USER')
    op.execute(f'REVOKE ALL ON ALL TABLES IN SCHEMA public FROM {APP_ROLE}')
    op.execute(f'REVOKE USAGE ON SCHEMA public FROM {APP_ROLE}')
    op.execute('DROP POLICY IF EXISTS organization_members_visibility ON organization_members')
    for table in TENANT_TABLES:
        op.execute(f'DROP POLICY IF EXISTS {table}_tenant_isolation ON {table}')
    op.execute('DROP FUNCTION IF EXISTS get_active_organization_id()')
    op.execute(f'DROP ROLE IF EXISTS {APP_ROLE}')

    op.drop_table('audit_events')
    op.drop_table('reports')
    op.drop_table('tenant_config')
    op.drop_table('organization_invitations')
    op.drop_table('user_sessions')
    op.drop_table('organization_members')
    op.drop_table('users')
    op.drop_table('organizations')
    op.drop_table('identity_accounts')
