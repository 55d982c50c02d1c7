"""Unit tests for the tenancy migration's row-level-security DDL."""

import importlib.util
import re
from pathlib import Path
from unittest.mock import patch

import pytest

MIGRATION_PATH = Path(__file__).parents[2] / "alembic" / "versions" / "001_create_tenancy_tables.py"


def _load_migration():
    spec = importlib.util.spec_from_file_location("tenancy_migration", MIGRATION_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _normalize(sql: str) -> str:
    return re.sub(r"\s+", " ", sql).strip()


@pytest.fixture(scope="module")
def migration():
    return _load_migration()


@pytest.fixture(scope="module")
def upgrade_sql(migration) -> list[str]:
    """Raw SQL statements issued by ``upgrade()``, in order."""
    with patch.object(migration, "op") as op:
        migration.upgrade()
    return [_normalize(str(call.args[0])) for call in op.execute.call_args_list]


@pytest.fixture(scope="module")
def downgrade_sql(migration) -> list[str]:
    with patch.object(migration, "op") as op:
        migration.downgrade()
    return [_normalize(str(call.args[0])) for call in op.execute.call_args_list]


def _index(statements: list[str], fragment: str) -> int:
    for i, statement in enumerate(statements):
        if fragment in statement:
            return i
    raise AssertionError(f"no statement contains {fragment!r}")


class TestRowLevelSecurityDDL:
    def test_function_is_created_before_any_policy(self, upgrade_sql):
        function_at = _index(upgrade_sql, "CREATE OR REPLACE FUNCTION get_active_organization_id()")
        first_policy_at = _index(upgrade_sql, "CREATE POLICY")

        assert function_at < first_policy_at
        assert "SECURITY DEFINER" in upgrade_sql[function_at]

    def test_every_tenant_table_is_isolated(self, migration, upgrade_sql):
        for table in migration.TENANT_TABLES:
            enabled_at = _index(upgrade_sql, f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
            policy_at = _index(upgrade_sql, f"CREATE POLICY {table}_tenant_isolation ON {table}")
            assert enabled_at < policy_at
            policy = upgrade_sql[policy_at]
            assert "USING (" in policy
            assert "WITH CHECK (" in policy
            assert "organization_id = get_active_organization_id()" in policy

    def test_policy_set(self, migration, upgrade_sql):
        policies = {
            re.match(r"CREATE POLICY (\w+) ON", statement).group(1)
            for statement in upgrade_sql
            if statement.startswith("CREATE POLICY")
        }

        assert policies == {f"{table}_tenant_isolation" for table in migration.TENANT_TABLES} | {
            "organization_members_visibility"
        }

    def test_invitation_policy_admits_presented_token(self, upgrade_sql):
        policy = upgrade_sql[
            _index(upgrade_sql, "CREATE POLICY organization_invitations_tenant_isolation")
        ]
        token_clause = "token = NULLIF(current_setting('app.invitation_token', true), '')"

        assert policy.count(token_clause) == 2

    def test_memberships_visible_to_their_own_user(self, upgrade_sql):
        policy = upgrade_sql[_index(upgrade_sql, "CREATE POLICY organization_members_visibility")]

        assert "user_id = NULLIF(current_setting('app.current_user_id', true), '')::uuid" in policy

    def test_policies_are_not_forced(self, upgrade_sql):
        assert not any("FORCE ROW LEVEL SECURITY" in statement for statement in upgrade_sql)

    def test_application_role_is_created_and_granted(self, migration, upgrade_sql):
        role = migration.APP_ROLE
        last_policy_at = max(
            i for i, statement in enumerate(upgrade_sql) if statement.startswith("CREATE POLICY")
        )

        assert f"CREATE ROLE {role} NOLOGIN" in upgrade_sql[_index(upgrade_sql, "CREATE ROLE")]
        grant_at = _index(upgrade_sql, f"ON ALL TABLES IN SCHEMA public TO {role}")
        assert "SELECT, INSERT, UPDATE, DELETE" in upgrade_sql[grant_at]
        assert grant_at > last_policy_at
        assert f"GRANT {role} TO CURRENT_USER" in upgrade_sql

    def test_application_role_matches_default_setting(self, migration):
        from impactos.core.config import Settings

        assert Settings.model_fields["database_role"].default == migration.APP_ROLE

    def test_downgrade_drops_policies_before_function_and_role(self, migration, downgrade_sql):
        function_at = _index(downgrade_sql, "DROP FUNCTION IF EXISTS get_active_organization_id()")

        for table in migration.TENANT_TABLES:
            assert _index(downgrade_sql, f"DROP POLICY IF EXISTS {table}_tenant_isolation") < function_at
        assert _index(downgrade_sql, f"DROP ROLE IF EXISTS {migration.APP_ROLE}") > function_at
