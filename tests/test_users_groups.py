# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""Unit tests for users, groups and group memberships."""

import pytest
from pydantic import ValidationError
from redshift_connector.error import OperationalError, ProgrammingError

from redshift_admin.exceptions import ErrorCode, RedshiftAdminException
from redshift_admin.resources.group import GroupModel, GroupResource
from redshift_admin.resources.group_membership import GroupMembershipResource
from redshift_admin.resources.user import UserModel, UserResource

USER_ROW = ("alice", False, False, "RESTRICTED", "UNLIMITED", 0)


@pytest.fixture
def users(client):
    return UserResource(client)


@pytest.fixture
def groups(client):
    return GroupResource(client)


class TestUserModel:
    def test_defaults(self):
        user = UserModel(name="alice")

        assert user.password is None
        assert user.valid_until == "infinity"
        assert user.connection_limit == -1
        assert user.session_timeout == 0
        assert user.effective_syslog_access() == "RESTRICTED"

    def test_public_is_reserved(self):
        with pytest.raises(ValidationError):
            UserModel(name="PUBLIC")

    @pytest.mark.parametrize("timeout", [1, 59, 1728001])
    def test_session_timeout_range(self, timeout):
        with pytest.raises(ValidationError):
            UserModel(name="alice", session_timeout=timeout)

    def test_superuser_requires_password(self):
        with pytest.raises(ValidationError, match="must define a password"):
            UserModel(name="root2", superuser=True)

    def test_superuser_requires_unrestricted_syslog(self):
        with pytest.raises(ValidationError, match="UNRESTRICTED"):
            UserModel(name="root2", superuser=True, password="Secret123", syslog_access="RESTRICTED")

    def test_superuser_syslog_defaults_to_unrestricted(self):
        assert UserModel(name="root2", superuser=True, password="Secret123").effective_syslog_access() == "UNRESTRICTED"


class TestUserResource:
    def test_create(self, users, fake_db):
        """CREATE USER carries every option, then the user is read back by id."""
        fake_db.on("pg_user_info WHERE usename", [(100,)])
        fake_db.on("FROM svv_user_info", [USER_ROW])
        fake_db.on("valuntil", [("infinity",)])

        state = users.create({"name": "alice", "password": "Secret123", "session_timeout": 120})

        assert fake_db.executed[0] == (
            "CREATE USER \"alice\" WITH PASSWORD 'Secret123' VALID UNTIL 'infinity' SYSLOG ACCESS RESTRICTED "
            "CONNECTION LIMIT UNLIMITED SESSION TIMEOUT 120 NOCREATEUSER NOCREATEDB"
        )
        assert state.id == "100"
        assert state.name == "alice"
        assert state.connection_limit == -1
        assert state.session_timeout == 0

    def test_create_without_password_disables_it(self, users, fake_db):
        fake_db.on("pg_user_info WHERE usename", [(100,)])
        fake_db.on("FROM svv_user_info", [USER_ROW])

        users.create({"name": "alice", "connection_limit": 5, "create_database": True})

        assert fake_db.executed[0].startswith('CREATE USER "alice" WITH PASSWORD DISABLE')
        assert "CONNECTION LIMIT 5" in fake_db.executed[0]
        assert fake_db.executed[0].endswith("NOCREATEUSER CREATEDB")

    def test_read_missing_user_returns_none(self, users, fake_db):
        assert users.read(UserModel(id="100", name="alice")) is None

    def test_read_requires_id(self, users):
        with pytest.raises(RedshiftAdminException) as exc_info:
            users.read({"name": "alice"})
        assert exc_info.value.code == ErrorCode.INVALID_ARGUMENT

    def test_update_applies_only_changes(self, users, fake_db):
        fake_db.on("FROM svv_user_info", [("alicia", True, False, "RESTRICTED", "10", 0)])
        prior = UserModel(id="100", name="alice", password="Secret123")
        desired = UserModel(name="alicia", password="Secret123", connection_limit=10, create_database=True)

        state = users.update(prior, desired)

        assert fake_db.executed_matching("ALTER USER") == [
            'ALTER USER "alice" RENAME TO "alicia"',
            "ALTER USER \"alicia\" PASSWORD 'Secret123'",
            'ALTER USER "alicia" CONNECTION LIMIT 10',
            'ALTER USER "alicia" WITH CREATEDB',
        ]
        assert state.id == "100"
        assert state.connection_limit == 10

    def test_update_resets_session_timeout(self, users, fake_db):
        fake_db.on("FROM svv_user_info", [USER_ROW])
        prior = UserModel(id="100", name="alice", session_timeout=300)
        desired = UserModel(name="alice", session_timeout=0, connection_limit=-1)

        users.update(prior, desired)

        assert fake_db.executed_matching("ALTER USER") == ['ALTER USER "alice" RESET SESSION TIMEOUT']

    def test_delete_reassigns_objects_and_revokes(self, users, fake_db):
        """Owned objects move to the connecting user before the user is dropped."""
        fake_db.on('OWNER("userid", "ddl")', [('alter table "sales"."orders" owner to "admin"',)])
        fake_db.on("pg_namespace WHERE nspowner", [("public",)])

        users.delete(UserModel(id="100", name="alice"))

        reassign_params = fake_db.statements[0][1]
        assert reassign_params == ('"admin"', '"admin"', '"admin"', '"admin"', "100")
        assert fake_db.changes == [
            'alter table "sales"."orders" owner to "admin"',
            'REVOKE ALL ON ALL TABLES IN SCHEMA "public" FROM "alice"',
            'ALTER DEFAULT PRIVILEGES IN SCHEMA "public" REVOKE ALL ON TABLES FROM "alice"',
            'DROP USER "alice"',
        ]

    def test_import_reads_by_id(self, users, fake_db):
        fake_db.on("FROM svv_user_info", [USER_ROW])

        state = users.import_state("100")

        assert state.id == "100"
        assert state.name == "alice"


class TestGroupResource:
    def test_name_validation(self):
        assert GroupModel(name="Analysts").name == "analysts"
        with pytest.raises(ValidationError):
            GroupModel(name="__internal")

    def test_create_with_users(self, groups, fake_db):
        fake_db.on("FROM pg_group WHERE groname", [(200,)])
        fake_db.on("WHERE grosysid", [("{alice,bob}", "analysts")])

        state = groups.create({"name": "Analysts", "users": ["bob", "alice"]})

        assert fake_db.executed[0] == 'CREATE GROUP "analysts" WITH USER "alice", "bob"'
        assert state.id == "200"
        assert state.users == {"alice", "bob"}

    def test_update_renames_and_diffs_members(self, groups, fake_db):
        fake_db.on("pg_user_info WHERE usename", [(1,)])
        fake_db.on("WHERE grosysid", [("{bob,carol}", "analytics")])
        prior = GroupModel(id="200", name="analysts", users={"alice", "bob"})
        desired = GroupModel(name="analytics", users={"bob", "carol"})

        state = groups.update(prior, desired)

        assert fake_db.executed_matching("ALTER GROUP") == [
            'ALTER GROUP "analysts" RENAME TO "analytics"',
            'ALTER GROUP "analytics" DROP USER "alice"',
            'ALTER GROUP "analytics" ADD USER "carol"',
        ]
        assert state.users == {"bob", "carol"}

    def test_dropped_users_are_skipped(self, groups, fake_db):
        fake_db.on("WHERE grosysid", [("{}", "analysts")])
        prior = GroupModel(id="200", name="analysts", users={"gone"})

        groups.update(prior, GroupModel(name="analysts"))

        assert fake_db.executed_matching("ALTER GROUP") == []

    def test_delete_revokes_then_drops(self, groups, fake_db):
        fake_db.on("pg_namespace WHERE nspowner", [("public",), ("sales",)])

        groups.delete(GroupModel(id="200", name="analysts"))

        assert fake_db.changes == [
            'REVOKE ALL ON ALL TABLES IN SCHEMA "public" FROM GROUP "analysts"',
            'ALTER DEFAULT PRIVILEGES IN SCHEMA "public" REVOKE ALL ON TABLES FROM GROUP "analysts"',
            'REVOKE ALL ON ALL TABLES IN SCHEMA "sales" FROM GROUP "analysts"',
            'ALTER DEFAULT PRIVILEGES IN SCHEMA "sales" REVOKE ALL ON TABLES FROM GROUP "analysts"',
            'DROP GROUP "analysts"',
        ]

    def test_delete_retries_deadlocks(self, groups, fake_db, no_sleep):
        fake_db.fail("DROP GROUP", OperationalError({"C": "40P01", "M": "deadlock detected"}))

        groups.delete(GroupModel(id="200", name="analysts"))

        assert fake_db.executed_matching("DROP GROUP") == ['DROP GROUP "analysts"', 'DROP GROUP "analysts"']
        assert no_sleep == [1]
        fake_db.connection.rollback.assert_called_once()


class TestGroupMembershipResource:
    def test_create_adds_users_and_reads_only_managed_ones(self, client, fake_db):
        fake_db.on("FROM pg_group WHERE groname", [(200,)])
        fake_db.on("WHERE grosysid", [("{alice,bob,zed}", "analysts")])
        memberships = GroupMembershipResource(client)

        state = memberships.create({"group_name": "analysts", "users": ["alice", "bob"]})

        assert 'ALTER GROUP "analysts" ADD USER "alice", "bob"' in fake_db.executed
        assert state.users == {"alice", "bob"}

    def test_create_fails_for_missing_group(self, client, fake_db):
        memberships = GroupMembershipResource(client)

        with pytest.raises(RedshiftAdminException, match="Group analysts doesn't exist"):
            memberships.create({"group_name": "analysts", "users": ["alice"]})

    def test_changing_group_is_not_supported(self, client):
        memberships = GroupMembershipResource(client)

        with pytest.raises(RedshiftAdminException) as exc_info:
            memberships.update(
                {"id": "200", "group_name": "analysts", "users": ["alice"]},
                {"group_name": "other", "users": ["alice"]},
            )
        assert exc_info.value.code == ErrorCode.UNSUPPORTED_OPERATION

    def test_delete_drops_only_managed_users(self, client, fake_db):
        fake_db.on("pg_user_info WHERE usename", [(1,)])
        memberships = GroupMembershipResource(client)

        memberships.delete({"id": "200", "group_name": "analysts", "users": ["alice"]})

        assert fake_db.executed_matching("ALTER GROUP") == ['ALTER GROUP "analysts" DROP USER "alice"']

    def test_delete_retries_internal_errors(self, client, fake_db, no_sleep):
        fake_db.on("pg_user_info WHERE usename", [(1,)])
        fake_db.fail("DROP USER", ProgrammingError({"C": "XX000", "M": "concurrent update"}))
        memberships = GroupMembershipResource(client)

        memberships.delete({"id": "200", "group_name": "analysts", "users": ["alice"]})

        assert fake_db.executed_matching("ALTER GROUP") == [
            'ALTER GROUP "analysts" DROP USER "alice"',
            'ALTER GROUP "analysts" DROP USER "alice"',
        ]
        assert no_sleep == [1]
