# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""Unit tests for datashares and datashare usage permissions."""

import pytest
from pydantic import ValidationError

from redshift_admin.exceptions import ErrorCode, RedshiftAdminException
from redshift_admin.resources.datashare import (
    DatashareResource,
    DatashareSchema,
    collapse_schemas,
    update_schema_objects,
)
from redshift_admin.resources.datashare_privilege import DatasharePrivilegeModel, DatasharePrivilegeResource

CONSUMER_NAMESPACE = "8f2b1c3e-4d5a-4b6c-9d7e-0f1a2b3c4d5e"
SHARE_ROW = ("sales_share", "alice", True, "123456789012", "producer-ns", "2025-01-01T00:00:00Z")


class FakeTx:
    def __init__(self):
        self.executed = []

    def execute(self, sql, params=None):
        self.executed.append(sql)


class TestCollapseSchemas:
    def test_repeated_manual_declarations_are_merged(self):
        collapsed = collapse_schemas(
            [
                DatashareSchema(name="sales", mode="manual", tables={"orders"}),
                DatashareSchema(name="sales", mode="MANUAL", tables={"customers"}, functions={"f1"}),
            ]
        )

        assert list(collapsed) == ["sales"]
        assert collapsed["sales"].tables == {"orders", "customers"}
        assert collapsed["sales"].functions == {"f1"}

    def test_conflicting_modes(self):
        with pytest.raises(RedshiftAdminException) as exc_info:
            collapse_schemas([DatashareSchema(name="sales", mode="auto"), DatashareSchema(name="sales", mode="manual")])
        assert exc_info.value.code == ErrorCode.INVALID_ARGUMENT

    def test_unknown_mode(self):
        with pytest.raises(ValidationError):
            DatashareSchema(name="sales", mode="sometimes")


class TestUpdateSchemaObjects:
    def test_switch_to_manual_keeps_listed_objects(self):
        tx = FakeTx()

        update_schema_objects(
            tx,
            "share",
            DatashareSchema(name="sales", mode="auto"),
            DatashareSchema(name="sales", mode="manual", tables={"orders"}),
        )

        assert tx.executed == [
            'ALTER DATASHARE "share" SET INCLUDENEW = FALSE FOR SCHEMA "sales"',
            'ALTER DATASHARE "share" ADD TABLE "sales"."orders"',
        ]

    def test_switch_to_auto(self):
        tx = FakeTx()

        update_schema_objects(
            tx,
            "share",
            DatashareSchema(name="sales", mode="manual", tables={"orders"}),
            DatashareSchema(name="sales", mode="auto"),
        )

        assert tx.executed == [
            'ALTER DATASHARE "share" SET INCLUDENEW = TRUE FOR SCHEMA "sales"',
            'ALTER DATASHARE "share" ADD ALL TABLES IN SCHEMA "sales"',
            'ALTER DATASHARE "share" ADD ALL FUNCTIONS IN SCHEMA "sales"',
        ]


class TestDatashareResource:
    def test_create(self, client, fake_db):
        fake_db.on("SELECT share_id FROM svv_datashares", [(7001,)])
        fake_db.on("LEFT JOIN pg_user ON svv_datashares.share_owner", [SHARE_ROW])
        fake_db.on(
            "FROM svv_datashare_objects",
            [
                ("ref", "schema", False),
                ("ref.countries", "table", False),
                ("ref.f1", "function", False),
                ("sales", "schema", True),
                ("sales.orders", "table", False),
                ("sales.recent_orders", "late binding view", False),
            ],
        )

        state = DatashareResource(client).create(
            {
                "name": "Sales_Share",
                "owner": "Alice",
                "publicly_accessible": True,
                "schema": [
                    {"name": "sales", "mode": "AUTO"},
                    {"name": "ref", "mode": "manual", "tables": ["countries"], "functions": ["f1"]},
                ],
            }
        )

        assert fake_db.changes == [
            'CREATE DATASHARE "sales_share" SET PUBLICACCESSIBLE = true',
            'ALTER DATASHARE "sales_share" OWNER TO "alice"',
            'ALTER DATASHARE "sales_share" ADD SCHEMA "ref"',
            'ALTER DATASHARE "sales_share" ADD TABLE "ref"."countries"',
            'ALTER DATASHARE "sales_share" ADD FUNCTION "ref"."f1"',
            'ALTER DATASHARE "sales_share" ADD SCHEMA "sales"',
            'ALTER DATASHARE "sales_share" SET INCLUDENEW = TRUE FOR SCHEMA "sales"',
            'ALTER DATASHARE "sales_share" ADD ALL TABLES IN SCHEMA "sales"',
            'ALTER DATASHARE "sales_share" ADD ALL FUNCTIONS IN SCHEMA "sales"',
        ]
        assert state.id == "7001"
        assert state.producer_account == "123456789012"
        assert state.created == "2025-01-01T00:00:00Z"
        assert state.schemas == [
            DatashareSchema(name="ref", mode="manual", tables={"countries"}, functions={"f1"}),
            DatashareSchema(name="sales", mode="auto", tables={"orders", "recent_orders"}),
        ]

    def test_read_missing_share(self, client, fake_db):
        assert DatashareResource(client).read({"id": "7001", "name": "sales_share"}) is None

    def test_unparseable_object_name(self, client, fake_db):
        fake_db.on("LEFT JOIN pg_user ON svv_datashares.share_owner", [SHARE_ROW])
        fake_db.on("FROM svv_datashare_objects", [("a.b.c", "table", False)])

        with pytest.raises(RedshiftAdminException) as exc_info:
            DatashareResource(client).read({"id": "7001", "name": "sales_share"})
        assert exc_info.value.code == ErrorCode.DB_FAILED

    def test_update_applies_schema_diff(self, client, fake_db):
        fake_db.on("LEFT JOIN pg_user ON svv_datashares.share_owner", [("share2", "admin", False, "", "", "")])
        prior = {
            "id": "7001",
            "name": "share",
            "owner": "alice",
            "publicly_accessible": True,
            "schema": [
                {"name": "sales", "mode": "auto"},
                {"name": "ref", "mode": "manual", "tables": ["countries"]},
                {"name": "old", "mode": "manual"},
            ],
        }
        desired = {
            "name": "share2",
            "schema": [
                {"name": "sales", "mode": "auto", "tables": ["orders"]},
                {"name": "ref", "mode": "manual", "tables": ["regions"], "functions": ["f1"]},
                {"name": "new", "mode": "auto"},
            ],
        }

        state = DatashareResource(client).update(prior, desired)

        assert fake_db.changes == [
            'ALTER DATASHARE "share" RENAME TO "share2"',
            'ALTER DATASHARE "share2" OWNER TO CURRENT_USER',
            'ALTER DATASHARE "share2" SET PUBLICACCESSIBLE false',
            'ALTER DATASHARE "share2" ADD SCHEMA "new"',
            'ALTER DATASHARE "share2" SET INCLUDENEW = TRUE FOR SCHEMA "new"',
            'ALTER DATASHARE "share2" ADD ALL TABLES IN SCHEMA "new"',
            'ALTER DATASHARE "share2" ADD ALL FUNCTIONS IN SCHEMA "new"',
            'ALTER DATASHARE "share2" REMOVE ALL FUNCTIONS IN SCHEMA "old"',
            'ALTER DATASHARE "share2" REMOVE ALL TABLES IN SCHEMA "old"',
            'ALTER DATASHARE "share2" REMOVE SCHEMA "old"',
            'ALTER DATASHARE "share2" REMOVE TABLE "ref"."countries"',
            'ALTER DATASHARE "share2" ADD TABLE "ref"."regions"',
            'ALTER DATASHARE "share2" ADD FUNCTION "ref"."f1"',
        ]
        assert state.id == "7001"
        assert state.name == "share2"

    def test_delete(self, client, fake_db):
        DatashareResource(client).delete({"id": "7001", "name": "sales_share"})
        assert fake_db.executed == ['DROP DATASHARE "sales_share"']


class TestDatasharePrivilege:
    def test_exactly_one_consumer(self):
        with pytest.raises(ValidationError):
            DatasharePrivilegeModel(share_name="s")
        with pytest.raises(ValidationError):
            DatasharePrivilegeModel(share_name="s", namespace=CONSUMER_NAMESPACE, account="123456789012")

    def test_consumer_formats(self):
        with pytest.raises(ValidationError):
            DatasharePrivilegeModel(share_name="s", account="12345")
        with pytest.raises(ValidationError):
            DatasharePrivilegeModel(share_name="s", namespace="not-a-uuid")
        assert DatasharePrivilegeModel(share_name="S", namespace=CONSUMER_NAMESPACE.upper()).namespace == CONSUMER_NAMESPACE

    def test_grant_to_namespace(self, client, fake_db):
        fake_db.on("FROM svv_datashare_consumers", [("2025-01-02T03:04:05Z",)])

        state = DatasharePrivilegeResource(client).create({"share_name": "Sales_Share", "namespace": CONSUMER_NAMESPACE})

        assert fake_db.executed[0] == f"GRANT USAGE ON DATASHARE \"sales_share\" TO NAMESPACE '{CONSUMER_NAMESPACE}'"
        sql, params = fake_db.statements[-1]
        assert "consumer_namespace = %s" in sql
        assert params == ("sales_share", CONSUMER_NAMESPACE)
        assert state.id == f"sales_share.{CONSUMER_NAMESPACE}"
        assert state.share_date == "2025-01-02T03:04:05Z"

    def test_grant_before_consumer_is_visible(self, client, fake_db):
        state = DatasharePrivilegeResource(client).create({"share_name": "sales_share", "account": "123456789012"})

        assert state.id == "sales_share.123456789012"
        assert state.share_date is None

    def test_import_account(self, client, fake_db):
        fake_db.on("FROM svv_datashare_consumers", [("2025-01-02T03:04:05Z",)])

        state = DatasharePrivilegeResource(client).import_state("sales_share.123456789012")

        assert state.account == "123456789012"
        assert state.namespace is None
        assert "consumer_account = %s" in fake_db.statements[-1][0]

    def test_revoke(self, client, fake_db):
        DatasharePrivilegeResource(client).delete({"share_name": "sales_share", "account": "123456789012"})
        assert fake_db.executed == ["REVOKE USAGE ON DATASHARE \"sales_share\" FROM ACCOUNT '123456789012'"]
