# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""Unit tests for the Provider and its type registries."""

from unittest.mock import MagicMock

import pytest

from redshift_admin import Provider, data_source_registry, resource_registry
from redshift_admin.data_sources import NamespaceDataSource
from redshift_admin.exceptions import ErrorCode, RedshiftAdminException
from redshift_admin.resources import UserResource


@pytest.fixture
def connect(monkeypatch):
    connect = MagicMock(name="connect")
    monkeypatch.setattr("redshift_admin.client.redshift_connector.connect", connect)
    return connect


class TestRegistries:
    def test_every_resource_is_registered(self):
        assert resource_registry.names() == [
            "redshift_database",
            "redshift_datashare",
            "redshift_datashare_privilege",
            "redshift_default_privileges",
            "redshift_grant",
            "redshift_group",
            "redshift_group_membership",
            "redshift_role",
            "redshift_role_grant",
            "redshift_schema",
            "redshift_user",
        ]

    def test_every_data_source_is_registered(self):
        assert data_source_registry.names() == [
            "redshift_database",
            "redshift_group",
            "redshift_namespace",
            "redshift_role",
            "redshift_role_grant",
            "redshift_schema",
            "redshift_user",
        ]
        assert "redshift_namespace" in data_source_registry
        assert "redshift_datashare" not in data_source_registry

    def test_unknown_type(self):
        with pytest.raises(RedshiftAdminException) as exc_info:
            resource_registry.get("redshift_table")
        assert exc_info.value.code == ErrorCode.INVALID_ARGUMENT
        assert "redshift_user" in str(exc_info.value)


class TestProvider:
    def test_dict_config_with_static_password(self, connect):
        with Provider({"host": "example", "username": "admin", "password": "Secret123", "database": "dev"}) as provider:
            users = provider.resource("redshift_user")
            namespace = provider.data_source("redshift_namespace")

            assert isinstance(users, UserResource)
            assert isinstance(namespace, NamespaceDataSource)
            assert users.client is provider.client

            provider.client.connect()
            assert connect.call_args.kwargs["user"] == "admin"
            assert connect.call_args.kwargs["password"] == "Secret123"

        connect.return_value.close.assert_called_once()

    def test_temporary_credentials(self, connect):
        redshift = MagicMock(name="redshift")
        redshift.get_cluster_credentials.return_value = {"DbUser": "IAM:admin", "DbPassword": "temporary"}
        session = MagicMock(name="session")
        session.client.return_value = redshift

        provider = Provider(
            {"host": "example", "username": "admin", "temporary_credentials": {"cluster_identifier": "my-cluster"}},
            session=session,
        )
        provider.client.connect()

        assert connect.call_args.kwargs["user"] == "IAM:admin"
        assert connect.call_args.kwargs["password"] == "temporary"
        provider.close()

    def test_rejects_unsupported_config_type(self):
        with pytest.raises(TypeError):
            Provider("host=example")
