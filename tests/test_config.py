# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""Unit tests for provider configuration, exceptions and logging helpers."""

import pytest
from pydantic import ValidationError

from redshift_admin.config import AssumeRoleConfig, ProviderConfig, TemporaryCredentialsConfig
from redshift_admin.exceptions import ErrorCode, RedshiftAdminException
from redshift_admin.loggings import redact_sql


class TestProviderConfig:
    """Test cases for ProviderConfig."""

    def test_config_creation_with_required_fields(self):
        """Only the host is required, everything else has a default."""
        config = ProviderConfig(host="my-cluster.us-west-2.redshift.amazonaws.com")

        assert config.host == "my-cluster.us-west-2.redshift.amazonaws.com"
        assert config.username == "root"
        assert config.password is None
        assert config.port == 5439
        assert config.sslmode == "require"
        assert config.database == "redshift"
        assert config.max_connections == 20
        assert config.connect_timeout == 180
        assert config.temporary_credentials is None

    def test_config_creation_with_temporary_credentials(self):
        config = ProviderConfig(
            host="my-cluster.us-west-2.redshift.amazonaws.com",
            username="etl",
            temporary_credentials={
                "cluster_identifier": "my-cluster",
                "region": "us-west-2",
                "auto_create_user": True,
                "db_groups": ["etl", ""],
                "duration_seconds": 1800,
                "assume_role": {"arn": "arn:aws:iam::123456789012:role/redshift-admin", "session_name": "ci"},
            },
        )

        settings = config.temporary_credentials
        assert isinstance(settings, TemporaryCredentialsConfig)
        assert settings.db_groups == ["etl"]
        assert settings.duration_seconds == 1800
        assert isinstance(settings.assume_role, AssumeRoleConfig)
        assert settings.assume_role.session_name == "ci"

    def test_password_conflicts_with_temporary_credentials(self):
        with pytest.raises(ValidationError, match="conflicts"):
            ProviderConfig(
                host="h",
                password="secret",
                temporary_credentials={"cluster_identifier": "my-cluster"},
            )

    @pytest.mark.parametrize(
        "overrides",
        [
            {"port": 0},
            {"sslmode": "prefer"},
            {"max_connections": -2},
            {"temporary_credentials": {"cluster_identifier": "c", "duration_seconds": 600}},
            {"temporary_credentials": {"cluster_identifier": "c", "assume_role": {"arn": "a", "external_id": "x"}}},
            {"unexpected": True},
        ],
    )
    def test_invalid_values_are_rejected(self, overrides):
        with pytest.raises(ValidationError):
            ProviderConfig(host="h", **overrides)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("REDSHIFT_HOST", "env-host")
        monkeypatch.setenv("REDSHIFT_USER", "env-user")
        monkeypatch.setenv("REDSHIFT_PASSWORD", "env-password")
        monkeypatch.setenv("REDSHIFT_PORT", "5440")
        monkeypatch.delenv("REDSHIFT_SSLMODE", raising=False)
        monkeypatch.delenv("REDSHIFT_DATABASE", raising=False)

        config = ProviderConfig.from_env(database="analytics")

        assert config.host == "env-host"
        assert config.username == "env-user"
        assert config.password == "env-password"
        assert config.port == 5440
        assert config.database == "analytics"


class TestExceptions:
    def test_message_is_formatted_with_code(self):
        error = RedshiftAdminException(
            ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": "user", "name": "alice"}
        )
        assert str(error) == "[100002] user alice not found"
        assert error.pg_code is None

    def test_missing_template_arguments_keep_raw_template(self):
        error = RedshiftAdminException(ErrorCode.DB_EXECUTION_ERROR, message_args={"error_message": "boom"})
        assert str(error).startswith("[300003] Failed to execute `{sql}`")


class TestRedaction:
    def test_passwords_are_redacted(self):
        sql = "CREATE USER \"alice\" WITH PASSWORD 'it''s secret' VALID UNTIL 'infinity'"
        assert redact_sql(sql) == "CREATE USER \"alice\" WITH PASSWORD '***' VALID UNTIL 'infinity'"

    def test_disabled_password_is_untouched(self):
        assert redact_sql('ALTER USER "bob" PASSWORD DISABLE') == 'ALTER USER "bob" PASSWORD DISABLE'
