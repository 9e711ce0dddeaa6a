# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

import os
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class AssumeRoleConfig(BaseModel):
    """STS role assumed before requesting cluster credentials."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    arn: str = Field(..., description="Amazon Resource Name of an IAM Role to assume prior to making API calls")
    external_id: Optional[str] = Field(
        default=None,
        min_length=2,
        max_length=1224,
        description="A unique identifier that might be required when you assume a role in another account",
    )
    session_name: Optional[str] = Field(
        default=None, min_length=2, max_length=64, description="An identifier for the assumed role session"
    )


class TemporaryCredentialsConfig(BaseModel):
    """Settings for redshift:GetClusterCredentials."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    cluster_identifier: str = Field(..., description="The unique identifier of the cluster")
    region: Optional[str] = Field(default=None, description="AWS region of the cluster")
    auto_create_user: bool = Field(
        default=False, description="Create the database user if it does not exist when requesting credentials"
    )
    db_groups: List[str] = Field(
        default_factory=list, description="Existing database groups the user joins for the current session"
    )
    duration_seconds: Optional[int] = Field(
        default=None, ge=900, le=3600, description="Number of seconds until the returned temporary password expires"
    )
    assume_role: Optional[AssumeRoleConfig] = Field(default=None, description="Role to assume first")

    @field_validator("db_groups")
    @classmethod
    def _drop_empty_groups(cls, value: List[str]) -> List[str]:
        return [group for group in value if group]


class ProviderConfig(BaseModel):
    """
    Connection settings for the Redshift cluster being administered.

    Either ``password`` or ``temporary_credentials`` supplies the secret.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    host: str = Field(..., description="Redshift cluster or workgroup endpoint")

    username: str = Field(default="root", description="Redshift user name to connect as")

    password: Optional[str] = Field(default=None, description="Password for the user")

    port: int = Field(default=5439, ge=1, le=65535, description="Redshift server port")

    sslmode: Literal["require", "disable", "verify-ca", "verify-full"] = Field(
        default="require", description="SSL mode for the connection"
    )

    database: str = Field(default="redshift", description="Database to connect to")

    max_connections: int = Field(
        default=20, ge=-1, description="Maximum number of open connections, 0 or -1 for no limit"
    )

    connect_timeout: int = Field(default=180, ge=1, description="Connection timeout in seconds")

    temporary_credentials: Optional[TemporaryCredentialsConfig] = Field(
        default=None, description="Obtain a temporary password with GetClusterCredentials"
    )

    @model_validator(mode="after")
    def _check_credentials(self) -> "ProviderConfig":
        if self.password and self.temporary_credentials is not None:
            raise ValueError("`password` conflicts with `temporary_credentials`")
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> "ProviderConfig":
        """
        Build a configuration from REDSHIFT_* environment variables.

        Keyword arguments take precedence over the environment.

        Args:
            **overrides: Explicit field values

        Returns:
            ProviderConfig instance
        """
        env_fields = {
            "host": "REDSHIFT_HOST",
            "username": "REDSHIFT_USER",
            "password": "REDSHIFT_PASSWORD",
            "port": "REDSHIFT_PORT",
            "sslmode": "REDSHIFT_SSLMODE",
            "database": "REDSHIFT_DATABASE",
        }
        values = {}
        for field_name, env_name in env_fields.items():
            env_value = os.getenv(env_name)
            if env_value:
                values[field_name] = env_value
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
