# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from typing import Optional

from pydantic import BaseModel, Field

from ..resources.base import DataSource
from ..resources.user import UserModel, UserResource


class UserInfo(BaseModel):
    id: str = Field(..., description="Id of the user")
    name: str = Field(..., description="Name of the user")
    valid_until: str = Field(default="infinity", description="Date and time after which the password is no longer valid")
    create_database: bool = Field(default=False, description="Whether the user can create databases")
    connection_limit: int = Field(default=-1, description="Maximum concurrent connections, -1 for no limit")
    syslog_access: Optional[str] = Field(default=None, description="Level of access to system tables and views")
    superuser: bool = Field(default=False, description="Whether the user is a superuser")
    session_timeout: int = Field(default=0, description="Idle session timeout in seconds, 0 for the cluster default")


class UserDataSource(DataSource):
    """Look up a user by name. Passwords are never returned."""

    type_name = "redshift_user"

    def read(self, name: str) -> UserInfo:
        row = self.client.query_one("SELECT usesysid FROM pg_user_info WHERE usename = %s", (name,))
        if row is None:
            raise self._missing("user", name)

        state = UserResource(self.client).read(UserModel.model_construct(id=str(row[0]), name=name))
        if state is None:
            raise self._missing("user", name)
        return UserInfo(**state.model_dump(exclude={"password"}))
