# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from typing import List, Optional

from pydantic import BaseModel, Field

from ..exceptions import ErrorCode, RedshiftAdminException
from ..loggings import get_logger
from ..resources.base import DataSource

logger = get_logger(__name__)


class RoleGrantsInfo(BaseModel):
    id: str = Field(..., description="`<entity>-grants`")
    user: Optional[str] = Field(default=None, description="User whose roles were listed")
    role: Optional[str] = Field(default=None, description="Role whose roles were listed")
    granted_roles: List[str] = Field(default_factory=list, description="Roles granted to the user or role")


class RoleGrantDataSource(DataSource):
    """List the roles granted to exactly one user or role."""

    type_name = "redshift_role_grant"

    def read(self, user: Optional[str] = None, role: Optional[str] = None) -> RoleGrantsInfo:
        if bool(user) == bool(role):
            raise RedshiftAdminException(
                ErrorCode.INVALID_ARGUMENT, message_args={"error_message": "either 'user' or 'role' must be specified"}
            )

        if user:
            rows = self.client.query_all("SELECT role_name FROM svv_user_grants WHERE user_name = %s", (user,))
        else:
            rows = self.client.query_all("SELECT granted_role_name FROM svv_role_grants WHERE role_name = %s", (role,))

        entity = user or role
        granted_roles = [row[0].strip() for row in rows]
        logger.debug("retrieved role grants", entity=entity, granted_roles=granted_roles)
        return RoleGrantsInfo(id=f"{entity}-grants", user=user, role=role, granted_roles=granted_roles)
