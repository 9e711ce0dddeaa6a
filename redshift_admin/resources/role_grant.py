# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from typing import Optional, Tuple

from pydantic import Field, model_validator

from ..client import with_retry
from ..exceptions import ErrorCode, RedshiftAdminException
from ..helpers import quote_ident
from ..loggings import get_logger
from .base import Resource, ResourceModel

logger = get_logger(__name__)

GRANTEE_USER = "user"
GRANTEE_ROLE = "role"


class RoleGrantModel(ResourceModel):
    """Assignment of a role to a user or to another role."""

    role_to_assign: str = Field(..., description="Name of the role to grant")
    user: Optional[str] = Field(default=None, description="User receiving the role")
    role: Optional[str] = Field(default=None, description="Role receiving the role")

    @model_validator(mode="after")
    def _exactly_one_grantee(self) -> "RoleGrantModel":
        if bool(self.user) == bool(self.role):
            raise ValueError("exactly one of `user` or `role` must be set")
        return self

    def grantee(self) -> Tuple[str, str]:
        if self.user:
            return GRANTEE_USER, self.user
        return GRANTEE_ROLE, self.role


def generate_role_grant_id(role_to_assign: str, grantee_type: str, grantee: str) -> str:
    return f"{role_to_assign}-{grantee_type}-{grantee}"


def parse_role_grant_id(resource_id: str) -> Tuple[str, str, str]:
    """Split an ID of the form ``role-granteeType-grantee``."""
    for grantee_type in (GRANTEE_USER, GRANTEE_ROLE):
        marker = f"-{grantee_type}-"
        role_to_assign, sep, grantee = resource_id.partition(marker)
        if sep and role_to_assign and grantee:
            return role_to_assign, grantee_type, grantee
    raise RedshiftAdminException(
        ErrorCode.INVALID_ARGUMENT,
        message_args={"error_message": f"unexpected ID format ({resource_id!r}), expected roleToAssign-granteeType-grantee"},
    )


class RoleGrantResource(Resource[RoleGrantModel]):
    type_name = "redshift_role_grant"
    model = RoleGrantModel

    def create(self, data) -> RoleGrantModel:
        state = self.parse(data)
        grantee_type, grantee = state.grantee()

        role = quote_ident(state.role_to_assign)
        if grantee_type == GRANTEE_USER:
            sql = f"GRANT ROLE {role} TO {quote_ident(grantee)}"
        else:
            sql = f"GRANT ROLE {role} TO ROLE {quote_ident(grantee)}"

        def _execute():
            with self.client.transaction() as tx:
                tx.execute(sql)

        with_retry(_execute)

        logger.info("granted role", role=state.role_to_assign, grantee_type=grantee_type, grantee=grantee)
        return state.model_copy(update={"id": generate_role_grant_id(state.role_to_assign, grantee_type, grantee)})

    def read(self, data) -> Optional[RoleGrantModel]:
        state = self.parse(data)
        role_to_assign, grantee_type, grantee = parse_role_grant_id(self._require_id(state))

        if grantee_type == GRANTEE_USER:
            sql = "SELECT role_name FROM svv_user_grants WHERE role_name = %s AND user_name = %s"
        else:
            sql = "SELECT granted_role_name FROM svv_role_grants WHERE granted_role_name = %s AND role_name = %s"

        if self.client.query_one(sql, (role_to_assign, grantee)) is None:
            self._not_found(state)
            return None

        return state.model_copy(
            update={
                "role_to_assign": role_to_assign,
                "user": grantee if grantee_type == GRANTEE_USER else None,
                "role": grantee if grantee_type == GRANTEE_ROLE else None,
            }
        )

    def delete(self, data) -> None:
        state = self.parse(data)
        role_to_assign, grantee_type, grantee = parse_role_grant_id(self._require_id(state))

        role = quote_ident(role_to_assign)
        if grantee_type == GRANTEE_USER:
            sql = f"REVOKE ROLE {role} FROM {quote_ident(grantee)}"
        else:
            sql = f"REVOKE ROLE {role} FROM ROLE {quote_ident(grantee)}"

        def _execute():
            with self.client.transaction() as tx:
                tx.execute(sql)

        with_retry(_execute)
        logger.info("revoked role", role=role_to_assign, grantee_type=grantee_type, grantee=grantee)
