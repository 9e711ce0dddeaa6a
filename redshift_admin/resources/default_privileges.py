# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from typing import Literal, Optional, Set

from pydantic import Field, field_validator, model_validator

from ..client import with_retry
from ..exceptions import ErrorCode, RedshiftAdminException
from ..helpers import (
    TABLE_ACL_PRIVILEGES,
    acl_privileges_for,
    get_schema_id,
    get_user_id,
    quote_ident,
    validate_privileges,
)
from ..loggings import get_logger
from .base import Resource, ResourceModel

logger = get_logger(__name__)

# defaclnamespace of default privileges that apply to every schema
ALL_SCHEMAS_ID = 0

# pg_default_acl.defaclobjtype per object type
DEFAULT_ACL_OBJECT_TYPES = {"table": "r"}

DEFAULT_ACL_QUERY = """SELECT array_to_string(defaclacl, '|')
FROM pg_default_acl
WHERE defaclnamespace = %s
AND defaclobjtype = %s
AND defacluser = %s"""


class DefaultPrivilegesModel(ResourceModel):
    """Privileges applied to objects a user creates in the future."""

    group: Optional[str] = Field(default=None, description="Group receiving the default privileges")
    user: Optional[str] = Field(default=None, description="User receiving the default privileges")
    owner: str = Field(..., description="User whose future objects receive the default privileges")
    schema_name: Optional[str] = Field(
        default=None, alias="schema", description="Schema the default privileges apply to, all schemas when unset"
    )
    object_type: Literal["table"] = Field(..., description="Object type the default privileges apply to")
    privileges: Set[str] = Field(..., description="Privileges to apply, empty to revoke everything")

    @field_validator("privileges")
    @classmethod
    def _lower(cls, value: Set[str]) -> Set[str]:
        return {item.lower() for item in value}

    @model_validator(mode="after")
    def _validate(self) -> "DefaultPrivilegesModel":
        if self.group and self.user:
            raise ValueError("only one of `group,user` can be specified")
        if not self.group and not self.user:
            raise ValueError("one of `group,user` must be specified")
        if not validate_privileges(self.privileges, self.object_type):
            raise ValueError(f"Invalid privileges list {sorted(self.privileges)} for object type {self.object_type}")
        return self

    def grantee_clause(self) -> str:
        if self.group:
            return f"GROUP {quote_ident(self.group)}"
        return quote_ident(self.user)

    def alter_prefix(self) -> str:
        prefix = f"ALTER DEFAULT PRIVILEGES FOR USER {quote_ident(self.owner)}"
        if self.schema_name:
            prefix = f"{prefix} IN SCHEMA {quote_ident(self.schema_name)}"
        return prefix


def generate_default_privileges_id(state: DefaultPrivilegesModel) -> str:
    grantee = f"gn:{state.group}" if state.group else f"un:{state.user}"
    return "_".join([grantee, state.schema_name or "noschema", f"on:{state.owner}", f"ot:{state.object_type}"])


def build_revoke_query(state: DefaultPrivilegesModel) -> str:
    return f"{state.alter_prefix()} REVOKE ALL PRIVILEGES ON {state.object_type.upper()}S FROM {state.grantee_clause()}"


def build_grant_query(state: DefaultPrivilegesModel) -> str:
    privileges = ",".join(p.upper() for p in sorted(state.privileges))
    return f"{state.alter_prefix()} GRANT {privileges} ON {state.object_type.upper()}S TO {state.grantee_clause()}"


class DefaultPrivilegesResource(Resource[DefaultPrivilegesModel]):
    type_name = "redshift_default_privileges"
    model = DefaultPrivilegesModel

    def _apply(self, state: DefaultPrivilegesModel) -> None:
        def _revoke_then_grant():
            with self.client.transaction() as tx:
                tx.execute(build_revoke_query(state))
                if state.privileges:
                    tx.execute(build_grant_query(state))

        with_retry(_revoke_then_grant)

    def create(self, data) -> DefaultPrivilegesModel:
        state = self.parse(data)
        self._apply(state)
        state = state.model_copy(update={"id": generate_default_privileges_id(state)})
        logger.info("applied default privileges", id=state.id, privileges=sorted(state.privileges))
        return self.read(state)

    def read(self, data) -> Optional[DefaultPrivilegesModel]:
        state = self.parse(data)
        grantee_type = "group" if state.group else "user"
        grantee = state.group or state.user

        with self.client.transaction() as tx:
            schema_id = get_schema_id(tx, state.schema_name) if state.schema_name else ALL_SCHEMAS_ID
            owner_id = get_user_id(tx, state.owner)
            row = tx.query_one(DEFAULT_ACL_QUERY, (schema_id, DEFAULT_ACL_OBJECT_TYPES[state.object_type], owner_id))

        granted = acl_privileges_for(row[0], grantee, grantee_type) if row else ""
        privileges = {name for char, name in TABLE_ACL_PRIVILEGES.items() if char in granted}
        logger.debug("collected default privileges", grantee=grantee, privileges=sorted(privileges))
        return state.model_copy(update={"privileges": privileges})

    def update(self, prior, desired) -> DefaultPrivilegesModel:
        prior = self.parse(prior)
        desired = self.parse(desired)
        if prior.model_dump(exclude={"id", "privileges"}) != desired.model_dump(exclude={"id", "privileges"}):
            return super().update(prior, desired)
        return self.create(desired)

    def delete(self, data) -> None:
        state = self.parse(data)

        def _revoke():
            with self.client.transaction() as tx:
                tx.execute(build_revoke_query(state))

        with_retry(_revoke)
        logger.info("revoked default privileges", id=state.id)

    def import_state(self, resource_id: str) -> Optional[DefaultPrivilegesModel]:
        raise RedshiftAdminException(
            ErrorCode.UNSUPPORTED_OPERATION,
            message_args={"error_message": f"{self.type_name} cannot be imported, declare it and apply instead"},
        )
