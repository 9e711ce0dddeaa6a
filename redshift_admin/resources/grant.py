# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""
Privileges on databases, schemas, tables, functions, procedures and languages.

A grant owns every privilege its grantee holds on the targeted objects:
applying it revokes all privileges first and then grants the declared ones.
"""

from typing import List, Literal, Optional, Set, Tuple

from pydantic import Field, field_validator, model_validator

from ..client import Transaction, with_retry
from ..exceptions import ErrorCode, RedshiftAdminException
from ..helpers import (
    acl_privileges_for,
    ident_list,
    ident_list_unquoted,
    quote_ident,
    strip_callable_arguments,
    validate_privileges,
)
from ..loggings import get_logger
from .base import Resource, ResourceModel

logger = get_logger(__name__)

ObjectType = Literal["table", "schema", "database", "function", "procedure", "language"]

# pg_proc_info.prokind values per callable type
CALLABLE_KINDS = {"function": "f", "procedure": "p"}

DATABASE_PRIVILEGES_QUERY = """SELECT privilege_type
FROM svv_database_privileges
WHERE database_name = %s AND identity_name = %s AND identity_type = %s"""

SCHEMA_PRIVILEGES_QUERY = """SELECT privilege_type
FROM svv_schema_privileges
WHERE namespace_name = %s AND identity_name = %s AND identity_type = %s"""

RELATION_PRIVILEGES_QUERY = """SELECT relation_name, privilege_type
FROM svv_relation_privileges
WHERE namespace_name = %s AND identity_name = %s AND identity_type = %s"""

CALLABLE_ACL_QUERY = """SELECT pr.proname, array_to_string(pr.proacl, '|')
FROM pg_proc_info pr
JOIN pg_namespace nsp ON nsp.oid = pr.pronamespace
WHERE nsp.nspname = %s
AND pr.prokind = %s"""

LANGUAGE_ACL_QUERY = "SELECT lanname, array_to_string(lanacl, '|') FROM pg_language"


class GrantModel(ResourceModel):
    """Privileges held by one user, group or role on a set of objects."""

    user: Optional[str] = Field(default=None, description="User receiving the privileges")
    group: Optional[str] = Field(default=None, description="Group receiving the privileges, `public` for PUBLIC")
    role: Optional[str] = Field(default=None, description="Role receiving the privileges")
    object_type: ObjectType = Field(..., description="Type of the target objects")
    schema_name: Optional[str] = Field(default=None, alias="schema", description="Schema of the target objects")
    objects: Set[str] = Field(default_factory=set, description="Target objects, all objects in the schema when empty")
    privileges: Set[str] = Field(..., description="Privileges to grant, empty to revoke everything")

    @field_validator("objects", "privileges")
    @classmethod
    def _lower(cls, value: Set[str]) -> Set[str]:
        return {item.lower() for item in value}

    @model_validator(mode="after")
    def _validate(self) -> "GrantModel":
        if sum(bool(v) for v in (self.user, self.group, self.role)) != 1:
            raise ValueError("exactly one of `user`, `group` or `role` must be set")
        if self.user and self.user.lower() == "public":
            raise ValueError("user name cannot be 'public', use group 'public' to grant to PUBLIC")

        if self.object_type in ("table", "function", "procedure") and not self.schema_name:
            raise ValueError(f"parameter `schema` is required for objects of type {self.object_type}")
        if self.object_type in ("database", "schema") and self.objects:
            raise ValueError(f"cannot specify `objects` when `object_type` is `{self.object_type}`")
        if self.object_type == "language" and not self.objects:
            raise ValueError("parameter `objects` is required for objects of type language")

        if not validate_privileges(self.privileges, self.object_type):
            raise ValueError(f"Invalid privileges list {sorted(self.privileges)} for object of type {self.object_type}")
        return self

    def is_public(self) -> bool:
        return bool(self.group) and self.group.lower() == "public"

    def grantee(self) -> Tuple[str, str]:
        """Return ``(identity_type, identity_name)`` as used by the svv_*_privileges views."""
        if self.user:
            return "user", self.user
        if self.is_public():
            return "public", "public"
        if self.group:
            return "group", self.group
        return "role", self.role

    def grantee_clause(self) -> str:
        if self.is_public():
            return "PUBLIC"
        if self.group:
            return f"GROUP {quote_ident(self.group)}"
        if self.role:
            return f"ROLE {quote_ident(self.role)}"
        return quote_ident(self.user)


def generate_grant_id(state: GrantModel) -> str:
    parts = []
    if state.group:
        parts.append(f"gn:{state.group.lower() if state.is_public() else state.group}")
    if state.user:
        parts.append(f"un:{state.user}")
    if state.role:
        parts.append(f"rn:{state.role}")

    parts.append(f"ot:{state.object_type}")
    if state.object_type not in ("database", "language"):
        parts.append(state.schema_name or "")
    parts.extend(sorted(state.objects))
    return "_".join(parts)


def _target_clause(state: GrantModel, database: str) -> str:
    object_type = state.object_type.upper()
    if state.object_type == "database":
        return f"DATABASE {quote_ident(database)}"
    if state.object_type == "schema":
        return f"SCHEMA {quote_ident(state.schema_name)}"
    if state.object_type == "language":
        return f"LANGUAGE {ident_list(sorted(state.objects))}"

    if not state.objects:
        return f"ALL {object_type}S IN SCHEMA {quote_ident(state.schema_name)}"
    if state.object_type == "table":
        return f"{object_type} {ident_list(sorted(state.objects), state.schema_name)}"
    return f"{object_type} {ident_list_unquoted(sorted(state.objects), state.schema_name)}"


def build_revoke_query(state: GrantModel, database: str) -> str:
    if state.object_type == "language":
        return f"REVOKE USAGE ON {_target_clause(state, database)} FROM {state.grantee_clause()}"
    return f"REVOKE ALL PRIVILEGES ON {_target_clause(state, database)} FROM {state.grantee_clause()}"


def build_grant_query(state: GrantModel, database: str) -> str:
    privileges = ",".join(p.upper() for p in sorted(state.privileges))
    return f"GRANT {privileges} ON {_target_clause(state, database)} TO {state.grantee_clause()}"


class GrantResource(Resource[GrantModel]):
    type_name = "redshift_grant"
    model = GrantModel

    def _apply(self, state: GrantModel) -> None:
        database = self.client.database_name
        revoke = build_revoke_query(state, database)
        grant = build_grant_query(state, database) if state.privileges else None

        def _revoke_then_grant():
            with self.client.transaction() as tx:
                tx.execute(revoke)
                if grant:
                    tx.execute(grant)

        with_retry(_revoke_then_grant)

    def create(self, data) -> GrantModel:
        state = self.parse(data)
        self._apply(state)
        logger.info("applied grant", id=generate_grant_id(state), privileges=sorted(state.privileges))
        return self._read_required(state.model_copy(update={"id": generate_grant_id(state)}))

    def _read_required(self, state: GrantModel) -> GrantModel:
        result = self.read(state)
        if result is None:
            raise RedshiftAdminException(
                ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": "grant", "name": state.id}
            )
        return result

    def read(self, data) -> Optional[GrantModel]:
        state = self.parse(data)
        readers = {
            "database": self._read_database,
            "schema": self._read_schema,
            "table": self._read_table,
            "function": self._read_callable,
            "procedure": self._read_callable,
            "language": self._read_language,
        }
        with self.client.transaction() as tx:
            privileges = readers[state.object_type](tx, state)
        return state.model_copy(update={"privileges": privileges})

    def update(self, prior, desired) -> GrantModel:
        prior = self.parse(prior)
        desired = self.parse(desired)
        if prior.model_dump(exclude={"id", "privileges"}) != desired.model_dump(exclude={"id", "privileges"}):
            return super().update(prior, desired)

        self._apply(desired)
        return self._read_required(desired.model_copy(update={"id": prior.id or generate_grant_id(desired)}))

    def delete(self, data) -> None:
        state = self.parse(data)
        revoke = build_revoke_query(state, self.client.database_name)

        def _revoke():
            with self.client.transaction() as tx:
                tx.execute(revoke)

        with_retry(_revoke)
        logger.info("revoked grant", id=state.id)

    def import_state(self, resource_id: str) -> Optional[GrantModel]:
        raise RedshiftAdminException(
            ErrorCode.UNSUPPORTED_OPERATION,
            message_args={"error_message": f"{self.type_name} cannot be imported, declare it and apply instead"},
        )

    def _read_database(self, tx: Transaction, state: GrantModel) -> Set[str]:
        identity_type, identity_name = state.grantee()
        rows = tx.query_all(DATABASE_PRIVILEGES_QUERY, (self.client.database_name, identity_name, identity_type))
        return {row[0].strip().lower() for row in rows}

    def _read_schema(self, tx: Transaction, state: GrantModel) -> Set[str]:
        identity_type, identity_name = state.grantee()
        rows = tx.query_all(SCHEMA_PRIVILEGES_QUERY, (state.schema_name, identity_name, identity_type))
        return {row[0].strip().lower() for row in rows}

    def _read_table(self, tx: Transaction, state: GrantModel) -> Set[str]:
        identity_type, identity_name = state.grantee()
        rows = tx.query_all(RELATION_PRIVILEGES_QUERY, (state.schema_name, identity_name, identity_type))
        privileges = set()
        for relation_name, privilege_type in rows:
            if state.objects and relation_name.strip() not in state.objects:
                continue
            privileges.add(privilege_type.strip().lower())
        return privileges

    def _read_callable(self, tx: Transaction, state: GrantModel) -> Set[str]:
        identity_type, identity_name = state.grantee()
        callables: List[str] = strip_callable_arguments(state.objects)
        rows = tx.query_all(CALLABLE_ACL_QUERY, (state.schema_name, CALLABLE_KINDS[state.object_type]))

        privileges = set()
        for proname, acl in rows:
            if callables and proname not in callables:
                continue
            if "X" in acl_privileges_for(acl, identity_name, identity_type):
                privileges.add("execute")
        return privileges

    def _read_language(self, tx: Transaction, state: GrantModel) -> Set[str]:
        identity_type, identity_name = state.grantee()
        privileges = set()
        for lanname, acl in tx.query_all(LANGUAGE_ACL_QUERY):
            if state.objects and lanname not in state.objects:
                continue
            if "U" in acl_privileges_for(acl, identity_name, identity_type):
                privileges.add("usage")
        return privileges
