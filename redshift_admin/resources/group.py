# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from typing import List, Optional, Set

from pydantic import Field, field_validator

from ..client import Transaction, with_retry
from ..exceptions import ErrorCode, RedshiftAdminException
from ..helpers import parse_pg_array, quote_ident
from ..loggings import get_logger
from .base import Resource, ResourceModel

logger = get_logger(__name__)

GROUP_READ_QUERY = """SELECT
  ARRAY(SELECT u.usename FROM pg_user_info u, pg_group g WHERE g.grosysid = %s AND u.usesysid = ANY(g.grolist)) AS members,
  groname
FROM pg_group
WHERE grosysid = %s"""


class GroupModel(ResourceModel):
    """Declared state of a user group."""

    name: str = Field(..., description="Name of the user group. Group names beginning with two underscores are reserved")
    users: Set[str] = Field(default_factory=set, description="List of the user names to add to the group")

    @field_validator("name")
    @classmethod
    def _valid_name(cls, value: str) -> str:
        if value.startswith("__"):
            raise ValueError("Group names beginning with two underscores are reserved for Amazon Redshift internal use")
        return value.lower()


def group_member_exists(tx: Transaction, user_name: str) -> bool:
    return tx.query_one("SELECT 1 FROM pg_user_info WHERE usename = %s", (user_name,)) is not None


def add_group_users(tx: Transaction, group_name: str, users: Set[str]) -> None:
    if users:
        tx.execute(f"ALTER GROUP {quote_ident(group_name)} ADD USER {', '.join(quote_ident(u) for u in sorted(users))}")


def drop_group_users(tx: Transaction, group_name: str, users: Set[str]) -> None:
    """Remove users from a group, skipping users that were dropped meanwhile."""
    existing = sorted(u for u in users if group_member_exists(tx, u))
    if existing:
        tx.execute(f"ALTER GROUP {quote_ident(group_name)} DROP USER {', '.join(quote_ident(u) for u in existing)}")


def read_group_members(tx: Transaction, group_id: str) -> Optional[tuple]:
    """Return ``(members, name)`` for the group, or None when it does not exist."""
    row = tx.query_one(GROUP_READ_QUERY, (group_id, group_id))
    if row is None:
        return None
    members, name = row
    return parse_pg_array(members), name.strip()


class GroupResource(Resource[GroupModel]):
    type_name = "redshift_group"
    model = GroupModel

    def create(self, data) -> GroupModel:
        state = self.parse(data)

        sql = f"CREATE GROUP {quote_ident(state.name)}"
        if state.users:
            sql = f"{sql} WITH USER {', '.join(quote_ident(u) for u in sorted(state.users))}"

        with self.client.transaction() as tx:
            tx.execute(sql)
            row = tx.query_one("SELECT grosysid FROM pg_group WHERE groname = %s", (state.name,))

        if row is None:
            raise RedshiftAdminException(
                ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": "group", "name": state.name}
            )
        logger.info("created group", name=state.name, id=row[0])
        return self._read_required(state.model_copy(update={"id": str(row[0])}))

    def _read_required(self, state: GroupModel) -> GroupModel:
        result = self.read(state)
        if result is None:
            raise RedshiftAdminException(
                ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": "group", "name": state.name}
            )
        return result

    def read(self, data) -> Optional[GroupModel]:
        state = self.parse(data)
        with self.client.transaction() as tx:
            result = read_group_members(tx, self._require_id(state))

        if result is None:
            self._not_found(state)
            return None
        members, name = result
        return state.model_copy(update={"name": name, "users": set(members)})

    def update(self, prior, desired) -> GroupModel:
        prior = self.parse(prior)
        desired = self.parse(desired)
        self._require_id(prior)

        with self.client.transaction() as tx:
            if prior.name != desired.name:
                tx.execute(f"ALTER GROUP {quote_ident(prior.name)} RENAME TO {quote_ident(desired.name)}")

            drop_group_users(tx, desired.name, prior.users - desired.users)
            add_group_users(tx, desired.name, desired.users - prior.users)

        return self._read_required(desired.model_copy(update={"id": prior.id}))

    def delete(self, data) -> None:
        state = self.parse(data)
        group = quote_ident(state.name)

        def _drop():
            with self.client.transaction() as tx:
                schemas: List[tuple] = tx.query_all(
                    "SELECT nspname FROM pg_namespace WHERE nspowner != 1 OR nspname = 'public'"
                )
                for (schema_name,) in schemas:
                    schema = quote_ident(schema_name)
                    tx.execute(f"REVOKE ALL ON ALL TABLES IN SCHEMA {schema} FROM GROUP {group}")
                    tx.execute(f"ALTER DEFAULT PRIVILEGES IN SCHEMA {schema} REVOKE ALL ON TABLES FROM GROUP {group}")

                tx.execute(f"DROP GROUP {group}")

        with_retry(_drop)
        logger.info("dropped group", name=state.name)
