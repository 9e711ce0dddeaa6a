# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from typing import Optional

from pydantic import Field

from ..client import with_retry
from ..exceptions import ErrorCode, RedshiftAdminException
from ..helpers import get_role_id, quote_ident
from ..loggings import get_logger
from .base import Resource, ResourceModel

logger = get_logger(__name__)

ROLE_NAME_PATTERN = r"^[a-zA-Z_][a-zA-Z0-9_]*$"


class RoleModel(ResourceModel):
    name: str = Field(..., pattern=ROLE_NAME_PATTERN, description="Name of the role")


class RoleResource(Resource[RoleModel]):
    """Redshift role-based access control roles."""

    type_name = "redshift_role"
    model = RoleModel

    def create(self, data) -> RoleModel:
        state = self.parse(data)
        with self.client.transaction() as tx:
            tx.execute(f"CREATE ROLE {quote_ident(state.name)}")
            role_id = get_role_id(tx, state.name)

        logger.info("created role", name=state.name, id=role_id)
        return state.model_copy(update={"id": str(role_id)})

    def read(self, data) -> Optional[RoleModel]:
        state = self.parse(data)
        row = self.client.query_one("SELECT role_name FROM svv_roles WHERE role_id = %s", (self._require_id(state),))
        if row is None:
            self._not_found(state)
            return None
        return state.model_copy(update={"name": row[0].strip()})

    def exists(self, data) -> bool:
        state = self.parse(data)
        row = self.client.query_one(
            "SELECT EXISTS (SELECT 1 FROM svv_roles WHERE role_id = %s)", (self._require_id(state),)
        )
        return bool(row and row[0])

    def update(self, prior, desired) -> RoleModel:
        prior = self.parse(prior)
        desired = self.parse(desired)
        self._require_id(prior)

        if prior.name != desired.name:
            with self.client.transaction() as tx:
                tx.execute(f"ALTER ROLE {quote_ident(prior.name)} RENAME TO {quote_ident(desired.name)}")

        result = self.read(desired.model_copy(update={"id": prior.id}))
        if result is None:
            raise RedshiftAdminException(
                ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": "role", "name": desired.name}
            )
        return result

    def delete(self, data) -> None:
        state = self.parse(data)

        def _drop():
            with self.client.transaction() as tx:
                tx.execute(f"DROP ROLE {quote_ident(state.name)}")

        with_retry(_drop)
        logger.info("dropped role", name=state.name)
