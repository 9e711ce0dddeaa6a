# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""
Additive group membership.

Unlike the ``users`` attribute of a group, this resource only manages the
users it lists and leaves other members of the group alone.
"""

from typing import Optional, Set

from pydantic import Field

from ..client import with_retry
from ..exceptions import ErrorCode, RedshiftAdminException
from ..loggings import get_logger
from .base import Resource, ResourceModel
from .group import add_group_users, drop_group_users, read_group_members

logger = get_logger(__name__)


class GroupMembershipModel(ResourceModel):
    group_name: str = Field(..., description="Name of the group")
    users: Set[str] = Field(..., description="Users to add to the group")


class GroupMembershipResource(Resource[GroupMembershipModel]):
    type_name = "redshift_group_membership"
    model = GroupMembershipModel

    def create(self, data) -> GroupMembershipModel:
        state = self.parse(data)

        with self.client.transaction() as tx:
            row = tx.query_one("SELECT grosysid FROM pg_group WHERE groname = %s", (state.group_name,))
            if row is None:
                raise RedshiftAdminException(
                    ErrorCode.INVALID_ARGUMENT,
                    message_args={"error_message": f"Group {state.group_name} doesn't exist"},
                )
            add_group_users(tx, state.group_name, state.users)

        return self._read_required(state.model_copy(update={"id": str(row[0])}))

    def _read_required(self, state: GroupMembershipModel) -> GroupMembershipModel:
        result = self.read(state)
        if result is None:
            raise RedshiftAdminException(
                ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": "group", "name": state.group_name}
            )
        return result

    def read(self, data) -> Optional[GroupMembershipModel]:
        state = self.parse(data)
        with self.client.transaction() as tx:
            result = read_group_members(tx, self._require_id(state))

        if result is None:
            self._not_found(state)
            return None
        members, name = result
        return state.model_copy(update={"group_name": name, "users": state.users & set(members)})

    def update(self, prior, desired) -> GroupMembershipModel:
        prior = self.parse(prior)
        desired = self.parse(desired)
        self._require_id(prior)
        if prior.group_name != desired.group_name:
            return super().update(prior, desired)

        with self.client.transaction() as tx:
            drop_group_users(tx, desired.group_name, prior.users - desired.users)
            add_group_users(tx, desired.group_name, desired.users - prior.users)

        return self._read_required(desired.model_copy(update={"id": prior.id}))

    def delete(self, data) -> None:
        state = self.parse(data)
        def _drop():
            with self.client.transaction() as tx:
                drop_group_users(tx, state.group_name, state.users)

        with_retry(_drop)
        logger.info("removed group members", group=state.group_name, users=sorted(state.users))
