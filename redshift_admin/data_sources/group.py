# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from typing import List

from pydantic import BaseModel, Field

from ..helpers import parse_pg_array
from ..resources.base import DataSource

GROUP_LOOKUP_QUERY = """SELECT
  ARRAY(SELECT u.usename FROM pg_user_info u, pg_group g WHERE g.groname = %s AND u.usesysid = ANY(g.grolist)) AS members,
  grosysid
FROM pg_group
WHERE groname = %s"""


class GroupInfo(BaseModel):
    id: str = Field(..., description="Id of the group")
    name: str = Field(..., description="Name of the group")
    users: List[str] = Field(default_factory=list, description="Names of the users who belong to the group")


class GroupDataSource(DataSource):
    type_name = "redshift_group"

    def read(self, name: str) -> GroupInfo:
        row = self.client.query_one(GROUP_LOOKUP_QUERY, (name, name))
        if row is None:
            raise self._missing("group", name)
        members, group_id = row
        return GroupInfo(id=str(group_id), name=name, users=sorted(parse_pg_array(members)))
