# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

import time
from typing import Callable, Optional

from pydantic import BaseModel, Field

from ..loggings import get_logger
from ..resources.base import DataSource

logger = get_logger(__name__)

# A freshly created role can take a moment to show up in svv_roles
LOOKUP_ATTEMPTS = 5
LOOKUP_INTERVAL_SECONDS = 2


class RoleInfo(BaseModel):
    id: str = Field(..., description="Id of the role")
    name: str = Field(..., description="Name of the role")


class RoleDataSource(DataSource):
    type_name = "redshift_role"

    def read(self, name: str, sleep: Optional[Callable[[float], None]] = None) -> RoleInfo:
        sleep = sleep or time.sleep
        for attempt in range(LOOKUP_ATTEMPTS):
            row = self.client.query_one("SELECT role_id FROM svv_roles WHERE role_name = %s", (name,))
            if row is not None:
                return RoleInfo(id=str(row[0]), name=name)
            if attempt < LOOKUP_ATTEMPTS - 1:
                logger.debug("role not visible yet, retrying", role=name, attempt=attempt + 1)
                sleep(LOOKUP_INTERVAL_SECONDS)
        raise self._missing("role", name)
