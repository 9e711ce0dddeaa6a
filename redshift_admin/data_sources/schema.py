# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from typing import Optional

from pydantic import BaseModel, Field

from ..resources.base import DataSource
from ..resources.schema import ExternalSchemaConfig, read_schema_attributes


class SchemaInfo(BaseModel):
    id: str = Field(..., description="Oid of the schema")
    name: str = Field(..., description="Name of the schema")
    owner: Optional[str] = Field(default=None, description="Owner of the schema")
    quota: int = Field(default=0, description="Disk quota in GB, 0 for unlimited")
    external_schema: Optional[ExternalSchemaConfig] = Field(default=None, description="Source of an external schema")


class SchemaDataSource(DataSource):
    type_name = "redshift_schema"

    def read(self, name: str) -> SchemaInfo:
        serverless = self.client.is_serverless()
        with self.client.transaction() as tx:
            attributes = read_schema_attributes(
                tx, self.client.database_name, serverless, "pg_namespace.nspname = %s", name.lower()
            )
        if attributes is None:
            raise self._missing("schema", name)
        return SchemaInfo(**attributes)
