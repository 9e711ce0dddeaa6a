# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from pydantic import BaseModel, Field

from ..resources.base import DataSource


class NamespaceInfo(BaseModel):
    id: str = Field(..., description="Namespace (guid) of the cluster the provider is connected to")


class NamespaceDataSource(DataSource):
    """The namespace of the current cluster, as used by datashare consumers."""

    type_name = "redshift_namespace"

    def read(self) -> NamespaceInfo:
        row = self.client.query_one("SELECT CURRENT_NAMESPACE")
        if row is None:
            raise self._missing("namespace", "CURRENT_NAMESPACE")
        return NamespaceInfo(id=str(row[0]).strip())
