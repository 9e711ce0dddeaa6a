# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from typing import Optional

from pydantic import BaseModel, Field

from ..helpers import conn_limit_from_catalog
from ..loggings import get_logger
from ..resources.base import DataSource

logger = get_logger(__name__)

DATABASE_LOOKUP_QUERY = """SELECT
  pg_database_info.datid,
  TRIM(pg_user_info.usename),
  COALESCE(pg_database_info.datconnlimit::text, 'UNLIMITED'),
  TRIM(svv_datashares.share_name),
  TRIM(svv_datashares.producer_account),
  TRIM(svv_datashares.producer_namespace)
FROM svv_redshift_databases
LEFT JOIN pg_database_info
  ON svv_redshift_databases.database_name = pg_database_info.datname
LEFT JOIN pg_user_info
  ON pg_user_info.usesysid = svv_redshift_databases.database_owner
LEFT JOIN svv_datashares
  ON (svv_datashares.share_type = 'INBOUND' AND svv_datashares.consumer_database = svv_redshift_databases.database_name)
WHERE svv_redshift_databases.database_name = %s"""


class DatabaseInfo(BaseModel):
    id: str = Field(..., description="Oid of the database")
    name: str = Field(..., description="Name of the database")
    owner: Optional[str] = Field(default=None, description="Owner of the database")
    connection_limit: int = Field(default=-1, description="Maximum number of concurrent connections, -1 for no limit")
    datashare_source_share_name: Optional[str] = Field(
        default=None, description="Producer datashare of a database created from a datashare"
    )
    datashare_source_account_id: Optional[str] = Field(default=None, description="AWS account of the producer")
    datashare_source_namespace: Optional[str] = Field(default=None, description="Namespace of the producer cluster")


class DatabaseDataSource(DataSource):
    """Look up a database by name, including its producer when it was created from a datashare."""

    type_name = "redshift_database"

    def read(self, name: str) -> DatabaseInfo:
        row = self.client.query_one(DATABASE_LOOKUP_QUERY, (name,))
        if row is None:
            raise self._missing("database", name)

        database_id, owner, conn_limit, share_name, producer_account, producer_namespace = row
        return DatabaseInfo(
            id=str(database_id),
            name=name,
            owner=owner,
            connection_limit=conn_limit_from_catalog(conn_limit),
            datashare_source_share_name=share_name,
            datashare_source_account_id=producer_account,
            datashare_source_namespace=producer_namespace,
        )
