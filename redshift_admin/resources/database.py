# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from typing import Optional

from pydantic import Field, field_validator

from ..exceptions import ErrorCode, RedshiftAdminException
from ..helpers import conn_limit_from_catalog, quote_ident
from ..loggings import get_logger
from .base import Resource, ResourceModel

logger = get_logger(__name__)

DATABASE_READ_QUERY = """SELECT
  TRIM(svv_redshift_databases.database_name),
  TRIM(pg_user_info.usename),
  COALESCE(pg_database_info.datconnlimit::text, 'UNLIMITED')
FROM svv_redshift_databases
LEFT JOIN pg_database_info
  ON svv_redshift_databases.database_name = pg_database_info.datname
LEFT JOIN pg_user_info
  ON pg_user_info.usesysid = svv_redshift_databases.database_owner
WHERE svv_redshift_databases.database_type = 'local'
AND pg_database_info.datid = %s"""

DATABASE_TYPE_QUERY = """SELECT svv_redshift_databases.database_type
FROM svv_redshift_databases
LEFT JOIN pg_database_info
  ON svv_redshift_databases.database_name = pg_database_info.datname
WHERE pg_database_info.datid = %s"""


def _conn_limit_clause(limit: int) -> str:
    return f"CONNECTION LIMIT {limit if limit >= 0 else 'UNLIMITED'}"


class DatabaseModel(ResourceModel):
    """Declared state of a local database."""

    name: str = Field(..., description="Name of the database")
    owner: Optional[str] = Field(default=None, description="Owner of the database, usually the user who created it")
    connection_limit: int = Field(
        default=-1, ge=-1, description="Maximum number of concurrent connections, -1 for no limit"
    )

    @field_validator("name", "owner")
    @classmethod
    def _lower(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value else value


class DatabaseResource(Resource[DatabaseModel]):
    """
    Local databases.

    CREATE DATABASE and DROP DATABASE cannot run inside a transaction block,
    so both go through the client's autocommit path.
    """

    type_name = "redshift_database"
    model = DatabaseModel

    def create(self, data) -> DatabaseModel:
        state = self.parse(data)

        sql = f"CREATE DATABASE {quote_ident(state.name)}"
        if state.owner:
            sql = f"{sql} OWNER {quote_ident(state.owner)}"
        if state.connection_limit != -1:
            sql = f"{sql} {_conn_limit_clause(state.connection_limit)}"
        self.client.execute_autocommit(sql)

        row = self.client.query_one("SELECT oid FROM pg_database WHERE datname = %s", (state.name,))
        if row is None:
            raise RedshiftAdminException(
                ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": "database", "name": state.name}
            )
        logger.info("created database", name=state.name, id=row[0])
        return self._read_required(state.model_copy(update={"id": str(row[0])}))

    def _read_required(self, state: DatabaseModel) -> DatabaseModel:
        result = self.read(state)
        if result is None:
            raise RedshiftAdminException(
                ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": "database", "name": state.name}
            )
        return result

    def read(self, data) -> Optional[DatabaseModel]:
        state = self.parse(data)
        row = self.client.query_one(DATABASE_READ_QUERY, (self._require_id(state),))
        if row is None:
            self._not_found(state)
            return None

        name, owner, conn_limit = row
        return state.model_copy(
            update={"name": name, "owner": owner, "connection_limit": conn_limit_from_catalog(conn_limit)}
        )

    def exists(self, data) -> bool:
        state = self.parse(data)
        return self.client.query_one("SELECT datname FROM pg_database WHERE oid = %s", (self._require_id(state),)) is not None

    def update(self, prior, desired) -> DatabaseModel:
        prior = self.parse(prior)
        desired = self.parse(desired)
        self._require_id(prior)

        with self.client.transaction() as tx:
            if prior.name != desired.name:
                if not desired.name:
                    raise RedshiftAdminException(
                        ErrorCode.INVALID_ARGUMENT,
                        message_args={"error_message": "Error setting database name to an empty string"},
                    )
                tx.execute(f"ALTER DATABASE {quote_ident(prior.name)} RENAME TO {quote_ident(desired.name)}")

            if desired.owner and prior.owner != desired.owner:
                tx.execute(f"ALTER DATABASE {quote_ident(desired.name)} OWNER TO {quote_ident(desired.owner)}")

            if prior.connection_limit != desired.connection_limit:
                tx.execute(f"ALTER DATABASE {quote_ident(desired.name)} {_conn_limit_clause(desired.connection_limit)}")

        return self._read_required(desired.model_copy(update={"id": prior.id}))

    def delete(self, data) -> None:
        state = self.parse(data)
        self.client.execute_autocommit(f"DROP DATABASE {quote_ident(state.name)}")
        logger.info("dropped database", name=state.name)

    def import_state(self, resource_id: str) -> Optional[DatabaseModel]:
        """
        Import a database by oid.

        Raises:
            RedshiftAdminException: If no database has the oid or it is not a local database
        """
        row = self.client.query_one(DATABASE_TYPE_QUERY, (resource_id,))
        if row is None:
            raise RedshiftAdminException(
                ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": "database", "name": f"with oid {resource_id}"}
            )
        database_type = (row[0] or "").strip()
        if database_type != "local":
            raise RedshiftAdminException(
                ErrorCode.UNSUPPORTED_OPERATION,
                message_args={"error_message": f"Database with oid {resource_id} is of type {database_type}, only local databases can be imported"},
            )
        return super().import_state(resource_id)
