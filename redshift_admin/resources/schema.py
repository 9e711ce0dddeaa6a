# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""
Local and external schemas.

External schemas reference a database in the Glue Data Catalog, a Hive
metastore, an RDS PostgreSQL or MySQL instance, or another Redshift
database. Exactly one source is configured per external schema.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..client import Transaction, with_retry
from ..exceptions import ErrorCode, RedshiftAdminException
from ..helpers import quote_ident, quote_literal, split_csv_and_trim
from ..loggings import get_logger
from .base import Resource, ResourceModel

logger = get_logger(__name__)

SCHEMA_READ_QUERY = """SELECT
  pg_namespace.oid,
  TRIM(svv_all_schemas.schema_name),
  TRIM(pg_user_info.usename),
  TRIM(svv_all_schemas.schema_type)
FROM svv_all_schemas
INNER JOIN pg_namespace
  ON (svv_all_schemas.database_name = %s AND svv_all_schemas.schema_name = pg_namespace.nspname)
LEFT JOIN pg_user_info
  ON (svv_all_schemas.database_name = %s AND pg_user_info.usesysid = svv_all_schemas.schema_owner)
WHERE svv_all_schemas.database_name = %s
AND {condition}"""

SERVERLESS_QUOTA_QUERY = """SELECT COALESCE(quota, 0)
FROM svv_redshift_schema_quota
WHERE database_name = %s
AND schema_name = %s"""

PROVISIONED_QUOTA_QUERY = """SELECT COALESCE(quota, 0)
FROM svv_schema_quota_state
WHERE schema_id = %s"""

EXTERNAL_SCHEMA_QUERY = """SELECT
  CASE
    WHEN eskind = 1 THEN 'data_catalog_source'
    WHEN eskind = 2 THEN 'hive_metastore_source'
    WHEN eskind = 3 THEN 'rds_postgres_source'
    WHEN eskind = 4 THEN 'redshift_source'
    WHEN eskind = 7 THEN 'rds_mysql_source'
    ELSE 'unknown'
  END,
  TRIM(databasename),
  COALESCE(CASE WHEN is_valid_json(esoptions) THEN json_extract_path_text(esoptions, 'IAM_ROLE') END, ''),
  COALESCE(CASE WHEN is_valid_json(esoptions) THEN json_extract_path_text(esoptions, 'CATALOG_ROLE') END, ''),
  COALESCE(CASE WHEN is_valid_json(esoptions) THEN json_extract_path_text(esoptions, 'REGION') END, ''),
  COALESCE(CASE WHEN is_valid_json(esoptions) THEN json_extract_path_text(esoptions, 'SCHEMA') END, ''),
  COALESCE(CASE WHEN is_valid_json(esoptions) THEN json_extract_path_text(esoptions, 'URI') END, ''),
  COALESCE(CASE WHEN is_valid_json(esoptions) THEN json_extract_path_text(esoptions, 'PORT') END, ''),
  COALESCE(CASE WHEN is_valid_json(esoptions) THEN json_extract_path_text(esoptions, 'SECRET_ARN') END, '')
FROM svv_external_schemas
WHERE esoid = %s"""

# Catalog quotas are stored in MB
MB_PER_GB = 1024


class _SourceModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class DataCatalogSource(_SourceModel):
    region: Optional[str] = Field(default=None, description="AWS region of the Data Catalog")
    iam_role_arns: List[str] = Field(..., min_length=1, max_length=10, description="IAM roles used to access the catalog")
    catalog_role_arns: List[str] = Field(
        default_factory=list, max_length=10, description="IAM roles used to access the Data Catalog, defaults to iam_role_arns"
    )
    create_external_database_if_not_exists: bool = Field(
        default=False, description="Create the external database when it does not exist"
    )


class HiveMetastoreSource(_SourceModel):
    hostname: str = Field(..., description="Hostname of the Hive metastore")
    port: int = Field(default=9083, ge=1, le=65535, description="Port of the Hive metastore")
    iam_role_arns: List[str] = Field(..., min_length=1, max_length=10, description="IAM roles for the metastore")


class RdsPostgresSource(_SourceModel):
    hostname: str = Field(..., description="Hostname of the head node of the PostgreSQL database replica set")
    port: int = Field(default=5432, ge=1, le=65535, description="Port of the PostgreSQL database")
    schema_name: str = Field(default="public", alias="schema", description="Name of the PostgreSQL schema")
    iam_role_arns: List[str] = Field(..., min_length=1, max_length=10, description="IAM roles for the federated query")
    secret_arn: str = Field(..., description="ARN of the secret holding the database credentials")


class RdsMysqlSource(_SourceModel):
    hostname: str = Field(..., description="Hostname of the head node of the MySQL database replica set")
    port: int = Field(default=3306, ge=1, le=65535, description="Port of the MySQL database")
    iam_role_arns: List[str] = Field(..., min_length=1, max_length=10, description="IAM roles for the federated query")
    secret_arn: str = Field(..., description="ARN of the secret holding the database credentials")


class RedshiftSource(_SourceModel):
    schema_name: str = Field(default="public", alias="schema", description="Name of the schema in the source database")


class ExternalSchemaConfig(_SourceModel):
    database_name: str = Field(..., description="Name of the external or source database")
    data_catalog_source: Optional[DataCatalogSource] = None
    hive_metastore_source: Optional[HiveMetastoreSource] = None
    rds_postgres_source: Optional[RdsPostgresSource] = None
    rds_mysql_source: Optional[RdsMysqlSource] = None
    redshift_source: Optional[RedshiftSource] = None

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "ExternalSchemaConfig":
        sources = [
            self.data_catalog_source,
            self.hive_metastore_source,
            self.rds_postgres_source,
            self.rds_mysql_source,
            self.redshift_source,
        ]
        if sum(source is not None for source in sources) != 1:
            raise ValueError("exactly one external schema source must be configured")
        return self

    def source_clause(self) -> str:
        """Render the ``FROM ...`` part of CREATE EXTERNAL SCHEMA."""
        database = quote_literal(self.database_name)

        if self.data_catalog_source is not None:
            source = self.data_catalog_source
            query = f"FROM DATA CATALOG DATABASE '{database}'"
            if source.region:
                query = f"{query} REGION '{quote_literal(source.region)}'"
            query = f"{query} IAM_ROLE '{quote_literal(','.join(source.iam_role_arns))}'"
            if source.catalog_role_arns:
                query = f"{query} CATALOG_ROLE '{quote_literal(','.join(source.catalog_role_arns))}'"
            if source.create_external_database_if_not_exists:
                query = f"{query} CREATE EXTERNAL DATABASE IF NOT EXISTS"
            return query

        if self.hive_metastore_source is not None:
            source = self.hive_metastore_source
            return (
                f"FROM HIVE METASTORE DATABASE '{database}' URI '{quote_literal(source.hostname)}' PORT {source.port} "
                f"IAM_ROLE '{quote_literal(','.join(source.iam_role_arns))}'"
            )

        if self.rds_postgres_source is not None:
            source = self.rds_postgres_source
            return (
                f"FROM POSTGRES DATABASE '{database}' SCHEMA '{quote_literal(source.schema_name)}' "
                f"URI '{quote_literal(source.hostname)}' PORT {source.port} "
                f"IAM_ROLE '{quote_literal(','.join(source.iam_role_arns))}' SECRET_ARN '{quote_literal(source.secret_arn)}'"
            )

        if self.rds_mysql_source is not None:
            source = self.rds_mysql_source
            return (
                f"FROM MYSQL DATABASE '{database}' URI '{quote_literal(source.hostname)}' PORT {source.port} "
                f"IAM_ROLE '{quote_literal(','.join(source.iam_role_arns))}' SECRET_ARN '{quote_literal(source.secret_arn)}'"
            )

        return f"FROM REDSHIFT DATABASE '{database}' SCHEMA '{quote_literal(self.redshift_source.schema_name)}'"


class SchemaModel(ResourceModel):
    """Declared state of a schema."""

    name: str = Field(..., description="Name of the schema")
    owner: Optional[str] = Field(default=None, description="Name of the schema owner")
    quota: int = Field(default=0, ge=0, description="Maximum disk space of the schema in GB, 0 for unlimited")
    cascade_on_delete: bool = Field(default=False, description="Drop all objects in the schema when it is deleted")
    external_schema: Optional[ExternalSchemaConfig] = Field(default=None, description="External schema configuration")

    @field_validator("name")
    @classmethod
    def _valid_name(cls, value: str) -> str:
        if value.lower() == "public":
            raise ValueError("Schema name cannot be 'public'")
        return value.lower()

    @model_validator(mode="after")
    def _external_conflicts(self) -> "SchemaModel":
        if self.external_schema is not None and (self.quota or self.cascade_on_delete):
            raise ValueError("`quota` and `cascade_on_delete` conflict with `external_schema`")
        return self


def _parse_port(raw: str, source_type: str) -> Optional[int]:
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise RedshiftAdminException(
            ErrorCode.DB_FAILED, message_args={"error_message": f"{source_type} port was not an integer"}
        ) from e


def read_external_schema(tx: Transaction, schema_oid: str) -> ExternalSchemaConfig:
    """Rebuild the external schema configuration from svv_external_schemas."""
    row = tx.query_one(EXTERNAL_SCHEMA_QUERY, (schema_oid,))
    if row is None:
        raise RedshiftAdminException(
            ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": "external schema", "name": schema_oid}
        )
    source_type, database_name, iam_role, catalog_role, region, source_schema, hostname, port, secret_arn = row

    source: Dict[str, Any] = {}
    if source_type == "data_catalog_source":
        source = {
            "region": region or None,
            "iam_role_arns": split_csv_and_trim(iam_role),
            "catalog_role_arns": split_csv_and_trim(catalog_role),
        }
    elif source_type in ("hive_metastore_source", "rds_postgres_source", "rds_mysql_source"):
        source = {"hostname": hostname, "iam_role_arns": split_csv_and_trim(iam_role)}
        parsed_port = _parse_port(port, source_type)
        if parsed_port is not None:
            source["port"] = parsed_port
        if source_type != "hive_metastore_source":
            source["secret_arn"] = secret_arn
        if source_type == "rds_postgres_source" and source_schema:
            source["schema"] = source_schema
    elif source_type == "redshift_source":
        if source_schema:
            source["schema"] = source_schema
    else:
        raise RedshiftAdminException(
            ErrorCode.UNSUPPORTED_OPERATION, message_args={"error_message": f"Unsupported source database type {source_type}"}
        )

    return ExternalSchemaConfig.model_validate({"database_name": database_name, source_type: source})


def read_schema_attributes(
    tx: Transaction, database: str, serverless: bool, condition: str, value: str
) -> Optional[Dict[str, Any]]:
    """
    Read name, owner, quota and external configuration of a schema.

    Args:
        database: Database the schema lives in
        serverless: Whether quotas are read from the serverless catalog
        condition: ``pg_namespace.oid = %s`` or ``pg_namespace.nspname = %s``
        value: The oid or name the condition matches

    Returns:
        Attribute dict including ``id``, or None if no such schema exists
    """
    row = tx.query_one(
        SCHEMA_READ_QUERY.format(condition=condition),
        (database, database, database, value),
    )
    if row is None:
        return None

    schema_oid, name, owner, schema_type = row
    schema_oid = str(schema_oid)
    attributes: Dict[str, Any] = {"id": schema_oid, "name": name, "owner": owner}

    if schema_type == "local":
        if serverless:
            quota_row = tx.query_one(SERVERLESS_QUOTA_QUERY, (database, name))
        else:
            quota_row = tx.query_one(PROVISIONED_QUOTA_QUERY, (schema_oid,))
        quota_mb = int(quota_row[0]) if quota_row else 0
        attributes.update({"quota": quota_mb // MB_PER_GB, "external_schema": None})
    elif schema_type == "external":
        attributes.update({"quota": 0, "external_schema": read_external_schema(tx, schema_oid)})
    else:
        raise RedshiftAdminException(
            ErrorCode.UNSUPPORTED_OPERATION,
            message_args={
                "error_message": f'Unsupported schema type "{schema_type}". Supported types are "local" and "external".'
            },
        )
    return attributes


class SchemaResource(Resource[SchemaModel]):
    type_name = "redshift_schema"
    model = SchemaModel

    def create(self, data) -> SchemaModel:
        state = self.parse(data)
        name = quote_ident(state.name)

        with self.client.transaction() as tx:
            if state.external_schema is not None:
                tx.execute(f"CREATE EXTERNAL SCHEMA {name} {state.external_schema.source_clause()}")
                if state.owner:
                    tx.execute(f"ALTER SCHEMA {name} OWNER TO {quote_ident(state.owner)}")
            else:
                options = []
                if state.owner:
                    options.append(f"AUTHORIZATION {quote_ident(state.owner)}")
                options.append(f"QUOTA {state.quota} GB" if state.quota > 0 else "QUOTA UNLIMITED")
                tx.execute(f"CREATE SCHEMA {name} {' '.join(options)}")

            row = tx.query_one("SELECT oid FROM pg_namespace WHERE nspname = %s", (state.name,))

        if row is None:
            raise RedshiftAdminException(
                ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": "schema", "name": state.name}
            )
        logger.info("created schema", name=state.name, id=row[0], external=state.external_schema is not None)
        return self._read_required(state.model_copy(update={"id": str(row[0])}))

    def _read_required(self, state: SchemaModel) -> SchemaModel:
        result = self.read(state)
        if result is None:
            raise RedshiftAdminException(
                ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": "schema", "name": state.name}
            )
        return result

    def read(self, data) -> Optional[SchemaModel]:
        state = self.parse(data)
        serverless = self.client.is_serverless()
        with self.client.transaction() as tx:
            attributes = read_schema_attributes(
                tx, self.client.database_name, serverless, "pg_namespace.oid = %s", self._require_id(state)
            )

        if attributes is None:
            self._not_found(state)
            return None
        return state.model_copy(update=attributes)

    def exists(self, data) -> bool:
        state = self.parse(data)
        return self.client.query_one("SELECT nspname FROM pg_namespace WHERE oid = %s", (self._require_id(state),)) is not None

    def update(self, prior, desired) -> SchemaModel:
        prior = self.parse(prior)
        desired = self.parse(desired)
        self._require_id(prior)
        if prior.external_schema != desired.external_schema:
            return super().update(prior, desired)

        with self.client.transaction() as tx:
            if prior.name != desired.name:
                tx.execute(f"ALTER SCHEMA {quote_ident(prior.name)} RENAME TO {quote_ident(desired.name)}")

            name = quote_ident(desired.name)
            if desired.owner and prior.owner != desired.owner:
                tx.execute(f"ALTER SCHEMA {name} OWNER TO {quote_ident(desired.owner)}")

            if desired.external_schema is None and prior.quota != desired.quota:
                quota = f"{desired.quota} GB" if desired.quota > 0 else "UNLIMITED"
                tx.execute(f"ALTER SCHEMA {name} QUOTA {quota}")

        return self._read_required(desired.model_copy(update={"id": prior.id}))

    def delete(self, data) -> None:
        state = self.parse(data)
        mode = "CASCADE" if state.cascade_on_delete else "RESTRICT"

        def _drop():
            with self.client.transaction() as tx:
                tx.execute(f"DROP SCHEMA {quote_ident(state.name)} {mode}")

        with_retry(_drop)
        logger.info("dropped schema", name=state.name, mode=mode)
