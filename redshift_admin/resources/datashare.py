# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""
Outbound datashares.

Each schema of a datashare runs in one of two modes. In ``auto`` mode every
table, view and function is shared and Redshift adds new objects as they are
created. In ``manual`` mode only the listed ``tables`` and ``functions`` are
shared.
"""

from typing import Dict, Iterable, List, Literal, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..client import Transaction
from ..exceptions import ErrorCode, RedshiftAdminException
from ..helpers import quote_ident, split_csv_and_trim
from ..loggings import get_logger
from .base import Resource, ResourceModel

logger = get_logger(__name__)

DATASHARE_READ_QUERY = """SELECT
  TRIM(svv_datashares.share_name),
  TRIM(pg_user.usename),
  svv_datashares.is_publicaccessible,
  TRIM(COALESCE(svv_datashares.producer_account, '')),
  TRIM(COALESCE(svv_datashares.producer_namespace, '')),
  REPLACE(TO_CHAR(svv_datashares.createdate, 'YYYY-MM-DD HH24:MI:SS'), ' ', 'T') || 'Z'
FROM svv_datashares
LEFT JOIN pg_user ON svv_datashares.share_owner = pg_user.usesysid
WHERE share_type = 'OUTBOUND'
AND share_id = %s"""

DATASHARE_OBJECTS_QUERY = """SELECT object_name, object_type, COALESCE(include_new, FALSE)
FROM svv_datashare_objects
WHERE share_type = 'OUTBOUND'
AND share_name = %s"""

TABLE_OBJECT_TYPES = frozenset(["table", "view", "late binding view", "materialized view"])


class DatashareSchema(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str = Field(..., description="Name of the schema to share")
    mode: Literal["auto", "manual"] = Field(..., description="`auto` shares every object, `manual` only the listed ones")
    tables: Set[str] = Field(default_factory=set, description="Tables and views shared in manual mode")
    functions: Set[str] = Field(default_factory=set, description="Functions shared in manual mode")

    @field_validator("mode", mode="before")
    @classmethod
    def _lower_mode(cls, value):
        return value.lower() if isinstance(value, str) else value


class DatashareModel(ResourceModel):
    name: str = Field(..., description="Name of the datashare")
    owner: Optional[str] = Field(default=None, description="Owner of the datashare, the current user when unset")
    publicly_accessible: bool = Field(
        default=False, description="Whether the datashare can be shared to clusters that are publicly accessible"
    )
    schemas: List[DatashareSchema] = Field(
        default_factory=list, alias="schema", description="Schemas exposed through the datashare"
    )
    producer_account: Optional[str] = Field(default=None, description="AWS account of the producer cluster")
    producer_namespace: Optional[str] = Field(default=None, description="Namespace of the producer cluster")
    created: Optional[str] = Field(default=None, description="Creation time in ISO 8601 form")

    @field_validator("name")
    @classmethod
    def _lower(cls, value: str) -> str:
        return value.lower()


def collapse_schemas(schemas: Iterable[DatashareSchema]) -> Dict[str, DatashareSchema]:
    """
    Merge repeated declarations of the same schema.

    Raises:
        RedshiftAdminException: If the declarations use different modes
    """
    collapsed: Dict[str, DatashareSchema] = {}
    for schema in schemas:
        current = collapsed.get(schema.name)
        if current is None:
            collapsed[schema.name] = schema.model_copy(deep=True)
            continue
        if current.mode != schema.mode:
            raise RedshiftAdminException(
                ErrorCode.INVALID_ARGUMENT,
                message_args={
                    "error_message": f"Found multiple schema declarations for schema {schema.name} with different modes."
                },
            )
        current.tables |= schema.tables
        current.functions |= schema.functions
    return collapsed


def _alter(share: str, clause: str) -> str:
    return f"ALTER DATASHARE {quote_ident(share)} {clause}"


def _qualified(schema: str, name: str) -> str:
    return f"{quote_ident(schema)}.{quote_ident(name)}"


def add_schema(tx: Transaction, share: str, schema: DatashareSchema) -> None:
    schema_ident = quote_ident(schema.name)
    tx.execute(_alter(share, f"ADD SCHEMA {schema_ident}"))
    if schema.mode == "auto":
        tx.execute(_alter(share, f"SET INCLUDENEW = TRUE FOR SCHEMA {schema_ident}"))
        tx.execute(_alter(share, f"ADD ALL TABLES IN SCHEMA {schema_ident}"))
        tx.execute(_alter(share, f"ADD ALL FUNCTIONS IN SCHEMA {schema_ident}"))
        return
    for table in sorted(schema.tables):
        tx.execute(_alter(share, f"ADD TABLE {_qualified(schema.name, table)}"))
    for function in sorted(schema.functions):
        tx.execute(_alter(share, f"ADD FUNCTION {_qualified(schema.name, function)}"))


def remove_schema(tx: Transaction, share: str, schema: DatashareSchema) -> None:
    schema_ident = quote_ident(schema.name)
    tx.execute(_alter(share, f"REMOVE ALL FUNCTIONS IN SCHEMA {schema_ident}"))
    tx.execute(_alter(share, f"REMOVE ALL TABLES IN SCHEMA {schema_ident}"))
    tx.execute(_alter(share, f"REMOVE SCHEMA {schema_ident}"))


def update_schema_objects(tx: Transaction, share: str, before: DatashareSchema, after: DatashareSchema) -> None:
    schema_ident = quote_ident(after.name)
    if after.mode == "auto":
        logger.info("switching datashare schema to auto mode", share=share, schema=after.name)
        tx.execute(_alter(share, f"SET INCLUDENEW = TRUE FOR SCHEMA {schema_ident}"))
        tx.execute(_alter(share, f"ADD ALL TABLES IN SCHEMA {schema_ident}"))
        tx.execute(_alter(share, f"ADD ALL FUNCTIONS IN SCHEMA {schema_ident}"))
        return

    if before.mode == "auto":
        logger.info("switching datashare schema to manual mode", share=share, schema=after.name)
        tx.execute(_alter(share, f"SET INCLUDENEW = FALSE FOR SCHEMA {schema_ident}"))

    for table in sorted(before.tables - after.tables):
        tx.execute(_alter(share, f"REMOVE TABLE {_qualified(after.name, table)}"))
    for function in sorted(before.functions - after.functions):
        tx.execute(_alter(share, f"REMOVE FUNCTION {_qualified(after.name, function)}"))
    for table in sorted(after.tables - before.tables):
        tx.execute(_alter(share, f"ADD TABLE {_qualified(after.name, table)}"))
    for function in sorted(after.functions - before.functions):
        tx.execute(_alter(share, f"ADD FUNCTION {_qualified(after.name, function)}"))


def _schema_changed(before: DatashareSchema, after: DatashareSchema) -> bool:
    # auto mode shares every object, the listed ones are informational
    if before.mode != after.mode:
        return True
    return after.mode == "manual" and (before.tables != after.tables or before.functions != after.functions)


def read_datashare_schemas(tx: Transaction, share: str) -> List[DatashareSchema]:
    """Group the objects of an outbound datashare by schema."""
    by_name: Dict[str, Dict] = {}
    for object_name, object_type, include_new in tx.query_all(DATASHARE_OBJECTS_QUERY, (share,)):
        parts = split_csv_and_trim(object_name, ".")
        if len(parts) not in (1, 2):
            raise RedshiftAdminException(
                ErrorCode.DB_FAILED, message_args={"error_message": f"Unable to parse datashare object name {object_name!r}"}
            )
        schema_name, name = parts[0], parts[-1]
        entry = by_name.setdefault(schema_name, {"name": schema_name, "mode": "manual", "tables": set(), "functions": set()})

        object_type = object_type.strip().lower()
        if object_type == "schema":
            entry["mode"] = "auto" if include_new else "manual"
        elif object_type in TABLE_OBJECT_TYPES:
            entry["tables"].add(name)
        elif object_type == "function":
            entry["functions"].add(name)
        else:
            logger.warning("ignoring datashare object", schema=schema_name, name=name, object_type=object_type)

    return [DatashareSchema(**entry) for _, entry in sorted(by_name.items())]


class DatashareResource(Resource[DatashareModel]):
    type_name = "redshift_datashare"
    model = DatashareModel

    def create(self, data) -> DatashareModel:
        state = self.parse(data)
        schemas = collapse_schemas(state.schemas)
        accessible = "true" if state.publicly_accessible else "false"

        with self.client.transaction() as tx:
            tx.execute(f"CREATE DATASHARE {quote_ident(state.name)} SET PUBLICACCESSIBLE = {accessible}")
            row = tx.query_one(
                "SELECT share_id FROM svv_datashares WHERE share_type = 'OUTBOUND' AND share_name = %s", (state.name,)
            )
            if row is None:
                raise RedshiftAdminException(
                    ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": "datashare", "name": state.name}
                )

            if state.owner:
                tx.execute(_alter(state.name, f"OWNER TO {quote_ident(state.owner.lower())}"))

            for name in sorted(schemas):
                add_schema(tx, state.name, schemas[name])

        logger.info("created datashare", name=state.name, id=row[0])
        return self._read_required(state.model_copy(update={"id": str(row[0])}))

    def _read_required(self, state: DatashareModel) -> DatashareModel:
        result = self.read(state)
        if result is None:
            raise RedshiftAdminException(
                ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": "datashare", "name": state.name}
            )
        return result

    def read(self, data) -> Optional[DatashareModel]:
        state = self.parse(data)
        with self.client.transaction() as tx:
            row = tx.query_one(DATASHARE_READ_QUERY, (self._require_id(state),))
            if row is None:
                self._not_found(state)
                return None
            name, owner, publicly_accessible, producer_account, producer_namespace, created = row
            schemas = read_datashare_schemas(tx, name)

        return state.model_copy(
            update={
                "name": name,
                "owner": owner,
                "publicly_accessible": bool(publicly_accessible),
                "producer_account": producer_account,
                "producer_namespace": producer_namespace,
                "created": created,
                "schemas": schemas,
            }
        )

    def exists(self, data) -> bool:
        state = self.parse(data)
        row = self.client.query_one(
            "SELECT share_name FROM svv_datashares WHERE share_type = 'OUTBOUND' AND share_id = %s",
            (self._require_id(state),),
        )
        return row is not None

    def update(self, prior, desired) -> DatashareModel:
        prior = self.parse(prior)
        desired = self.parse(desired)
        self._require_id(prior)

        before = collapse_schemas(prior.schemas)
        after = collapse_schemas(desired.schemas)

        with self.client.transaction() as tx:
            if prior.name != desired.name:
                tx.execute(_alter(prior.name, f"RENAME TO {quote_ident(desired.name)}"))

            share = desired.name
            if prior.owner != desired.owner:
                owner = quote_ident(desired.owner) if desired.owner else "CURRENT_USER"
                tx.execute(_alter(share, f"OWNER TO {owner}"))

            if prior.publicly_accessible != desired.publicly_accessible:
                accessible = "true" if desired.publicly_accessible else "false"
                tx.execute(_alter(share, f"SET PUBLICACCESSIBLE {accessible}"))

            for name in sorted(after.keys() - before.keys()):
                add_schema(tx, share, after[name])
            for name in sorted(before.keys() - after.keys()):
                remove_schema(tx, share, before[name])
            for name in sorted(after.keys() & before.keys()):
                if _schema_changed(before[name], after[name]):
                    update_schema_objects(tx, share, before[name], after[name])

        return self._read_required(desired.model_copy(update={"id": prior.id}))

    def delete(self, data) -> None:
        state = self.parse(data)
        with self.client.transaction() as tx:
            tx.execute(f"DROP DATASHARE {quote_ident(state.name)}")
        logger.info("dropped datashare", name=state.name)
