# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from typing import Optional, Tuple

from pydantic import Field, field_validator, model_validator

from ..helpers import quote_ident, quote_literal
from ..loggings import get_logger
from .base import Resource, ResourceModel

logger = get_logger(__name__)

UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
AWS_ACCOUNT_ID_PATTERN = r"^\d{12}$"

SHARE_DATE_QUERY = """SELECT REPLACE(TO_CHAR(share_date, 'YYYY-MM-DD HH24:MI:SS'), ' ', 'T') || 'Z'
FROM svv_datashare_consumers
WHERE share_name = %s
AND {column} = %s"""


class DatasharePrivilegeModel(ResourceModel):
    """Permission for a consumer namespace or AWS account to use a datashare."""

    share_name: str = Field(..., description="Name of the datashare")
    namespace: Optional[str] = Field(
        default=None, pattern=UUID_PATTERN, description="Namespace (guid) of a consumer cluster in the same account"
    )
    account: Optional[str] = Field(
        default=None, pattern=AWS_ACCOUNT_ID_PATTERN, description="AWS account ID of the consumer cluster"
    )
    share_date: Optional[str] = Field(default=None, description="When the permission was granted")

    @field_validator("share_name", "namespace")
    @classmethod
    def _lower(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value else value

    @model_validator(mode="after")
    def _exactly_one_consumer(self) -> "DatasharePrivilegeModel":
        if bool(self.namespace) == bool(self.account):
            raise ValueError("exactly one of `namespace` or `account` must be set")
        return self

    def consumer(self) -> Tuple[str, str]:
        """Return the ``(keyword, value)`` pair naming the consumer."""
        if self.namespace:
            return "NAMESPACE", self.namespace
        return "ACCOUNT", self.account


class DatasharePrivilegeResource(Resource[DatasharePrivilegeModel]):
    type_name = "redshift_datashare_privilege"
    model = DatasharePrivilegeModel

    def create(self, data) -> DatasharePrivilegeModel:
        state = self.parse(data)
        keyword, consumer = state.consumer()

        with self.client.transaction() as tx:
            tx.execute(f"GRANT USAGE ON DATASHARE {quote_ident(state.share_name)} TO {keyword} '{quote_literal(consumer)}'")

        logger.info("granted datashare usage", share=state.share_name, consumer=consumer)
        state = state.model_copy(update={"id": f"{state.share_name}.{consumer}"})
        return self.read(state) or state

    def read(self, data) -> Optional[DatasharePrivilegeModel]:
        state = self.parse(data)
        keyword, consumer = state.consumer()
        column = "consumer_namespace" if keyword == "NAMESPACE" else "consumer_account"

        row = self.client.query_one(SHARE_DATE_QUERY.format(column=column), (state.share_name, consumer))
        if row is None:
            self._not_found(state)
            return None
        return state.model_copy(update={"share_date": row[0]})

    def delete(self, data) -> None:
        state = self.parse(data)
        keyword, consumer = state.consumer()

        with self.client.transaction() as tx:
            tx.execute(f"REVOKE USAGE ON DATASHARE {quote_ident(state.share_name)} FROM {keyword} '{quote_literal(consumer)}'")
        logger.info("revoked datashare usage", share=state.share_name, consumer=consumer)

    def import_state(self, resource_id: str) -> Optional[DatasharePrivilegeModel]:
        """Import an ID of the form ``share.namespace`` or ``share.account``."""
        share_name, _, consumer = resource_id.rpartition(".")
        key = "account" if consumer.isdigit() else "namespace"
        return self.read(self.model(id=resource_id, share_name=share_name, **{key: consumer}))
