# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""
Provider entry point.

A Provider resolves credentials from its configuration, opens a Client and
hands out resources and data sources by type name, e.g.::

    provider = Provider({"host": "example.redshift.amazonaws.com", "password": "..."})
    users = provider.resource("redshift_user")
    users.create({"name": "alice", "password": "Secret123"})
"""

from typing import Any, Dict, List, Optional, Type, Union

import boto3

from .client import Client
from .config import ProviderConfig
from .credentials import resolve_credentials
from .exceptions import ErrorCode, RedshiftAdminException
from .loggings import get_logger
from .resources.base import DataSource, Resource

logger = get_logger(__name__)


class Registry:
    """Type name to class mapping for resources or data sources."""

    def __init__(self, kind: str):
        self.kind = kind
        self._entries: Dict[str, type] = {}

    def register(self, name: str, cls: type) -> None:
        self._entries[name] = cls

    def get(self, name: str) -> type:
        try:
            return self._entries[name]
        except KeyError:
            raise RedshiftAdminException(
                ErrorCode.INVALID_ARGUMENT,
                message_args={"error_message": f"unknown {self.kind} type {name!r}, expected one of {self.names()}"},
            ) from None

    def names(self) -> List[str]:
        return sorted(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries


resource_registry = Registry("resource")
data_source_registry = Registry("data source")


class Provider:
    """Configured access to one Redshift cluster or serverless workgroup."""

    def __init__(self, config: Union[ProviderConfig, Dict[str, Any]], session: Optional[boto3.Session] = None):
        if isinstance(config, dict):
            config = ProviderConfig(**config)
        elif not isinstance(config, ProviderConfig):
            raise TypeError(f"config must be ProviderConfig or dict, got {type(config)}")

        self.config = config
        username, password = resolve_credentials(config, session)
        self.client = Client(config, username, password)
        logger.info("provider configured", host=config.host, database=config.database, user=username)

    def resource(self, name: str) -> Resource:
        cls: Type[Resource] = resource_registry.get(name)
        return cls(self.client)

    def data_source(self, name: str) -> DataSource:
        cls: Type[DataSource] = data_source_registry.get(name)
        return cls(self.client)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "Provider":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
