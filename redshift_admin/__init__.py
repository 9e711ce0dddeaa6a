# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""
Administration of Amazon Redshift users, groups, roles, schemas, grants and datashares.

Resources and data sources are looked up by type name through a Provider,
which resolves credentials and manages connections.
"""

from .client import Client
from .config import AssumeRoleConfig, ProviderConfig, TemporaryCredentialsConfig
from .data_sources import ALL_DATA_SOURCES
from .exceptions import ErrorCode, RedshiftAdminException
from .loggings import configure_logging
from .provider import Provider, data_source_registry, resource_registry
from .resources import ALL_RESOURCES

__version__ = "0.1.0"

__all__ = [
    "AssumeRoleConfig",
    "Client",
    "ErrorCode",
    "Provider",
    "ProviderConfig",
    "RedshiftAdminException",
    "TemporaryCredentialsConfig",
    "configure_logging",
    "register",
]


def register():
    """
    Register every resource and data source under its type name.

    After registration ``Provider.resource("redshift_user")`` and
    ``Provider.data_source("redshift_namespace")`` resolve to their classes.
    """
    for resource_cls in ALL_RESOURCES:
        resource_registry.register(resource_cls.type_name, resource_cls)
    for data_source_cls in ALL_DATA_SOURCES:
        data_source_registry.register(data_source_cls.type_name, data_source_cls)


# Auto-register on import
register()
