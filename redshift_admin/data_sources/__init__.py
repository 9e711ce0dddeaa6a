# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from .database import DatabaseDataSource, DatabaseInfo
from .group import GroupDataSource, GroupInfo
from .namespace import NamespaceDataSource, NamespaceInfo
from .role import RoleDataSource, RoleInfo
from .role_grant import RoleGrantDataSource, RoleGrantsInfo
from .schema import SchemaDataSource, SchemaInfo
from .user import UserDataSource, UserInfo

ALL_DATA_SOURCES = [
    DatabaseDataSource,
    GroupDataSource,
    NamespaceDataSource,
    RoleDataSource,
    RoleGrantDataSource,
    SchemaDataSource,
    UserDataSource,
]

__all__ = [
    "ALL_DATA_SOURCES",
    "DatabaseDataSource",
    "DatabaseInfo",
    "GroupDataSource",
    "GroupInfo",
    "NamespaceDataSource",
    "NamespaceInfo",
    "RoleDataSource",
    "RoleGrantDataSource",
    "RoleGrantsInfo",
    "RoleInfo",
    "SchemaDataSource",
    "SchemaInfo",
    "UserDataSource",
    "UserInfo",
]
