# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from .base import DataSource, Resource, ResourceModel
from .database import DatabaseModel, DatabaseResource
from .datashare import DatashareModel, DatashareResource, DatashareSchema
from .datashare_privilege import DatasharePrivilegeModel, DatasharePrivilegeResource
from .default_privileges import DefaultPrivilegesModel, DefaultPrivilegesResource
from .grant import GrantModel, GrantResource
from .group import GroupModel, GroupResource
from .group_membership import GroupMembershipModel, GroupMembershipResource
from .role import RoleModel, RoleResource
from .role_grant import RoleGrantModel, RoleGrantResource
from .schema import ExternalSchemaConfig, SchemaModel, SchemaResource
from .user import UserModel, UserResource

ALL_RESOURCES = [
    DatabaseResource,
    DatashareResource,
    DatasharePrivilegeResource,
    DefaultPrivilegesResource,
    GrantResource,
    GroupResource,
    GroupMembershipResource,
    RoleResource,
    RoleGrantResource,
    SchemaResource,
    UserResource,
]

__all__ = [
    "ALL_RESOURCES",
    "DataSource",
    "DatabaseModel",
    "DatabaseResource",
    "DatashareModel",
    "DatashareResource",
    "DatashareSchema",
    "DatasharePrivilegeModel",
    "DatasharePrivilegeResource",
    "DefaultPrivilegesModel",
    "DefaultPrivilegesResource",
    "ExternalSchemaConfig",
    "GrantModel",
    "GrantResource",
    "GroupMembershipModel",
    "GroupMembershipResource",
    "GroupModel",
    "GroupResource",
    "Resource",
    "ResourceModel",
    "RoleGrantModel",
    "RoleGrantResource",
    "RoleModel",
    "RoleResource",
    "SchemaModel",
    "SchemaResource",
    "UserModel",
    "UserResource",
]
