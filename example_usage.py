#!/usr/bin/env python3
# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.
"""
Example usage script for redshift-admin.

This script creates a schema, a group, a user in that group and a grant,
reads them back through data sources and removes everything again.

IMPORTANT: Point it at a disposable cluster. Connection details are read
from REDSHIFT_HOST, REDSHIFT_USER, REDSHIFT_PASSWORD and REDSHIFT_DATABASE.
"""

import sys

from redshift_admin import Provider, ProviderConfig, RedshiftAdminException, configure_logging


def main():
    """Main function demonstrating the provider."""

    # ========================================
    # CONFIGURATION
    # ========================================
    configure_logging("INFO")
    config = ProviderConfig.from_env()

    # ========================================
    # EXAMPLE: Using temporary credentials
    # ========================================
    # Uncomment below to request credentials from GetClusterCredentials instead:
    """
    config = ProviderConfig(
        host="your-cluster.region.redshift.amazonaws.com",
        username="admin",
        database="dev",
        temporary_credentials={
            "cluster_identifier": "your-cluster",
            "region": "us-west-2",
            "assume_role": {"arn": "arn:aws:iam::123456789012:role/redshift-admin"},
        },
    )
    """

    print("=" * 60)
    print("redshift-admin - Example Usage")
    print("=" * 60)

    try:
        with Provider(config) as provider:
            schemas = provider.resource("redshift_schema")
            groups = provider.resource("redshift_group")
            users = provider.resource("redshift_user")
            grants = provider.resource("redshift_grant")

            # ========================================
            # 1. CURRENT NAMESPACE
            # ========================================
            print("\n1. Reading the cluster namespace...")
            namespace = provider.data_source("redshift_namespace").read()
            print(f"   Namespace: {namespace.id}")

            # ========================================
            # 2. CREATE OBJECTS
            # ========================================
            print("\n2. Creating schema, group and user...")
            schema = schemas.create({"name": "example_reporting", "quota": 10})
            print(f"   ✓ Schema {schema.name} (oid {schema.id}, quota {schema.quota} GB)")
            user = users.create({"name": "example_analyst", "password": "Example123", "connection_limit": 5})
            print(f"   ✓ User {user.name} (id {user.id})")
            group = groups.create({"name": "example_analysts", "users": [user.name]})
            print(f"   ✓ Group {group.name} with users {sorted(group.users)}")

            # ========================================
            # 3. GRANT PRIVILEGES
            # ========================================
            print("\n3. Granting read access on the schema...")
            grant = grants.create(
                {"group": group.name, "object_type": "table", "schema": schema.name, "privileges": ["select"]}
            )
            print(f"   ✓ Grant {grant.id}: {sorted(grant.privileges)}")

            # ========================================
            # 4. DATA SOURCES
            # ========================================
            print("\n4. Looking up the group...")
            info = provider.data_source("redshift_group").read(name=group.name)
            print(f"   Members: {info.users}")

            # ========================================
            # 5. CLEAN UP
            # ========================================
            print("\n5. Removing everything again...")
            grants.delete(grant)
            groups.delete(group)
            users.delete(user)
            schemas.delete(schema)
            print("   ✓ Done")

    except RedshiftAdminException as e:
        print(f"\n✗ {e}")
        return 1

    print("\n" + "=" * 60)
    print("Example completed successfully!")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
