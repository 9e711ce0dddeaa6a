#!/usr/bin/env python3
# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.
"""
Installation verification script for redshift-admin.

This script performs a series of checks to verify that the package
is correctly installed and can be imported without errors.

Run this script AFTER installing the package with: pip install -e .
"""

import sys


def print_header(text):
    """Print a formatted header."""
    print("\n" + "=" * 60)
    print(f"  {text}")
    print("=" * 60)


def print_success(text):
    print(f"✓ {text}")


def print_error(text):
    print(f"✗ {text}")


def main():
    """Run all verification checks."""

    all_checks_passed = True

    print_header("redshift-admin Installation Verification")

    # Check 1: Python version
    print("\n1. Checking Python version...")
    if sys.version_info >= (3, 9):
        print_success(f"Python version {sys.version_info.major}.{sys.version_info.minor} is compatible")
    else:
        print_error(f"Python version {sys.version_info.major}.{sys.version_info.minor} is too old (requires 3.9+)")
        all_checks_passed = False

    # Check 2: Import main package
    print("\n2. Checking if redshift_admin can be imported...")
    try:
        import redshift_admin
        print_success("redshift_admin package imported successfully")
        print(f"   Version: {redshift_admin.__version__}")
    except ImportError as e:
        print_error(f"Cannot import redshift_admin: {e}")
        print("   Make sure you installed the package with: pip install -e .")
        return 1

    # Check 3: Verify dependencies
    print("\n3. Checking required dependencies...")
    dependencies = {
        "redshift_connector": "Amazon Redshift Python driver",
        "pydantic": "Data validation library",
        "structlog": "Structured logging",
        "boto3": "AWS SDK, used for temporary credentials",
    }
    for package, description in dependencies.items():
        try:
            __import__(package)
            print_success(f"{package:20s} - {description}")
        except ImportError:
            print_error(f"{package:20s} - NOT FOUND ({description})")
            all_checks_passed = False

    # Check 4: Create config object
    print("\n4. Testing ProviderConfig creation...")
    try:
        from redshift_admin import ProviderConfig
        config = ProviderConfig(host="test.redshift.amazonaws.com", username="testuser", password="testpass")
        print_success("Can create ProviderConfig object")
        print(f"   Config host: {config.host}")
        print(f"   Config port: {config.port}")
        print(f"   Config sslmode: {config.sslmode}")
    except Exception as e:
        print_error(f"Cannot create ProviderConfig: {e}")
        all_checks_passed = False

    # Check 5: Verify registries
    print("\n5. Checking registered resources and data sources...")
    from redshift_admin import data_source_registry, resource_registry

    for name in resource_registry.names():
        print_success(f"resource    {name}")
    for name in data_source_registry.names():
        print_success(f"data source {name}")
    if not resource_registry.names() or not data_source_registry.names():
        print_error("registries are empty, register() was not called")
        all_checks_passed = False

    # Check 6: Verify __all__ exports
    print("\n6. Checking module exports...")
    for export in ["Provider", "ProviderConfig", "RedshiftAdminException", "register"]:
        if export in redshift_admin.__all__:
            print_success(f"'{export}' is exported")
        else:
            print_error(f"'{export}' not in __all__")
            all_checks_passed = False

    print_header("Verification Summary")

    if all_checks_passed:
        print("\n✅ All checks passed!")
        print("\nNext steps:")
        print("  1. Export REDSHIFT_HOST, REDSHIFT_USER and REDSHIFT_PASSWORD")
        print("  2. Run: python example_usage.py")
        return 0

    print("\n❌ Some checks failed!")
    print("\nCommon fixes:")
    print("  - Make sure you installed with: pip install -e .")
    print("  - Check that you're in the correct Python environment")
    return 1


if __name__ == "__main__":
    sys.exit(main())
