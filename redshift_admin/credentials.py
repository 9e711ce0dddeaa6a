# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""
Resolve the database user and password the provider connects with.

Static passwords are used as-is. Temporary credentials are requested from
redshift:GetClusterCredentials, optionally after assuming an IAM role.
"""

from typing import Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import ProviderConfig, TemporaryCredentialsConfig
from .exceptions import ErrorCode, RedshiftAdminException
from .loggings import get_logger

logger = get_logger(__name__)

ASSUME_ROLE_DURATION_SECONDS = 900
DEFAULT_SESSION_NAME = "redshift-admin"


def resolve_credentials(config: ProviderConfig, session: Optional[boto3.Session] = None) -> Tuple[str, str]:
    """
    Return the ``(username, password)`` pair to connect with.

    Args:
        config: Provider configuration
        session: Base boto3 session, defaults to one built from the environment

    Returns:
        Tuple of user name and password

    Raises:
        RedshiftAdminException: If the AWS calls fail
    """
    if config.temporary_credentials is None:
        return config.username, config.password or ""

    return temporary_credentials(config, config.temporary_credentials, session)


def temporary_credentials(
    config: ProviderConfig,
    settings: TemporaryCredentialsConfig,
    session: Optional[boto3.Session] = None,
) -> Tuple[str, str]:
    session = redshift_sdk_session(settings, session)

    request = {
        "ClusterIdentifier": settings.cluster_identifier,
        "DbName": config.database,
        "DbUser": config.username,
        "AutoCreate": settings.auto_create_user,
    }
    if settings.db_groups:
        request["DbGroups"] = settings.db_groups
    if settings.duration_seconds:
        request["DurationSeconds"] = settings.duration_seconds

    logger.debug("requesting cluster credentials", cluster=settings.cluster_identifier, db_user=config.username)
    try:
        response = session.client("redshift", region_name=settings.region).get_cluster_credentials(**request)
    except (BotoCoreError, ClientError) as e:
        raise RedshiftAdminException(
            ErrorCode.AWS_CREDENTIALS_FAILED, message_args={"error_message": str(e)}
        ) from e

    return response["DbUser"], response["DbPassword"]


def redshift_sdk_session(
    settings: TemporaryCredentialsConfig, base_session: Optional[boto3.Session] = None
) -> boto3.Session:
    """
    Build the session used to call the Redshift API.

    When ``assume_role`` is configured the returned session carries the
    assumed role's credentials.
    """
    base_session = base_session or boto3.Session(region_name=settings.region)
    if settings.assume_role is None:
        return base_session

    role = settings.assume_role
    kwargs = {
        "RoleArn": role.arn,
        "RoleSessionName": role.session_name or DEFAULT_SESSION_NAME,
        "DurationSeconds": ASSUME_ROLE_DURATION_SECONDS,
    }
    if role.external_id:
        kwargs["ExternalId"] = role.external_id

    logger.debug("assuming role", role_arn=role.arn)
    try:
        credentials = base_session.client("sts", region_name=settings.region).assume_role(**kwargs)["Credentials"]
    except (BotoCoreError, ClientError) as e:
        raise RedshiftAdminException(
            ErrorCode.AWS_CREDENTIALS_FAILED, message_args={"error_message": str(e)}
        ) from e

    return boto3.Session(
        aws_access_key_id=credentials["AccessKeyId"],
        aws_secret_access_key=credentials["SecretAccessKey"],
        aws_session_token=credentials["SessionToken"],
        region_name=settings.region or base_session.region_name,
    )
