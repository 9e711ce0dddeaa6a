# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""
Error codes and the exception type raised by every redshift_admin operation.

An ErrorCode carries a numeric code and a message template. The exception
formats the template with ``message_args`` so callers can both display a
readable message and branch on ``code``.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Known failure categories with their message templates."""

    INVALID_ARGUMENT = ("100001", "Invalid argument: {error_message}")
    RESOURCE_NOT_FOUND = ("100002", "{resource_type} {name} not found")
    UNSUPPORTED_OPERATION = ("100003", "Unsupported operation: {error_message}")

    AWS_CREDENTIALS_FAILED = ("200001", "Failed to obtain temporary credentials: {error_message}")

    DB_CONNECTION_FAILED = ("300001", "Failed to connect to Redshift: {error_message}")
    DB_EXECUTION_SYNTAX_ERROR = ("300002", "Invalid SQL `{sql}`: {error_message}")
    DB_EXECUTION_ERROR = ("300003", "Failed to execute `{sql}`: {error_message}")
    DB_CONSTRAINT_VIOLATION = ("300004", "Constraint violated by `{sql}`: {error_message}")
    DB_TRANSACTION_FAILED = ("300005", "Transaction failed: {error_message}")
    DB_FAILED = ("300099", "Redshift operation failed: {error_message}")

    def __init__(self, code: str, desc: str):
        self.code = code
        self.desc = desc


class RedshiftAdminException(Exception):
    """
    Exception raised for all redshift_admin failures.

    Args:
        code: The ErrorCode describing the failure
        message_args: Values substituted into the code's message template
        pg_code: SQLSTATE reported by Redshift, when the failure came from the server
    """

    def __init__(
        self,
        code: ErrorCode,
        message_args: Optional[Dict[str, Any]] = None,
        pg_code: Optional[str] = None,
    ):
        self.code = code
        self.message_args = message_args or {}
        self.pg_code = pg_code
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        try:
            message = self.code.desc.format(**self.message_args)
        except KeyError:
            # Template fields missing from message_args are shown raw
            message = f"{self.code.desc} {self.message_args}"
        return f"[{self.code.code}] {message}"
