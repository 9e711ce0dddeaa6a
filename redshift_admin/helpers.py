# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""
Quoting, parsing and catalog lookup helpers shared by resources and data sources.
"""

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, List, Optional

from .exceptions import ErrorCode, RedshiftAdminException

if TYPE_CHECKING:
    from .client import Transaction

_IAM_PREFIX = re.compile(r"^(?:IAMA?:)")
_CALLABLE_ARGS = re.compile(r"\(.*\)$")

# Privileges accepted per object type, upper case
_ALLOWED_PRIVILEGES = {
    "schema": {"CREATE", "USAGE", "ALTER"},
    "table": {"SELECT", "UPDATE", "INSERT", "DELETE", "DROP", "REFERENCES", "RULE", "TRIGGER", "ALTER", "TRUNCATE"},
    "database": {"CREATE", "TEMPORARY", "TEMP"},
    "function": {"EXECUTE"},
    "procedure": {"EXECUTE"},
    "language": {"USAGE"},
}

# ACL privilege characters for relations, see pg_default_acl documentation
TABLE_ACL_PRIVILEGES = {
    "r": "select",
    "w": "update",
    "a": "insert",
    "d": "delete",
    "D": "drop",
    "x": "references",
    "R": "rule",
    "t": "trigger",
}


def quote_ident(name: str) -> str:
    """Quote an identifier the way PostgreSQL's quote_ident does for any input."""
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """
    Escape a string for use inside single quotes.

    The surrounding quotes are not added, callers embed the result in
    ``'...'`` themselves.
    """
    return value.replace("\\", "\\\\").replace("'", "''")


def ident_list(objects: Iterable[str], prefix: str = "") -> str:
    """Render ``"prefix"."object"`` items, or ``"object"`` without a prefix, joined by commas."""
    if prefix:
        return ",".join(f"{quote_ident(prefix)}.{quote_ident(obj)}" for obj in objects)
    return ",".join(quote_ident(obj) for obj in objects)


def ident_list_unquoted(objects: Iterable[str], prefix: str = "") -> str:
    """
    Render callables with their argument lists intact.

    Function and procedure references such as ``my_func(int, text)`` cannot be
    quoted as a whole, only the schema prefix is.
    """
    if prefix:
        return ",".join(f"{quote_ident(prefix)}.{obj}" for obj in objects)
    return ",".join(objects)


def strip_callable_arguments(names: Iterable[str]) -> List[str]:
    return [_CALLABLE_ARGS.sub("", name).strip() for name in names]


def split_csv_and_trim(raw: str, sep: str = ",") -> List[str]:
    """Split ``raw`` on ``sep``, trimming whitespace and dropping empty items."""
    if not raw:
        return []
    return [item.strip() for item in raw.split(sep) if item.strip()]


def permanent_username(username: str) -> str:
    """Strip the ``IAM:``/``IAMA:`` prefix GetClusterCredentials adds to database users."""
    return _IAM_PREFIX.sub("", username)


def validate_privileges(privileges: Iterable[str], object_type: str) -> bool:
    """
    Check that every privilege is valid for the object type.

    Args:
        privileges: Privilege names, case-insensitive
        object_type: One of schema, table, database, function, procedure, language

    Returns:
        False for unknown object types, for unknown privileges, and for an
        empty list on ``language``
    """
    allowed = _ALLOWED_PRIVILEGES.get(object_type.lower())
    if allowed is None:
        return False

    privileges = [p.upper() for p in privileges]
    if object_type.lower() == "language" and not privileges:
        return False

    return all(p in allowed for p in privileges)


def parse_pg_array(value: Any) -> List[str]:
    """
    Normalise an array column to a list of strings.

    The driver returns arrays either as Python lists or, for types it cannot
    map, as their text form ``{a,"b c"}``.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None]

    text = str(value).strip()
    if text.startswith("{") and text.endswith("}"):
        text = text[1:-1]
    if not text:
        return []

    items: List[str] = []
    current: List[str] = []
    in_quotes = False
    escaped = False
    for char in text:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            items.append("".join(current))
            current = []
        else:
            current.append(char)
    items.append("".join(current))
    return [item for item in items if item and item != "NULL"]


@dataclass(frozen=True)
class AclItem:
    """One ``grantee=privileges/grantor`` entry of an ACL array."""

    grantee: str
    grantee_type: str
    privileges: str
    grantor: str


def parse_acl(acl: Any) -> List[AclItem]:
    """
    Parse a serialized ACL into its entries.

    Accepts the raw array (list or ``{...}`` text) as well as the ``|``
    joined form produced by ``array_to_string(acl, '|')``. Group grantees are
    written as ``group name=...`` and PUBLIC as an empty grantee.
    """
    if acl is None:
        return []
    if isinstance(acl, str) and not acl.startswith("{"):
        raw_items = [item for item in acl.split("|") if item]
    else:
        raw_items = parse_pg_array(acl)

    items = []
    for raw in raw_items:
        raw = raw.replace('"', "")
        grantee, sep, rest = raw.rpartition("=")
        if not sep:
            continue
        privileges, _, grantor = rest.partition("/")

        if grantee.startswith("group "):
            grantee_type = "group"
            grantee = grantee[len("group "):]
        elif grantee.startswith("role "):
            grantee_type = "role"
            grantee = grantee[len("role "):]
        elif grantee == "":
            grantee_type = "public"
            grantee = "public"
        else:
            grantee_type = "user"
        items.append(AclItem(grantee=grantee, grantee_type=grantee_type, privileges=privileges, grantor=grantor))
    return items


def acl_privileges_for(acl: Any, grantee: str, grantee_type: str) -> str:
    """Return the privilege characters granted to one grantee, or an empty string."""
    for item in parse_acl(acl):
        if item.grantee_type != grantee_type:
            continue
        if grantee_type == "public" or item.grantee == grantee:
            return item.privileges
    return ""


def _lookup_id(tx: "Transaction", sql: str, name: str, resource_type: str) -> int:
    row = tx.query_one(sql, (name,))
    if row is None:
        raise RedshiftAdminException(
            ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": resource_type, "name": name}
        )
    return int(row[0])


def get_group_id(tx: "Transaction", name: str) -> int:
    return _lookup_id(tx, "SELECT grosysid FROM pg_group WHERE groname = %s", name, "group")


def get_user_id(tx: "Transaction", name: str) -> int:
    return _lookup_id(tx, "SELECT usesysid FROM pg_user WHERE usename = %s", name, "user")


def get_schema_id(tx: "Transaction", name: str) -> int:
    return _lookup_id(tx, "SELECT oid FROM pg_namespace WHERE nspname = %s", name, "schema")


def get_role_id(tx: "Transaction", name: str) -> int:
    return _lookup_id(tx, "SELECT role_id FROM svv_roles WHERE role_name = %s", name, "role")


def conn_limit_from_catalog(value: Optional[str]) -> int:
    """Translate a ``COALESCE(limit::text, 'UNLIMITED')`` column into -1 or the limit."""
    if value is None or str(value).strip().upper() == "UNLIMITED":
        return -1
    return int(value)
