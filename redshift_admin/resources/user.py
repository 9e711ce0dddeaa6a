# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator, model_validator

from ..client import Transaction, with_retry
from ..exceptions import ErrorCode, RedshiftAdminException
from ..helpers import conn_limit_from_catalog, permanent_username, quote_ident, quote_literal
from ..loggings import get_logger
from .base import Resource, ResourceModel

logger = get_logger(__name__)

SESSION_TIMEOUT_MIN = 60
SESSION_TIMEOUT_MAX = 1728000

# Based on https://github.com/awslabs/amazon-redshift-utils/blob/master/src/AdminViews/v_find_dropuser_objs.sql
REASSIGN_OWNER_GENERATOR = """SELECT owner.ddl
FROM (
    SELECT pgu.usesysid,
    'alter function ' || QUOTE_IDENT(nc.nspname) || '.' || textin(regprocedureout(pproc.oid::regprocedure)) || ' owner to ' || %s
    FROM pg_proc pproc, pg_user pgu, pg_namespace nc
    WHERE pproc.pronamespace = nc.oid
    AND pproc.proowner = pgu.usesysid
  UNION ALL
    SELECT pgu.usesysid,
    'alter database ' || QUOTE_IDENT(pgd.datname) || ' owner to ' || %s
    FROM pg_database pgd, pg_user pgu
    WHERE pgd.datdba = pgu.usesysid
  UNION ALL
    SELECT pgu.usesysid,
    'alter schema ' || QUOTE_IDENT(pgn.nspname) || ' owner to ' || %s
    FROM pg_namespace pgn, pg_user pgu
    WHERE pgn.nspowner = pgu.usesysid
  UNION ALL
    SELECT pgu.usesysid,
    'alter table ' || QUOTE_IDENT(nc.nspname) || '.' || QUOTE_IDENT(pgc.relname) || ' owner to ' || %s
    FROM pg_class pgc, pg_user pgu, pg_namespace nc
    WHERE pgc.relnamespace = nc.oid
    AND pgc.relkind IN ('r', 'v')
    AND pgu.usesysid = pgc.relowner
    AND nc.nspname NOT ILIKE 'pg\\_temp\\_%%'
)
OWNER("userid", "ddl")
WHERE owner.userid = %s"""

USER_INFO_QUERY = """SELECT
  user_name,
  createdb,
  superuser,
  syslog_access,
  COALESCE(connection_limit::TEXT, 'UNLIMITED'),
  session_timeout
FROM svv_user_info
WHERE user_id = %s"""


class UserModel(ResourceModel):
    """Declared state of a database user."""

    name: str = Field(..., description="Name of the user account to create. The user name can't be PUBLIC")
    password: Optional[SecretStr] = Field(
        default=None, description="Password for the user, or an MD5/SHA256 hash. Omit to disable password logins"
    )
    valid_until: str = Field(default="infinity", description="Date and time after which the password is no longer valid")
    create_database: bool = Field(default=False, description="Allow the user to create new databases")
    connection_limit: int = Field(default=-1, ge=-1, description="Maximum concurrent connections, -1 for no limit")
    syslog_access: Optional[Literal["RESTRICTED", "UNRESTRICTED"]] = Field(
        default=None, description="Level of access to Redshift system tables and views"
    )
    superuser: bool = Field(default=False, description="Grant superuser privileges")
    session_timeout: int = Field(
        default=0, description="Seconds a session may stay inactive or idle, 0 for the cluster default"
    )

    @field_validator("name")
    @classmethod
    def _name_not_public(cls, value: str) -> str:
        if value.lower() == "public":
            raise ValueError("User name cannot be 'public'")
        return value

    @field_validator("session_timeout")
    @classmethod
    def _session_timeout_range(cls, value: int) -> int:
        if value != 0 and not SESSION_TIMEOUT_MIN <= value <= SESSION_TIMEOUT_MAX:
            raise ValueError(f"session_timeout must be 0 or between {SESSION_TIMEOUT_MIN} and {SESSION_TIMEOUT_MAX}")
        return value

    @model_validator(mode="after")
    def _superuser_requirements(self) -> "UserModel":
        if self.superuser:
            if self.password is None:
                raise ValueError("Users that are superusers must define a password.")
            if self.syslog_access == "RESTRICTED":
                raise ValueError("Superusers must have syslog access set to UNRESTRICTED.")
        return self

    def effective_syslog_access(self) -> str:
        if self.syslog_access:
            return self.syslog_access
        return "UNRESTRICTED" if self.superuser else "RESTRICTED"


def _password_clause(password: Optional[SecretStr]) -> str:
    if password is None or not password.get_secret_value():
        return "PASSWORD DISABLE"
    return f"PASSWORD '{quote_literal(password.get_secret_value())}'"


def _conn_limit_value(limit: int) -> str:
    return str(limit) if limit >= 0 else "UNLIMITED"


class UserResource(Resource[UserModel]):
    type_name = "redshift_user"
    model = UserModel

    def create(self, data) -> UserModel:
        state = self.parse(data)

        options = [_password_clause(state.password)]
        options.append(f"VALID UNTIL '{quote_literal(state.valid_until)}'")
        options.append(f"SYSLOG ACCESS {state.effective_syslog_access()}")
        options.append(f"CONNECTION LIMIT {_conn_limit_value(state.connection_limit)}")
        if state.session_timeout > 0:
            options.append(f"SESSION TIMEOUT {state.session_timeout}")
        options.append("CREATEUSER" if state.superuser else "NOCREATEUSER")
        options.append("CREATEDB" if state.create_database else "NOCREATEDB")

        sql = f"CREATE USER {quote_ident(state.name)} WITH {' '.join(options)}"
        with self.client.transaction() as tx:
            tx.execute(sql)
            row = tx.query_one("SELECT usesysid FROM pg_user_info WHERE usename = %s", (state.name,))

        if row is None:
            raise RedshiftAdminException(
                ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": "user", "name": state.name}
            )
        logger.info("created user", name=state.name, id=row[0])
        return self._read_required(state.model_copy(update={"id": str(row[0])}))

    def _read_required(self, state: UserModel) -> UserModel:
        result = self.read(state)
        if result is None:
            raise RedshiftAdminException(
                ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": "user", "name": state.name}
            )
        return result

    def read(self, data) -> Optional[UserModel]:
        state = self.parse(data)
        user_id = self._require_id(state)

        with self.client.transaction() as tx:
            row = tx.query_one(USER_INFO_QUERY, (user_id,))
            if row is None:
                self._not_found(state)
                return None
            valid_until_row = tx.query_one(
                "SELECT COALESCE(valuntil, 'infinity') FROM pg_user_info WHERE usesysid = %s", (user_id,)
            )

        name, create_db, superuser, syslog_access, conn_limit, session_timeout = row
        valid_until = str(valid_until_row[0]) if valid_until_row else "infinity"

        return state.model_copy(
            update={
                "name": name.strip(),
                "create_database": bool(create_db),
                "superuser": bool(superuser),
                "syslog_access": syslog_access.strip() if syslog_access else None,
                "connection_limit": conn_limit_from_catalog(conn_limit),
                "session_timeout": int(session_timeout or 0),
                "valid_until": valid_until,
            }
        )

    def exists(self, data) -> bool:
        state = self.parse(data)
        row = self.client.query_one("SELECT usename FROM pg_user_info WHERE usesysid = %s", (self._require_id(state),))
        return row is not None

    def update(self, prior, desired) -> UserModel:
        prior = self.parse(prior)
        desired = self.parse(desired)
        self._require_id(prior)

        with self.client.transaction() as tx:
            self._set_name(tx, prior, desired)
            name = quote_ident(desired.name)

            if prior.password != desired.password or prior.name != desired.name:
                tx.execute(f"ALTER USER {name} {_password_clause(desired.password)}")

            if prior.connection_limit != desired.connection_limit:
                tx.execute(f"ALTER USER {name} CONNECTION LIMIT {_conn_limit_value(desired.connection_limit)}")

            if prior.create_database != desired.create_database:
                tx.execute(f"ALTER USER {name} WITH {'CREATEDB' if desired.create_database else 'NOCREATEDB'}")

            if prior.superuser != desired.superuser:
                tx.execute(f"ALTER USER {name} WITH {'CREATEUSER' if desired.superuser else 'NOCREATEUSER'}")

            if prior.valid_until != desired.valid_until and desired.valid_until:
                valid_until = desired.valid_until
                if valid_until.lower() == "infinity":
                    valid_until = valid_until.lower()
                tx.execute(f"ALTER USER {name} VALID UNTIL '{quote_literal(valid_until)}'")

            if prior.effective_syslog_access() != desired.effective_syslog_access():
                tx.execute(f"ALTER USER {name} SYSLOG ACCESS {desired.effective_syslog_access()}")

            if prior.session_timeout != desired.session_timeout:
                if desired.session_timeout == 0:
                    tx.execute(f"ALTER USER {name} RESET SESSION TIMEOUT")
                else:
                    tx.execute(f"ALTER USER {name} SESSION TIMEOUT {desired.session_timeout}")

        return self._read_required(desired.model_copy(update={"id": prior.id}))

    @staticmethod
    def _set_name(tx: Transaction, prior: UserModel, desired: UserModel) -> None:
        if prior.name == desired.name:
            return
        if not desired.name:
            raise RedshiftAdminException(
                ErrorCode.INVALID_ARGUMENT, message_args={"error_message": "Error setting user name to an empty string"}
            )
        tx.execute(f"ALTER USER {quote_ident(prior.name)} RENAME TO {quote_ident(desired.name)}")

    def delete(self, data) -> None:
        state = self.parse(data)
        user_id = self._require_id(state)
        new_owner = permanent_username(self.client.username)

        def _delete():
            with self.client.transaction() as tx:
                owner_ident = quote_ident(new_owner)
                statements = tx.query_all(REASSIGN_OWNER_GENERATOR, (owner_ident,) * 4 + (user_id,))
                for (statement,) in statements:
                    tx.execute(statement)

                for (schema_name,) in tx.query_all(
                    "SELECT nspname FROM pg_namespace WHERE nspowner != 1 OR nspname = 'public'"
                ):
                    schema_ident = quote_ident(schema_name)
                    user_ident = quote_ident(state.name)
                    tx.execute(f"REVOKE ALL ON ALL TABLES IN SCHEMA {schema_ident} FROM {user_ident}")
                    tx.execute(f"ALTER DEFAULT PRIVILEGES IN SCHEMA {schema_ident} REVOKE ALL ON TABLES FROM {user_ident}")

                tx.execute(f"DROP USER {quote_ident(state.name)}")

        with_retry(_delete)
        logger.info("dropped user", name=state.name)
