# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""
Connections, transactions and retries against a Redshift cluster.

The Client keeps one redshift_connector connection per database and hands
out Transaction objects that wrap a cursor. Driver exceptions are mapped to
RedshiftAdminException so callers deal with a single error type.
"""

import threading
import time
from collections import OrderedDict
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, TypeVar

import redshift_connector
from redshift_connector.error import (
    DatabaseError,
    DataError,
    IntegrityError,
    InterfaceError,
    InternalError,
    OperationalError,
    ProgrammingError,
)

from .config import ProviderConfig
from .exceptions import ErrorCode, RedshiftAdminException
from .loggings import get_logger, redact_sql

logger = get_logger(__name__)

T = TypeVar("T")

PG_INTERNAL_ERROR = "XX000"
PG_INVALID_SCHEMA_NAME = "3F000"
PG_DEADLOCK_DETECTED = "40P01"
PG_IN_FAILED_SQL_TRANSACTION = "25P02"
PG_DUPLICATE_SCHEMA = "42P06"
PG_INSUFFICIENT_PRIVILEGE = "42501"

RETRYABLE_PG_CODES = frozenset(
    {PG_INTERNAL_ERROR, PG_INVALID_SCHEMA_NAME, PG_DEADLOCK_DETECTED, PG_IN_FAILED_SQL_TRANSACTION}
)
DEFAULT_RETRIES = 10


def _pg_error_code(e: Exception) -> Optional[str]:
    """Extract the SQLSTATE from a redshift_connector error, if it carries one."""
    if e.args and isinstance(e.args[0], dict):
        return e.args[0].get("C")
    return getattr(e, "pgcode", None)


def _handle_redshift_exception(e: Exception, sql: str = "") -> RedshiftAdminException:
    """
    Map a driver exception to a RedshiftAdminException.

    Args:
        e: The exception raised by redshift_connector
        sql: The statement that caused it

    Returns:
        RedshiftAdminException with an error code and the server's SQLSTATE
    """
    if isinstance(e, RedshiftAdminException):
        return e

    pg_code = _pg_error_code(e)
    error_message = str(e.args[0].get("M", e)) if e.args and isinstance(e.args[0], dict) else str(e)
    sql = redact_sql(sql)

    if isinstance(e, ProgrammingError):
        return RedshiftAdminException(
            ErrorCode.DB_EXECUTION_SYNTAX_ERROR,
            message_args={"sql": sql, "error_message": error_message},
            pg_code=pg_code,
        )
    # IntegrityError and DataError subclass DatabaseError, check them first
    elif isinstance(e, IntegrityError):
        return RedshiftAdminException(
            ErrorCode.DB_CONSTRAINT_VIOLATION,
            message_args={"sql": sql, "error_message": error_message},
            pg_code=pg_code,
        )
    elif isinstance(e, (InterfaceError, InternalError)):
        return RedshiftAdminException(
            ErrorCode.DB_CONNECTION_FAILED, message_args={"error_message": error_message}, pg_code=pg_code
        )
    elif isinstance(e, (OperationalError, DataError, DatabaseError)):
        return RedshiftAdminException(
            ErrorCode.DB_EXECUTION_ERROR,
            message_args={"sql": sql, "error_message": error_message},
            pg_code=pg_code,
        )
    else:
        return RedshiftAdminException(ErrorCode.DB_FAILED, message_args={"error_message": error_message})


def is_pg_error_with_code(e: Exception, *codes: str) -> bool:
    pg_code = e.pg_code if isinstance(e, RedshiftAdminException) else _pg_error_code(e)
    return pg_code in codes


def with_retry(
    func: Callable[[], T],
    retries: int = DEFAULT_RETRIES,
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """
    Call ``func`` until it succeeds or fails with a non-retryable error.

    Concurrent DDL in Redshift regularly fails with internal errors,
    deadlocks or aborted transactions. Attempt ``i`` waits ``i + 1`` seconds
    before the next one.

    Args:
        func: Zero-argument callable to run
        retries: Maximum number of attempts
        sleep: Sleep function, defaults to time.sleep

    Returns:
        The value returned by ``func``
    """
    sleep = sleep or time.sleep
    for attempt in range(retries):
        try:
            return func()
        except RedshiftAdminException as e:
            if e.pg_code not in RETRYABLE_PG_CODES or attempt == retries - 1:
                raise
            logger.warning("retrying after retryable error", attempt=attempt + 1, pg_code=e.pg_code, error=str(e))
            sleep(attempt + 1)
    raise RedshiftAdminException(ErrorCode.INVALID_ARGUMENT, message_args={"error_message": "retries must be positive"})


class Transaction:
    """Statements executed on one connection until commit or rollback."""

    def __init__(self, connection: Any, database: str):
        self.connection = connection
        self.database = database

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> None:
        logger.debug("executing statement", sql=redact_sql(sql), database=self.database)
        try:
            with self.connection.cursor() as cursor:
                if params:
                    cursor.execute(sql, params)
                else:
                    cursor.execute(sql)
        except Exception as e:
            raise _handle_redshift_exception(e, sql) from e

    def query_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[tuple]:
        logger.debug("running query", sql=redact_sql(sql), database=self.database)
        try:
            with self.connection.cursor() as cursor:
                if params:
                    cursor.execute(sql, params)
                else:
                    cursor.execute(sql)
                rows = cursor.fetchall()
        except Exception as e:
            raise _handle_redshift_exception(e, sql) from e
        return [tuple(row) for row in rows or []]

    def query_one(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[tuple]:
        """Return the first row of the result, or None when it is empty."""
        rows = self.query_all(sql, params)
        return rows[0] if rows else None


class _PooledConnection:
    """A cached connection, the lock serializing its transactions and its number of holders."""

    def __init__(self, connection: Any):
        self.connection = connection
        self.lock = threading.RLock()
        self.holders = 0


class Client:
    """
    Entry point for talking to a Redshift cluster.

    Connections are opened lazily per database and reused. When more than
    ``max_connections`` databases are open, the least recently used idle
    connection is closed.

    A Client can be shared between threads. Transactions and autocommit
    statements on the same database are serialized on that database's
    connection, and a connection is never evicted while one is running.
    Connections returned by ``connect()`` carry no such guarantee.
    """

    def __init__(self, config: ProviderConfig, username: str, password: str):
        if isinstance(config, dict):
            config = ProviderConfig(**config)
        elif not isinstance(config, ProviderConfig):
            raise TypeError(f"config must be ProviderConfig or dict, got {type(config)}")

        self.config = config
        self.username = username
        self.password = password
        self.database_name = config.database

        self._connections: "OrderedDict[str, _PooledConnection]" = OrderedDict()
        self._lock = threading.Lock()
        self._is_serverless: Optional[bool] = None

    def _dsn(self, database: str) -> str:
        return f"{self.username}@{self.config.host}:{self.config.port}/{database}"

    def _connection_params(self, database: str) -> Dict[str, Any]:
        params = {
            "host": self.config.host,
            "port": self.config.port,
            "user": self.username,
            "password": self.password,
            "database": database,
            "timeout": self.config.connect_timeout,
            "ssl": self.config.sslmode != "disable",
        }
        if self.config.sslmode in ("verify-ca", "verify-full"):
            params["sslmode"] = self.config.sslmode
        return params

    def _evict_idle(self) -> None:
        limit = self.config.max_connections
        if limit <= 0:
            return
        idle = [dsn for dsn, pooled in self._connections.items() if pooled.holders == 0]
        while idle and len(self._connections) >= limit:
            evicted_dsn = idle.pop(0)
            evicted = self._connections.pop(evicted_dsn)
            logger.debug("closing least recently used connection", dsn=evicted_dsn)
            self._close_quietly(evicted.connection)

    def _pooled(self, database: str, hold: bool = False) -> _PooledConnection:
        dsn = self._dsn(database)

        with self._lock:
            pooled = self._connections.get(dsn)
            if pooled is not None:
                self._connections.move_to_end(dsn)
            else:
                self._evict_idle()
                logger.debug("opening connection", host=self.config.host, database=database)
                try:
                    connection = redshift_connector.connect(**self._connection_params(database))
                except Exception as e:
                    raise RedshiftAdminException(
                        ErrorCode.DB_CONNECTION_FAILED, message_args={"error_message": str(e)}
                    ) from e
                pooled = _PooledConnection(connection)
                self._connections[dsn] = pooled

            if hold:
                pooled.holders += 1
            return pooled

    @contextmanager
    def _hold(self, database: str) -> Iterator[Any]:
        """Use the connection to ``database`` exclusively for the duration of the block."""
        pooled = self._pooled(database, hold=True)
        try:
            with pooled.lock:
                yield pooled.connection
        finally:
            with self._lock:
                pooled.holders -= 1

    def connect(self, database: Optional[str] = None) -> Any:
        """
        Return an open connection to ``database``, defaulting to the configured one.

        Raises:
            RedshiftAdminException: If the connection cannot be established
        """
        return self._pooled(database or self.database_name).connection

    @contextmanager
    def transaction(self, database: Optional[str] = None) -> Iterator[Transaction]:
        """
        Run statements in a transaction, committing on success.

        Any exception, including a failed COMMIT, rolls the transaction back
        and is re-raised. A failed rollback is logged and does not replace
        the original error.
        """
        database = database or self.database_name
        with self._hold(database) as connection:
            tx = Transaction(connection, database)
            try:
                yield tx
                try:
                    connection.commit()
                except Exception as e:
                    raise _handle_redshift_exception(e, "COMMIT") from e
            except Exception:
                try:
                    connection.rollback()
                except Exception as rollback_error:
                    logger.error("could not rollback transaction", error=str(rollback_error), database=database)
                raise

    def execute_autocommit(self, sql: str, database: Optional[str] = None) -> None:
        """Run a statement that cannot be part of a transaction block, e.g. CREATE DATABASE."""
        database = database or self.database_name
        with self._hold(database) as connection:
            previous = connection.autocommit
            connection.autocommit = True
            try:
                Transaction(connection, database).execute(sql)
            finally:
                connection.autocommit = previous

    def query_one(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[tuple]:
        with self.transaction() as tx:
            return tx.query_one(sql, params)

    def query_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[tuple]:
        with self.transaction() as tx:
            return tx.query_all(sql, params)

    def is_serverless(self) -> bool:
        """
        Detect Redshift Serverless by probing SYS_SERVERLESS_USAGE.

        Provisioned clusters deny access to the view with SQLSTATE 42501.
        The answer is cached for the lifetime of the client.
        """
        if self._is_serverless is not None:
            return self._is_serverless

        try:
            self.query_one("SELECT 1 FROM SYS_SERVERLESS_USAGE")
            self._is_serverless = True
        except RedshiftAdminException as e:
            if not is_pg_error_with_code(e, PG_INSUFFICIENT_PRIVILEGE):
                raise
            self._is_serverless = False

        logger.debug("detected deployment type", serverless=self._is_serverless)
        return self._is_serverless

    @staticmethod
    def _close_quietly(connection: Any) -> None:
        try:
            connection.close()
        except Exception as e:
            logger.warning("error closing connection", error=str(e))

    def close(self):
        """Close every open connection."""
        with self._lock:
            while self._connections:
                _, pooled = self._connections.popitem()
                self._close_quietly(pooled.connection)
