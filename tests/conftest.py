# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""
Shared fixtures.

Unit tests run against a fake redshift_connector connection that records
every statement and answers queries from canned rows, so the exact SQL sent
by each resource can be asserted without a cluster.
"""

from typing import Any, Callable, List, Optional, Sequence, Tuple, Union
from unittest.mock import MagicMock

import pytest
import structlog

from redshift_admin.client import Client
from redshift_admin.config import ProviderConfig

Rows = Union[List[tuple], Callable[[Optional[Sequence[Any]]], List[tuple]]]


class FakeCursor:
    def __init__(self, database: "FakeDatabase"):
        self._database = database
        self._rows: List[tuple] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> None:
        self._rows = self._database.handle(sql, params)

    def fetchall(self) -> List[tuple]:
        return self._rows


class FakeDatabase:
    """
    Records statements and serves query results.

    Responses are matched by SQL fragment, the most recently registered
    match wins.
    """

    def __init__(self):
        self.statements: List[Tuple[str, Optional[Sequence[Any]]]] = []
        self._responses: List[Tuple[str, Rows]] = []
        self._failures: List[List[Any]] = []
        self.connection = MagicMock(name="connection")
        self.connection.autocommit = False
        self.connection.cursor.side_effect = lambda: FakeCursor(self)

    def on(self, fragment: str, rows: Rows) -> None:
        self._responses.append((fragment, rows))

    def fail(self, fragment: str, error: Exception, times: int = 1) -> None:
        self._failures.append([fragment, error, times])

    def handle(self, sql: str, params: Optional[Sequence[Any]]) -> List[tuple]:
        self.statements.append((sql, params))
        for failure in self._failures:
            fragment, error, times = failure
            if times > 0 and fragment in sql:
                failure[2] -= 1
                raise error
        for fragment, rows in reversed(self._responses):
            if fragment in sql:
                return rows(params) if callable(rows) else rows
        return []

    @property
    def executed(self) -> List[str]:
        return [sql for sql, _ in self.statements]

    @property
    def changes(self) -> List[str]:
        """Statements other than queries."""
        return [sql for sql in self.executed if not sql.lstrip().upper().startswith("SELECT")]

    def executed_matching(self, prefix: str) -> List[str]:
        return [sql for sql in self.executed if sql.startswith(prefix)]


@pytest.fixture(autouse=True)
def reset_structlog():
    """Start every test from structlog's default, uncached configuration."""
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def provider_config():
    return ProviderConfig(
        host="test-cluster.abc123.us-east-1.redshift.amazonaws.com",
        username="admin",
        password="Secret123",
        database="dev",
    )


@pytest.fixture
def client(provider_config, fake_db, monkeypatch):
    """
    Client whose connections all resolve to the fake database.

    The deployment type defaults to provisioned.
    """
    connect = MagicMock(return_value=fake_db.connection)
    monkeypatch.setattr("redshift_admin.client.redshift_connector.connect", connect)

    test_client = Client(provider_config, "admin", "Secret123")
    test_client._is_serverless = False
    yield test_client
    test_client.close()


@pytest.fixture
def no_sleep(monkeypatch):
    """Make retries instant and record the requested delays."""
    delays: List[float] = []
    monkeypatch.setattr("redshift_admin.client.time.sleep", delays.append)
    return delays
