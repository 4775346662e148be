"""Pytest fixtures shared across unit and integration tests."""

from __future__ import annotations

import os
from typing import Any

import psycopg
import pytest

from journal.db import PsycopgJournalDB
from journal.store import JournalStore
from tests.utils.journal_db import reset_schema


@pytest.fixture(scope="session")
def pg_conn() -> Any:
    """Session-scoped psycopg connection for integration tests.

    The user must be allowed to create roles and switch into them.
    """
    host = os.getenv("TEST_DB_HOST")
    port = os.getenv("TEST_DB_PORT")
    dbname = os.getenv("TEST_DB_NAME")
    user = os.getenv("TEST_DB_USER")
    password = os.getenv("TEST_DB_PASSWORD")

    if not all([host, port, dbname, user, password]):
        pytest.skip("Integration DB env vars are missing; set TEST_DB_HOST/PORT/NAME/USER/PASSWORD")

    conn = psycopg.connect(
        host=host,
        port=port,
        dbname=dbname,
        user=user,
        password=password,
        autocommit=False,
    )
    try:
        reset_schema(conn)
        yield conn
    finally:
        conn.close()


@pytest.fixture
def journal_db(pg_conn: Any) -> PsycopgJournalDB:
    """Journal DB adapter fixture."""
    return PsycopgJournalDB(pg_conn)


@pytest.fixture
def store(journal_db: PsycopgJournalDB) -> JournalStore:
    return JournalStore(journal_db)
