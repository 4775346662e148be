"""psycopg adapter implementing the journal database protocol."""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Optional, Sequence

import psycopg
from psycopg.rows import dict_row

from journal.config import JournalConfig

logger = logging.getLogger(__name__)

_NAMED_PARAM_RE = re.compile(r"(?<!:):([a-zA-Z_][a-zA-Z0-9_]*)")


def _convert_named_params(sql: str) -> str:
    """Convert :named params to psycopg %(named)s format."""
    return _NAMED_PARAM_RE.sub(r"%(\1)s", sql)


class PsycopgJournalDB:
    """Transaction-scoped adapter over one psycopg connection."""

    def __init__(self, conn: psycopg.Connection[Any]) -> None:
        self.conn = conn

    def commit(self) -> None:
        self.conn.commit()

    def rollback(self) -> None:
        self.conn.rollback()

    def fetch_one(self, sql: str, params: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
        rows = self.fetch_all(sql, params)
        return rows[0] if rows else None

    def fetch_all(self, sql: str, params: Mapping[str, Any]) -> Sequence[Mapping[str, Any]]:
        converted = _convert_named_params(sql)
        with self.conn.cursor(row_factory=dict_row) as cur:
            cur.execute(converted, dict(params))
            return [dict(row) for row in cur.fetchall()]

    def execute(self, sql: str, params: Mapping[str, Any]) -> None:
        converted = _convert_named_params(sql)
        with self.conn.cursor() as cur:
            cur.execute(converted, dict(params))


def connect(config: JournalConfig) -> psycopg.Connection[Any]:
    """Open a non-autocommit connection from configuration."""
    if config.dsn:
        return psycopg.connect(config.dsn, autocommit=False)

    missing = config.missing_connection_keys()
    if missing:
        raise RuntimeError(
            "Missing DB connection settings. Set JOURNAL_DSN or DB_HOST/DB_PORT/DB_NAME/DB_USER/DB_PASSWORD "
            f"(missing: {', '.join(missing)})."
        )

    logger.debug("Connecting to %s:%s/%s as %s.", config.host, config.port, config.dbname, config.user)
    return psycopg.connect(
        host=config.host,
        port=config.port,
        dbname=config.dbname,
        user=config.user,
        password=config.password,
        autocommit=False,
    )
