"""Environment-backed configuration for the journal data-access layer."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Optional

_LOG_LEVELS: frozenset[str] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class JournalConfig:
    """Connection and runtime settings."""

    dsn: Optional[str]
    host: Optional[str]
    port: Optional[str]
    dbname: Optional[str]
    user: Optional[str]
    password: Optional[str]
    authenticated_role: str
    anon_role: str
    list_limit: int
    log_level: str

    def missing_connection_keys(self) -> tuple[str, ...]:
        """Return connection fields still unset when no DSN is configured."""
        if self.dsn:
            return ()
        return tuple(
            key
            for key, value in (
                ("host", self.host),
                ("port", self.port),
                ("dbname", self.dbname),
                ("user", self.user),
                ("password", self.password),
            )
            if not value
        )


def _read_optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return value.strip()


def _read_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value.strip() == "":
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value.strip()


def _read_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer value for {name}: {raw}") from exc
    return value


def load_journal_config() -> JournalConfig:
    """Load journal configuration from environment variables."""
    list_limit = _read_int("JOURNAL_LIST_LIMIT", 100)
    if list_limit <= 0:
        raise RuntimeError(f"JOURNAL_LIST_LIMIT must be positive: {list_limit}")

    log_level = _read_env("JOURNAL_LOG_LEVEL", "INFO").upper()
    if log_level not in _LOG_LEVELS:
        raise RuntimeError(f"Invalid log level for JOURNAL_LOG_LEVEL: {log_level}")

    return JournalConfig(
        dsn=_read_optional("JOURNAL_DSN"),
        host=_read_optional("DB_HOST"),
        port=_read_optional("DB_PORT"),
        dbname=_read_optional("DB_NAME"),
        user=_read_optional("DB_USER"),
        password=_read_optional("DB_PASSWORD"),
        authenticated_role=_read_env("JOURNAL_AUTHENTICATED_ROLE", "authenticated"),
        anon_role=_read_env("JOURNAL_ANON_ROLE", "anon"),
        list_limit=list_limit,
        log_level=log_level,
    )
