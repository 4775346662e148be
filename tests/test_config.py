"""Unit tests for environment-backed journal configuration."""

from __future__ import annotations

import pytest

from journal.config import load_journal_config

_ENV_KEYS = (
    "JOURNAL_DSN",
    "DB_HOST",
    "DB_PORT",
    "DB_NAME",
    "DB_USER",
    "DB_PASSWORD",
    "JOURNAL_AUTHENTICATED_ROLE",
    "JOURNAL_ANON_ROLE",
    "JOURNAL_LIST_LIMIT",
    "JOURNAL_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    config = load_journal_config()
    assert config.dsn is None
    assert config.authenticated_role == "authenticated"
    assert config.anon_role == "anon"
    assert config.list_limit == 100
    assert config.log_level == "INFO"
    assert config.missing_connection_keys() == ("host", "port", "dbname", "user", "password")


def test_dsn_satisfies_connection(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JOURNAL_DSN", "postgresql://journal@localhost/journal")
    assert load_journal_config().missing_connection_keys() == ()


def test_partial_connection_reports_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DB_HOST", "localhost")
    monkeypatch.setenv("DB_PORT", "5432")
    monkeypatch.setenv("DB_NAME", "journal")
    assert load_journal_config().missing_connection_keys() == ("user", "password")


def test_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JOURNAL_AUTHENTICATED_ROLE", "journal_user")
    monkeypatch.setenv("JOURNAL_LIST_LIMIT", " 25 ")
    monkeypatch.setenv("JOURNAL_LOG_LEVEL", "debug")
    config = load_journal_config()
    assert config.authenticated_role == "journal_user"
    assert config.list_limit == 25
    assert config.log_level == "DEBUG"


@pytest.mark.parametrize(
    ("key", "value", "message"),
    [
        ("JOURNAL_LIST_LIMIT", "many", "Invalid integer value"),
        ("JOURNAL_LIST_LIMIT", "0", "must be positive"),
        ("JOURNAL_LOG_LEVEL", "LOUD", "Invalid log level"),
        ("JOURNAL_ANON_ROLE", "  ", "Missing required environment variable"),
    ],
)
def test_invalid_values(monkeypatch: pytest.MonkeyPatch, key: str, value: str, message: str) -> None:
    monkeypatch.setenv(key, value)
    with pytest.raises(RuntimeError, match=message):
        load_journal_config()
